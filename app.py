#!/usr/bin/env python3
"""Wrong-question review assistant: main entry point and menu system."""

import logging
import sys
from pathlib import Path

import config
from database import StorageError, open_blob_store
from question_store import QuestionStore
import display

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Send logs to a file so they do not interleave with the console UI."""
    log_path = Path(config.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_path),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    )


def check_api_key() -> bool:
    """Verify the Anthropic API key is configured."""
    if not config.ANTHROPIC_API_KEY:
        display.show_error(
            "ANTHROPIC_API_KEY is not set.\n"
            "  1. Copy .env.example to .env\n"
            "  2. Add your Anthropic API key\n"
            "  3. Run the app again\n"
        )
        return False
    return True


def main_menu_loop(store: QuestionStore) -> None:
    """Main menu loop."""
    while True:
        display.clear_screen()
        display.show_banner()

        options = [
            "概览",
            "录入错题",
            "复盘",
            "退出",
        ]

        choice = display.show_menu("主菜单", options)

        try:
            if choice == 1:
                from progress import ProgressTracker
                ProgressTracker(store).show_dashboard()
                display.press_enter_to_continue()

            elif choice == 2:
                from analyzer import QuestionAnalyzer
                from capture import CaptureWorkflow
                CaptureWorkflow(store, QuestionAnalyzer()).run()
                display.press_enter_to_continue()

            elif choice == 3:
                from review import ReviewManager
                ReviewManager(store).run_review()

            elif choice == 4:
                if store.unsaved and not store.save():
                    display.show_error(f"保存失败：{store.save_error}")
                    if not display.confirm("仍要退出？未保存的更改将丢失"):
                        continue
                display.show_info("再见，继续加油！")
                break

        except KeyboardInterrupt:
            display.console.print("\n")
            display.show_info("返回主菜单...")
            continue
        except Exception as e:
            logger.exception("Unhandled error in main menu")
            display.show_error(f"发生错误：{e}")
            display.press_enter_to_continue()


def main() -> None:
    """Entry point."""
    setup_logging()
    display.clear_screen()
    display.show_banner()

    if not check_api_key():
        display.show_warning("未配置 API Key，AI识别与诊断不可用，可手动录入。")
        display.press_enter_to_continue()

    try:
        backend = open_blob_store(config.DATABASE_URL, config.DATA_DIR)
    except StorageError as e:
        display.show_error(f"无法连接数据库：{e}")
        sys.exit(1)

    store = QuestionStore(backend)
    store.load()
    if store.load_error:
        display.show_warning(store.load_error)
        if store.overwrite_blocked and display.confirm("仍要允许保存（将覆盖无法备份的原数据）？"):
            store.allow_overwrite()
        display.press_enter_to_continue()

    try:
        main_menu_loop(store)
    except KeyboardInterrupt:
        display.console.print("\n")
        display.show_info("再见！")
    finally:
        backend.close()


if __name__ == "__main__":
    main()
