import os
from datetime import datetime
from typing import Dict, List, Optional

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from models import MasteryStatus, ProgressSummary, Question

custom_theme = Theme({
    "correct": "bold green",
    "wrong": "bold red",
    "skip": "dim",
    "mastered": "bold green",
    "review_needed": "bold red",
    "needs_work": "bold yellow",
    "info": "bold cyan",
    "header": "bold magenta",
})

console = Console(theme=custom_theme)

MASTERY_LABELS = {
    MasteryStatus.MASTERED: "[mastered]已掌握[/mastered]",
    MasteryStatus.REVIEW_NEEDED: "[review_needed]需加强[/review_needed]",
    None: "[skip]未评估[/skip]",
}


# ---------------------------------------------------------------------------
# General UI
# ---------------------------------------------------------------------------

def clear_screen() -> None:
    os.system("cls" if os.name == "nt" else "clear")


def show_banner() -> None:
    banner = Text()
    banner.append("  错题复盘助手  ", style="bold white on blue")
    console.print()
    console.print(Align.center(banner))
    console.print(Align.center(Text("山东事业编统考专属", style="dim")))
    console.print()


def show_menu(title: str, options: List[str]) -> int:
    """Show a numbered menu and return 1-indexed selection."""
    console.print(Rule(title, style="header"))
    console.print()
    for i, option in enumerate(options, 1):
        console.print(f"  [bold cyan]{i}.[/bold cyan] {option}")
    console.print()

    while True:
        try:
            raw = console.input("[bold]请选择: [/bold]").strip()
            choice = int(raw)
            if 1 <= choice <= len(options):
                return choice
            console.print(f"  请输入 1 到 {len(options)} 之间的数字。", style="wrong")
        except (ValueError, EOFError):
            console.print(f"  请输入 1 到 {len(options)} 之间的数字。", style="wrong")


def show_error(message: str) -> None:
    console.print(f"  [wrong]错误：[/wrong]{message}")


def show_success(message: str) -> None:
    console.print(f"  [correct]{message}[/correct]")


def show_info(message: str) -> None:
    console.print(f"  [info]{message}[/info]")


def show_warning(message: str) -> None:
    console.print(f"  [needs_work]注意：[/needs_work]{message}")


def confirm(prompt: str) -> bool:
    while True:
        raw = console.input(f"  {prompt} [bold](y/n)[/bold]: ").strip().lower()
        if raw in ("y", "yes"):
            return True
        if raw in ("n", "no"):
            return False
        console.print("  请输入 y 或 n。", style="dim")


def prompt_text(prompt: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    raw = console.input(f"  {prompt}{suffix}: ").strip()
    return raw if raw else default


def prompt_multiline(prompt: str, default: str = "") -> str:
    """Read lines until an empty line. Keeps ``default`` if nothing is typed."""
    console.print(f"  {prompt} [dim](空行结束)[/dim]")
    lines = []
    while True:
        try:
            line = console.input("  > ")
        except EOFError:
            break
        if not line.strip():
            break
        lines.append(line.rstrip())
    return "\n".join(lines) if lines else default


def press_enter_to_continue() -> None:
    try:
        console.input("  [dim]按回车继续...[/dim]")
    except EOFError:
        pass


def format_date(ts_ms: int) -> str:
    d = datetime.fromtimestamp(ts_ms / 1000)
    return f"{d.month}/{d.day}"


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def show_dashboard(summary: ProgressSummary) -> None:
    console.print(Rule("概览", style="header"))
    console.print()
    console.print(
        f"  累计错题 [bold]{summary.total}[/bold]    "
        f"重点复习 [review_needed]{summary.priority_count}[/review_needed]    "
        f"已掌握 [mastered]{summary.mastered_count}[/mastered]"
    )
    console.print()

    if not summary.total:
        console.print("  [skip]暂无错题数据，请先录入错题。[/skip]")
        return

    table = Table(title="题型分布", show_header=True, border_style="dim", padding=(0, 1))
    table.add_column("题型", style="bold")
    table.add_column("分布")
    table.add_column("数量", justify="right")
    for category, count in summary.category_counts.items():
        width = max(1, round(count / summary.total * 30))
        table.add_row(category, f"[info]{'█' * width}[/info]", f"{count}题")
    console.print(table)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------

def show_draft(draft) -> None:
    """Show the editable fields of a question being captured."""
    table = Table(title="编辑错题详情", show_header=False, border_style="blue", padding=(0, 1))
    table.add_column("字段", style="bold", no_wrap=True)
    table.add_column("内容")
    table.add_row("科目", draft.subject.value)
    table.add_row("大类", draft.category)
    table.add_row("细分题型", draft.sub_category or "[skip]-[/skip]")
    table.add_row("题干", draft.question_text or "[skip]-[/skip]")
    table.add_row("AI初步分析", draft.ai_analysis or "[skip]-[/skip]")
    table.add_row("我的思路", draft.my_thinking or "[skip]-[/skip]")
    table.add_row("正确解析", draft.correct_resolution or "[skip]-[/skip]")
    table.add_row("错因诊断", draft.root_cause or "[skip]-[/skip]")
    table.add_row("掌握状态", MASTERY_LABELS[draft.mastery_status])
    console.print(table)
    console.print()


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

def show_question_list(questions: List[Question], title: str) -> None:
    if not questions:
        console.print(f"  [skip]{title}：暂无题目[/skip]")
        return

    table = Table(title=title, border_style="dim", padding=(0, 1))
    table.add_column("#", justify="right", style="bold")
    table.add_column("科目")
    table.add_column("题型")
    table.add_column("日期", justify="right")
    table.add_column("复习", justify="right")
    table.add_column("状态")
    for i, q in enumerate(questions, 1):
        if q.last_reviewed_at:
            date = f"复习于 {format_date(q.last_reviewed_at)}"
        else:
            date = format_date(q.created_at)
        label = q.category + (f" · {q.sub_category}" if q.sub_category else "")
        table.add_row(
            str(i), q.subject.value, label, date,
            f"{q.review_count}次", MASTERY_LABELS[q.mastery_status],
        )
    console.print(table)


def show_period_table(periods: List[str], groups: Dict[str, List[Question]]) -> None:
    table = Table(title="定期模拟考试", border_style="dim", padding=(0, 1))
    table.add_column("#", justify="right", style="bold")
    table.add_column("周期", style="bold")
    table.add_column("题量", justify="right")
    for i, period in enumerate(periods, 1):
        table.add_row(str(i), period, f"{len(groups[period])}题")
    console.print(table)


def show_exam_question(title: str, position: int, total: int, question: Question) -> None:
    console.print()
    body = question.question_text or "[skip]（图片题目）[/skip]"
    console.print(Panel(
        body,
        title=f"[header]{title}  {position}/{total}[/header]",
        subtitle=f"{question.subject.value} · {question.category}"
        + (f" · {question.sub_category}" if question.sub_category else ""),
        border_style="blue",
        padding=(1, 2),
    ))


def show_answer(question: Question) -> None:
    if question.correct_resolution:
        console.print(Panel(question.correct_resolution, title="正确解析", border_style="green"))
    if question.my_thinking:
        console.print(Panel(question.my_thinking, title="当时的思路", border_style="dim"))
    if question.root_cause:
        console.print(Panel(question.root_cause, title="错因诊断", border_style="magenta"))
    console.print(f"  掌握状态：{MASTERY_LABELS[question.mastery_status]}")
    console.print()


def show_exam_actions(revealed: bool, is_first: bool, is_last: bool) -> Optional[str]:
    """Prompt for the next exam action and return its key."""
    actions = []
    if not revealed:
        actions.append("[bold]r[/bold] 查看解析")
    else:
        actions.append("[bold]m[/bold] 已掌握")
        actions.append("[bold]x[/bold] 需加强")
    if not is_first:
        actions.append("[bold]p[/bold] 上一题")
    actions.append(f"[bold]n[/bold] {'完成' if is_last else '下一题'}")
    actions.append("[bold]q[/bold] 退出")
    console.print("  " + "   ".join(actions))
    try:
        return console.input("  [bold]操作: [/bold]").strip().lower()
    except EOFError:
        return "q"
