"""Capture workflow: screenshot in, classified and diagnosed question out."""

import mimetypes
from pathlib import Path
from typing import Optional

from analyzer import QuestionAnalyzer
from draft import QuestionDraft
from models import MasteryStatus, Question, Subject, categories_for
from question_store import QuestionStore
import display


class CaptureWorkflow:
    def __init__(self, store: QuestionStore, analyzer: QuestionAnalyzer):
        self.store = store
        self.analyzer = analyzer

    def run(self) -> Optional[Question]:
        """Walk through capture; returns the saved question, or None if abandoned."""
        display.console.print()
        path_text = display.prompt_text("错题截图路径")
        if not path_text:
            return None
        path = Path(path_text).expanduser()
        try:
            data = path.read_bytes()
        except OSError as e:
            display.show_error(f"无法读取图片：{e}")
            return None

        media_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        draft = QuestionDraft()
        draft.set_image(data, media_type)

        if self.analyzer.available:
            display.show_info("AI正在分析题型和考点...")
            result = self.analyzer.classify_image(data, media_type)
            if result.ok:
                draft.apply_classification(result.value)
            else:
                display.show_error(result.error)
        else:
            display.show_warning("未配置 ANTHROPIC_API_KEY，请手动填写。")

        return self.edit(draft)

    def edit(self, draft: QuestionDraft) -> Optional[Question]:
        while True:
            display.show_draft(draft)
            options = [
                "修改科目/大类",
                "修改细分题型",
                "填写我的做题思路",
                "填写正确解析",
                "AI深度诊断错因",
                "设置掌握状态",
                "保存",
                "放弃",
            ]
            choice = display.show_menu("录入错题", options)

            if choice == 1:
                self._edit_classification(draft)
            elif choice == 2:
                draft.sub_category = display.prompt_text("细分题型", draft.sub_category)
            elif choice == 3:
                draft.my_thinking = display.prompt_multiline("我的做题思路", draft.my_thinking)
            elif choice == 4:
                draft.correct_resolution = display.prompt_multiline("正确解析", draft.correct_resolution)
            elif choice == 5:
                self._diagnose(draft)
            elif choice == 6:
                status = display.show_menu("掌握状态", ["需加强", "已掌握"])
                draft.mastery_status = (
                    MasteryStatus.REVIEW_NEEDED if status == 1 else MasteryStatus.MASTERED
                )
            elif choice == 7:
                return self._save(draft)
            elif choice == 8:
                if display.confirm("放弃这道题？"):
                    return None

    def _edit_classification(self, draft: QuestionDraft) -> None:
        subjects = [s.value for s in Subject]
        choice = display.show_menu("科目", subjects)
        if subjects[choice - 1] != draft.subject.value:
            draft.change_subject(subjects[choice - 1])
        categories = categories_for(draft.subject)
        choice = display.show_menu("大类", categories)
        draft.set_category(categories[choice - 1])

    def _diagnose(self, draft: QuestionDraft) -> None:
        if not draft.can_diagnose:
            display.show_warning("请先输入‘我的做题思路’或‘正确解析’，AI才能分析深层错因。")
            return
        display.show_info("AI正在诊断错因...")
        result = self.analyzer.diagnose(
            draft.subject, draft.category, draft.sub_category,
            draft.my_thinking, draft.correct_resolution, draft.image_url,
        )
        if not result.ok:
            display.show_error(result.error)
            return
        draft.apply_diagnosis(result.value)
        if draft.root_cause:
            display.show_success("诊断完成，已建议标记为“需加强”。")

    def _save(self, draft: QuestionDraft) -> Question:
        question = draft.build()
        if self.store.add(question):
            display.show_success("错题已保存。")
        else:
            display.show_error(f"保存失败：{self.store.save_error}（已保留在本次会话中）")
        return question
