"""Review mode: browse wrong questions and run practice exams over them."""

import logging
from typing import Optional

from exam_session import ExamSession
from models import MasteryStatus
from periods import group_by_period, sorted_periods
from pool import EmptyPoolError, PoolCriterion, PoolFilter, filter_questions, select_pool
from question_store import QuestionStore
import display

logger = logging.getLogger(__name__)


class ReviewManager:
    def __init__(self, store: QuestionStore):
        self.store = store
        self.filter_mode = PoolFilter.ALL

    def run_review(self) -> None:
        """Main review entry point."""
        while True:
            priority = self.filter_mode == PoolFilter.PRIORITY
            options = [
                "重点题目突击" if priority else "随机巩固练习",
                "定期模拟考试（按半月）",
                "浏览错题列表",
                "切换到全部题目" if priority else "切换到重点复习（需加强）",
                "返回主菜单",
            ]
            choice = display.show_menu("复盘", options)

            if choice == 1:
                criterion = PoolCriterion.priority() if priority else PoolCriterion.all()
                self.run_exam(criterion)
            elif choice == 2:
                self.choose_period_exam()
            elif choice == 3:
                self.show_list()
            elif choice == 4:
                self.filter_mode = PoolFilter.ALL if priority else PoolFilter.PRIORITY
            elif choice == 5:
                break

    def show_list(self) -> None:
        criterion = PoolCriterion(self.filter_mode)
        questions = filter_questions(self.store.questions, criterion)
        title = "重点复习（需加强）" if self.filter_mode == PoolFilter.PRIORITY else "全部题目"
        display.show_question_list(questions, title)
        display.press_enter_to_continue()

    def choose_period_exam(self) -> None:
        groups = group_by_period(self.store.questions)
        if not groups:
            display.show_info("暂无错题，无法组卷。")
            display.press_enter_to_continue()
            return

        periods = sorted_periods(groups)
        display.show_period_table(periods, groups)
        choice = display.show_menu("选择周期", periods + ["返回"])
        if choice <= len(periods):
            self.run_exam(PoolCriterion.period(periods[choice - 1]))

    # ------------------------------------------------------------------
    # Exam loop
    # ------------------------------------------------------------------

    def run_exam(self, criterion: PoolCriterion) -> Optional[ExamSession]:
        try:
            pool = select_pool(self.store.questions, criterion)
            session = ExamSession(pool, self.store, title=criterion.title)
        except EmptyPoolError:
            display.show_warning("当前列表没有题目可考！")
            display.press_enter_to_continue()
            return None

        logger.info(f"Started exam '{session.title}' with {session.total} questions")

        while not session.finished:
            q = session.current
            display.show_exam_question(session.title, session.position, session.total, q)
            if session.revealed:
                display.show_answer(q)

            action = display.show_exam_actions(
                session.revealed, session.position == 1, session.is_last
            )
            if action == "r":
                session.reveal()
            elif action == "p":
                session.previous()
            elif action == "n":
                session.advance()
            elif action == "m" and session.revealed:
                session.set_mastery(MasteryStatus.MASTERED)
            elif action == "x" and session.revealed:
                session.set_mastery(MasteryStatus.REVIEW_NEEDED)
            elif action == "q":
                display.show_info("已退出本轮考试。")
                return session
            self._check_saved()

        display.show_success("本轮考试结束！")
        display.press_enter_to_continue()
        return session

    def _check_saved(self) -> None:
        """Offer to retry when the last write did not reach storage."""
        while self.store.unsaved:
            display.show_error(f"保存失败：{self.store.save_error}")
            if not display.confirm("重试保存？"):
                display.show_warning("更改仅保存在内存中，退出前请再次尝试保存。")
                return
            self.store.save()
