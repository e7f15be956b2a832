"""Overview of the wrong-question collection."""

from typing import Iterable

from models import MasteryStatus, ProgressSummary, Question
from question_store import QuestionStore
import display


def summarize(questions: Iterable[Question]) -> ProgressSummary:
    summary = ProgressSummary()
    for q in questions:
        summary.total += 1
        if q.mastery_status == MasteryStatus.REVIEW_NEEDED:
            summary.priority_count += 1
        elif q.mastery_status == MasteryStatus.MASTERED:
            summary.mastered_count += 1
        summary.category_counts[q.category] = summary.category_counts.get(q.category, 0) + 1
    return summary


class ProgressTracker:
    def __init__(self, store: QuestionStore):
        self.store = store

    def summary(self) -> ProgressSummary:
        return summarize(self.store.questions)

    def show_dashboard(self) -> None:
        """Main dashboard entry point."""
        display.show_dashboard(self.summary())
