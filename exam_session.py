"""Stateful walkthrough of one practice pool."""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from mastery import now_ms, record_review_pass, set_mastery_status
from models import MasteryStatus, Question
from pool import EmptyPoolError
from question_store import QuestionStore


class SessionFinishedError(Exception):
    """Raised when a finished session is asked to move."""


@dataclass(frozen=True)
class Active:
    index: int
    revealed: bool = False


@dataclass(frozen=True)
class Finished:
    pass


SessionState = Union[Active, Finished]


class ExamSession:
    """Walks a fixed pool one question at a time.

    Review stats and mastery changes are written to the store as soon as
    they happen. Check ``store.unsaved`` after a transition to find out
    whether the write reached the backend.
    """

    def __init__(
        self,
        pool: Sequence[Question],
        store: QuestionStore,
        title: str = "错题组卷",
        clock: Optional[Callable[[], int]] = None,
    ):
        if not pool:
            raise EmptyPoolError("Cannot start a session without questions")
        self.questions: List[Question] = list(pool)
        self.store = store
        self.title = title
        self.clock = clock or now_ms
        self.state: SessionState = Active(0)

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def finished(self) -> bool:
        return isinstance(self.state, Finished)

    def _active(self) -> Active:
        if isinstance(self.state, Finished):
            raise SessionFinishedError(f"Session '{self.title}' has finished")
        return self.state

    @property
    def current(self) -> Question:
        return self.questions[self._active().index]

    @property
    def position(self) -> int:
        """1-based position of the current question."""
        return self._active().index + 1

    @property
    def revealed(self) -> bool:
        return self._active().revealed

    @property
    def is_last(self) -> bool:
        return self._active().index == self.total - 1

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reveal(self) -> SessionState:
        state = self._active()
        if not state.revealed:
            self.state = Active(state.index, True)
        return self.state

    def previous(self) -> SessionState:
        """Step back one question; at the first question only hide the answer."""
        state = self._active()
        self.state = Active(max(0, state.index - 1), False)
        return self.state

    def advance(self) -> SessionState:
        """Record a review pass on the current question, then move on."""
        state = self._active()
        self._write(state.index, record_review_pass(self.questions[state.index], self.clock()))
        if state.index < self.total - 1:
            self.state = Active(state.index + 1, False)
        else:
            self.state = Finished()
        return self.state

    def set_mastery(self, status: MasteryStatus) -> Question:
        state = self._active()
        updated = set_mastery_status(self.questions[state.index], status)
        self._write(state.index, updated)
        return updated

    def _write(self, index: int, question: Question) -> None:
        # Last write wins by id; the local copy already carries earlier changes.
        self.questions[index] = question
        self.store.update(question)
