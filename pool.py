"""Question pool selection for practice sessions."""

import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from models import MasteryStatus, Question
from periods import period_key


class EmptyPoolError(Exception):
    """Raised when a criterion selects no questions."""


class PoolFilter(str, Enum):
    ALL = "all"
    PRIORITY = "priority"
    PERIOD = "period"


@dataclass(frozen=True)
class PoolCriterion:
    kind: PoolFilter = PoolFilter.ALL
    period_key: Optional[str] = None

    @classmethod
    def all(cls) -> "PoolCriterion":
        return cls(PoolFilter.ALL)

    @classmethod
    def priority(cls) -> "PoolCriterion":
        return cls(PoolFilter.PRIORITY)

    @classmethod
    def period(cls, key: str) -> "PoolCriterion":
        return cls(PoolFilter.PERIOD, key)

    @property
    def title(self) -> str:
        if self.kind == PoolFilter.PRIORITY:
            return "重点题目突击"
        if self.kind == PoolFilter.PERIOD:
            return f"{self.period_key} 模拟考试"
        return "随机巩固练习"

    def matches(self, question: Question) -> bool:
        if self.kind == PoolFilter.PRIORITY:
            return question.mastery_status == MasteryStatus.REVIEW_NEEDED
        if self.kind == PoolFilter.PERIOD:
            return period_key(question.created_at) == self.period_key
        return True


def filter_questions(questions: Sequence[Question], criterion: PoolCriterion) -> List[Question]:
    return [q for q in questions if criterion.matches(q)]


def shuffled(items: Sequence, rng: Optional[random.Random] = None) -> list:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def select_pool(
    questions: Sequence[Question],
    criterion: PoolCriterion,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Return the questions matching ``criterion`` in a fresh random order.

    Raises EmptyPoolError if nothing matches.
    """
    pool = filter_questions(questions, criterion)
    if not pool:
        raise EmptyPoolError(f"No questions match {criterion.kind.value}")
    return shuffled(pool, rng)
