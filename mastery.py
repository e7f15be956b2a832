"""Update rules for review statistics and mastery status.

Both functions are pure: they return a new Question and leave the input
untouched, so callers decide when the result is written to the store.
"""

import dataclasses
import time
from typing import Optional

from models import MasteryStatus, Question


def now_ms() -> int:
    return int(time.time() * 1000)


def record_review_pass(question: Question, now: Optional[int] = None) -> Question:
    """Count one more pass over ``question`` and stamp the review time."""
    if now is None:
        now = now_ms()
    last = question.last_reviewed_at
    return dataclasses.replace(
        question,
        review_count=question.review_count + 1,
        last_reviewed_at=now if last is None else max(last, now),
    )


def set_mastery_status(question: Question, status: MasteryStatus) -> Question:
    # Clearing back to unset is not a supported transition.
    if status is None:
        raise ValueError("Mastery status can only be set, not cleared")
    return dataclasses.replace(question, mastery_status=MasteryStatus(status))
