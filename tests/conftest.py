"""Shared fixtures for the wrong-question review tests."""

from __future__ import annotations

import itertools
from datetime import datetime

import pytest

from database import MemoryBlobStore
from models import MasteryStatus, Question, Subject
from question_store import QuestionStore


def ts(year: int, month: int, day: int, hour: int = 12) -> int:
    """Local-time epoch milliseconds."""
    return int(datetime(year, month, day, hour).timestamp() * 1000)


_ids = itertools.count(1)


def make_question(
    created_at: int | None = None,
    mastery_status: MasteryStatus | None = None,
    **fields,
) -> Question:
    return Question(
        id=fields.pop("id", f"q{next(_ids)}"),
        subject=fields.pop("subject", Subject.ZHICE),
        category=fields.pop("category", "数量关系"),
        created_at=created_at if created_at is not None else ts(2025, 1, 10),
        mastery_status=mastery_status,
        **fields,
    )


@pytest.fixture
def backend():
    return MemoryBlobStore()


@pytest.fixture
def store(backend):
    store = QuestionStore(backend)
    store.load()
    return store


class FakeClock:
    """Returns increasing millisecond timestamps."""

    def __init__(self, start: int = ts(2025, 2, 1)):
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
