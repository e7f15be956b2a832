"""Tests for the question store and its blob persistence."""

import dataclasses
import json

import pytest

import config
from conftest import make_question, ts
from database import BlobStore, MemoryBlobStore, StorageError
from models import MasteryStatus, Subject
from periods import group_by_period, sorted_periods
from question_store import QuestionStore


class FlakyBlobStore(MemoryBlobStore):
    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def write(self, key, value):
        if self.fail_writes:
            raise StorageError("quota exceeded")
        super().write(key, value)


class BrokenReadStore(BlobStore):
    def read(self, key):
        raise StorageError("disk gone")

    def write(self, key, value):
        pass


def test_unset_slot_loads_empty(backend):
    store = QuestionStore(backend)
    assert store.load() == []
    assert store.load_error is None


def test_add_prepends_and_persists(store, backend):
    first = make_question(id="first")
    second = make_question(id="second")
    assert store.add(first)
    assert store.add(second)

    assert [q.id for q in store.questions] == ["second", "first"]
    saved = json.loads(backend.read(config.STORAGE_KEY))
    assert [item["id"] for item in saved] == ["second", "first"]


def test_add_duplicate_id_rejected(store):
    store.add(make_question(id="dup"))
    with pytest.raises(ValueError):
        store.add(make_question(id="dup"))


def test_update_replaces_by_id(store, backend):
    store.add(make_question(id="a"))
    store.add(make_question(id="b"))
    changed = dataclasses.replace(store.get("a"), mastery_status=MasteryStatus.MASTERED)

    store.update(changed)

    assert [q.id for q in store.questions] == ["b", "a"]
    assert store.get("a").mastery_status == MasteryStatus.MASTERED
    reloaded = QuestionStore(backend)
    reloaded.load()
    assert reloaded.get("a").mastery_status == MasteryStatus.MASTERED


def test_update_unknown_id_raises(store):
    with pytest.raises(KeyError):
        store.update(make_question(id="missing"))


def test_questions_is_a_snapshot(store):
    store.add(make_question(id="a"))
    snapshot = store.questions
    snapshot.clear()
    assert len(store) == 1


def test_round_trip_keeps_all_fields(store, backend):
    q = make_question(
        id="full",
        subject=Subject.ZONGYING,
        category="综合应用-文书写作",
        sub_category="公文格式",
        question_text="题干",
        ai_analysis="考点",
        my_thinking="我以为",
        correct_resolution="应为",
        root_cause="错因",
        mastery_status=MasteryStatus.REVIEW_NEEDED,
        review_count=4,
        last_reviewed_at=123456,
        image_url="data:image/png;base64,AAAA",
    )
    store.add(q)

    reloaded = QuestionStore(backend)
    assert reloaded.load() == [q]


def test_loads_blob_with_camelcase_keys():
    blob = json.dumps([{
        "id": "1700000000000",
        "imageUrl": "data:image/jpeg;base64,xx",
        "subject": "职测",
        "category": "判断推理",
        "subCategory": "图形推理",
        "questionText": "Image Question",
        "aiAnalysis": "",
        "myThinking": "",
        "correctResolution": "",
        "createdAt": 1700000000000,
        "reviewCount": 2,
        "lastReviewedAt": None,
    }], ensure_ascii=False)
    store = QuestionStore(MemoryBlobStore({config.STORAGE_KEY: blob}))

    [q] = store.load()

    assert q.id == "1700000000000"
    assert q.category == "判断推理"
    assert q.mastery_status is None
    assert q.root_cause == ""
    assert q.review_count == 2


def test_unknown_category_falls_back_to_subject_default():
    blob = json.dumps([{"id": "x", "subject": "综应", "category": "数量关系", "createdAt": 1}])
    store = QuestionStore(MemoryBlobStore({config.STORAGE_KEY: blob}))
    [q] = store.load()
    assert q.category == "综合应用-案例分析"


@pytest.mark.parametrize("raw", [
    "{not json",
    '{"id": "x"}',
    '"just a string"',
])
def test_corrupt_blob_loads_empty_and_is_backed_up(raw):
    backend = MemoryBlobStore({config.STORAGE_KEY: raw})
    store = QuestionStore(backend)

    assert store.load() == []
    assert store.load_error
    assert backend.read(config.STORAGE_KEY + config.CORRUPT_BACKUP_SUFFIX) == raw


def test_read_failure_loads_empty_with_warning():
    store = QuestionStore(BrokenReadStore())
    assert store.load() == []
    assert "disk gone" in store.load_error


def test_write_failure_keeps_memory_and_recovers():
    backend = FlakyBlobStore()
    store = QuestionStore(backend)
    store.load()
    store.add(make_question(id="a"))

    backend.fail_writes = True
    assert store.add(make_question(id="b")) is False
    assert store.unsaved
    assert store.save_error == "quota exceeded"
    assert [q.id for q in store.questions] == ["b", "a"]

    backend.fail_writes = False
    assert store.save()
    assert not store.unsaved
    saved = json.loads(backend.read(config.STORAGE_KEY))
    assert [item["id"] for item in saved] == ["b", "a"]


GOOD_RECORD = {"id": "good", "subject": "职测", "category": "数量关系", "createdAt": ts(2025, 3, 7)}


@pytest.mark.parametrize("bad_record", [
    {"subject": "职测", "createdAt": 1},
    {"id": "x", "subject": "英语", "createdAt": 1},
    {"id": "x", "subject": "职测", "createdAt": [1]},
    {"id": "x", "subject": "职测", "createdAt": "yesterday"},
    {"id": "x", "subject": "职测", "createdAt": 10 ** 18},
    {"id": "x", "subject": "职测", "createdAt": 1, "lastReviewedAt": 10 ** 18},
    {"id": "x", "subject": "职测", "createdAt": 1, "masteryStatus": "forgotten"},
    "not a record",
])
def test_malformed_record_is_skipped_and_rest_kept(bad_record):
    raw = json.dumps([bad_record, GOOD_RECORD], ensure_ascii=False)
    backend = MemoryBlobStore({config.STORAGE_KEY: raw})
    store = QuestionStore(backend)

    assert [q.id for q in store.load()] == ["good"]
    assert "1 条" in store.load_error
    assert backend.read(config.STORAGE_KEY + config.CORRUPT_BACKUP_SUFFIX) == raw
    assert not store.overwrite_blocked


def test_out_of_range_created_at_does_not_reach_period_view():
    raw = json.dumps([{"id": "far", "subject": "职测", "createdAt": 10 ** 18}, GOOD_RECORD])
    store = QuestionStore(MemoryBlobStore({config.STORAGE_KEY: raw}))
    store.load()

    groups = group_by_period(store.questions)
    assert sorted_periods(groups) == ["2025年3月上半月"]


class NoBackupStore(MemoryBlobStore):
    """Backend that refuses writes to the corrupt-backup slot."""

    def write(self, key, value):
        if key.endswith(config.CORRUPT_BACKUP_SUFFIX):
            raise StorageError("backup slot read-only")
        super().write(key, value)


@pytest.mark.parametrize("raw", [
    "{not json",
    json.dumps([{"id": "x", "subject": "英语", "createdAt": 1}, GOOD_RECORD], ensure_ascii=False),
])
def test_failed_backup_blocks_overwrite_until_allowed(raw):
    backend = NoBackupStore({config.STORAGE_KEY: raw})
    store = QuestionStore(backend)
    store.load()

    assert store.overwrite_blocked
    assert "无法备份" in store.load_error

    assert store.add(make_question(id="new")) is False
    assert store.unsaved
    assert store.save_error
    assert backend.read(config.STORAGE_KEY) == raw
    assert store.get("new") is not None

    store.allow_overwrite()
    assert store.save()
    assert not store.unsaved
    saved = json.loads(backend.read(config.STORAGE_KEY))
    assert saved[0]["id"] == "new"
