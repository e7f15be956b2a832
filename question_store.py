"""In-memory question collection persisted as one blob."""

import json
import logging
from typing import Iterable, List, Optional, Tuple

import config
from database import BlobStore, StorageError
from models import Question

logger = logging.getLogger(__name__)


class QuestionStore:
    """Single source of truth for the learner's wrong questions.

    Newest questions come first. Every ``add``/``update`` rewrites the whole
    collection to the backend. A failed write keeps the in-memory state,
    sets ``unsaved`` and returns False; the next successful ``save`` catches
    the backend up.
    """

    def __init__(self, backend: BlobStore, key: str = config.STORAGE_KEY):
        self.backend = backend
        self.key = key
        self._questions: List[Question] = []
        self.unsaved = False
        self.load_error: Optional[str] = None
        self.save_error: Optional[str] = None
        self.overwrite_blocked = False

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def questions(self) -> List[Question]:
        """Snapshot of the collection, newest first."""
        return list(self._questions)

    def get(self, question_id: str) -> Optional[Question]:
        for q in self._questions:
            if q.id == question_id:
                return q
        return None

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> List[Question]:
        """Read the collection from the backend.

        An unset slot is an empty collection. Records that cannot be parsed
        are skipped and the rest are kept; a blob that is not a JSON list
        loads as empty. In both cases the raw text is first copied to
        ``<key>.corrupt`` and ``load_error`` explains what happened. If that
        copy fails, saving is blocked until ``allow_overwrite`` is called.
        """
        self.load_error = None
        self.overwrite_blocked = False
        try:
            raw = self.backend.read(self.key)
        except StorageError as e:
            logger.error(f"Could not read question store: {e}")
            self.load_error = f"读取错题数据失败：{e}"
            self._questions = []
            return self.questions

        if raw is None:
            self._questions = []
            return self.questions

        backup = self.key + config.CORRUPT_BACKUP_SUFFIX
        try:
            questions, skipped = _parse_blob(raw)
        except ValueError as e:
            logger.warning(f"Question store blob is corrupt, starting empty: {e}")
            self.load_error = f"错题数据已损坏，已从空列表开始（原数据备份于 {backup}）"
            self._backup_corrupt(raw)
            self._questions = []
            return self.questions

        self._questions = questions
        if skipped:
            logger.warning(f"Skipped {skipped} malformed records, kept {len(questions)}")
            self.load_error = f"有 {skipped} 条错题记录已损坏并被跳过（原数据备份于 {backup}）"
            self._backup_corrupt(raw)
        return self.questions

    def _backup_corrupt(self, raw: str) -> None:
        backup_key = self.key + config.CORRUPT_BACKUP_SUFFIX
        try:
            self.backend.write(backup_key, raw)
        except StorageError as e:
            logger.error(f"Could not back up corrupt blob to {backup_key}: {e}")
            self.load_error = "错题数据已损坏且无法备份，已暂停保存以免覆盖原数据"
            self.overwrite_blocked = True

    def allow_overwrite(self) -> None:
        """Let ``save`` replace a blob that could not be backed up."""
        logger.warning(f"Overwrite of un-backed-up blob {self.key} allowed")
        self.overwrite_blocked = False

    def save(self, questions: Optional[Iterable[Question]] = None) -> bool:
        """Overwrite the blob with the whole collection. Returns success."""
        if questions is not None:
            self._questions = list(questions)
        if self.overwrite_blocked:
            logger.error(f"Save of {len(self._questions)} questions blocked: corrupt blob has no backup")
            self.unsaved = True
            self.save_error = "原数据损坏且未能备份，保存已暂停"
            return False
        payload = json.dumps([q.to_dict() for q in self._questions], ensure_ascii=False)
        try:
            self.backend.write(self.key, payload)
        except StorageError as e:
            logger.error(f"Could not save {len(self._questions)} questions: {e}")
            self.unsaved = True
            self.save_error = str(e)
            return False
        self.unsaved = False
        self.save_error = None
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, question: Question) -> bool:
        if self.get(question.id) is not None:
            raise ValueError(f"Question {question.id} already exists")
        self._questions.insert(0, question)
        logger.info(f"Added question {question.id} ({question.subject.value}/{question.category})")
        return self.save()

    def update(self, question: Question) -> bool:
        for i, existing in enumerate(self._questions):
            if existing.id == question.id:
                self._questions[i] = question
                return self.save()
        raise KeyError(f"Question {question.id} does not exist")


def _parse_blob(raw: str) -> Tuple[List[Question], int]:
    """Parse a stored blob into (questions, number of skipped records)."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ValueError(f"expected a list, got {type(data).__name__}")

    questions: List[Question] = []
    skipped = 0
    for position, item in enumerate(data):
        try:
            questions.append(Question.from_dict(item))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed record at position {position}: {e}")
            skipped += 1
    return questions, skipped
