from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import config


class Subject(str, Enum):
    ZHICE = "职测"
    ZONGYING = "综应"


class MasteryStatus(str, Enum):
    MASTERED = "mastered"
    REVIEW_NEEDED = "review_needed"


def categories_for(subject: str) -> list:
    return list(config.SUBJECT_CATEGORIES[Subject(subject).value])


def normalize_category(subject: str, category: Optional[str]) -> str:
    """Return ``category`` if it belongs to ``subject``, else the subject's first category."""
    allowed = categories_for(subject)
    if category in allowed:
        return category
    return allowed[0]


def _timestamp_ms(value: Any, key: str) -> int:
    """Epoch milliseconds that map to a real local date."""
    if isinstance(value, bool):
        raise ValueError(f"'{key}' is not a timestamp: {value!r}")
    try:
        ts_ms = int(value)
        datetime.fromtimestamp(ts_ms / 1000)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise ValueError(f"'{key}' is not a valid timestamp: {value!r}") from e
    return ts_ms


@dataclass
class Question:
    id: str
    subject: Subject = Subject.ZHICE
    category: str = "言语理解与表达"
    sub_category: str = ""
    question_text: str = ""
    ai_analysis: str = ""
    my_thinking: str = ""
    correct_resolution: str = ""
    root_cause: str = ""
    mastery_status: Optional[MasteryStatus] = None
    created_at: int = 0              # epoch milliseconds
    review_count: int = 0
    last_reviewed_at: Optional[int] = None
    image_url: str = ""              # data URL of the captured screenshot

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys of the stored blob."""
        return {
            "id": self.id,
            "imageUrl": self.image_url,
            "subject": self.subject.value,
            "category": self.category,
            "subCategory": self.sub_category,
            "questionText": self.question_text,
            "aiAnalysis": self.ai_analysis,
            "myThinking": self.my_thinking,
            "correctResolution": self.correct_resolution,
            "rootCause": self.root_cause,
            "masteryStatus": self.mastery_status.value if self.mastery_status else None,
            "createdAt": self.created_at,
            "reviewCount": self.review_count,
            "lastReviewedAt": self.last_reviewed_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Question":
        """Build a Question from a stored record.

        Raises ValueError for records missing ``id``, ``subject`` or
        ``createdAt``; optional fields fall back to their defaults.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Question record must be an object, got {type(payload).__name__}")
        for key in ("id", "subject", "createdAt"):
            if payload.get(key) in (None, ""):
                raise ValueError(f"Question record is missing '{key}'")

        subject = Subject(payload["subject"])
        status = payload.get("masteryStatus")
        last_reviewed = payload.get("lastReviewedAt")
        return cls(
            id=str(payload["id"]),
            subject=subject,
            category=normalize_category(subject, payload.get("category")),
            sub_category=payload.get("subCategory") or "",
            question_text=payload.get("questionText") or "",
            ai_analysis=payload.get("aiAnalysis") or "",
            my_thinking=payload.get("myThinking") or "",
            correct_resolution=payload.get("correctResolution") or "",
            root_cause=payload.get("rootCause") or "",
            mastery_status=MasteryStatus(status) if status else None,
            created_at=_timestamp_ms(payload["createdAt"], "createdAt"),
            review_count=int(payload.get("reviewCount") or 0),
            last_reviewed_at=(
                _timestamp_ms(last_reviewed, "lastReviewedAt") if last_reviewed is not None else None
            ),
            image_url=payload.get("imageUrl") or "",
        )


# ---------------------------------------------------------------------------
# AI collaborator results
# ---------------------------------------------------------------------------

@dataclass
class Classification:
    subject: Subject = Subject.ZHICE
    category: str = "言语理解与表达"
    sub_category: str = ""
    question_text: str = ""
    analysis: str = ""
    solution: str = ""


@dataclass
class Diagnosis:
    analysis: str = ""
    refined_sub_category: str = ""
    suggestion: str = ""


T = TypeVar("T")


@dataclass
class AIResult(Generic[T]):
    """Outcome of an external AI call: either a value or an error reason."""
    ok: bool
    value: Optional[T] = None
    error: str = ""
    raw_text: str = ""

    @classmethod
    def success(cls, value: T, raw_text: str = "") -> "AIResult[T]":
        return cls(ok=True, value=value, raw_text=raw_text)

    @classmethod
    def failure(cls, error: str, raw_text: str = "") -> "AIResult[T]":
        return cls(ok=False, error=error, raw_text=raw_text)


@dataclass
class ProgressSummary:
    total: int = 0
    priority_count: int = 0
    mastered_count: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)
