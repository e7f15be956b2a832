"""Form state for capturing one wrong question before it is saved."""

import uuid
from dataclasses import dataclass
from typing import Optional

import config
from analyzer import image_data_url
from mastery import now_ms
from models import (
    Classification,
    Diagnosis,
    MasteryStatus,
    Question,
    Subject,
    categories_for,
)


@dataclass
class QuestionDraft:
    image_url: str = ""
    subject: Subject = Subject.ZHICE
    category: str = "言语理解与表达"
    sub_category: str = ""
    question_text: str = ""
    ai_analysis: str = ""
    my_thinking: str = ""
    correct_resolution: str = ""
    root_cause: str = ""
    mastery_status: Optional[MasteryStatus] = None

    def set_image(self, data: bytes, media_type: str = config.DEFAULT_MEDIA_TYPE) -> None:
        self.image_url = image_data_url(data, media_type)

    def change_subject(self, subject: str) -> None:
        self.subject = Subject(subject)
        self.category = categories_for(self.subject)[0]

    def set_category(self, category: str) -> None:
        if category not in categories_for(self.subject):
            raise ValueError(f"{category} is not a {self.subject.value} category")
        self.category = category

    def apply_classification(self, result: Classification) -> None:
        self.subject = result.subject
        self.category = result.category
        self.sub_category = result.sub_category
        self.question_text = result.question_text
        self.ai_analysis = result.analysis
        self.correct_resolution = result.solution

    @property
    def can_diagnose(self) -> bool:
        return bool(self.my_thinking.strip() or self.correct_resolution.strip())

    def apply_diagnosis(self, result: Diagnosis) -> None:
        """Fill the root cause and propose review_needed; the user may still change it."""
        if result.analysis:
            if result.suggestion:
                self.root_cause = (
                    f"{result.analysis}\n\n{config.ROOT_CAUSE_SUGGESTION_PREFIX}{result.suggestion}"
                )
            else:
                self.root_cause = result.analysis
            self.mastery_status = MasteryStatus.REVIEW_NEEDED
        if result.refined_sub_category:
            self.sub_category = result.refined_sub_category

    def build(self, now: Optional[int] = None) -> Question:
        """Create the Question to save. An image is required."""
        if not self.image_url:
            raise ValueError("A question needs an image before it can be saved")
        return Question(
            id=uuid.uuid4().hex,
            subject=self.subject,
            category=self.category,
            sub_category=self.sub_category,
            question_text=self.question_text,
            ai_analysis=self.ai_analysis,
            my_thinking=self.my_thinking,
            correct_resolution=self.correct_resolution,
            root_cause=self.root_cause,
            mastery_status=self.mastery_status,
            created_at=now if now is not None else now_ms(),
            review_count=0,
            last_reviewed_at=None,
            image_url=self.image_url,
        )
