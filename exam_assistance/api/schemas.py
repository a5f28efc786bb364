from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ExamType = Literal["READING", "LISTENING"]
AnswerLabel = Literal["A", "B", "C", "D"]

EXAM_TYPES: tuple[str, ...] = ("READING", "LISTENING")
ANSWER_LABELS: tuple[str, ...] = ("A", "B", "C", "D")


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExamSummary(WireModel):
    id: str
    title: str
    description: str | None = None
    type: ExamType
    duration: int = Field(default=0, ge=0)
    question_count: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _derive_question_count(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("questionCount") is None and data.get("question_count") is None:
            questions = data.get("questions")
            data = {**data, "questionCount": len(questions) if isinstance(questions, list) else 0}
        return data


class Answer(WireModel):
    label: AnswerLabel
    content: str = ""


class Question(WireModel):
    id: str
    title: str = ""
    content: str = ""
    audio_url: str | None = None
    answers: list[Answer] = Field(default_factory=list)


class ExamSession(WireModel):
    id: str
    title: str
    description: str | None = None
    type: ExamType
    duration: int = Field(default=0, ge=0)
    questions: list[Question] = Field(default_factory=list)

    @property
    def question_ids(self) -> list[str]:
        return [question.id for question in self.questions]


class AnswerPick(WireModel):
    question_id: str
    selected_label: AnswerLabel


class ExamSubmission(WireModel):
    exam_id: str
    answers: list[AnswerPick]


class ReviewItem(Question):
    id: str = Field(validation_alias=AliasChoices("questionId", "id", "question_id"))
    correct_label: AnswerLabel | None = None
    selected_label: AnswerLabel | None = None
    correct: bool = False


class ExamResult(WireModel):
    exam_id: str
    total_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    score: float = 0.0
    review: list[ReviewItem] | None = None

    @field_validator("total_questions", "correct_answers", "score", mode="before")
    @classmethod
    def _null_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class ErrorEnvelope(BaseModel):
    status: int = 0
    message: str = "Request failed"
    detail: str | None = None


class OpenPageRequest(BaseModel):
    exam_id: str = Field(min_length=1)


class AnswerRequest(BaseModel):
    question_id: str = Field(min_length=1)
    label: str
