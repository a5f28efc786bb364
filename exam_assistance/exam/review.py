from __future__ import annotations

from dataclasses import asdict, dataclass, field

from exam_assistance.api.schemas import ExamResult, Question
from exam_assistance.config import MAX_SCORE
from exam_assistance.exam.answers import AnswerSelection

CORRECT = "correct"
INCORRECT_PICK = "incorrect_pick"
NEUTRAL = "neutral"
DISABLED = "disabled"


@dataclass
class ReviewOption:
    label: str
    content: str
    status: str


@dataclass
class ReviewCard:
    number: int
    question_id: str
    title: str
    content: str
    audio_url: str | None
    selected_label: str | None
    correct_label: str | None
    correct: bool | None
    read_only: bool = False
    options: list[ReviewOption] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def option_status(label: str, correct_label: str | None, selected_label: str | None) -> str:
    if label == correct_label:
        return CORRECT
    if label == selected_label:
        return INCORRECT_PICK
    return NEUTRAL


def build_review_cards(result: ExamResult, questions: list[Question]) -> list[ReviewCard]:
    """One card per graded item; falls back to read-only questions without a review."""
    if not result.review:
        return [_fallback_card(index, question) for index, question in enumerate(questions, start=1)]

    cards: list[ReviewCard] = []
    for index, item in enumerate(result.review, start=1):
        cards.append(
            ReviewCard(
                number=index,
                question_id=item.id,
                title=item.title or f"Question {index}",
                content=item.content,
                audio_url=item.audio_url,
                selected_label=item.selected_label,
                correct_label=item.correct_label,
                correct=item.correct,
                options=[
                    ReviewOption(
                        label=answer.label,
                        content=answer.content,
                        status=option_status(answer.label, item.correct_label, item.selected_label),
                    )
                    for answer in item.answers
                ],
            )
        )
    return cards


def _fallback_card(index: int, question: Question) -> ReviewCard:
    return ReviewCard(
        number=index,
        question_id=question.id,
        title=question.title or f"Question {index}",
        content=question.content,
        audio_url=question.audio_url,
        selected_label=None,
        correct_label=None,
        correct=None,
        read_only=True,
        options=[ReviewOption(label=a.label, content=a.content, status=DISABLED) for a in question.answers],
    )


def format_score(score: float) -> str:
    return f"{float(score or 0):.1f} / {MAX_SCORE}"


def score_verdict(score: float) -> str:
    score = float(score or 0)
    if score >= 7:
        return "Excellent! You did really well."
    if score >= 5:
        return "Good job! Keep it up."
    return "Keep practising and go over the questions you missed."


def result_tally(result: ExamResult, answers: AnswerSelection) -> dict[str, int]:
    total = result.total_questions or answers.total
    return {
        "correct": result.correct_answers,
        "wrong": max(0, total - result.correct_answers),
        "unanswered": answers.unanswered_count(),
    }
