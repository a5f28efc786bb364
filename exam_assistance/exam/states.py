from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from exam_assistance.api.schemas import ExamResult, ExamSession, ExamSummary
from exam_assistance.exam.answers import AnswerSelection
from exam_assistance.services.exam_api import Credentials, ErrorKind, ExamApiError


class SubmitTrigger(str, Enum):
    MANUAL = "MANUAL"
    TIMER = "TIMER"


@dataclass(frozen=True)
class PageError:
    kind: ErrorKind
    message: str
    status: int = 0

    @property
    def retryable(self) -> bool:
        # Missing answers are fixed by answering, not by sending again.
        return self.kind is not ErrorKind.NO_ANSWERS

    @property
    def needs_login(self) -> bool:
        return self.kind is ErrorKind.UNAUTHORIZED

    @classmethod
    def from_api_error(cls, exc: ExamApiError, fallback: str) -> PageError:
        return cls(kind=exc.kind, message=exc.detail or exc.message or fallback, status=exc.status)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status": self.status,
            "retryable": self.retryable,
            "needs_login": self.needs_login,
        }


@dataclass(frozen=True)
class Loading:
    phase: ClassVar[str] = "LOADING"


@dataclass(frozen=True)
class Failed:
    error: PageError

    @property
    def phase(self) -> str:
        return "NOT_FOUND" if self.error.kind is ErrorKind.NOT_FOUND else "FAILED"


@dataclass(frozen=True)
class SummaryLoaded:
    summary: ExamSummary
    start_error: PageError | None = None
    phase: ClassVar[str] = "SUMMARY_LOADED"


@dataclass(frozen=True)
class SessionStarting:
    summary: ExamSummary
    phase: ClassVar[str] = "SESSION_STARTING"


@dataclass(frozen=True)
class SessionActive:
    summary: ExamSummary
    session: ExamSession
    answers: AnswerSelection
    credentials: Credentials
    error: PageError | None = None
    phase: ClassVar[str] = "SESSION_ACTIVE"


@dataclass(frozen=True)
class Submitting:
    summary: ExamSummary
    session: ExamSession
    answers: AnswerSelection
    credentials: Credentials
    trigger: SubmitTrigger
    phase: ClassVar[str] = "SUBMITTING"


@dataclass(frozen=True)
class ReviewMode:
    summary: ExamSummary
    session: ExamSession
    answers: AnswerSelection
    result: ExamResult
    phase: ClassVar[str] = "REVIEW"


PageState = Union[Loading, Failed, SummaryLoaded, SessionStarting, SessionActive, Submitting, ReviewMode]

# States that hold a running session and its answers.
SESSION_STATES = (SessionActive, Submitting, ReviewMode)
