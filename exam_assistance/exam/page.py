from __future__ import annotations

import logging
import time
from typing import Any

from exam_assistance.api.schemas import ExamSubmission
from exam_assistance.config import ExamSettings, load_settings
from exam_assistance.exam.answers import AnswerSelection
from exam_assistance.exam.review import build_review_cards, format_score, result_tally, score_verdict
from exam_assistance.exam.states import (
    SESSION_STATES,
    Failed,
    Loading,
    PageError,
    PageState,
    ReviewMode,
    SessionActive,
    SessionStarting,
    Submitting,
    SubmitTrigger,
    SummaryLoaded,
)
from exam_assistance.exam.timer import CountdownTimer, format_remaining, is_low_time
from exam_assistance.services.exam_api import Credentials, ErrorKind, ExamApiClient, ExamApiError

logger = logging.getLogger(__name__)

LOAD_FAILED = "Could not load this exam."
START_FAILED = "Could not start the exam."
LOGIN_REQUIRED = "You need to sign in to start this exam."
SUBMIT_FAILED = "Could not submit your answers. Please sign in and try again."
NO_ANSWERS = "Please answer at least one question before submitting."


class ExamPage:
    """One open exam page: summary, attempt, countdown and review.

    Every transition happens on the event loop. Each await is followed by a
    check that the page is still in the state that issued the request, so
    late replies for a closed or reloaded page are dropped.
    """

    def __init__(
        self,
        exam_id: str,
        api: ExamApiClient,
        *,
        settings: ExamSettings | None = None,
        tick_seconds: float | None = None,
    ) -> None:
        self.exam_id = exam_id
        self.api = api
        self.settings = settings or load_settings()
        self.tick_seconds = tick_seconds if tick_seconds is not None else self.settings.tick_seconds
        self.state: PageState = Loading()
        self.timer: CountdownTimer | None = None
        self.closed = False
        self.touched_at = time.monotonic()
        self._generation = 0

    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def finished(self) -> bool:
        return isinstance(self.state, (ReviewMode, Failed))

    def touch(self) -> None:
        self.touched_at = time.monotonic()

    def idle_seconds(self, now: float | None = None) -> float:
        return (time.monotonic() if now is None else now) - self.touched_at

    def accepts(self, credentials: Credentials | None) -> bool:
        """Whether a caller may act on the running attempt with these credentials."""
        state = self.state
        if not isinstance(state, (SessionActive, Submitting)):
            return True
        return credentials == state.credentials

    async def load(self, credentials: Credentials | None = None) -> PageState:
        self._stop_timer()
        self._generation += 1
        generation = self._generation
        self.state = Loading()
        try:
            summary = await self.api.get_exam_summary(self.exam_id, credentials)
        except ExamApiError as exc:
            if self._stale(generation):
                return self.state
            logger.warning("exam %s summary failed: %s", self.exam_id, exc)
            self.state = Failed(PageError.from_api_error(exc, LOAD_FAILED))
            return self.state
        if self._stale(generation):
            return self.state
        self.state = SummaryLoaded(summary=summary)
        return self.state

    async def reload(self, credentials: Credentials | None = None) -> PageState:
        return await self.load(credentials)

    async def start(self, credentials: Credentials | None) -> PageState:
        state = self.state
        if not isinstance(state, SummaryLoaded):
            logger.debug("exam %s start ignored in %s", self.exam_id, state.phase)
            return state

        generation = self._generation
        self.state = SessionStarting(summary=state.summary)
        try:
            session = await self.api.start_exam(self.exam_id, credentials)
        except ExamApiError as exc:
            if self._stale(generation):
                return self.state
            if exc.kind is ErrorKind.UNAUTHORIZED:
                error = PageError(kind=exc.kind, message=LOGIN_REQUIRED, status=exc.status)
            else:
                error = PageError.from_api_error(exc, START_FAILED)
            logger.info("exam %s start failed: %s", self.exam_id, error.kind.value)
            self.state = SummaryLoaded(summary=state.summary, start_error=error)
            return self.state
        if self._stale(generation):
            return self.state

        # A fresh selection every time, even when the question ids repeat.
        answers = AnswerSelection(session.question_ids)
        self.state = SessionActive(
            summary=state.summary,
            session=session,
            answers=answers,
            credentials=credentials,
        )
        logger.info("exam %s started with %d questions", self.exam_id, answers.total)
        if session.duration > 0:
            self.timer = CountdownTimer(
                session.duration * 60,
                on_expire=self._on_timer_expired,
                interval=self.tick_seconds,
            )
            self.timer.start()
        return self.state

    def select_answer(self, question_id: str, label: str) -> bool:
        state = self.state
        if not isinstance(state, SessionActive):
            return False
        return state.answers.set_answer(question_id, label)

    async def submit(self, trigger: SubmitTrigger = SubmitTrigger.MANUAL) -> PageState:
        state = self.state
        if not isinstance(state, SessionActive):
            logger.debug("exam %s %s submit ignored in %s", self.exam_id, trigger.value, state.phase)
            return state

        picks = state.answers.picks()
        if not picks:
            self.state = SessionActive(
                summary=state.summary,
                session=state.session,
                answers=state.answers,
                credentials=state.credentials,
                error=PageError(kind=ErrorKind.NO_ANSWERS, message=NO_ANSWERS),
            )
            return self.state

        # Claim the submission before the first await; a second caller sees Submitting.
        generation = self._generation
        self.state = Submitting(
            summary=state.summary,
            session=state.session,
            answers=state.answers,
            credentials=state.credentials,
            trigger=trigger,
        )
        submission = ExamSubmission(exam_id=state.session.id, answers=picks)
        logger.info("exam %s %s submit with %d answers", self.exam_id, trigger.value, len(picks))
        try:
            result = await self.api.submit_exam(submission, state.credentials)
        except ExamApiError as exc:
            if self._stale(generation):
                return self.state
            self.state = SessionActive(
                summary=state.summary,
                session=state.session,
                answers=state.answers,
                credentials=state.credentials,
                error=PageError.from_api_error(exc, SUBMIT_FAILED),
            )
            return self.state
        if self._stale(generation):
            return self.state

        state.answers.freeze()
        self._stop_timer()
        self.state = ReviewMode(
            summary=state.summary,
            session=state.session,
            answers=state.answers,
            result=result,
        )
        logger.info("exam %s graded: %s", self.exam_id, format_score(result.score))
        return self.state

    def close(self) -> None:
        self._stop_timer()
        self._generation += 1
        self.closed = True

    def remaining_seconds(self) -> int | None:
        if self.timer is None or not isinstance(self.state, (SessionActive, Submitting)):
            return None
        return self.timer.remaining

    def snapshot(self) -> dict[str, Any]:
        state = self.state
        data: dict[str, Any] = {
            "exam_id": self.exam_id,
            "phase": state.phase,
            "summary": None,
            "session": None,
            "error": None,
            "start_error": None,
        }
        if isinstance(state, Failed):
            data["error"] = state.error.to_dict()
        if isinstance(state, (SummaryLoaded, SessionStarting, *SESSION_STATES)):
            data["summary"] = state.summary.to_wire()
        if isinstance(state, SummaryLoaded) and state.start_error is not None:
            data["start_error"] = state.start_error.to_dict()
        if isinstance(state, SESSION_STATES):
            answers = state.answers
            data["session"] = state.session.to_wire()
            data["answers"] = answers.as_dict()
            data["answered_count"] = answers.answered_count()
            data["total_questions"] = answers.total
            data["is_complete"] = answers.is_complete()
        if isinstance(state, SessionActive) and state.error is not None:
            data["error"] = state.error.to_dict()

        remaining = self.remaining_seconds()
        if remaining is not None:
            data["remaining_seconds"] = remaining
            data["remaining_display"] = format_remaining(remaining)
            data["low_time"] = is_low_time(remaining, self.settings.low_time_seconds)

        if isinstance(state, ReviewMode):
            result = state.result
            data["result"] = result.to_wire()
            data["score_display"] = format_score(result.score)
            data["verdict"] = score_verdict(result.score)
            data["tally"] = result_tally(result, state.answers)
            data["review_fallback"] = not result.review
            data["review"] = [card.to_dict() for card in build_review_cards(result, state.session.questions)]
        return data

    async def _on_timer_expired(self) -> None:
        logger.info("exam %s time is up", self.exam_id)
        await self.submit(SubmitTrigger.TIMER)

    def _stop_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()

    def _stale(self, generation: int) -> bool:
        return self.closed or generation != self._generation
