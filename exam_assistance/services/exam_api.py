from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from exam_assistance.api.schemas import (
    EXAM_TYPES,
    ErrorEnvelope,
    ExamResult,
    ExamSession,
    ExamSubmission,
    ExamSummary,
)
from exam_assistance.config import load_settings

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    NO_ANSWERS = "NO_ANSWERS"
    NETWORK = "NETWORK"
    FAILED = "FAILED"


class ExamApiError(Exception):
    def __init__(self, kind: ErrorKind, *, status: int, message: str, detail: str | None = None) -> None:
        super().__init__(f"{kind.value} ({status}): {detail or message}")
        self.kind = kind
        self.status = status
        self.message = message
        self.detail = detail

    def envelope(self) -> dict[str, Any]:
        return ErrorEnvelope(status=self.status, message=self.message, detail=self.detail).model_dump()


def kind_for_status(status: int) -> ErrorKind:
    if status in {401, 403}:
        return ErrorKind.UNAUTHORIZED
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 0:
        return ErrorKind.NETWORK
    return ErrorKind.FAILED


@dataclass(frozen=True)
class Credentials:
    token: str

    def __repr__(self) -> str:
        return "Credentials(token=***)"

    @classmethod
    def from_header(cls, authorization: str | None) -> Credentials | None:
        if not authorization:
            return None
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return cls(token=token.strip())

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class ExamApiClient:
    """Client for the remote grading/content backend.

    Replies are wrapped as ``{status, message, data}``; failures as
    ``{status, message, detail}``. Every failure surfaces as ``ExamApiError``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = load_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.transport = transport

    async def get_exam_summary(self, exam_id: str, credentials: Credentials | None = None) -> ExamSummary:
        data = await self._request("GET", f"/api/exams/{_segment(exam_id)}", credentials=credentials)
        return _parse(ExamSummary, data)

    async def start_exam(self, exam_id: str, credentials: Credentials | None) -> ExamSession:
        data = await self._request(
            "GET",
            f"/api/exams/{_segment(exam_id)}/start",
            credentials=_require(credentials),
        )
        return _parse(ExamSession, data)

    async def submit_exam(self, submission: ExamSubmission, credentials: Credentials | None) -> ExamResult:
        data = await self._request(
            "POST",
            "/api/exams/submit",
            credentials=_require(credentials),
            payload=submission.to_wire(),
        )
        return _parse(ExamResult, data)

    async def list_my_results(self, credentials: Credentials | None) -> list[ExamResult]:
        data = await self._request("GET", "/api/exams/result", credentials=_require(credentials))
        return [_parse(ExamResult, item) for item in _as_list(data)]

    async def list_exams_by_type(self, exam_type: str, credentials: Credentials | None = None) -> list[ExamSummary]:
        exam_type = str(exam_type).strip().upper()
        if exam_type not in EXAM_TYPES:
            raise ValueError(f"unsupported exam type: {exam_type}")
        data = await self._request("GET", "/api/exams/type", credentials=credentials, params={"type": exam_type})
        return [_parse(ExamSummary, item) for item in _as_list(data)]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        credentials: Credentials | None = None,
        payload: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        url = self.base_url + path
        headers = {"Content-Type": "application/json"}
        if credentials is not None:
            headers.update(credentials.headers())

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, url, headers=headers, json=payload, params=params)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed without a response: %s", method, path, exc)
            raise ExamApiError(
                ErrorKind.NETWORK,
                status=0,
                message="Network error",
                detail=str(exc) or "Unable to connect to the server",
            ) from exc

        body = _safe_json(resp)
        if resp.is_error:
            message = "Request failed"
            detail = "An error occurred"
            if isinstance(body, dict):
                message = str(body.get("message") or message)
                detail = str(body.get("detail") or body.get("message") or detail)
            logger.warning("%s %s returned %s: %s", method, path, resp.status_code, detail)
            raise ExamApiError(kind_for_status(resp.status_code), status=resp.status_code, message=message, detail=detail)

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body


def _require(credentials: Credentials | None) -> Credentials:
    if credentials is None:
        raise ExamApiError(
            ErrorKind.UNAUTHORIZED,
            status=401,
            message="Unauthorized",
            detail="No authentication token found",
        )
    return credentials


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _as_list(data: Any) -> list:
    return data if isinstance(data, list) else []


def _parse(model, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ExamApiError(
            ErrorKind.FAILED,
            status=200,
            message="Malformed response",
            detail=f"unexpected {model.__name__} payload",
        ) from exc
