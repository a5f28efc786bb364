from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import exam_assistance.app as app_module
from exam_assistance.services.exam_api import Credentials, ExamApiClient

GOOD_TOKEN = "good-token"
LABELS = ("A", "B", "C", "D")


def _question(qid: str, *, correct: str | None = None) -> dict:
    answers = []
    for label in LABELS:
        answer = {"label": label, "content": f"{qid} option {label}"}
        if correct is not None:
            answer["correct"] = label == correct
        answers.append(answer)
    return {"id": qid, "title": f"Question {qid}", "type": "READING", "content": f"Read {qid}.", "answers": answers}


class FakeBackend:
    """Grading backend on httpx.MockTransport. Records every request it sees."""

    def __init__(self) -> None:
        self.summaries: dict[str, dict] = {}
        self.sessions: dict[str, dict] = {}
        self.keys: dict[str, dict[str, str]] = {}
        self.results: list[dict] = []
        self.failures: dict[tuple[str, str], int | str] = {}
        self.include_review = True
        self.calls: list[dict] = []

    def add_exam(self, exam_id: str, *, exam_type: str = "READING", duration: int = 20, keys: dict[str, str]) -> None:
        title = f"{exam_type.title()} test {exam_id}"
        self.summaries[exam_id] = {
            "id": exam_id,
            "title": title,
            "description": f"Practice set {exam_id}",
            "type": exam_type,
            "duration": duration,
            "questionCount": len(keys),
        }
        self.sessions[exam_id] = {
            "id": exam_id,
            "title": title,
            "type": exam_type,
            "duration": duration,
            "questions": [_question(qid) for qid in keys],
        }
        self.keys[exam_id] = dict(keys)

    def submissions(self) -> list[dict]:
        return [call["json"] for call in self.calls if call["path"] == "/api/exams/submit"]

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call["method"] == method and call["path"] == path)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        method = request.method
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append(
            {
                "method": method,
                "path": path,
                "raw_path": request.url.raw_path.decode("ascii").split("?")[0],
                "json": body,
                "auth": request.headers.get("Authorization"),
            }
        )

        failure = self.failures.get((method, path))
        if failure == "network":
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(failure, int):
            return _error(failure, "Request failed", f"forced {failure}")

        authorized = request.headers.get("Authorization") == f"Bearer {GOOD_TOKEN}"
        parts = path.strip("/").split("/")

        if path == "/api/exams/type":
            wanted = request.url.params.get("type")
            return _ok([s for s in self.summaries.values() if s["type"] == wanted])
        if path == "/api/exams/result":
            if not authorized:
                return _error(401, "Unauthorized", "Full authentication is required")
            return _ok(self.results)
        if path == "/api/exams/submit":
            if not authorized:
                return _error(401, "Unauthorized", "Full authentication is required")
            return _ok(self._grade(body))
        if len(parts) == 4 and parts[3] == "start":
            if not authorized:
                return _error(403, "Forbidden", "Access denied")
            session = self.sessions.get(parts[2])
            return _ok(session) if session else _error(404, "Not found", "Exam not found")
        if len(parts) == 3:
            summary = self.summaries.get(parts[2])
            return _ok(summary) if summary else _error(404, "Not found", "Exam not found")
        return _error(404, "Not found", "No route")

    def _grade(self, body: dict) -> dict:
        exam_id = body["examId"]
        keys = self.keys[exam_id]
        picked = {item["questionId"]: item["selectedLabel"] for item in body["answers"]}
        correct = sum(1 for qid, label in picked.items() if keys.get(qid) == label)
        result = {
            "examId": exam_id,
            "totalQuestions": len(keys),
            "correctAnswers": correct,
            "score": round(correct / len(keys) * 10, 1),
        }
        if self.include_review:
            result["review"] = [
                {
                    **_question(qid),
                    "questionId": qid,
                    "correctLabel": key,
                    "selectedLabel": picked.get(qid),
                    "correct": picked.get(qid) == key,
                }
                for qid, key in keys.items()
            ]
        return result


def _ok(data) -> httpx.Response:
    return httpx.Response(200, json={"status": 200, "message": "ok", "data": data})


def _error(status: int, message: str, detail: str) -> httpx.Response:
    return httpx.Response(status, json={"status": status, "message": message, "detail": detail})


@pytest.fixture()
def backend() -> FakeBackend:
    fake = FakeBackend()
    fake.add_exam("e1", duration=20, keys={"q1": "B", "q2": "C"})
    fake.add_exam("e5", exam_type="LISTENING", duration=10, keys={f"q{i}": "A" for i in range(1, 6)})
    return fake


@pytest.fixture()
def api(backend) -> ExamApiClient:
    return ExamApiClient("http://backend.test", timeout=5, transport=httpx.MockTransport(backend.handler))


@pytest.fixture()
def creds() -> Credentials:
    return Credentials(GOOD_TOKEN)


@pytest.fixture()
def client(api, monkeypatch):
    monkeypatch.setattr(app_module, "exam_api", api)
    monkeypatch.setattr(app_module, "pages", {})
    with TestClient(app_module.app) as c:
        yield c
