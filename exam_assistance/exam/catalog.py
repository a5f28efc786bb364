from __future__ import annotations

import asyncio

from exam_assistance.api.schemas import EXAM_TYPES, ExamSummary
from exam_assistance.services.exam_api import Credentials, ExamApiClient


def type_label(exam_type: str) -> str:
    return "Listening" if exam_type == "LISTENING" else "Reading"


async def load_catalog(
    api: ExamApiClient,
    credentials: Credentials | None = None,
    *,
    exam_type: str | None = None,
    query: str = "",
) -> list[ExamSummary]:
    # The backend only lists by type, so both lists are fetched and merged.
    batches = await asyncio.gather(*(api.list_exams_by_type(t, credentials) for t in EXAM_TYPES))
    exams = [exam for batch in batches for exam in batch]
    return filter_exams(exams, exam_type=exam_type, query=query)


def filter_exams(exams: list[ExamSummary], *, exam_type: str | None = None, query: str = "") -> list[ExamSummary]:
    wanted = (exam_type or "").strip().upper()
    needle = query.strip().lower()
    matched: list[ExamSummary] = []
    for exam in exams:
        if wanted and wanted != "ALL" and exam.type != wanted:
            continue
        if needle and needle not in exam.title.lower() and needle not in (exam.description or "").lower():
            continue
        matched.append(exam)
    return matched
