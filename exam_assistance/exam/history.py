from __future__ import annotations

import asyncio
from dataclasses import dataclass

from exam_assistance.api.schemas import ExamResult, ExamSummary
from exam_assistance.exam.catalog import type_label
from exam_assistance.exam.review import format_score
from exam_assistance.services.exam_api import Credentials, ExamApiClient, ExamApiError


@dataclass
class ResultRow:
    result: ExamResult
    exam: ExamSummary | None = None

    @property
    def title(self) -> str:
        if self.exam is not None and self.exam.title:
            return self.exam.title
        return f"Exam #{self.result.exam_id}"

    def to_dict(self) -> dict:
        exam = self.exam
        return {
            "exam_id": self.result.exam_id,
            "title": self.title,
            "score": self.result.score,
            "score_display": format_score(self.result.score),
            "badge": score_badge(self.result.score),
            "correct_answers": self.result.correct_answers,
            "total_questions": self.result.total_questions,
            "type": type_label(exam.type) if exam else None,
            "duration": exam.duration if exam else None,
        }


def score_badge(score: float) -> str:
    if score >= 8:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


async def load_result_history(api: ExamApiClient, credentials: Credentials | None) -> list[ResultRow]:
    results = await api.list_my_results(credentials)
    exam_ids = list(dict.fromkeys(r.exam_id for r in results if r.exam_id))
    summaries = await asyncio.gather(*(_summary_or_none(api, exam_id, credentials) for exam_id in exam_ids))
    exams = dict(zip(exam_ids, summaries))
    rows = [ResultRow(result=r, exam=exams.get(r.exam_id)) for r in results]
    # No submission timestamps come back, so the best score leads.
    rows.sort(key=lambda row: row.result.score, reverse=True)
    return rows


async def _summary_or_none(api: ExamApiClient, exam_id: str, credentials: Credentials | None) -> ExamSummary | None:
    try:
        return await api.get_exam_summary(exam_id, credentials)
    except ExamApiError:
        return None
