from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from exam_assistance.api.schemas import AnswerRequest, OpenPageRequest
from exam_assistance.config import TEMPLATES_DIR, load_settings
from exam_assistance.exam.catalog import load_catalog, type_label
from exam_assistance.exam.history import load_result_history
from exam_assistance.exam.page import ExamPage
from exam_assistance.logging_setup import setup_console_logging
from exam_assistance.services.exam_api import Credentials, ErrorKind, ExamApiClient, ExamApiError

logger = logging.getLogger(__name__)

settings = load_settings()
exam_api = ExamApiClient()
# Page handlers are async so every transition runs on the event loop.
pages: dict[str, ExamPage] = {}
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_console_logging(settings.log_level)
    yield
    for page in pages.values():
        page.close()
    pages.clear()


app = FastAPI(title="Exam Assistance", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "exercises.html", {})


@app.get("/results", response_class=HTMLResponse)
def results_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "results.html", {})


@app.get("/exercise/{exam_id}", response_class=HTMLResponse)
async def exercise_page(request: Request, exam_id: str, page: str | None = Query(default=None)) -> HTMLResponse:
    current = pages.get(page) if page else None
    if current is None or current.exam_id != exam_id:
        page, current = await _open_page(exam_id, None)
    return templates.TemplateResponse(
        request,
        "exam.html",
        {"page_id": page, "view": current.snapshot(), "type_label": type_label},
    )


@app.get("/api/exams")
async def list_exams(
    exam_type: str | None = Query(default=None, alias="type"),
    q: str = Query(default=""),
    authorization: str | None = Header(default=None),
) -> dict:
    try:
        exams = await load_catalog(exam_api, Credentials.from_header(authorization), exam_type=exam_type, query=q)
    except ExamApiError as exc:
        raise _http_error(exc) from exc
    return {"ok": True, "count": len(exams), "items": [exam.to_wire() for exam in exams]}


@app.get("/api/results")
async def my_results(authorization: str | None = Header(default=None)) -> dict:
    try:
        rows = await load_result_history(exam_api, Credentials.from_header(authorization))
    except ExamApiError as exc:
        raise _http_error(exc) from exc
    return {"ok": True, "count": len(rows), "items": [row.to_dict() for row in rows]}


@app.post("/api/pages")
async def open_page(req: OpenPageRequest, authorization: str | None = Header(default=None)) -> dict:
    page_id, page = await _open_page(req.exam_id, Credentials.from_header(authorization))
    return {"ok": True, "page_id": page_id, "page": page.snapshot()}


@app.get("/api/pages/{page_id}")
async def get_page(page_id: str) -> dict:
    page = _get_page(page_id)
    return {"ok": True, "page_id": page_id, "page": page.snapshot()}


@app.post("/api/pages/{page_id}/reload")
async def reload_page(page_id: str, authorization: str | None = Header(default=None)) -> dict:
    page = _get_page(page_id)
    await page.reload(Credentials.from_header(authorization))
    return {"ok": True, "page_id": page_id, "page": page.snapshot()}


@app.post("/api/pages/{page_id}/start")
async def start_page(page_id: str, authorization: str | None = Header(default=None)) -> dict:
    page = _get_page(page_id)
    await page.start(Credentials.from_header(authorization))
    return {"ok": True, "page_id": page_id, "page": page.snapshot()}


@app.put("/api/pages/{page_id}/answers")
async def select_answer(page_id: str, req: AnswerRequest, authorization: str | None = Header(default=None)) -> dict:
    page = _get_owned_page(page_id, authorization)
    try:
        accepted = page.select_answer(req.question_id, req.label)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="question not in this exam") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"ok": True, "accepted": accepted, "page_id": page_id, "page": page.snapshot()}


@app.post("/api/pages/{page_id}/submit")
async def submit_page(page_id: str, authorization: str | None = Header(default=None)) -> dict:
    page = _get_owned_page(page_id, authorization)
    await page.submit()
    return {"ok": True, "page_id": page_id, "page": page.snapshot()}


@app.delete("/api/pages/{page_id}")
async def close_page(page_id: str) -> dict:
    page = pages.pop(page_id, None)
    if page is None:
        raise HTTPException(status_code=404, detail="page not found")
    page.close()
    return {"ok": True}


async def _open_page(exam_id: str, credentials: Credentials | None) -> tuple[str, ExamPage]:
    _prune_pages()
    page_id = uuid.uuid4().hex
    page = ExamPage(exam_id, exam_api, settings=settings)
    pages[page_id] = page
    await page.load(credentials)
    logger.info("opened page %s for exam %s (%s)", page_id, exam_id, page.phase)
    return page_id, page


def _get_page(page_id: str) -> ExamPage:
    page = pages.get(page_id)
    if page is None:
        raise HTTPException(status_code=404, detail="page not found")
    page.touch()
    return page


def _get_owned_page(page_id: str, authorization: str | None) -> ExamPage:
    page = _get_page(page_id)
    if not page.accepts(Credentials.from_header(authorization)):
        raise HTTPException(status_code=403, detail="this attempt belongs to another session")
    return page


def _prune_pages(now: float | None = None) -> int:
    """Close pages nobody has touched for a while; finished ones go sooner."""
    now = time.monotonic() if now is None else now
    stale = [
        page_id
        for page_id, page in pages.items()
        if not (page.timer is not None and page.timer.running)
        and page.idle_seconds(now) > settings.page_idle_seconds
        or (page.finished and page.idle_seconds(now) > settings.finished_page_seconds)
    ]
    for page_id in stale:
        pages.pop(page_id).close()
    if stale:
        logger.info("pruned %d idle pages", len(stale))
    return len(stale)


def _http_error(exc: ExamApiError) -> HTTPException:
    if exc.kind is ErrorKind.UNAUTHORIZED:
        status = 401
    elif exc.kind is ErrorKind.NOT_FOUND:
        status = 404
    else:
        status = 502
    return HTTPException(status_code=status, detail=exc.envelope())
