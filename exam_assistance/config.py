from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = PROJECT_ROOT / "templates"

DEFAULT_API_BASE_URL = "http://localhost:8080"
MAX_SCORE = 10


@dataclass(frozen=True)
class ExamSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = 30.0
    low_time_seconds: int = 300
    tick_seconds: float = 1.0
    log_level: str = "INFO"
    page_idle_seconds: float = 1800.0
    finished_page_seconds: float = 300.0


def load_settings() -> ExamSettings:
    defaults = ExamSettings()
    base_url = os.getenv("EXAM_ASSISTANCE_API_BASE_URL", "").strip() or defaults.api_base_url
    return ExamSettings(
        api_base_url=base_url.rstrip("/"),
        api_timeout=max(1.0, _env_float("EXAM_ASSISTANCE_API_TIMEOUT", defaults.api_timeout)),
        low_time_seconds=max(0, int(_env_float("EXAM_ASSISTANCE_LOW_TIME_SECONDS", defaults.low_time_seconds))),
        tick_seconds=_env_float("EXAM_ASSISTANCE_TICK_SECONDS", defaults.tick_seconds),
        log_level=os.getenv("EXAM_ASSISTANCE_LOG_LEVEL", "").strip().upper() or defaults.log_level,
        page_idle_seconds=_env_float("EXAM_ASSISTANCE_PAGE_IDLE_SECONDS", defaults.page_idle_seconds),
        finished_page_seconds=_env_float("EXAM_ASSISTANCE_FINISHED_PAGE_SECONDS", defaults.finished_page_seconds),
    )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
