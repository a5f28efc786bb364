from __future__ import annotations

import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_console_logging(level: int | str = "INFO") -> logging.Logger:
    """Attach one console handler to the root logger and return the package logger.

    Safe to call again: an already configured root only gets its level changed.
    httpx request lines are kept at WARNING so page polling does not flood the log.
    """
    resolved = resolve_level(level)
    root = logging.getLogger()
    root.setLevel(resolved)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
    return logging.getLogger("exam_assistance")
