from __future__ import annotations

import logging
import os
from collections import deque

import analytics_config as cfg

LOG_NAME = "schedule_analytics"
LOG_DIR_ENV = "SCHEDULE_ANALYTICS_LOG_DIR"
_RECENT_LOG_LINES: deque[str] = deque(maxlen=400)


def _log_path() -> str:
    base = os.getenv(LOG_DIR_ENV) or str(cfg.app_dir())
    return os.path.join(base, "schedule_analytics.log")


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOG_NAME)
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    logger.propagate = False
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    class _RecentLogHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover
            try:
                _RECENT_LOG_LINES.append(fmt.format(record))
            except Exception:
                self.handleError(record)

    logger.addHandler(_RecentLogHandler())
    try:
        path = _log_path()
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    except OSError:
        logger.addHandler(logging.NullHandler())
    return logger


def set_level(level: str | int) -> None:
    logger = get_logger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)


def get_recent_logs(*, max_lines: int = 200) -> str:
    """
    Returns recent in-memory log lines (useful when the log file is not reachable).
    """
    try:
        n = max(1, min(int(max_lines), 400))
    except (TypeError, ValueError):
        n = 200
    lines = list(_RECENT_LOG_LINES)[-n:]
    return "\n".join(lines)
