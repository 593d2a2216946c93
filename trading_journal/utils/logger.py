from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

import structlog

from trading_journal.utils.config import Settings, get_settings

MAX_LOGGED_VALUE = 120


def truncate_log_data(data: dict[str, Any], max_len: int = MAX_LOGGED_VALUE) -> dict[str, Any]:
    """Shorten long string values (embedded screenshots) before they reach a log line."""
    truncated = {}
    for key, value in data.items():
        if isinstance(value, dict):
            truncated[key] = truncate_log_data(value, max_len)
        elif isinstance(value, str) and len(value) > max_len:
            truncated[key] = f"{value[:max_len]}...<{len(value)} chars>"
        else:
            truncated[key] = value
    return truncated


def truncate_long_values(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor: no event field may carry a full base64 screenshot."""
    event = event_dict.pop("event", None)
    event_dict = truncate_log_data(event_dict)
    if event is not None:
        event_dict["event"] = event
    return event_dict


def _log_level(settings: Settings) -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """JSON lines to stdout and the journal log file."""
    settings = settings or get_settings()
    level = _log_level(settings)

    os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)
    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.log_file, mode="a", encoding="utf-8"),
        ],
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            truncate_long_values,
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
