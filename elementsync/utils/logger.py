# elementsync/utils/logger.py
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from elementsync.utils.config import get_settings, LogLevel


__all__ = [
    "get_logger",
    "set_log_level",
    "log_with_context",
    "attach_file_logger",
    "detach_file_logger",
]


_config_lock = threading.Lock()
_configured = False

_CTX_KEY = "elementsync_ctx"  # LogRecord attribute carrying log_with_context() fields


class JsonFormatter(logging.Formatter):
    """One JSON object per record; scoped context (target, condition, action) is merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(getattr(record, _CTX_KEY, None) or {})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _json_file_handler(path: os.PathLike | str, level: int, backups: int) -> logging.Handler:
    p = os.fspath(path)
    parent = os.path.dirname(p)
    if parent:
        os.makedirs(parent, exist_ok=True)
    fh = RotatingFileHandler(filename=p, maxBytes=5 * 1024 * 1024, backupCount=backups, encoding="utf-8", delay=True)
    fh.setLevel(level)
    fh.setFormatter(JsonFormatter())
    return fh


def _ensure_configured() -> None:
    """Install the rich console handler (and the LOG_FILE handler) once per process."""
    global _configured
    if _configured:
        return

    with _config_lock:
        if _configured:
            return

        settings = get_settings()
        level = getattr(logging, settings.LOG_LEVEL.value, logging.INFO)

        root = logging.getLogger()
        root.setLevel(level)
        for h in list(root.handlers):
            # keep pytest's capture handlers
            if h.__class__.__module__.startswith("_pytest"):
                continue
            root.removeHandler(h)

        console = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=settings.COLORIZED_OUTPUT,
        )
        console.setFormatter(logging.Formatter("%(message)s"))
        console.setLevel(level)
        root.addHandler(console)

        if settings.LOG_TO_FILE:
            root.addHandler(_json_file_handler(settings.LOG_FILE, level, backups=5))

        # playwright and asyncio chatter only when debugging
        for n in ("asyncio", "playwright"):
            logging.getLogger(n).setLevel(max(level, logging.WARNING))

        _configured = True


def get_logger(name: Optional[str] = None) -> logging.LoggerAdapter:
    """Configured logger; attach per-call context with log_with_context()."""
    _ensure_configured()
    return logging.LoggerAdapter(logging.getLogger(name or "elementsync"), extra={_CTX_KEY: {}})


def set_log_level(level: LogLevel | str) -> None:
    _ensure_configured()
    lvl = level if isinstance(level, str) else level.value
    py_level = getattr(logging, lvl.upper(), logging.INFO)
    logging.getLogger().setLevel(py_level)
    for h in logging.getLogger().handlers:
        h.setLevel(py_level)


def log_with_context(logger: logging.LoggerAdapter, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Adapter carrying extra fields for one scoped section, e.g.

        scoped = log_with_context(log, target="css:#banner", condition="visible")
        scoped.debug("acquired")
    """
    merged = dict((logger.extra or {}).get(_CTX_KEY, {}))
    merged.update(kwargs)
    return logging.LoggerAdapter(logger.logger, extra={_CTX_KEY: merged})


def attach_file_logger(path: os.PathLike | str, level: Optional[int] = None) -> logging.Handler:
    """Add a JSON file handler (e.g. one per probe run); pass it to detach_file_logger when done."""
    _ensure_configured()
    root = logging.getLogger()
    fh = _json_file_handler(path, level if level is not None else root.level, backups=3)
    root.addHandler(fh)
    return fh


def detach_file_logger(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
