from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

_CONFIGURED = False

PLAIN_FORMAT = "%(asctime)s [pid:%(process)d] [thread:%(thread)d] %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "thread": record.thread,
            "pid": record.process,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(
    log_path: Optional[Path] = None,
    console_level: Optional[int] = None,
    log_format: Optional[str] = None,
) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    log_path = log_path or _default_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if console_level is None:
        console_level = _level_from_env()
    log_format = (log_format or os.environ.get("HOSTLOOP_LOG_FORMAT") or "plain").lower()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.WARNING)
    if log_format == "json":
        file_handler.setFormatter(JsonFormatter())
    else:
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root.addHandler(file_handler)

    console_handler = RichHandler(rich_tracebacks=True)
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter("%(name)s: %(message)s")
    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    if not _CONFIGURED:
        setup_logging()
    return logging.getLogger(name)


def set_log_level(level: int) -> None:
    if not _CONFIGURED:
        setup_logging()
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level)


def _level_from_env() -> int:
    name = os.environ.get("HOSTLOOP_LOG_LEVEL", "INFO").upper()
    if name == "TRACE":
        return logging.DEBUG
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _default_log_path() -> Path:
    env_path = os.environ.get("HOSTLOOP_LOG_PATH")
    if env_path:
        return Path(env_path)
    env_dir = os.environ.get("HOSTLOOP_LOG_DIR")
    if env_dir:
        return Path(env_dir) / "hostloop.log"
    return Path("logs") / "hostloop.log"
