from __future__ import annotations

import json
import logging
import logging.config
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Fields passed through ``extra=`` that the JSON output carries over.
_EXTRA_FIELDS = ("path", "method", "status_code", "duration_ms", "entity", "entity_id")


def set_request_id(value: Optional[str]) -> Token:
    return _request_id.set(value)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def get_request_id() -> Optional[str]:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamp records with the id of the request being served, or "-"."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or _request_id.get() or "-",
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(
    *,
    level: str = "INFO",
    json_console: bool = False,
    log_file: Optional[Path] = None,
    sql_echo: bool = False,
) -> Dict[str, Any]:
    """dictConfig for the console plus an optional rotating JSON file."""

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "json" if json_console else "plain",
            "filters": ["request_id"],
        },
    }
    if log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "json",
            "filters": ["request_id"],
            "filename": str(log_file),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "plain": {"format": "%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s"},
            "json": {"()": JsonFormatter},
        },
        "handlers": handlers,
        "loggers": {
            # Request lines come from alerta.requests; uvicorn's copy is redundant.
            "uvicorn.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "INFO" if sql_echo else "WARNING"},
        },
        "root": {"level": level, "handlers": list(handlers)},
    }


_configured = False


def configure_logging(settings=None) -> None:
    """Install the logging configuration; later calls are no-ops."""

    global _configured
    if _configured:
        return

    if settings is None:
        from alerta.core.settings import get_settings

        settings = get_settings()

    log_file: Optional[Path] = None
    if settings.environment != "test":
        log_file = Path(settings.log_file or settings.data_dir / "logs" / "app.log")
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            level=settings.log_level or "INFO",
            json_console=settings.log_json,
            log_file=log_file,
            sql_echo=settings.sql_echo,
        )
    )
    logging.captureWarnings(True)
    _configured = True


__all__ = [
    "JsonFormatter",
    "RequestIdFilter",
    "build_logging_config",
    "configure_logging",
    "get_request_id",
    "reset_request_id",
    "set_request_id",
]
