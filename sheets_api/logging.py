"""Logging configuration.

Configures loguru to write one JSON object per line in production, shaped for
Google Cloud Logging, and colored human-readable lines in development.
Standard library loggers (uvicorn, httpx) are routed through loguru too.
"""

import json
import logging
import sys
import traceback
from typing import Any

from loguru import logger

SERVICE_NAME = "sheets-api"

# Loguru level name -> Cloud Logging severity
_SEVERITY = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

# Field names whose values never reach a log sink
_REDACTED_FIELDS = {"private_key", "sa_private_key", "assertion", "access_token", "token"}


def _flatten_extra(extra: dict[str, Any]) -> dict[str, Any]:
    """Merge loguru's bound fields with the ``extra={...}`` call keyword."""
    fields: dict[str, Any] = {}
    for key, value in extra.items():
        if key == "extra" and isinstance(value, dict):
            fields.update(value)
        elif not key.startswith("_"):
            fields[key] = value
    return {k: ("[redacted]" if k in _REDACTED_FIELDS else v) for k, v in fields.items()}


def serialize_record(record: dict[str, Any]) -> str:
    """Serialize a loguru record to a Cloud Logging JSON line."""
    entry: dict[str, Any] = {
        "severity": _SEVERITY.get(record["level"].name, "INFO"),
        "message": record["message"],
        "time": record["time"].isoformat(),
        "service": SERVICE_NAME,
    }

    if record["level"].no >= logging.ERROR:
        entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }

    exc_info = record["exception"]
    if exc_info is not None:
        entry["exception"] = {
            "type": exc_info.type.__name__ if exc_info.type else None,
            "value": str(exc_info.value) if exc_info.value else None,
            "traceback": "".join(
                traceback.format_exception(exc_info.type, exc_info.value, exc_info.traceback)
            )
            if exc_info.traceback
            else None,
        }

    entry.update(_flatten_extra(record.get("extra", {})))
    return json.dumps(entry, default=str)


_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
    "<level>{message}</level>{extra[_fields]}\n"
    "{exception}"
)


def _console_format(record: dict[str, Any]) -> str:
    """Console format with the flattened, redacted extra fields appended."""
    fields = _flatten_extra(record["extra"])
    record["extra"]["_fields"] = (
        " " + " ".join(f"{k}={v}" for k, v in fields.items()) if fields else ""
    )
    return _CONSOLE_FORMAT


def _json_sink(message: Any) -> None:
    sys.stdout.write(serialize_record(message.record) + "\n")
    sys.stdout.flush()


def configure_logging(*, is_production: bool, log_level: str = "INFO") -> None:
    """Configure loguru for the application.

    Args:
        is_production: JSON output for Cloud Logging if True, colored
            output on stderr otherwise.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logger.remove()

    if is_production:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",
            backtrace=False,
            diagnose=False,  # locals may hold keys or tokens
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=_console_format,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    _intercept_standard_logging(log_level)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _intercept_standard_logging(log_level: str) -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore"]:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]

    # httpx logs every request URL at INFO; keep that at DEBUG only
    if log_level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
