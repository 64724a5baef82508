"""Structured logging with correlation and job IDs.

Two context variables travel with every log line: the correlation ID of the
HTTP request, and the ID of the job being worked on. A job's background task
is created from the submitting request, so it inherits that request's
correlation ID. The task binds its own job ID when it starts, which lets a
version failure be traced back to both the submission and the job.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

# Fields the formatter emits at the top level rather than under "extra"
_CONTEXT_FIELDS = ("correlation_id", "job_id", "job_tag")

# Every LogRecord has these attributes
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(correlation_id)s]%(job_tag)s %(message)s"


def get_correlation_id() -> str:
    """Return the current correlation ID, creating one if none is bound."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def bind_job_id(job_id: str) -> None:
    """Attach a job ID to every log line emitted from the current context.

    Call it at the top of a job's own task. Tasks run in a copy of the
    context, so the binding never leaks into the request that created it.
    """
    job_id_var.set(job_id)


class JobContextFilter(logging.Filter):
    """Stamps each record with the bound correlation and job IDs.

    An explicit ``job_id`` passed through ``extra`` wins over the bound one.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = getattr(record, "correlation_id", None) or get_correlation_id()
        job_id = getattr(record, "job_id", None) or job_id_var.get()
        record.job_id = job_id
        record.job_tag = f" [job {job_id}]" if job_id else ""
        return True


class StructuredFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        job_id = getattr(record, "job_id", None)
        if job_id:
            payload["job_id"] = job_id

        payload["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and self.include_stack_trace:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": traceback.format_exception(exc_type, exc_value, exc_tb) if exc_tb else None,
            }

        extra = self._extra_fields(record)
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)

    @staticmethod
    def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
        fields = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in _CONTEXT_FIELDS:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            fields[key] = value
        return fields


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Set up application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging
        include_stack_trace: Include stack traces in error logs
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.addFilter(JobContextFilter())
    if json_format:
        console_handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        console_handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(console_handler)

    # Per-request chatter from the server and the HTTP client
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


def _context(extra: dict[str, Any]) -> dict[str, Any]:
    extra["correlation_id"] = get_correlation_id()
    if not extra.get("job_id") and job_id_var.get():
        extra["job_id"] = job_id_var.get()
    return extra


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with the bound context and an optional exception.

    Args:
        logger: Logger instance
        message: Error message
        exception: Exception whose stack trace is attached
        **extra: Additional context fields
    """
    logger.error(message, exc_info=exception, extra=_context(extra))


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    logger.warning(message, extra=_context(extra))


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    logger.info(message, extra=_context(extra))
