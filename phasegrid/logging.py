"""
PhaseGrid Structured Logging

Text or JSON log lines on stderr, with secret redaction and the standard
request/project/task fields on every record.
"""

import json
import logging
from typing import Any, Dict, Optional


STANDARD_FIELDS = ("request_id", "project_id", "task_number")

_RESERVED_LOG_RECORD_ATTRS = set(
    logging.LogRecord(
        name="",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)
_RESERVED_LOG_RECORD_ATTRS.update({"asctime", "message"})

_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = (
    "token", "secret", "password", "passwd", "api_key", "apikey",
    "access_key", "private_key", "bearer", "credential"
)


def _looks_sensitive_key(key: str) -> bool:
    lower = (key or "").lower()
    return any(marker in lower for marker in _SECRET_KEY_MARKERS)


def _sanitize_for_logging(key: str, value: Any) -> Any:
    """Redact values stored under secret-looking keys."""
    if _looks_sensitive_key(key):
        return _REDACTED
    if isinstance(value, dict):
        return {k: _sanitize_for_logging(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_logging(key, v) for v in value]
    return value


class DefaultFieldsFilter(logging.Filter):
    """Give every record the standard fields so formatters can rely on them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in STANDARD_FIELDS:
            if not hasattr(record, key):
                setattr(record, key, "-")
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including everything passed via ``extra=``."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in STANDARD_FIELDS:
            data[field] = getattr(record, field, "-")

        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key in data:
                continue
            data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        sanitized = {k: _sanitize_for_logging(k, v) for k, v in data.items()}
        return json.dumps(sanitized, default=str)


def get_logger(name: str = "phasegrid") -> logging.Logger:
    return logging.getLogger(name)


def init_cli_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """
    Configure the root logger for a CLI run.

    Output goes to stderr so ``--json`` consumers get a clean stdout.
    """
    handler = logging.StreamHandler()
    handler.addFilter(DefaultFieldsFilter())

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s "
                "req=%(request_id)s project=%(project_id)s task=%(task_number)s"
            )
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(level or "WARNING").upper(), logging.WARNING))
    root.addHandler(handler)

    return logging.getLogger("phasegrid")


def log_extra(
    *,
    request_id: Optional[str] = None,
    project_id: Optional[str] = None,
    task_number: Optional[int] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build an ``extra=`` dict for structured logging.

    None values are dropped. Keys that would overwrite a LogRecord attribute
    (``name``, ``message``, ...) get an ``extra_`` prefix, since
    ``Logger.makeRecord`` raises on them.

    Example:
        logger.info("batch_started", extra=log_extra(project_id=pid, tasks=[1, 2]))
    """
    payload: Dict[str, Any] = {}
    if request_id is not None:
        payload["request_id"] = request_id
    if project_id is not None:
        payload["project_id"] = project_id
    if task_number is not None:
        payload["task_number"] = task_number
    for key, value in extra.items():
        if value is None:
            continue
        if key in _RESERVED_LOG_RECORD_ATTRS:
            key = f"extra_{key}"
        payload[key] = value
    return payload


# Standard exit codes for CLIs
EXIT_RUNTIME_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_NOT_FOUND = 4
