"""Structured logging configuration for the KIT Operator."""

import json
import logging
import sys
from typing import Any

from .utils.context import get_context_dict

REDACTED = "***REDACTED***"

# Keys whose values never reach the log, at any nesting depth
SECRET_FIELDS = frozenset(
    {"kubeconfig", "client-key-data", "private_key", "token", "password", "secret_access_key"}
)

# Libraries that log every request at INFO
QUIET_LOGGERS = ("urllib3", "botocore", "boto3", "kubernetes")


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    Resource fields attached by log_resource_event and the current reconcile
    id are merged into the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "fields", {}))
        entry.update(get_context_dict())
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(sanitize_secrets(entry), default=str)


def setup_structured_logging(level: int | str = logging.INFO) -> None:
    """Configure structured JSON logging on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler])
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event."""
    fields = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
    }
    fields.update(kwargs)
    logger.log(level, message, extra={"fields": sanitize_secrets(fields)})


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Mask secret fields, descending into nested mappings."""
    sanitized: dict[str, Any] = {}
    for key, value in log_data.items():
        if key in SECRET_FIELDS:
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_secrets(value)
        else:
            sanitized[key] = value
    return sanitized
