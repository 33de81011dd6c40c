"""Structured logging setup."""
from __future__ import annotations

import logging
import sys
from typing import Final, MutableMapping

import structlog

_DEFAULT_LEVEL = "info"
_ROOT_COMPONENT: Final[str] = "dataprotection_aws"

# Request fields that carry key material; never rendered.
_SECRET_FIELDS: Final[frozenset[str]] = frozenset(
    {"SSECustomerKey", "sse_customer_key", "Plaintext", "plaintext", "CiphertextBlob"}
)
_REDACTED: Final[str] = "[redacted]"

# Chatty third-party loggers that only follow our level in debug mode.
_AWS_LOGGERS: Final[tuple[str, ...]] = ("boto3", "botocore", "s3transfer", "urllib3")

_LEVELS: Final[dict[str, int]] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

EventDict = MutableMapping[str, object]


def configure_logging(level: str | None = None) -> None:
    """Route structlog through the stdlib root logger as JSON lines on stderr.

    Every record carries ``ts``, ``level``, ``msg`` and ``component`` next to
    whatever context the call site bound (bucket, object key, key id). Unknown
    level names fall back to ``info``. The AWS SDK loggers stay at ``warning``
    unless ``debug`` is requested.
    """

    numeric_level = _LEVELS.get((level or _DEFAULT_LEVEL).lower(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        handlers=[logging.StreamHandler(sys.stderr)],
        format="%(message)s",
        force=True,
    )
    aws_level = numeric_level if numeric_level == logging.DEBUG else max(numeric_level, logging.WARNING)
    for name in _AWS_LOGGERS:
        logging.getLogger(name).setLevel(aws_level)

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", key="ts"),
            structlog.stdlib.add_log_level,
            _add_component,
            _redact_secrets,
            _event_as_msg,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def _add_component(logger: object, _name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("component", getattr(logger, "name", None) or _ROOT_COMPONENT)
    return event_dict


def _redact_secrets(_logger: object, _name: str, event_dict: EventDict) -> EventDict:
    for field in _SECRET_FIELDS.intersection(event_dict):
        event_dict[field] = _REDACTED
    return event_dict


def _event_as_msg(_logger: object, _name: str, event_dict: EventDict) -> EventDict:
    if "msg" not in event_dict:
        event_dict["msg"] = event_dict.pop("event", "")
    return event_dict


__all__ = ["configure_logging"]
