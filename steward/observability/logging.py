"""Structured logging configuration using structlog.

Provides JSON logging for production and console logging for development,
with automatic context binding and PII redaction. Contact addresses flow
through the scheduling code (participant emails, SMS numbers), so redaction
is on by default.
"""

import re
import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "credential",
    "credentials",
    "email",
    "emails",
    "phone",
    "access_token",
    "refresh_token",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+\d[\d\s\-\(\)]{9,}")

LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


class PIIRedactor:
    """Processor that redacts PII from log events.

    Uses two tiers:
    1. Key-name lookup against ``SENSITIVE_KEYS``
    2. Regex patterns on string values for addresses that slip through
       under other keys (participant lists, notification recipients)
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        """Redact PII from event dictionary."""
        return cast(EventDict, self._redact_dict(event_dict))

    def _redact_dict(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in SENSITIVE_KEYS:
                result[key] = "[REDACTED]"
            else:
                result[key] = self._redact_value(value)
        return result

    def _redact_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._redact_dict(value)
        if isinstance(value, str):
            return self._redact_string(value)
        if isinstance(value, (list, tuple)):
            return [self._redact_value(item) for item in value]
        return value

    def _redact_string(self, value: str) -> str:
        value = EMAIL_PATTERN.sub("[EMAIL]", value)
        return PHONE_PATTERN.sub("[PHONE]", value)


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        format: Output format - "json" for production, "console" for development
        redact_pii: Whether to redact PII from logs
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if redact_pii:
        processors.append(PIIRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            LEVELS.get(level.upper(), 20)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        A bound structlog logger
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
