"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.

Request middleware binds the request id; the identity dependency binds the
caller's uid and the registration services bind the domain and booking uid
they are working on, so every line of a request can be traced back to a
registration. Credentials never reach the output.
"""

import logging
import sys
from typing import Any, Optional

import structlog

from festreg.core.config import get_settings

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"authorization", "cookie", "token", "x_webhook_token", "webhook_token", "checksum"})


def redact_sensitive(logger: Any, method_name: str, event_dict: dict) -> dict:
    for key in event_dict.keys() & SENSITIVE_KEYS:
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def bind_booking_context(domain: Optional[str] = None, booking_uid: Optional[str] = None) -> None:
    """Attach registration identifiers to every later log line of this request."""
    fields = {"domain": domain, "booking_uid": booking_uid}
    structlog.contextvars.bind_contextvars(**{k: v for k, v in fields.items() if v is not None})


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_sensitive,
    ]

    if settings.is_production:
        # Webhook and provider failures are shipped as single JSON lines
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Provider calls are logged by the TiQR client itself
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
