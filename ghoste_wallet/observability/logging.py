"""
Structured Logging with Structlog.

Every entry carries the service, version and wallet backend. Email addresses
never leave the process in clear: any `email` field is masked before
rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from ghoste_wallet.config import settings

MASKED_KEYS = frozenset({"email", "user_email"})


def mask_address(address: str) -> str:
    """dev@ghoste.one -> d***@ghoste.one; anything without an @ is fully masked."""
    local, sep, domain = address.partition("@")
    if not sep or not local:
        return "***"
    return f"{local[0]}***@{domain}"


def mask_emails(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask email-valued fields bound by callers or via log_context."""
    for key in MASKED_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str) and value:
            event_dict[key] = mask_address(value)
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service identity and the active wallet backend."""
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    event_dict.setdefault("backend", settings.wallet_backend)
    return event_dict


def build_processors(log_format: str, log_level: str) -> list[Processor]:
    """Processor chain for the given format; the renderer is always last."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        mask_emails,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if log_level.upper() == "DEBUG":
        processors.append(structlog.processors.StackInfoRenderer())
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def setup_logging() -> None:
    """
    Configure structlog on top of stdlib logging.

    JSON output looks like:
    {
        "event": "wallet_spend_succeeded",
        "level": "info",
        "timestamp": "2026-01-08T12:00:00.123456Z",
        "logger": "ghoste_wallet.services.spend",
        "service": "ghoste-wallet-api",
        "version": "0.1.0",
        "backend": "supabase",
        "request_id": "req-123",
        "feature_key": "link_create_oneclick",
        ...
    }
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # httpx logs every request URL at INFO, which includes PostgREST filters
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings.log_format, settings.log_level),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to a module name."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind context variables for the duration of a block.

    Usage:
        with log_context(request_id="req-123", user_id="user-456"):
            logger.info("wallet_spend_succeeded")

    Values bound by an outer block are restored on exit.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "log_context":
        self._tokens = dict(structlog.contextvars.bind_contextvars(**self.context))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
