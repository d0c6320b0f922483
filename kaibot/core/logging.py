"""Logging and observability configuration using Pydantic Logfire.

All modules use Python's standard logging library (logging.getLogger(__name__)),
and Logfire captures and enriches these logs when a token is present.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("event_name", extra={"key": "value"})
"""

import logging

import logfire
from fastapi import FastAPI

from kaibot.core.config import constants, settings


def configure_logging() -> None:
    """Configure stdlib logging and Pydantic Logfire.

    Logfire is a no-op exporter unless LOGFIRE_TOKEN is set, so local runs
    and tests keep plain console logging.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logfire.configure(
        token=settings.logfire_token,
        service_name="kai-bot",
        service_version="0.1.0",
        send_to_logfire="if-token-present",
    )
    logging.getLogger().addHandler(logfire.LogfireLoggingHandler())

    logger = logging.getLogger(__name__)
    logger.info("Logging configured", extra={"logfire": bool(settings.logfire_token)})


def instrument_fastapi(app: FastAPI) -> None:
    """Add Logfire instrumentation to FastAPI application."""
    logfire.instrument_fastapi(app)
    logger = logging.getLogger(__name__)
    logger.info("FastAPI instrumentation configured")


def instrument_pydantic_ai() -> None:
    """Trace Gemini calls made through pydantic-ai."""
    logfire.instrument_pydantic_ai()
    logger = logging.getLogger(__name__)
    logger.info("Pydantic AI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Create a custom span for service layer functions.

    Usage:
        with span("entity_service.create"):
            ...
    """
    return logfire.span(name)


def mask_user_id(user_id: str | None) -> str:
    """Shorten a platform user id for logs and operator notices."""
    if not user_id:
        return "(unknown)"
    return f"{user_id[:6]}…"


def preview(text: str | None) -> str:
    """Truncate message text for log lines."""
    return (text or "")[: constants.LOG_TEXT_PREVIEW_CHARS]
