"""KAI bot - task and project tracker living in LINE groups and Discord channels."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from kaibot.core.cache_client import cache_client
from kaibot.core.config import settings
from kaibot.core.logging import configure_logging, instrument_fastapi, instrument_pydantic_ai
from kaibot.interface.discord_webhook import router as discord_router
from kaibot.interface.line_webhook import router as line_router


logger = logging.getLogger(__name__)


def log_configuration_warnings() -> None:
    """Warn about missing optional configuration without failing startup.

    Missing credentials fail the operation that needs them and are reported
    back to the chat, so startup stays up for the platforms that are configured.
    """
    checks = {
        "line": bool(settings.line_channel_secret and settings.line_channel_access_token),
        "discord": bool(settings.discord_public_key),
        "sheets": bool(settings.sheets_sa_key_json and settings.spreadsheet_id),
        "llm": settings.llm_enabled,
    }
    for service, configured in checks.items():
        level = logging.INFO if configured else logging.WARNING
        logger.log(level, "startup_configuration", extra={"service": service, "configured": configured})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    configure_logging()
    log_configuration_warnings()
    instrument_pydantic_ai()
    yield
    await cache_client.clear()


app = FastAPI(
    title="kai-bot",
    description="Task and project tracker living in LINE groups and Discord channels",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(line_router)
app.include_router(discord_router)


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Liveness probe used by the hosting platform."""
    return "ok"


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
