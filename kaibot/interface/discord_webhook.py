"""Discord interactions endpoint (slash command with a free-text option)."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from pydantic import BaseModel, Field

from kaibot.core.config import settings
from kaibot.core.errors import classify_error, format_error_message
from kaibot.core.logging import mask_user_id, preview
from kaibot.domain.conversation import MessageContext, Platform
from kaibot.interface import discord_sender, webhook_security
from kaibot.services import conversation_service
from kaibot.services.pending_action_service import BotState, bot_state


router = APIRouter(prefix="/discord", tags=["discord"])
logger = logging.getLogger(__name__)

INTERACTION_PING = 1
INTERACTION_APPLICATION_COMMAND = 2
RESPONSE_PONG = 1
RESPONSE_DEFERRED_CHANNEL_MESSAGE = 5
TEXT_OPTION_NAME = "text"


class DiscordCommand(BaseModel):
    """The parts of an application-command interaction the bot uses."""

    application_id: str | None = None
    token: str
    channel_id: str
    user_id: str | None = None
    text: str = Field(default="", description="Value of the 'text' string option")


def parse_command(payload: dict[str, Any]) -> DiscordCommand | None:
    """Extract channel, user, token and text from an interaction payload."""
    token = payload.get("token")
    channel_id = payload.get("channel_id") or (payload.get("channel") or {}).get("id")
    if not token or not channel_id:
        return None

    member_user = (payload.get("member") or {}).get("user") or {}
    user = member_user or payload.get("user") or {}
    options = (payload.get("data") or {}).get("options") or []
    text = next(
        (str(option.get("value") or "") for option in options if option.get("name") == TEXT_OPTION_NAME),
        "",
    )
    return DiscordCommand(
        application_id=payload.get("application_id"),
        token=token,
        channel_id=str(channel_id),
        user_id=user.get("id"),
        text=text,
    )


@router.post("/interactions")
async def receive_interaction(request: Request, background_tasks: BackgroundTasks) -> dict[str, int]:
    """Receive Discord interactions.

    PING is answered with PONG. Application commands get a deferred response
    at once; the reply is delivered later as a follow-up message.

    Raises:
        HTTPException: 401 on a bad signature, 400 on an unusable payload
    """
    raw_body = await request.body()
    security_result = webhook_security.validate_discord_signature(
        raw_body,
        request.headers.get("x-signature-ed25519"),
        request.headers.get("x-signature-timestamp"),
        settings.discord_public_key,
    )
    if not security_result.is_valid:
        raise HTTPException(
            status_code=security_result.http_status_code or 401,
            detail=security_result.error_message,
        )

    try:
        payload = json.loads(raw_body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    interaction_type = payload.get("type") if isinstance(payload, dict) else None
    if interaction_type == INTERACTION_PING:
        return {"type": RESPONSE_PONG}

    if interaction_type != INTERACTION_APPLICATION_COMMAND:
        raise HTTPException(status_code=400, detail="Unsupported interaction type")

    command = parse_command(payload)
    if command is None:
        raise HTTPException(status_code=400, detail="Interaction missing token or channel")

    background_tasks.add_task(process_interaction, command)
    return {"type": RESPONSE_DEFERRED_CHANNEL_MESSAGE}


async def process_interaction(command: DiscordCommand, state: BotState = bot_state) -> None:
    """Run the pipeline for a slash command and send the follow-up."""
    logger.info(
        "discord_interaction",
        extra={
            "channel_id": command.channel_id,
            "user": mask_user_id(command.user_id),
            "text_preview": preview(command.text),
        },
    )
    ctx = MessageContext(
        space_id=command.channel_id,
        user_id=command.user_id,
        now=datetime.now(UTC),
        platform=Platform.DISCORD,
        implicit_trigger=True,
    )
    try:
        reply = await conversation_service.handle_text(ctx, command.text, state)
        if reply is not None:
            await discord_sender.send_followup(
                interaction_token=command.token, text=reply.text, application_id=command.application_id
            )
    except Exception as e:
        error_response = classify_error(e)
        logger.error(
            "discord_interaction_failed",
            extra={"error_code": error_response.code, "category": error_response.category.value, "error": str(e)},
        )
        try:
            await discord_sender.send_followup(
                interaction_token=command.token,
                text=format_error_message(error_response),
                application_id=command.application_id,
            )
        except Exception as report_error:
            logger.warning("discord_error_report_failed", extra={"error": str(report_error)})
