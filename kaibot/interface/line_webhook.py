"""LINE webhook endpoint: verify, acknowledge immediately, process events in the background."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from kaibot.core import message_templates
from kaibot.core.config import settings
from kaibot.core.errors import classify_error, format_error_message
from kaibot.core.logging import mask_user_id, preview
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.conversation import BotReply, MessageContext, Platform
from kaibot.interface import line_parser, line_sender, webhook_security
from kaibot.interface.line_parser import LineEvent
from kaibot.interface.line_sender import text_message
from kaibot.interface.line_templates import build_menu_flex
from kaibot.services import command_executor, conversation_service
from kaibot.services.pending_action_service import BotState, bot_state


router = APIRouter(prefix="/line", tags=["line"])
logger = logging.getLogger(__name__)

POSTBACK_LIST_ACTIONS: dict[str, CommandAction] = {
    "task_list": CommandAction.LIST_TASKS,
    "project_list": CommandAction.LIST_PROJECTS,
}


@router.post("/webhook")
async def receive_line_webhook(request: Request, background_tasks: BackgroundTasks) -> dict[str, str]:
    """Receive LINE webhook POST requests.

    1. Verifies X-Line-Signature against the raw body (401 on failure)
    2. Returns 200 immediately
    3. Processes events sequentially in a background task

    Raises:
        HTTPException: On a bad signature or malformed JSON
    """
    raw_body = await request.body()
    security_result = webhook_security.validate_line_signature(
        raw_body, request.headers.get("x-line-signature"), settings.line_channel_secret
    )
    if not security_result.is_valid:
        raise HTTPException(
            status_code=security_result.http_status_code or 401,
            detail=security_result.error_message,
        )

    try:
        body = json.loads(raw_body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    events = line_parser.parse_line_events(body)
    logger.info("line_webhook_received", extra={"destination": body.get("destination"), "events_count": len(events)})

    if events:
        background_tasks.add_task(process_line_events, events)
    return {"status": "ok"}


async def process_line_events(events: list[LineEvent], state: BotState = bot_state) -> None:
    """Handle a batch in order; one failing event never stops the rest."""
    for event in events:
        try:
            await process_line_event(event, state)
        except Exception as e:
            await _handle_event_error(e, event, state)


async def process_line_event(event: LineEvent, state: BotState = bot_state) -> None:
    logger.info(
        "line_event",
        extra={
            "event_type": event.event_type,
            "source_type": event.source_type,
            "user": mask_user_id(event.user_id),
            "has_reply_token": bool(event.reply_token),
            "text_preview": preview(event.text),
            "postback_action": event.postback_action or None,
        },
    )
    if event.event_type == "postback":
        await _handle_postback(event, state)
    else:
        await _handle_text(event, state)


def _event_time(event: LineEvent) -> datetime:
    if event.timestamp_ms:
        return datetime.fromtimestamp(event.timestamp_ms / 1000, tz=UTC)
    return datetime.now(UTC)


def _context(event: LineEvent, space_id: str) -> MessageContext:
    return MessageContext(
        space_id=space_id,
        user_id=event.user_id,
        now=_event_time(event),
        platform=Platform.LINE,
        implicit_trigger=event.mentions_bot,
    )


async def _push(target: str, messages: list[dict[str, Any]], state: BotState) -> None:
    await line_sender.push(to=target, messages=messages, throttle=state.throttle)


async def _handle_postback(event: LineEvent, state: BotState) -> None:
    """Menu button: ack at once, announce the operator, then act."""
    target = event.space_id
    if event.reply_token:
        await line_sender.reply(reply_token=event.reply_token, messages=[text_message(message_templates.POSTBACK_ACK)])
    if not target:
        return

    display_name = await line_sender.get_display_name(
        user_id=event.user_id, group_id=event.group_id, room_id=event.room_id
    )
    await _push(target, [text_message(message_templates.operator_notice(display_name=display_name))], state)

    action = event.postback_action
    if action == "task_new":
        await _push(target, [text_message(message_templates.task_new_usage(bot_name=settings.bot_name))], state)
    elif action in POSTBACK_LIST_ACTIONS:
        reply = await command_executor.execute(
            Command(action=POSTBACK_LIST_ACTIONS[action], source="postback"), _context(event, target), state
        )
        await _push(target, [text_message(reply.text)], state)
    elif action == "settings":
        await _push(target, [text_message(message_templates.SETTINGS_NOT_READY)], state)
    else:
        await _push(target, [build_menu_flex(settings.bot_name)], state)


def _reply_messages(reply: BotReply) -> list[dict[str, Any]]:
    messages = [text_message(reply.text)]
    if reply.show_menu:
        messages.append(build_menu_flex(settings.bot_name))
    return messages


async def _handle_text(event: LineEvent, state: BotState) -> None:
    target = event.space_id
    if not target:
        return

    reply = await conversation_service.handle_text(_context(event, target), event.text or "", state)
    if reply is None:
        return

    messages = _reply_messages(reply)
    if event.reply_token:
        await line_sender.reply(reply_token=event.reply_token, messages=messages)
    else:
        await _push(target, messages, state)


async def _handle_event_error(e: Exception, event: LineEvent, state: BotState) -> None:
    """Log, classify and best-effort report a failed event to its space."""
    error_response = classify_error(e)
    logger.error(
        "line_event_failed",
        extra={
            "error_code": error_response.code,
            "category": error_response.category.value,
            "error": str(e),
            "event_type": event.event_type,
        },
    )

    target = event.space_id
    if not target:
        return
    try:
        await _push(target, [text_message(format_error_message(error_response))], state)
    except Exception as report_error:
        logger.warning("line_error_report_failed", extra={"error": str(report_error)})
