"""Per-message interpretation pipeline.

normalize -> trigger -> pending action -> template -> regex rules -> LLM
-> intent inference -> execute -> learn template.
"""

import logging

from kaibot.agents.command_agent import parse_with_llm
from kaibot.core import message_templates
from kaibot.core.config import settings
from kaibot.core.date_parser import parse_due_at, strip_datetime_phrases
from kaibot.core.errors import SheetsError
from kaibot.core.intent_inference import infer_intent
from kaibot.core.intent_rules import match_rules
from kaibot.core.logging import mask_user_id, preview, span
from kaibot.core.text import normalize_text
from kaibot.core.trigger import detect_trigger
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.conversation import BotReply, MessageContext, PendingAction, PendingSlot
from kaibot.domain.task import EntityKind
from kaibot.services import command_executor, template_service
from kaibot.services.pending_action_service import BotState, bot_state, is_cancel


logger = logging.getLogger(__name__)


def _fill_pending(pending: PendingAction, text: str, ctx: MessageContext) -> Command:
    """Merge a follow-up message into the pending command as its missing slot."""
    base = pending.base or Command(action=pending.action)
    if pending.slot is PendingSlot.TITLE:
        due_at = parse_due_at(text, ctx.now)
        title = (strip_datetime_phrases(text) or text) if due_at else text
        update = {"action": pending.action, "title": title}
        if due_at:
            update["due_at"] = due_at
    else:
        update = {"action": pending.action, "query": text}
    command = base.model_copy(update=update)
    command.source = "pending"
    return command


async def _resolve_pending(ctx: MessageContext, pending: PendingAction, text: str, state: BotState) -> BotReply:
    if is_cancel(text):
        state.pending.clear_entry(pending)
        logger.info("pending_action_cancelled", extra={"space_id": ctx.space_id, "action": pending.action.value})
        return BotReply(text=message_templates.CANCELLED)

    if not text:
        if pending.slot is PendingSlot.TITLE:
            return BotReply(text=message_templates.ask_title(kind=pending.action.kind or EntityKind.TASK))
        return BotReply(text=message_templates.ask_target(action=pending.action))

    # Cleared before execution; the executor may re-arm it (e.g. another ambiguous delete).
    state.pending.clear_entry(pending)
    command = _fill_pending(pending, text, ctx)
    return await command_executor.execute(command, ctx, state)


async def _handle_unresolved(ctx: MessageContext, text: str, state: BotState) -> BotReply:
    """Keyword inference: clarify and arm a pending action, or explain the guess."""
    intent = infer_intent(text)
    action = intent.command_action
    logger.info(
        "intent_inferred",
        extra={
            "action": action.value if action else None,
            "target": intent.target.value if intent.target else None,
            "missing_target": intent.missing_target,
        },
    )

    if action is not None and intent.missing_target:
        state.pending.set(
            space_id=ctx.space_id, user_id=ctx.user_id, action=action, slot=PendingSlot.QUERY, now=ctx.now
        )
        return BotReply(text=message_templates.ask_target(action=action))

    if action is not None and action.is_create and not intent.query:
        state.pending.set(
            space_id=ctx.space_id, user_id=ctx.user_id, action=action, slot=PendingSlot.TITLE, now=ctx.now
        )
        return BotReply(text=message_templates.ask_title(kind=action.kind or EntityKind.TASK))

    return BotReply(
        text=message_templates.guessed(
            action_label=message_templates.ACTION_LABELS.get(action) if action else None,
            kind=intent.target,
            query=intent.query,
            missing=intent.missing_slots(),
        ),
        show_menu=True,
    )


async def _learn(ctx: MessageContext, text: str, command: Command, state: BotState) -> None:
    try:
        await template_service.learn(ctx.space_id, text, command, cache=state.cache, now=ctx.now)
    except SheetsError as e:
        # The command already ran; learning is best effort.
        logger.warning("template_learn_failed", extra={"space_id": ctx.space_id, "error": str(e)})


async def interpret(ctx: MessageContext, text: str, state: BotState) -> Command:
    """Resolve a stripped utterance: template, then rules, then LLM."""
    command = await template_service.lookup(ctx.space_id, text, cache=state.cache, now=ctx.now)
    if command is None:
        command = match_rules(text, ctx.now)
    if command is None or command.action is CommandAction.UNKNOWN:
        command = await parse_with_llm(text, ctx.now)
    return command


async def handle_text(ctx: MessageContext, raw_text: str, state: BotState = bot_state) -> BotReply | None:
    """Run one inbound text message through the pipeline.

    Args:
        ctx: Who/where/when
        raw_text: Message text as received
        state: Process-local conversation state

    Returns:
        Reply to send, or None when the message is not for the bot
    """
    with span("conversation_service.handle_text"):
        normalized = normalize_text(raw_text)
        trigger = detect_trigger(normalized, settings.bot_name)
        text = trigger.text if trigger.triggered else normalized
        triggered = trigger.triggered or ctx.implicit_trigger

        pending = state.pending.get(ctx.space_id, ctx.user_id, ctx.now)
        if pending is None and not triggered:
            return None

        logger.info(
            "Handling message",
            extra={
                "space_id": ctx.space_id,
                "user": mask_user_id(ctx.user_id),
                "platform": ctx.platform.value,
                "pending": pending.action.value if pending else None,
                "text_preview": preview(text),
            },
        )

        if pending is not None:
            return await _resolve_pending(ctx, pending, text, state)
        if is_cancel(text):
            return BotReply(text=message_templates.NOTHING_PENDING_TO_CANCEL)

        command = await interpret(ctx, text, state)
        if command.action is CommandAction.UNKNOWN:
            return await _handle_unresolved(ctx, text, state)

        reply = await command_executor.execute(command, ctx, state)
        if command.source != "template":
            await _learn(ctx, text, command, state)
        return reply
