"""Maps resolved commands to store operations and Japanese replies."""

import logging
import re

from kaibot.core import message_templates
from kaibot.core.config import settings
from kaibot.core.logging import span
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.conversation import BotReply, MessageContext, PendingSlot
from kaibot.domain.task import EntityKind, Project, Task, TaskStatus
from kaibot.services import entity_service
from kaibot.services.entity_service import Entity, id_of
from kaibot.services.pending_action_service import BotState


logger = logging.getLogger(__name__)

_MULTI_QUERY_SPLIT_RE = re.compile(r"[、,，\n]+")


def split_queries(query: str) -> list[str]:
    """Split a delete query on 、/comma/newline, dropping blanks."""
    return [part.strip() for part in _MULTI_QUERY_SPLIT_RE.split(query) if part.strip()]


def _arm(
    state: BotState,
    ctx: MessageContext,
    action: CommandAction,
    slot: PendingSlot,
    base: Command | None = None,
) -> None:
    state.pending.set(space_id=ctx.space_id, user_id=ctx.user_id, action=action, slot=slot, base=base, now=ctx.now)


async def _resolve(kind: EntityKind, ctx: MessageContext, query: str) -> tuple[Entity | None, str | None]:
    """Resolve one query to exactly one live entity, or explain why not."""
    matches = await entity_service.find_matches(kind, ctx.space_id, query)
    if not matches:
        return None, message_templates.not_found(kind=kind, query=query)
    if len(matches) > 1:
        candidates = [(id_of(entity), entity.title) for entity in matches]
        return None, message_templates.ambiguous(kind=kind, query=query, candidates=candidates)
    return matches[0], None


async def _resolve_project_id(ctx: MessageContext, project_title: str) -> str | None:
    matches = await entity_service.find_matches(EntityKind.PROJECT, ctx.space_id, project_title)
    return id_of(matches[0]) if len(matches) == 1 else None


async def _list(kind: EntityKind, ctx: MessageContext) -> BotReply:
    entities = await entity_service.list_live(kind, ctx.space_id)
    if kind is EntityKind.TASK:
        return BotReply(text=message_templates.task_list([e for e in entities if isinstance(e, Task)]))
    return BotReply(text=message_templates.project_list([e for e in entities if isinstance(e, Project)]))


async def _create(command: Command, ctx: MessageContext, state: BotState) -> BotReply:
    kind = command.action.kind or EntityKind.TASK
    title = (command.title or "").strip()
    if not title:
        _arm(state, ctx, command.action, PendingSlot.TITLE, base=command)
        return BotReply(text=message_templates.ask_title(kind=kind))

    project_id = command.project_id or ""
    notes: list[str] = []
    if kind is EntityKind.TASK and command.project_title and not project_id:
        project_id = await _resolve_project_id(ctx, command.project_title) or ""
        if not project_id:
            notes.append(message_templates.project_unresolved(project_title=command.project_title))

    status = command.status if command.status in (TaskStatus.OPEN, TaskStatus.DOING, TaskStatus.DONE) else None
    entity = await entity_service.create(
        kind,
        space_id=ctx.space_id,
        user_id=ctx.user_id,
        title=title,
        now=ctx.now,
        description=command.description or "",
        due_at=command.due_at or "",
        status=status or TaskStatus.OPEN,
        project_id=project_id,
    )
    text = message_templates.created(
        kind=kind,
        title=entity.title,
        entity_id=id_of(entity),
        due_at=entity.due_at,
        project_title=command.project_title if project_id else "",
    )
    return BotReply(text="\n".join([text, *notes]))


async def _set_status(command: Command, ctx: MessageContext, status: TaskStatus) -> BotReply:
    kind = command.action.kind or EntityKind.TASK
    entity, problem = await _resolve(kind, ctx, command.target_query)
    if entity is None:
        return BotReply(text=problem or "")

    if entity.status is status:
        return BotReply(text=message_templates.already_in_status(kind=kind, title=entity.title, status=status.value))

    await entity_service.set_status(kind, id_of(entity), status, now=ctx.now)
    if status is TaskStatus.DONE:
        return BotReply(text=message_templates.completed(kind=kind, title=entity.title))
    return BotReply(text=message_templates.reopened(kind=kind, title=entity.title))


async def _update(command: Command, ctx: MessageContext) -> BotReply:
    kind = command.action.kind or EntityKind.TASK
    entity, problem = await _resolve(kind, ctx, command.target_query)
    if entity is None:
        return BotReply(text=problem or "")
    if not command.has_patch():
        return BotReply(text=message_templates.ask_patch(kind=kind, title=entity.title))

    fields: dict[str, object] = {}
    changes: list[str] = []
    notes: list[str] = []
    if command.new_title:
        fields["title"] = command.new_title
        changes.append(f"タイトル: {command.new_title}")
    if command.description:
        fields["description"] = command.description
        changes.append(f"説明: {command.description}")
    if command.due_at:
        fields["due_at"] = command.due_at
        changes.append(f"期限: {command.due_at}")
    if command.status and command.status is not TaskStatus.DELETED:
        fields.update(entity_service.status_fields(kind, command.status, now=ctx.now))
        changes.append(f"ステータス: {command.status.value}")
    if kind is EntityKind.TASK:
        project_id = command.project_id
        if command.project_title and not project_id:
            project_id = await _resolve_project_id(ctx, command.project_title)
            if project_id is None:
                notes.append(message_templates.project_unresolved(project_title=command.project_title))
        if project_id:
            fields["project_id"] = project_id
            changes.append(f"プロジェクト: {command.project_title or project_id}")

    if not fields:
        return BotReply(text="\n".join(notes) or message_templates.ask_patch(kind=kind, title=entity.title))

    await entity_service.patch(kind, id_of(entity), fields, now=ctx.now)
    text = message_templates.updated(kind=kind, title=entity.title, changes=changes)
    return BotReply(text="\n".join([text, *notes]))


async def _delete(command: Command, ctx: MessageContext, state: BotState) -> BotReply:
    kind = command.action.kind or EntityKind.TASK
    lines: list[str] = []
    ambiguous = False
    queries = split_queries(command.target_query) or [command.target_query]
    for query in queries:
        matches = await entity_service.find_matches(kind, ctx.space_id, query)
        if not matches:
            lines.append(message_templates.not_found(kind=kind, query=query))
            continue
        if len(matches) > 1:
            ambiguous = True
            candidates = [(id_of(entity), entity.title) for entity in matches]
            lines.append(message_templates.ambiguous(kind=kind, query=query, candidates=candidates))
            continue
        entity = matches[0]
        await entity_service.set_status(kind, id_of(entity), TaskStatus.DELETED, now=ctx.now)
        lines.append(message_templates.deleted(kind=kind, title=entity.title))

    if ambiguous:
        # The next message narrows the query instead of starting a new command.
        _arm(state, ctx, command.action, PendingSlot.QUERY, base=command.model_copy(update={"query": None}))
    return BotReply(text="\n".join(lines))


async def _ask_user(command: Command, ctx: MessageContext, state: BotState) -> BotReply:
    next_action = command.next_action
    if next_action is not None and next_action.is_learnable and next_action.kind is not None:
        slot = PendingSlot.TITLE if next_action.is_create else PendingSlot.QUERY
        base = command.model_copy(update={"action": next_action, "question": None, "next_action": None})
        _arm(state, ctx, next_action, slot, base=base)
    question = command.question or "もう少し詳しく教えてください。"
    return BotReply(text=question)


async def execute(command: Command, ctx: MessageContext, state: BotState) -> BotReply:
    """Carry out a command for a space.

    Missing titles or targets arm a pending action and return a prompt.
    Not-found and ambiguous matches are replies, not errors.

    Args:
        command: Resolved (possibly partial) command
        ctx: Message context (space, user, reference time)
        state: Process-local conversation state

    Returns:
        Reply to send back

    Raises:
        SheetsError: If a store call fails
    """
    action = command.action
    with span("command_executor.execute"):
        logger.info(
            "Executing command",
            extra={"action": action.value, "source": command.source, "space_id": ctx.space_id},
        )

        if action is CommandAction.HELP:
            return BotReply(text=message_templates.help_text(bot_name=settings.bot_name), show_menu=True)
        if action is CommandAction.ASK_USER:
            return await _ask_user(command, ctx, state)
        if action is CommandAction.UNKNOWN:
            return BotReply(
                text=message_templates.guessed(action_label=None, kind=None, query="", missing=[]), show_menu=True
            )
        if action in (CommandAction.LIST_TASKS, CommandAction.LIST_PROJECTS):
            return await _list(action.kind or EntityKind.TASK, ctx)
        if action.is_create:
            return await _create(command, ctx, state)

        if not command.target_query:
            _arm(state, ctx, action, PendingSlot.QUERY, base=command)
            return BotReply(text=message_templates.ask_target(action=action))

        if action is CommandAction.COMPLETE_TASK:
            return await _set_status(command, ctx, TaskStatus.DONE)
        if action is CommandAction.REOPEN_TASK:
            return await _set_status(command, ctx, TaskStatus.OPEN)
        if action in (CommandAction.UPDATE_TASK, CommandAction.UPDATE_PROJECT):
            return await _update(command, ctx)
        return await _delete(command, ctx, state)
