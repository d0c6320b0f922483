"""Domain models and DTOs."""

from kaibot.domain.command import SLOT_NAMES, Command, CommandAction, parse_action
from kaibot.domain.conversation import (
    BotReply,
    MessageContext,
    PendingAction,
    PendingSlot,
    Platform,
    Template,
)
from kaibot.domain.task import EntityKind, Project, Task, TaskStatus, generate_entity_id, normalize_status


__all__ = [
    "SLOT_NAMES",
    "BotReply",
    "Command",
    "CommandAction",
    "EntityKind",
    "MessageContext",
    "PendingAction",
    "PendingSlot",
    "Platform",
    "Project",
    "Task",
    "TaskStatus",
    "Template",
    "generate_entity_id",
    "normalize_status",
    "parse_action",
]
