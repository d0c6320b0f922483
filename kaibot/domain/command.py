"""Command: the normalized output of the interpretation pipeline."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from kaibot.domain.task import EntityKind, TaskStatus, normalize_status


class CommandAction(StrEnum):
    """Closed set of actions the bot understands."""

    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    COMPLETE_TASK = "complete_task"
    REOPEN_TASK = "reopen_task"
    LIST_TASKS = "list_tasks"
    CREATE_PROJECT = "create_project"
    UPDATE_PROJECT = "update_project"
    DELETE_PROJECT = "delete_project"
    LIST_PROJECTS = "list_projects"
    HELP = "help"
    ASK_USER = "ask_user"
    UNKNOWN = "unknown"

    @property
    def kind(self) -> EntityKind | None:
        """Entity list the action operates on, if any."""
        if self.value.endswith(("_task", "_tasks")):
            return EntityKind.TASK
        if self.value.endswith(("_project", "_projects")):
            return EntityKind.PROJECT
        return None

    @property
    def needs_target(self) -> bool:
        """Whether the action must resolve an existing entity first."""
        return self.value.split("_", 1)[0] in {"update", "delete", "complete", "reopen"}

    @property
    def is_create(self) -> bool:
        return self in (CommandAction.CREATE_TASK, CommandAction.CREATE_PROJECT)

    @property
    def is_learnable(self) -> bool:
        """Whether a resolution to this action may be stored as a template."""
        return self not in (CommandAction.HELP, CommandAction.ASK_USER, CommandAction.UNKNOWN)


# Flat slot names exchanged with the LLM and stored with templates.
SLOT_NAMES: tuple[str, ...] = (
    "title",
    "new_title",
    "description",
    "due_at",
    "status",
    "project_title",
    "project_id",
    "query",
    "question",
    "next_action",
)


def parse_action(value: Any) -> CommandAction:
    """Parse an action tag, mapping anything outside the closed set to UNKNOWN."""
    try:
        return CommandAction(str(value).strip().lower())
    except ValueError:
        return CommandAction.UNKNOWN


class Command(BaseModel):
    """A resolved (possibly partial) command.

    Optional slots are None when absent. ``to_slots``/``from_slots`` convert
    to and from the flat all-strings form used with the LLM and templates.
    """

    action: CommandAction
    title: str | None = None
    new_title: str | None = None
    description: str | None = None
    due_at: str | None = None
    status: TaskStatus | None = None
    project_title: str | None = None
    project_id: str | None = None
    query: str | None = None
    question: str | None = None
    next_action: CommandAction | None = None

    source: str = Field(default="", exclude=True, description="Pipeline stage that produced the command")

    @classmethod
    def from_slots(cls, data: dict[str, Any], *, source: str = "") -> "Command":
        """Build a command from a flat slot dict (missing slots count as empty)."""
        values: dict[str, Any] = {}
        for name in SLOT_NAMES:
            raw = data.get(name)
            text = "" if raw is None else str(raw).strip()
            if not text:
                continue
            if name == "status":
                values[name] = normalize_status(text)
            elif name == "next_action":
                next_action = parse_action(text)
                values[name] = None if next_action is CommandAction.UNKNOWN else next_action
            else:
                values[name] = text
        return cls(action=parse_action(data.get("action")), source=source, **values)

    def to_slots(self) -> dict[str, str]:
        """Flatten to the all-slots-present string form."""
        slots = {"action": self.action.value}
        for name in SLOT_NAMES:
            value = getattr(self, name)
            slots[name] = "" if value is None else str(value.value if isinstance(value, StrEnum) else value)
        return slots

    def has_patch(self) -> bool:
        """Whether any update field is present."""
        return any(
            (self.new_title, self.description, self.due_at, self.status, self.project_title, self.project_id)
        )

    @property
    def target_query(self) -> str:
        """Text used to resolve an existing entity."""
        return (self.query or self.title or "").strip()
