"""Task and project domain models."""

import secrets
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from kaibot.core.text import contains_keyword


class TaskStatus(StrEnum):
    """Task/project lifecycle status. DELETED is a soft delete."""

    OPEN = "open"
    DOING = "doing"
    DONE = "done"
    DELETED = "deleted"


class EntityKind(StrEnum):
    """Which list an entity lives in."""

    TASK = "task"
    PROJECT = "project"

    @property
    def id_prefix(self) -> str:
        return "t" if self is EntityKind.TASK else "p"

    @property
    def label(self) -> str:
        """Japanese noun used in replies."""
        return "タスク" if self is EntityKind.TASK else "プロジェクト"


def generate_entity_id(kind: EntityKind, now: datetime) -> str:
    """Build an opaque id: prefix + local timestamp + 4 random hex chars (e.g. t_20260110180000a1b2)."""
    return f"{kind.id_prefix}_{now.strftime('%Y%m%d%H%M%S')}{secrets.token_hex(2)}"


class Task(BaseModel):
    """Task row as stored in the Tasks sheet."""

    task_id: str = Field(..., description="Immutable task id")
    group_id: str = Field(..., description="Space (group/room/user/channel) owning the task")
    project_id: str = Field(default="", description="Optional project id (not enforced)")
    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(default="")
    status: TaskStatus = Field(default=TaskStatus.OPEN)
    due_at: str = Field(default="", description="Local due timestamp 'YYYY-MM-DD HH:MM' or empty")
    created_at: str = Field(default="")
    done_at: str = Field(default="", description="Set when done, cleared on reopen")
    created_by: str = Field(default="")
    updated_at: str = Field(default="")
    deleted_at: str = Field(default="")


class Project(BaseModel):
    """Project row as stored in the Projects sheet."""

    project_id: str = Field(..., description="Immutable project id")
    group_id: str = Field(...)
    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    status: TaskStatus = Field(default=TaskStatus.OPEN)
    due_at: str = Field(default="")
    created_at: str = Field(default="")
    created_by: str = Field(default="")
    updated_at: str = Field(default="")
    deleted_at: str = Field(default="")


# Checked in order; the first group containing a synonym wins. OPEN comes
# first because 未着手/未完了 contain the DOING/DONE words 着手/完了.
STATUS_SYNONYMS: tuple[tuple[TaskStatus, tuple[str, ...]], ...] = (
    (TaskStatus.OPEN, ("open", "todo", "未着手", "未完了", "オープン", "未対応")),
    (TaskStatus.DOING, ("doing", "in progress", "wip", "進行中", "作業中", "対応中", "着手中", "着手")),
    (TaskStatus.DONE, ("done", "finished", "complete", "completed", "完了", "済み", "済", "終了", "終わり")),
)


def normalize_status(value: str | None) -> TaskStatus | None:
    """Map a status word (done/doing/open synonyms) to a TaskStatus."""
    if not value:
        return None
    lowered = value.strip().lower()
    for status in TaskStatus:
        if lowered == status.value and status is not TaskStatus.DELETED:
            return status
    for status, synonyms in STATUS_SYNONYMS:
        if contains_keyword(lowered, synonyms):
            return status
    return None
