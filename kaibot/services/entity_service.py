"""Task and project CRUD over the Sheets store."""

import logging
from datetime import datetime
from typing import Any

from kaibot.core import sheets_client
from kaibot.core.config import constants
from kaibot.core.date_parser import format_timestamp, to_local
from kaibot.core.entity_matcher import match_entities
from kaibot.core.logging import span
from kaibot.core.schema import PROJECTS, TASKS, SheetSpec
from kaibot.domain.task import EntityKind, Project, Task, TaskStatus, generate_entity_id, normalize_status


logger = logging.getLogger(__name__)

Entity = Task | Project


def sheet_for(kind: EntityKind) -> SheetSpec:
    return TASKS if kind is EntityKind.TASK else PROJECTS


def id_of(entity: Entity) -> str:
    return entity.task_id if isinstance(entity, Task) else entity.project_id


def _parse_status(raw: Any) -> TaskStatus:
    text = str(raw or "").strip().lower()
    if text == TaskStatus.DELETED.value:
        return TaskStatus.DELETED
    return normalize_status(text) or TaskStatus.OPEN


def _to_entity(kind: EntityKind, record: dict[str, Any]) -> Entity | None:
    """Build a model from a sheet record; rows without a title or id are skipped."""
    spec = sheet_for(kind)
    if not record.get("title") or not record.get(spec.key_field or ""):
        return None
    values = {column: str(record.get(column) or "") for column in spec.columns}
    values["status"] = _parse_status(record.get("status"))
    return Task(**values) if kind is EntityKind.TASK else Project(**values)


def is_live(entity: Entity) -> bool:
    """Not soft-deleted."""
    return entity.status is not TaskStatus.DELETED and not entity.deleted_at


async def list_all(kind: EntityKind, space_id: str) -> list[Entity]:
    """Every row of the space (deleted rows included), in sheet order."""
    records = await sheets_client.list_records(sheet=sheet_for(kind).name)
    entities = []
    for record in records:
        if str(record.get("group_id") or "").strip() != space_id:
            continue
        entity = _to_entity(kind, record)
        if entity is not None:
            entities.append(entity)
    return entities


async def list_live(kind: EntityKind, space_id: str, limit: int = constants.LIST_LIMIT) -> list[Entity]:
    """Live entities of the space, capped at ``limit``."""
    with span("entity_service.list_live"):
        live = [entity for entity in await list_all(kind, space_id) if is_live(entity)]
        logger.info(
            "Listed entities",
            extra={"kind": kind.value, "space_id": space_id, "count": len(live), "limit": limit},
        )
        return live[:limit]


async def find_matches(kind: EntityKind, space_id: str, query: str) -> list[Entity]:
    """Resolve a free-text query or id against the space's live entities.

    Args:
        kind: Task or project
        space_id: Space to search
        query: Title fragment or exact id

    Returns:
        Matching entities (exact id short-circuits), capped at MATCH_LIMIT
    """
    with span("entity_service.find_matches"):
        live = [entity for entity in await list_all(kind, space_id) if is_live(entity)]
        by_id = {id_of(entity): entity for entity in live}
        rows = [{"id": key, "title": entity.title} for key, entity in by_id.items()]
        matched = match_entities(rows, query, id_key="id")
        return [by_id[row["id"]] for row in matched]


async def create(
    kind: EntityKind,
    *,
    space_id: str,
    user_id: str | None,
    title: str,
    now: datetime,
    description: str = "",
    due_at: str = "",
    status: TaskStatus = TaskStatus.OPEN,
    project_id: str = "",
) -> Entity:
    """Append a new task or project row.

    Raises:
        ValueError: If the title is empty
        SheetsError: If the append fails
    """
    title = title.strip()
    if not title:
        msg = f"{kind.value} title must not be empty"
        raise ValueError(msg)

    with span("entity_service.create"):
        timestamp = format_timestamp(now)
        entity_id = generate_entity_id(kind, to_local(now))
        common: dict[str, Any] = {
            "group_id": space_id,
            "title": title,
            "description": description,
            "status": status,
            "due_at": due_at,
            "created_at": timestamp,
            "created_by": user_id or "",
            "updated_at": timestamp,
        }
        if kind is EntityKind.TASK:
            entity: Entity = Task(task_id=entity_id, project_id=project_id, **common)
        else:
            entity = Project(project_id=entity_id, **common)

        data = entity.model_dump(mode="json")
        await sheets_client.append_record(sheet=sheet_for(kind).name, data=data)
        logger.info("Created entity", extra={"kind": kind.value, "entity_id": entity_id, "space_id": space_id})
        return entity


async def patch(kind: EntityKind, entity_id: str, fields: dict[str, Any], *, now: datetime) -> dict[str, Any]:
    """Apply a partial update; only the given fields and updated_at are written.

    Raises:
        KeyError: If the row does not exist
    """
    with span("entity_service.patch"):
        data = {key: (value.value if isinstance(value, TaskStatus) else value) for key, value in fields.items()}
        data["updated_at"] = format_timestamp(now)
        spec = sheet_for(kind)
        record = await sheets_client.update_record(
            sheet=spec.name, key_field=spec.key_field or "", key=entity_id, data=data
        )
        logger.info("Patched entity", extra={"kind": kind.value, "entity_id": entity_id, "fields": sorted(fields)})
        return record


def status_fields(kind: EntityKind, status: TaskStatus, *, now: datetime) -> dict[str, Any]:
    """Fields written by a status transition (done_at/deleted_at bookkeeping)."""
    timestamp = format_timestamp(now)
    fields: dict[str, Any] = {"status": status}
    if kind is EntityKind.TASK:
        if status is TaskStatus.DONE:
            fields["done_at"] = timestamp
        elif status in (TaskStatus.OPEN, TaskStatus.DOING):
            fields["done_at"] = ""
    if status is TaskStatus.DELETED:
        fields["deleted_at"] = timestamp
    return fields


async def set_status(kind: EntityKind, entity_id: str, status: TaskStatus, *, now: datetime) -> dict[str, Any]:
    """Transition status: done sets done_at, reopen clears it, deleted sets deleted_at."""
    return await patch(kind, entity_id, status_fields(kind, status, now=now), now=now)
