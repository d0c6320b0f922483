"""Learned utterance templates: exact-match text -> previously resolved command."""

import json
import logging
from datetime import datetime

from kaibot.core import sheets_client
from kaibot.core.cache_client import InMemoryCache
from kaibot.core.config import constants
from kaibot.core.date_parser import format_timestamp
from kaibot.core.intent_rules import override_due_at
from kaibot.core.logging import preview, span
from kaibot.core.schema import TEMPLATES
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.conversation import Template


logger = logging.getLogger(__name__)


def _cache_key(space_id: str) -> str:
    return f"templates:{space_id}"


def _match_key(text: str) -> str:
    return text.strip().lower()


def _from_record(record: dict) -> Template | None:
    try:
        slots = json.loads(record.get("slots_json") or "{}")
    except json.JSONDecodeError:
        logger.warning("template_slots_invalid", extra={"text": preview(record.get("text"))})
        return None
    if not isinstance(slots, dict):
        return None
    command = Command.from_slots({**slots, "action": record.get("action")}, source="template")
    if command.action is CommandAction.UNKNOWN or not record.get("text"):
        return None
    return Template(space_id=record["group_id"], text=record["text"], command=command)


async def load_templates(space_id: str, *, cache: InMemoryCache) -> list[Template]:
    """Templates for a space, served from the TTL cache and reloaded on miss."""
    cached = await cache.get(_cache_key(space_id))
    if cached is not None:
        return [Template.model_validate(item) for item in json.loads(cached)]

    with span("template_service.load_templates"):
        records = await sheets_client.list_records(sheet=TEMPLATES.name)
        templates = [
            template
            for record in records
            if str(record.get("group_id") or "").strip() == space_id
            and (template := _from_record(record)) is not None
        ]
        await _store_cache(space_id, templates, cache=cache)
        logger.info("Loaded templates", extra={"space_id": space_id, "count": len(templates)})
        return templates


async def _store_cache(space_id: str, templates: list[Template], *, cache: InMemoryCache) -> None:
    payload = json.dumps([template.model_dump(mode="json") for template in templates], ensure_ascii=False)
    await cache.set(_cache_key(space_id), payload, constants.TEMPLATE_CACHE_TTL_SECONDS)


async def lookup(space_id: str, text: str, *, cache: InMemoryCache, now: datetime) -> Command | None:
    """Exact case-insensitive lookup of a stripped utterance.

    The due date is re-parsed from the utterance so relative dates
    ("明日") resolve against the current time, not the learning time.
    """
    key = _match_key(text)
    if not key:
        return None
    for template in await load_templates(space_id, cache=cache):
        if _match_key(template.text) == key:
            command = template.command.model_copy()
            command.source = "template"
            logger.info("template_hit", extra={"space_id": space_id, "action": command.action.value})
            return override_due_at(command, text, now)
    return None


def is_actionable(command: Command) -> bool:
    """Whether a command is complete enough to be worth remembering."""
    if not command.action.is_learnable:
        return False
    if command.action.is_create:
        return bool(command.title)
    if command.action.needs_target:
        return bool(command.target_query)
    return True


async def learn(space_id: str, text: str, command: Command, *, cache: InMemoryCache, now: datetime) -> bool:
    """Store an utterance -> command pair once per text.

    Returns:
        True if a new Templates row was appended
    """
    key = _match_key(text)
    if not key or not is_actionable(command):
        return False

    templates = await load_templates(space_id, cache=cache)
    if any(_match_key(template.text) == key for template in templates):
        return False

    with span("template_service.learn"):
        slots = command.to_slots()
        action = slots.pop("action")
        await sheets_client.append_record(
            sheet=TEMPLATES.name,
            data={
                "group_id": space_id,
                "text": text.strip(),
                "action": action,
                "slots_json": json.dumps(slots, ensure_ascii=False),
                "created_at": format_timestamp(now),
            },
        )
        templates.append(Template(space_id=space_id, text=text.strip(), command=command))
        await _store_cache(space_id, templates, cache=cache)
        logger.info("template_learned", extra={"space_id": space_id, "action": action, "source": command.source})
        return True
