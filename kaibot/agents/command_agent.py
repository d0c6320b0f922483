"""LLM fallback parser: utterance -> Command via Gemini JSON output."""

import json
import logging
from datetime import datetime
from typing import Any

from kaibot.agents.agent_instance import get_agent
from kaibot.agents.prompt import build_user_prompt
from kaibot.core.config import settings
from kaibot.core.intent_rules import override_due_at
from kaibot.core.logging import preview, span
from kaibot.domain.command import SLOT_NAMES, Command, CommandAction, parse_action


logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Parse the first balanced ``{...}`` substring of a model reply.

    Braces inside JSON strings are ignored while balancing.

    Returns:
        The decoded object, or None when there is no balanced object or it is not valid JSON
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    decoded = json.loads(text[start : position + 1])
                except json.JSONDecodeError:
                    return None
                return decoded if isinstance(decoded, dict) else None
    return None


def normalize_llm_slots(data: dict[str, Any]) -> dict[str, str]:
    """Coerce a model reply into the all-slots-present string form."""
    slots = {"action": parse_action(data.get("action")).value}
    for name in SLOT_NAMES:
        value = data.get(name)
        if value is None or isinstance(value, dict | list):
            slots[name] = ""
        else:
            slots[name] = str(value).strip()
    return slots


def _unknown() -> Command:
    return Command(action=CommandAction.UNKNOWN, source="llm")


async def parse_with_llm(text: str, now: datetime) -> Command:
    """Ask the model to parse an utterance.

    Never raises: a missing configuration, transport error or malformed
    reply all come back as an ``unknown`` command.

    Args:
        text: Normalized utterance with the trigger removed
        now: Reference instant (also used to re-parse the due date)

    Returns:
        Parsed Command
    """
    if not settings.llm_enabled:
        logger.info("llm_stage_skipped", extra={"reason": "gcp_project_id not set"})
        return _unknown()

    with span("command_agent.parse_with_llm"):
        try:
            result = await get_agent().run(build_user_prompt(text, now))
            raw = result.output
        except Exception as e:
            logger.warning("llm_call_failed", extra={"error": str(e), "error_type": type(e).__name__})
            return _unknown()

        data = extract_json_object(raw)
        if data is None:
            logger.warning("llm_reply_unparseable", extra={"reply_preview": preview(raw)})
            return _unknown()

        command = Command.from_slots(normalize_llm_slots(data), source="llm")
        logger.info("llm_parsed", extra={"action": command.action.value})
        return override_due_at(command, text, now)
