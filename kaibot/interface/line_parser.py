"""LINE Messaging API webhook payload parser."""

import logging
from typing import Any
from urllib.parse import parse_qsl

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class LineEvent(BaseModel):
    """One parsed LINE webhook event (text message or postback)."""

    event_type: str = Field(..., description="'message' or 'postback'")
    source_type: str = Field(default="", description="'group', 'room' or 'user'")
    group_id: str | None = Field(default=None)
    room_id: str | None = Field(default=None)
    user_id: str | None = Field(default=None)
    reply_token: str | None = Field(default=None)
    timestamp_ms: int | None = Field(default=None, description="Event time (Unix epoch milliseconds)")
    text: str | None = Field(default=None, description="Message text, with this bot's own @mentions removed")
    mentions_bot: bool = Field(default=False, description="True if the message @mentions this bot")
    postback_data: dict[str, str] = Field(default_factory=dict, description="Decoded postback 'a=...&k=v' data")
    webhook_event_id: str | None = Field(default=None)

    @property
    def space_id(self) -> str | None:
        """Conversation the event belongs to: group, then room, then 1:1 user."""
        return self.group_id or self.room_id or self.user_id

    @property
    def postback_action(self) -> str:
        return self.postback_data.get("a", "")


def parse_postback_data(data: str) -> dict[str, str]:
    """Decode postback data of the form ``a=task_list&k=v``."""
    return dict(parse_qsl(data or "", keep_blank_values=True))


def _self_mentions(message: dict[str, Any]) -> list[dict[str, Any]]:
    mention = message.get("mention") or {}
    return [item for item in mention.get("mentionees") or [] if isinstance(item, dict) and item.get("isSelf")]


def _strip_spans(text: str, mentionees: list[dict[str, Any]]) -> str:
    """Remove mention spans (index/length are UTF-16 code units, as LINE sends them)."""
    encoded = text.encode("utf-16-le")
    spans = sorted(
        ((int(item["index"]), int(item["length"])) for item in mentionees if "index" in item and "length" in item),
        reverse=True,
    )
    for index, length in spans:
        encoded = encoded[: index * 2] + " ".encode("utf-16-le") + encoded[(index + length) * 2 :]
    return encoded.decode("utf-16-le", errors="ignore")


def _parse_event(raw: dict[str, Any]) -> LineEvent | None:
    event_type = raw.get("type")
    source = raw.get("source") or {}
    common: dict[str, Any] = {
        "source_type": source.get("type", ""),
        "group_id": source.get("groupId"),
        "room_id": source.get("roomId"),
        "user_id": source.get("userId"),
        "reply_token": raw.get("replyToken"),
        "timestamp_ms": raw.get("timestamp"),
        "webhook_event_id": raw.get("webhookEventId"),
    }

    if event_type == "message":
        message = raw.get("message") or {}
        if message.get("type") != "text":
            return None
        text = message.get("text") or ""
        self_mentions = _self_mentions(message)
        return LineEvent(
            event_type="message",
            text=_strip_spans(text, self_mentions).strip() if self_mentions else text,
            mentions_bot=bool(self_mentions),
            **common,
        )

    if event_type == "postback":
        postback = raw.get("postback") or {}
        return LineEvent(event_type="postback", postback_data=parse_postback_data(postback.get("data", "")), **common)

    return None


def parse_line_events(body: dict[str, Any]) -> list[LineEvent]:
    """Extract the text-message and postback events from a webhook body.

    Other event types (follow, join, stickers, images...) are dropped.

    Args:
        body: Decoded webhook JSON

    Returns:
        Parsed events in delivery order
    """
    events: list[LineEvent] = []
    for raw in body.get("events") or []:
        if not isinstance(raw, dict):
            continue
        event = _parse_event(raw)
        if event is None:
            logger.debug("line_event_ignored", extra={"event_type": raw.get("type")})
            continue
        events.append(event)
    return events
