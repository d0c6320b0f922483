"""Conversation-state models: message context, pending actions, templates, replies."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from kaibot.domain.command import Command, CommandAction


class Platform(StrEnum):
    """Chat platform the message arrived from."""

    LINE = "line"
    DISCORD = "discord"


class MessageContext(BaseModel):
    """Who said something, where, and when."""

    space_id: str = Field(..., description="Group/room/user id (LINE) or channel id (Discord)")
    user_id: str | None = Field(default=None, description="Sender id when the platform provides one")
    now: datetime = Field(..., description="Reference instant for date parsing and TTLs")
    platform: Platform = Field(default=Platform.LINE)
    implicit_trigger: bool = Field(default=False, description="True when the transport already addressed the bot")


class PendingSlot(StrEnum):
    """Which slot a pending action is waiting for."""

    TITLE = "title"
    QUERY = "query"


class PendingAction(BaseModel):
    """In-progress multi-turn action for one (space, user)."""

    space_id: str
    user_id: str | None = Field(default=None, description="Bound user; None means anyone in the space")
    action: CommandAction
    slot: PendingSlot
    base: Command | None = Field(default=None, description="Partial command merged with the follow-up")
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True for any read strictly after expiry."""
        return now > self.expires_at


class Template(BaseModel):
    """A learned exact-match utterance -> command pair."""

    space_id: str
    text: str
    command: Command


class BotReply(BaseModel):
    """What the pipeline wants sent back."""

    text: str
    show_menu: bool = Field(default=False, description="Attach the quick menu where the platform supports it")
