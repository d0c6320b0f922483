"""Per (space, user) pending multi-turn actions and process-local bot state."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from kaibot.core.cache_client import InMemoryCache, cache_client
from kaibot.core.config import constants
from kaibot.core.intent_rules import clean_phrase
from kaibot.core.rate_limiter import RateLimiter
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.conversation import PendingAction, PendingSlot


logger = logging.getLogger(__name__)


CANCEL_WORDS: tuple[str, ...] = ("キャンセル", "やめる", "やめて", "中止", "cancel")

# Key used for entries not bound to a user.
ANY_USER = "*"


def is_cancel(text: str) -> bool:
    """True when the whole message is a cancel word."""
    return clean_phrase(text).lower() in CANCEL_WORDS


class PendingActionStore:
    """At most one pending action per (space, user); the latest replaces the old one.

    Expiry is checked lazily on read. An entry armed without a user id is
    keyed with ``ANY_USER`` and can be resolved by anyone in the space.
    """

    def __init__(self, ttl_seconds: int = constants.PENDING_ACTION_TTL_SECONDS) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._entries: dict[tuple[str, str], PendingAction] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def set(
        self,
        *,
        space_id: str,
        user_id: str | None,
        action: CommandAction,
        slot: PendingSlot,
        now: datetime,
        base: Command | None = None,
    ) -> PendingAction:
        """Arm a pending action, replacing any existing one for the same key."""
        entry = PendingAction(
            space_id=space_id,
            user_id=user_id,
            action=action,
            slot=slot,
            base=base,
            expires_at=now + self._ttl,
        )
        self._entries[(space_id, user_id or ANY_USER)] = entry
        logger.info(
            "pending_action_set",
            extra={"space_id": space_id, "action": action.value, "slot": slot.value, "bound": user_id is not None},
        )
        return entry

    def get(self, space_id: str, user_id: str | None, now: datetime) -> PendingAction | None:
        """Return the live entry for this user, else the space's unbound entry."""
        keys = [(space_id, user_id)] if user_id else []
        keys.append((space_id, ANY_USER))
        for key in keys:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            if entry is None:
                continue
            if entry.is_expired(now):
                del self._entries[key]  # type: ignore[arg-type]
                logger.info("pending_action_expired", extra={"space_id": space_id, "action": entry.action.value})
                continue
            return entry
        return None

    def clear(self, space_id: str, user_id: str | None) -> None:
        self._entries.pop((space_id, user_id or ANY_USER), None)

    def clear_entry(self, entry: PendingAction) -> None:
        """Remove exactly this entry's key."""
        self.clear(entry.space_id, entry.user_id)


@dataclass
class BotState:
    """Process-local conversation state, passed explicitly into the pipeline."""

    pending: PendingActionStore = field(default_factory=PendingActionStore)
    cache: InMemoryCache = field(default_factory=InMemoryCache)
    throttle: RateLimiter = field(init=False)

    def __post_init__(self) -> None:
        self.throttle = RateLimiter(self.cache)


# Global state for the serving process
bot_state = BotState(cache=cache_client)
