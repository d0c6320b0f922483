"""Trigger detection: decides whether a message is addressed to the bot.

- "@KAI bot" / "＠KAI bot" triggers anywhere in the message.
- The wake words ボット / ぼっと / おーい trigger only at the head of the
  message, followed by whitespace, punctuation or the end of the text.
"""

import re
from functools import lru_cache
from typing import NamedTuple

from kaibot.core.text import collapse_whitespace


WAKE_WORDS: tuple[str, ...] = ("ボット", "ぼっと", "おーい")
WAKE_WORD_TERMINATORS = r"(?:\s|[、,。.!！?？:：]|$)"

_HEAD_WAKE_RE = re.compile(rf"^(?:{'|'.join(map(re.escape, WAKE_WORDS))}){WAKE_WORD_TERMINATORS}")
_HEAD_WAKE_STRIP_RE = re.compile(rf"^(?:{'|'.join(map(re.escape, WAKE_WORDS))})(?:[、,。.!！?？:：]|\s)*")


class TriggerResult(NamedTuple):
    """Result of trigger detection."""

    triggered: bool
    text: str


@lru_cache(maxsize=8)
def mention_pattern(bot_name: str) -> re.Pattern[str]:
    """Compile the @mention regex for a bot name ("KAI bot" -> [@＠]\\s*KAI\\s*bot)."""
    words = [re.escape(word) for word in bot_name.split()]
    return re.compile(r"[@＠]\s*" + r"\s*".join(words), re.IGNORECASE)


def _prepare(text: str) -> str:
    return collapse_whitespace(text.replace("　", " "))


def is_triggered(text: str, bot_name: str) -> bool:
    """Return True if the message is addressed to the bot."""
    prepared = _prepare(text)
    if mention_pattern(bot_name).search(prepared):
        return True
    return bool(_HEAD_WAKE_RE.match(prepared))


def strip_trigger(text: str, bot_name: str) -> str:
    """Remove every mention and a single leading wake word, then collapse whitespace."""
    prepared = _prepare(text)
    without_mentions = collapse_whitespace(mention_pattern(bot_name).sub(" ", prepared))
    if _HEAD_WAKE_RE.match(without_mentions):
        without_mentions = _HEAD_WAKE_STRIP_RE.sub("", without_mentions, count=1)
    return collapse_whitespace(without_mentions)


def detect_trigger(text: str, bot_name: str) -> TriggerResult:
    """Check the trigger and return the stripped text in one pass."""
    return TriggerResult(triggered=is_triggered(text, bot_name), text=strip_trigger(text, bot_name))
