"""Due date/time extraction from free Japanese text.

Results are absolute local (UTC+9) timestamps formatted ``YYYY-MM-DD HH:MM``.
"""

import re
from datetime import UTC, date, datetime, timedelta, timezone

from kaibot.core.config import constants
from kaibot.core.text import contains_keyword, keyword_pattern


LOCAL_TZ = timezone(timedelta(hours=constants.LOCAL_UTC_OFFSET_HOURS), name="JST")
DUE_AT_FORMAT = "%Y-%m-%d %H:%M"

_FULL_DATE_RE = re.compile(r"(?<!\d)(\d{4})\s*[-/年]\s*(\d{1,2})\s*[-/月]\s*(\d{1,2})\s*日?")
_MONTH_DAY_RE = re.compile(r"(?<![\d/])(\d{1,2})\s*(?:/|月)\s*(\d{1,2})(?![\d/])\s*日?")

# Longest words first so 明後日 is not read as a shorter word.
RELATIVE_DAY_WORDS: tuple[tuple[str, int], ...] = (
    ("明後日", 2),
    ("あさって", 2),
    ("明日", 1),
    ("あした", 1),
    ("あす", 1),
    ("tomorrow", 1),
    ("今日", 0),
    ("きょう", 0),
    ("本日", 0),
    ("today", 0),
)

_CLOCK_TIME_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?!\d)")
_KANJI_TIME_RE = re.compile(r"(?<!\d)(\d{1,2})\s*時\s*(?:(\d{1,2})\s*分|(半))?")
KEYWORD_TIMES: tuple[tuple[str, tuple[int, int]], ...] = (
    ("正午", (12, 0)),
    ("昼", (12, 0)),
    ("今夜", (21, 0)),
    ("今晩", (21, 0)),
    ("夜", (21, 0)),
)

DEADLINE_PARTICLES: tuple[str, ...] = ("までに", "まで", "締め切り", "締切", "期限")


def to_local(now: datetime) -> datetime:
    """Convert a reference instant to local time (naive values are UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(LOCAL_TZ)


def format_local(moment: datetime) -> str:
    """Format an instant as a local due-at string."""
    return to_local(moment).strftime(DUE_AT_FORMAT)


def format_timestamp(moment: datetime) -> str:
    """Record timestamp (created_at/updated_at/...) as local ISO-8601 seconds."""
    return to_local(moment).isoformat(timespec="seconds")


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _find_date(text: str, today: date) -> tuple[date | None, bool]:
    """Return (date, had_explicit_year) using the fixed priority order."""
    for match in _FULL_DATE_RE.finditer(text):
        found = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if found:
            return found, True

    for match in _MONTH_DAY_RE.finditer(text):
        found = _safe_date(today.year, int(match.group(1)), int(match.group(2)))
        if found:
            return found, False

    lowered = text.lower()
    for word, offset in RELATIVE_DAY_WORDS:
        if contains_keyword(lowered, (word,)):
            return today + timedelta(days=offset), True

    return None, False


def parse_time_of_day(text: str) -> tuple[int, int] | None:
    """Find an explicit or keyword time of day in the text."""
    for match in _CLOCK_TIME_RE.finditer(text):
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour <= 23 and minute <= 59:
            return hour, minute

    for match in _KANJI_TIME_RE.finditer(text):
        hour = int(match.group(1))
        minute = 30 if match.group(3) else int(match.group(2) or 0)
        if hour <= 23 and minute <= 59:
            return hour, minute

    for word, hour_minute in KEYWORD_TIMES:
        if word in text:
            return hour_minute

    return None


def parse_due_at(text: str, now: datetime) -> str:
    """Extract an absolute due date-time from free text.

    Priority: explicit ``YYYY-MM-DD`` (``/`` and ``年月日`` separators accepted),
    then month/day without year, then relative day words. A date without a year
    that falls before the reference date rolls over to next year. Time of day
    defaults to 18:00 local.

    Args:
        text: Free text to scan
        now: Reference instant

    Returns:
        ``YYYY-MM-DD HH:MM`` in local time, or "" if no date was found
    """
    if not text:
        return ""

    today = to_local(now).date()
    found, had_year = _find_date(text, today)
    if found is None:
        return ""

    if not had_year and found < today:
        rolled = _safe_date(found.year + 1, found.month, found.day)
        if rolled is None:
            return ""
        found = rolled

    hour, minute = parse_time_of_day(text) or (constants.DEFAULT_DUE_HOUR, constants.DEFAULT_DUE_MINUTE)
    return datetime(found.year, found.month, found.day, hour, minute, tzinfo=LOCAL_TZ).strftime(DUE_AT_FORMAT)


_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    _FULL_DATE_RE,
    _MONTH_DAY_RE,
    _CLOCK_TIME_RE,
    _KANJI_TIME_RE,
    keyword_pattern(tuple(word for word, _ in RELATIVE_DAY_WORDS)),
    re.compile("正午|今夜|今晩"),
    re.compile("|".join(map(re.escape, DEADLINE_PARTICLES))),
)


def strip_datetime_phrases(text: str) -> str:
    """Remove date/time expressions and deadline particles from a phrase."""
    stripped = text
    for pattern in _STRIP_PATTERNS:
        stripped = pattern.sub(" ", stripped)
    return re.sub(r"\s+", " ", stripped).strip()
