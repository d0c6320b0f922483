"""Text normalization for inbound chat messages."""

import re
import unicodedata
from functools import lru_cache


_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str | None) -> str:
    """Canonicalize full-width spaces and punctuation, then trim.

    NFKC folds full-width ASCII (``＠``, ``：``, ``／``, digits, latin letters)
    and the ideographic space into their ASCII forms. Japanese punctuation
    such as ``、``, ``。`` and ``「」`` is left untouched.

    Args:
        text: Raw message text

    Returns:
        Normalized text (idempotent)
    """
    if not text:
        return ""
    return collapse_whitespace(unicodedata.normalize("NFKC", text))


_NEVER_RE = re.compile(r"(?!)")


@lru_cache(maxsize=128)
def keyword_pattern(words: tuple[str, ...]) -> re.Pattern[str]:
    """Compile a case-insensitive alternation of keywords.

    Latin keywords only match as whole words ("add" does not hit "address"),
    while Japanese keywords match anywhere since the script has no spaces.
    """
    if not words:
        return _NEVER_RE
    parts = []
    for word in sorted(words, key=len, reverse=True):
        escaped = re.escape(word)
        if word.isascii() and word[:1].isalpha():
            escaped = rf"(?<![A-Za-z]){escaped}(?![A-Za-z])"
        parts.append(escaped)
    return re.compile("|".join(parts), re.IGNORECASE)


def contains_keyword(text: str, words: tuple[str, ...]) -> bool:
    """True when any keyword occurs in text under the rules of ``keyword_pattern``."""
    return keyword_pattern(words).search(text) is not None
