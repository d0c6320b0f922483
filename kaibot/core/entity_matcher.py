"""Id-or-title matching of a free-text query against task/project rows."""

from kaibot.core.config import constants


def _get_str(item: dict, key: str) -> str:
    """Safely get a string value from a row dict."""
    value = item.get(key)
    return value if isinstance(value, str) else ""


def match_entities(
    items: list[dict],
    query: str,
    *,
    id_key: str,
    title_key: str = "title",
    limit: int = constants.MATCH_LIMIT,
) -> list[dict]:
    """Match rows by exact id, else by case-insensitive title substring.

    An exact id hit short-circuits the title search, so an id query returns
    that single row even when other titles contain the same text.

    Args:
        items: Live (non-deleted) rows to search
        query: User's search text or id
        id_key: Key holding the row identifier
        title_key: Key holding the title
        limit: Maximum number of rows returned

    Returns:
        Matching rows in sheet order (may be empty)
    """
    needle = query.strip()
    if not needle:
        return []

    for item in items:
        if _get_str(item, id_key) == needle:
            return [item]

    lowered = needle.lower()
    return [item for item in items if lowered in _get_str(item, title_key).lower()][:limit]
