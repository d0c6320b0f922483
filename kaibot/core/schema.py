"""Spreadsheet layout: sheet names, column order, and header resolution."""

import logging
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SheetSpec:
    """One record sheet. ``columns`` is also the fallback index when the header is unusable."""

    name: str
    columns: tuple[str, ...]
    required: tuple[str, ...]
    key_field: str | None = None

    @property
    def last_column(self) -> str:
        return column_letter(len(self.columns) - 1)

    @property
    def range(self) -> str:
        """A1 range covering every column, e.g. ``Tasks!A:L``."""
        return f"{self.name}!A:{self.last_column}"


TASKS = SheetSpec(
    name="Tasks",
    columns=(
        "task_id",
        "group_id",
        "project_id",
        "title",
        "description",
        "status",
        "due_at",
        "created_at",
        "done_at",
        "created_by",
        "updated_at",
        "deleted_at",
    ),
    required=("task_id", "group_id", "title"),
    key_field="task_id",
)

PROJECTS = SheetSpec(
    name="Projects",
    columns=(
        "project_id",
        "group_id",
        "title",
        "description",
        "status",
        "due_at",
        "created_at",
        "created_by",
        "updated_at",
        "deleted_at",
    ),
    required=("project_id", "group_id", "title"),
    key_field="project_id",
)

TEMPLATES = SheetSpec(
    name="Templates",
    columns=("group_id", "text", "action", "slots_json", "created_at"),
    required=("group_id", "text", "action"),
)

SHEETS: dict[str, SheetSpec] = {spec.name: spec for spec in (TASKS, PROJECTS, TEMPLATES)}


def get_sheet(name: str) -> SheetSpec:
    """Look up a sheet spec by name, raising ValueError for unknown sheets."""
    try:
        return SHEETS[name]
    except KeyError:
        msg = f"Unknown sheet: {name}. Expected one of {sorted(SHEETS)}."
        raise ValueError(msg) from None


def column_letter(index: int) -> str:
    """Zero-based column index to A1 letters (0 -> A, 25 -> Z, 26 -> AA)."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def resolve_header(spec: SheetSpec, header: list[str] | None) -> dict[str, int]:
    """Map column names to indices from the header row.

    Falls back to the hardcoded column order when the header is missing any
    required column.
    """
    if header:
        index = {str(name).strip(): position for position, name in enumerate(header) if str(name).strip()}
        if all(column in index for column in spec.required):
            return index
    logger.warning(
        "sheet_header_fallback",
        extra={"sheet": spec.name, "header_preview": list(header or [])[: len(spec.columns)]},
    )
    return {column: position for position, column in enumerate(spec.columns)}
