"""Google Sheets record store: list, append and patch rows by header name."""

import asyncio
import json
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from kaibot.core.config import constants, settings
from kaibot.core.errors import SheetsError
from kaibot.core.schema import SheetSpec, column_letter, get_sheet, resolve_header


logger = logging.getLogger(__name__)

GOOGLE_SHEETS_API_VERSION = "v4"
GOOGLE_SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

T = TypeVar("T")

_service: Any = None
_service_lock = threading.Lock()


def _build_service() -> Any:
    """Build a Sheets API client from the service-account key in settings."""
    key_json = settings.require_credential("sheets_sa_key_json", "Google Sheets")
    try:
        info = json.loads(key_json)
    except json.JSONDecodeError as e:
        msg = "Google Sheets credential not configured. KAI_BOT_SHEETS_SA_KEY_JSON must be a JSON service-account key."
        raise ValueError(msg) from e

    credentials = service_account.Credentials.from_service_account_info(info, scopes=GOOGLE_SHEETS_SCOPES)
    return build("sheets", GOOGLE_SHEETS_API_VERSION, credentials=credentials, cache_discovery=False)


def get_service() -> Any:
    """Return the shared Sheets API client, building it on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = _build_service()
            logger.info("Created Google Sheets client", extra={"api_version": GOOGLE_SHEETS_API_VERSION})
        return _service


def reset_service() -> None:
    """Drop the cached client (used after credential changes and in tests)."""
    global _service
    with _service_lock:
        _service = None


def _spreadsheet_id() -> str:
    return settings.require_credential("spreadsheet_id", "Google Sheets")


def _read_values(range_name: str) -> list[list[str]]:
    result = (
        get_service()
        .spreadsheets()
        .values()
        .get(spreadsheetId=_spreadsheet_id(), range=range_name, valueRenderOption="FORMATTED_VALUE")
        .execute()
    )
    return result.get("values", [])


def _append_values(range_name: str, row: list[str]) -> None:
    (
        get_service()
        .spreadsheets()
        .values()
        .append(
            spreadsheetId=_spreadsheet_id(),
            range=range_name,
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [row]},
        )
        .execute()
    )


def _batch_update_values(updates: list[dict[str, Any]]) -> None:
    (
        get_service()
        .spreadsheets()
        .values()
        .batchUpdate(spreadsheetId=_spreadsheet_id(), body={"valueInputOption": "RAW", "data": updates})
        .execute()
    )


async def _run(spec: SheetSpec, operation: str, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking Sheets call in a worker thread, wrapping API errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except HttpError as e:
        status = getattr(e.resp, "status", None)
        logger.error(f"sheets_{operation}_failed", extra={"sheet": spec.name, "status": status, "error": str(e)})
        msg = f"Failed to {operation} sheet {spec.name}: {e}"
        raise SheetsError(msg, sheet=spec.name, status=status) from e


def _cell(row: list[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return str(row[index]).strip()


def _to_records(spec: SheetSpec, values: list[list[str]]) -> list[dict[str, Any]]:
    if len(values) <= 1:
        return []
    index = resolve_header(spec, values[0])
    records: list[dict[str, Any]] = []
    for offset, row in enumerate(values[1 : constants.SHEET_SCAN_MAX_ROWS + 1]):
        if not any(str(cell).strip() for cell in row):
            continue
        record: dict[str, Any] = {column: _cell(row, index.get(column)) for column in spec.columns}
        record["_row"] = offset + 2
        records.append(record)
    return records


async def list_records(*, sheet: str) -> list[dict[str, Any]]:
    """Read every record of a sheet.

    Args:
        sheet: Sheet name (Tasks, Projects or Templates)

    Returns:
        Records keyed by column name, each with ``_row`` (1-based sheet row)
    """
    spec = get_sheet(sheet)
    values = await _run(spec, "read", _read_values, spec.range)
    records = _to_records(spec, values)
    logger.info("Listed sheet records", extra={"sheet": spec.name, "count": len(records)})
    return records


async def append_record(*, sheet: str, data: dict[str, Any]) -> dict[str, Any]:
    """Append one record, placing values by header name."""
    spec = get_sheet(sheet)
    header_rows = await _run(spec, "read", _read_values, f"{spec.name}!1:1")
    index = resolve_header(spec, header_rows[0] if header_rows else None)

    row = [""] * (max(index.values()) + 1)
    for column in spec.columns:
        position = index.get(column)
        if position is not None:
            value = data.get(column)
            row[position] = "" if value is None else str(value)

    await _run(spec, "append", _append_values, spec.range, row)
    logger.info("Appended sheet record", extra={"sheet": spec.name, "key": data.get(spec.key_field or "", "")})
    return {column: data.get(column, "") for column in spec.columns}


async def update_record(*, sheet: str, key_field: str, key: str, data: dict[str, Any]) -> dict[str, Any]:
    """Patch the cells of the row whose ``key_field`` equals ``key``.

    The sheet is re-read to locate the row; only patched cells are written.

    Raises:
        ValueError: On an empty patch
        KeyError: When no row carries the key
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    spec = get_sheet(sheet)
    values = await _run(spec, "read", _read_values, spec.range)
    target = next((record for record in _to_records(spec, values) if record.get(key_field) == key), None)
    if target is None:
        msg = f"Record not found in {spec.name}: {key}"
        raise KeyError(msg)

    index = resolve_header(spec, values[0])
    updates = [
        {
            "range": f"{spec.name}!{column_letter(index[column])}{target['_row']}",
            "values": [["" if value is None else str(value)]],
        }
        for column, value in data.items()
        if column in index
    ]
    await _run(spec, "update", _batch_update_values, updates)
    logger.info("Updated sheet record", extra={"sheet": spec.name, "key": key, "fields": sorted(data)})
    return {**target, **{column: value for column, value in data.items() if column in index}}
