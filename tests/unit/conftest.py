"""Pytest configuration and fixtures for unit tests."""

from datetime import datetime

import pytest

from kaibot.core.config import settings
from kaibot.core.date_parser import LOCAL_TZ
from kaibot.services.pending_action_service import BotState
from tests.unit.mocks import InMemorySheetsClient


@pytest.fixture
def in_memory_sheets() -> InMemorySheetsClient:
    """Provide a fresh in-memory sheets store for each test."""
    return InMemorySheetsClient()


@pytest.fixture
def patched_sheets(monkeypatch, in_memory_sheets):
    """Patch the sheets_client module to use the in-memory store.

    Every service imports ``sheets_client`` as a module, so patching the
    module attributes reaches all callers.
    """
    monkeypatch.setattr("kaibot.core.sheets_client.list_records", in_memory_sheets.list_records)
    monkeypatch.setattr("kaibot.core.sheets_client.append_record", in_memory_sheets.append_record)
    monkeypatch.setattr("kaibot.core.sheets_client.update_record", in_memory_sheets.update_record)
    return in_memory_sheets


@pytest.fixture
def state() -> BotState:
    """Fresh process-local state (pending actions, cache, throttle)."""
    return BotState()


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant: 2025-12-20 10:00 local."""
    return datetime(2025, 12, 20, 10, 0, tzinfo=LOCAL_TZ)


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Pin settings that change pipeline behavior regardless of the local .env."""
    monkeypatch.setattr(settings, "bot_name", "KAI bot")
    monkeypatch.setattr(settings, "gcp_project_id", None)
