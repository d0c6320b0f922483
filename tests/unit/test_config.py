"""Tests for configuration loading and credential checks."""

import pytest

from kaibot.core.config import Settings, settings


@pytest.mark.unit
class TestRequireCredential:
    """Credential validation."""

    def test_returns_value(self, monkeypatch):
        monkeypatch.setattr(settings, "line_channel_secret", "secret")
        assert settings.require_credential("line_channel_secret", "LINE") == "secret"

    def test_missing_value_names_env_var(self, monkeypatch):
        monkeypatch.setattr(settings, "spreadsheet_id", None)
        with pytest.raises(ValueError, match="KAI_BOT_SHEETS_SPREADSHEET_ID"):
            settings.require_credential("spreadsheet_id", "Google Sheets")

    def test_empty_string_is_missing(self, monkeypatch):
        monkeypatch.setattr(settings, "line_channel_access_token", "")
        with pytest.raises(ValueError, match="LINE_CHANNEL_ACCESS_TOKEN"):
            settings.require_credential("line_channel_access_token", "LINE")


@pytest.mark.unit
class TestSettingsFromEnvironment:
    """Environment variable names."""

    def test_prefixed_aliases(self, monkeypatch):
        monkeypatch.setenv("KAI_BOT_SHEETS_SPREADSHEET_ID", "sheet-1")
        monkeypatch.setenv("KAI_BOT_GCP_PROJECT_ID", "proj-1")
        monkeypatch.setenv("KAI_BOT_NAME", "Helper")
        monkeypatch.setenv("LINE_CHANNEL_SECRET", "s")

        loaded = Settings(_env_file=None)

        assert loaded.spreadsheet_id == "sheet-1"
        assert loaded.gcp_project_id == "proj-1"
        assert loaded.bot_name == "Helper"
        assert loaded.line_channel_secret == "s"
        assert loaded.llm_enabled is True

    def test_defaults(self, monkeypatch):
        for name in ("KAI_BOT_GCP_PROJECT_ID", "KAI_BOT_NAME", "KAI_BOT_GCP_LOCATION"):
            monkeypatch.delenv(name, raising=False)

        loaded = Settings(_env_file=None)

        assert loaded.bot_name == "KAI bot"
        assert loaded.gcp_location == "asia-northeast1"
        assert loaded.llm_enabled is False
