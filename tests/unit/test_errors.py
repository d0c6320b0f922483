"""Tests for error classification."""

import httpx
import pytest

from kaibot.core.errors import (
    DiscordApiError,
    ErrorCategory,
    ErrorCode,
    LineApiError,
    SheetsError,
    classify_error,
    format_error_message,
)


@pytest.mark.unit
class TestClassifyError:
    """Exception -> user-facing category."""

    def test_sheets_error(self):
        response = classify_error(SheetsError("Failed to read sheet Tasks", sheet="Tasks", status=500))
        assert response.code == ErrorCode.ERR_STORE
        assert response.category is ErrorCategory.STORE

    @pytest.mark.parametrize("error", [LineApiError(400, "bad"), DiscordApiError(404, "unknown webhook")])
    def test_messaging_errors(self, error):
        assert classify_error(error).category is ErrorCategory.MESSAGING

    def test_missing_credential(self):
        error = ValueError("LINE credential not configured. Set LINE_CHANNEL_ACCESS_TOKEN environment variable.")
        assert classify_error(error).category is ErrorCategory.CONFIGURATION

    def test_plain_value_error_is_unknown(self):
        assert classify_error(ValueError("bad title")).category is ErrorCategory.UNKNOWN

    def test_network_error(self):
        assert classify_error(httpx.ConnectTimeout("timed out")).category is ErrorCategory.NETWORK

    def test_llm_error(self):
        assert classify_error(RuntimeError("Vertex quota exceeded")).category is ErrorCategory.LLM

    def test_unknown(self):
        response = classify_error(RuntimeError("something odd"))
        assert response.code == ErrorCode.ERR_UNKNOWN


@pytest.mark.unit
def test_format_error_message():
    response = classify_error(SheetsError("x"))
    assert format_error_message(response) == f"{response.message}\n{response.suggestion}"


@pytest.mark.unit
def test_messaging_error_carries_status():
    error = LineApiError(429, "Too Many Requests")
    assert error.status_code == 429
    assert str(error) == "LINE API failed: 429 Too Many Requests"
