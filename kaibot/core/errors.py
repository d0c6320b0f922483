"""Error types and classification for per-event error reporting."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class SheetsError(RuntimeError):
    """A Google Sheets read/append/update call failed."""

    def __init__(self, message: str, *, sheet: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.sheet = sheet
        self.status = status


class MessagingApiError(RuntimeError):
    """A chat platform REST call returned a non-success status."""

    platform = "messaging"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"{self.platform} API failed: {status_code} {body}")
        self.status_code = status_code
        self.body = body


class LineApiError(MessagingApiError):
    """LINE Messaging API returned a non-success status."""

    platform = "LINE"


class DiscordApiError(MessagingApiError):
    """Discord REST API returned a non-success status."""

    platform = "Discord"


class ErrorCategory(Enum):
    """Categories of errors that can occur while handling an event."""

    CONFIGURATION = "configuration"
    STORE = "store"
    MESSAGING = "messaging"
    LLM = "llm"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_CONFIGURATION = "ERR_CONFIGURATION"
    ERR_STORE = "ERR_STORE"
    ERR_MESSAGING = "ERR_MESSAGING"
    ERR_LLM = "ERR_LLM"
    ERR_NETWORK = "ERR_NETWORK"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    category: ErrorCategory
    message: str
    suggestion: str


_ERROR_PATTERNS: dict[Literal["configuration", "llm", "network"], dict[str, list[str] | set[str]]] = {
    "configuration": {
        "phrases": ["credential not configured", "missing env"],
        "exception_types": set(),
    },
    "llm": {
        "phrases": ["vertex", "gemini", "quota exceeded", "resource exhausted"],
        "exception_types": {"ModelHTTPError", "UnexpectedModelBehavior"},
    },
    "network": {
        "phrases": ["connection", "timeout", "timed out", "unreachable", "502", "503", "504"],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout", "ConnectTimeout"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["configuration", "llm", "network"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_error(exception: Exception) -> ErrorResponse:
    """Classify an event-handling error and return a user-facing response.

    Args:
        exception: The exception raised while handling an event

    Returns:
        ErrorResponse with code, category, message and suggestion (Japanese)
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, SheetsError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE,
            category=ErrorCategory.STORE,
            message="スプレッドシートの読み書きに失敗しました。",
            suggestion="少し時間をおいてもう一度お試しください。",
        )

    if isinstance(exception, MessagingApiError):
        return ErrorResponse(
            code=ErrorCode.ERR_MESSAGING,
            category=ErrorCategory.MESSAGING,
            message="メッセージの送信に失敗しました。",
            suggestion="もう一度お試しください。",
        )

    if isinstance(exception, ValueError) and _match_error_pattern(
        error_str=error_str, exception_type=exception_type, pattern_type="configuration"
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_CONFIGURATION,
            category=ErrorCategory.CONFIGURATION,
            message="ボットの設定が不足しているため処理できませんでした。",
            suggestion="管理者に設定の確認を依頼してください。",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="llm"):
        return ErrorResponse(
            code=ErrorCode.ERR_LLM,
            category=ErrorCategory.LLM,
            message="文章の解析に失敗しました。",
            suggestion="「タスク追加 〇〇」のような定型の書き方でお試しください。",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK,
            category=ErrorCategory.NETWORK,
            message="通信エラーが発生しました。",
            suggestion="少し時間をおいてもう一度お試しください。",
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        category=ErrorCategory.UNKNOWN,
        message="エラーが発生しました。",
        suggestion="もう一度お試しください。続く場合は管理者に連絡してください。",
    )


def format_error_message(response: ErrorResponse) -> str:
    """Render an ErrorResponse as chat text."""
    return f"{response.message}\n{response.suggestion}"
