"""Configuration management for KAI bot."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # LINE Messaging API
    line_channel_secret: str | None = Field(default=None, description="LINE channel secret for signature checks")
    line_channel_access_token: str | None = Field(default=None, description="LINE channel access token")
    line_api_base_url: str = Field(default="https://api.line.me", description="LINE Messaging API base URL")

    # Discord Interactions
    discord_public_key: str | None = Field(default=None, description="Discord application public key (hex)")
    discord_application_id: str | None = Field(default=None, description="Discord application ID")
    discord_api_base_url: str = Field(default="https://discord.com/api/v10", description="Discord REST API base URL")

    # Google Sheets record store
    sheets_sa_key_json: str | None = Field(
        default=None,
        validation_alias="KAI_BOT_SHEETS_SA_KEY_JSON",
        description="Service account key (JSON string) for the Sheets API",
    )
    spreadsheet_id: str | None = Field(
        default=None,
        validation_alias="KAI_BOT_SHEETS_SPREADSHEET_ID",
        description="Spreadsheet holding the Tasks/Projects/Templates sheets",
    )

    # Vertex AI (Gemini) fallback parser
    gcp_project_id: str | None = Field(
        default=None,
        validation_alias="KAI_BOT_GCP_PROJECT_ID",
        description="GCP project for Vertex AI. The LLM stage is skipped when unset.",
    )
    gcp_location: str = Field(
        default="asia-northeast1", validation_alias="KAI_BOT_GCP_LOCATION", description="Vertex AI location"
    )
    model_id: str = Field(default="gemini-2.0-flash", validation_alias="KAI_BOT_MODEL_ID", description="Gemini model")

    # Bot identity
    bot_name: str = Field(default="KAI bot", validation_alias="KAI_BOT_NAME", description="Name used in @mentions")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    log_level: str = Field(default="INFO", description="Root log level")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            field_info = type(self).model_fields[field_name]
            env_name = field_info.validation_alias if isinstance(field_info.validation_alias, str) else field_name
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {env_name.upper()} environment variable or add to .env file."
            )
        return value

    @property
    def llm_enabled(self) -> bool:
        """Whether the Vertex AI fallback parser is configured."""
        return bool(self.gcp_project_id)


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 10

    # Local time zone for due dates (JST)
    LOCAL_UTC_OFFSET_HOURS: int = 9
    DEFAULT_DUE_HOUR: int = 18
    DEFAULT_DUE_MINUTE: int = 0

    # Conversation state
    PENDING_ACTION_TTL_SECONDS: int = 300  # 5 minutes
    TEMPLATE_CACHE_TTL_SECONDS: int = 60

    # Listing / matching
    LIST_LIMIT: int = 20
    MATCH_LIMIT: int = 20
    DISAMBIGUATION_DISPLAY_LIMIT: int = 5
    SHEET_SCAN_MAX_ROWS: int = 2000

    # LLM fallback
    LLM_MAX_OUTPUT_TOKENS: int = 512
    LLM_TEMPERATURE: float = 0.0

    # Intent inference
    MIN_RESIDUAL_QUERY_LENGTH: int = 2

    # Outbound throttle
    MAX_PUSHES_PER_MINUTE: int = 60

    # Logging
    LOG_TEXT_PREVIEW_CHARS: int = 200


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
