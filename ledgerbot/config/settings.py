"""
Configuration Management for the Ledger Bot

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each external service has its own settings section. A section that
fails to load (missing credentials) is the signal for the composition
root to run that collaborator in mock mode.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TwilioSettings(BaseSettings):
    """Twilio WhatsApp transport configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    account_sid: str = Field(
        ...,
        description="Twilio account SID (starts with AC)"
    )
    auth_token: str = Field(
        ...,
        min_length=1,
        description="Twilio auth token, also used to validate webhook signatures"
    )
    whatsapp_number: str = Field(
        ...,
        min_length=1,
        description="Sender number, with or without the whatsapp: prefix"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Public webhook URL used for signature validation"
    )

    @field_validator('account_sid')
    @classmethod
    def validate_account_sid(cls, v: str) -> str:
        """Twilio account SIDs always start with AC."""
        if not v.startswith("AC"):
            raise ValueError("Twilio account SID must start with 'AC'")
        return v

    @property
    def from_number(self) -> str:
        """Sender number with the whatsapp: prefix."""
        if self.whatsapp_number.startswith("whatsapp:"):
            return self.whatsapp_number
        return f"whatsapp:{self.whatsapp_number}"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Either a service account file...
    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to Google service account credentials JSON"
    )
    # ...or the two fields of the service account inline
    client_email: Optional[str] = Field(
        default=None,
        description="Service account client email"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Service account private key (PEM, \\n escaped)"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for ledger records"
    )
    chat_log_sheet_name: str = Field(
        default="ChatLog",
        description="Name of the sheet for chat exchanges"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    @model_validator(mode='after')
    def require_credentials(self) -> 'GoogleSheetsSettings':
        """One of the two credential styles must be configured."""
        if self.credentials_path:
            return self
        if self.client_email and self.private_key:
            return self
        raise ValueError(
            "Set GOOGLE_SHEETS_CREDENTIALS_PATH or both "
            "GOOGLE_SHEETS_CLIENT_EMAIL and GOOGLE_SHEETS_PRIVATE_KEY"
        )

    @property
    def service_account_info(self) -> dict:
        """Inline service account info for google-auth."""
        return {
            "type": "service_account",
            "client_email": self.client_email,
            # Env files usually carry the key with literal \n sequences
            "private_key": (self.private_key or "").replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        min_length=1,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Include error details in 500 responses"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the structured logger"
    )

    # Presentation
    timezone: str = Field(
        default="Asia/Jakarta",
        description="Timezone used for timestamps and 'current month'"
    )
    currency_symbol: str = Field(
        default="Rp",
        description="Currency symbol shown in replies"
    )
    max_reply_length: int = Field(
        default=1500,
        ge=100,
        le=4096,
        description="Maximum length of any reply sent to the chat"
    )

    # Conversation behaviour
    pending_ttl_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Expire unconfirmed proposals after this many seconds (unset = never)"
    )
    heuristic_default_amounts: bool = Field(
        default=False,
        description="Use placeholder amounts when the heuristic finds no number"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def twilio(self) -> TwilioSettings:
        return TwilioSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name_error: message} for the ones that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("twilio", "google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
