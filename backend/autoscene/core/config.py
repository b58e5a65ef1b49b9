import json
from enum import Enum
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OperatingMode(str, Enum):
    MOCK = "mock"
    DIRECT = "direct"
    PROXIED = "proxied"


class ConfigurationError(RuntimeError):
    """The active operating mode needs credentials or endpoints that are not set."""


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except ValueError:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        validate_by_name=True,
        populate_by_name=True,
    )

    environment: str = Field(default="development", validation_alias=AliasChoices("ENVIRONMENT"))
    database_url: str = "sqlite:///./autoscene.db"
    log_level: str = "INFO"

    operating_mode: OperatingMode = Field(
        default=OperatingMode.MOCK,
        validation_alias=AliasChoices("OPERATING_MODE", "AUTOSCENE_MODE"),
    )

    google_cloud_api_key: str = ""
    openai_api_key: str = ""
    cloud_api_url: str = Field(
        default="",
        validation_alias=AliasChoices("CLOUD_API_URL", "CLOUD_FUNCTIONS_URL"),
    )

    vision_api_url: str = "https://vision.googleapis.com/v1/images:annotate"
    vision_max_labels: int = 10
    vision_language_hints_raw: str = Field(
        default="ja,en",
        validation_alias=AliasChoices("VISION_LANGUAGE_HINTS"),
    )
    analysis_top_labels: int = 3

    openai_api_url: str = "https://api.openai.com/v1/chat/completions"
    caption_model: str = "gpt-4o"
    caption_temperature: float = 0.8
    caption_max_tokens: int = 200

    http_timeout_seconds: float = 30.0
    max_image_bytes: int = 10 * 1024 * 1024
    # Directory that API-supplied image paths must live under; empty disables path refs.
    image_root: str = ""

    expose_error_details: bool = False
    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)

    cors_allow_origins: list[str] = Field(default_factory=list)
    cors_allow_methods: list[str] = Field(default_factory=lambda: [
        "GET",
        "POST",
        "PATCH",
        "DELETE",
        "OPTIONS",
    ])

    @field_validator("operating_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("cors_allow_origins", "cors_allow_methods", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def vision_language_hints(self) -> list[str]:
        return _parse_list_value(self.vision_language_hints_raw)

    @property
    def strict_config(self) -> bool:
        return self.environment.strip().lower() == "production"

    def validate_required_config(self) -> list[str]:
        """Return human-readable problems for the active operating mode."""
        errors: list[str] = []
        if self.operating_mode == OperatingMode.DIRECT:
            if not self.google_cloud_api_key:
                errors.append("GOOGLE_CLOUD_API_KEY is required in direct mode")
            if not self.openai_api_key:
                errors.append("OPENAI_API_KEY is required in direct mode")
        elif self.operating_mode == OperatingMode.PROXIED:
            if not self.cloud_api_url:
                errors.append("CLOUD_API_URL is required in proxied mode")
        return errors


@lru_cache

def get_settings() -> Settings:
    return Settings()


def resolve_mode(settings: Settings | None = None) -> OperatingMode:
    """Return the process-wide operating mode. Never fails and never touches the network."""
    return (settings or get_settings()).operating_mode
