from functools import lru_cache
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_GEMINI_MODELS = ["gemini-2.5-flash", "gemini-2.0-flash"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Hosted model credentials; the Expo variable name is accepted as well
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "expo_public_gemini_api_key"),
    )
    gemini_base_url: str | None = None

    # Ordered model-fallback list, first entry is tried first
    gemini_models: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_GEMINI_MODELS)
    )

    # AI Options
    ai_timeout: float = 30.0
    ai_min_request_interval: float = 2.0
    ai_max_retries: int = 2
    ai_backoff_base: float = 3.0
    ai_debug_logging: bool = False

    # Deterministic parser
    parse_default_amount: int = 50000

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: str | None) -> str | None:
        """Treat empty or whitespace-only keys as not configured."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("gemini_models", mode="before")
    @classmethod
    def split_models(cls, v: Any) -> list[str]:
        """Accept a comma-separated string from the environment, defaulting empty to the built-in list."""
        if v is None or v == "":
            return list(DEFAULT_GEMINI_MODELS)
        if isinstance(v, str):
            v = v.split(",")
        models = [str(item).strip() for item in v if str(item).strip()]
        return models or list(DEFAULT_GEMINI_MODELS)

    def has_ai_credentials(self) -> bool:
        """Whether the hosted model strategy can be used at all."""
        return bool(self.gemini_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
