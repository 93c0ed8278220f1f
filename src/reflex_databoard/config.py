from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads ``DATABOARD_*`` variables from the environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # --- Backend engine ---
    BACKEND_URL: str = Field("http://127.0.0.1:8765", description="Base URL of the data engine")
    # None keeps requests open until the engine answers.
    REQUEST_TIMEOUT: Optional[float] = None

    # --- Query defaults ---
    PREVIEW_COUNT: int = 100

    LOG_LEVEL: str = "INFO"

    @field_validator("BACKEND_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("PREVIEW_COUNT")
    @classmethod
    def validate_preview_count(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("PREVIEW_COUNT must be positive")
        return v


settings = Settings()
