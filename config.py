"""Runtime configuration loaded from the environment."""

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    host: str = "0.0.0.0"
    port: int = 3000

    # Retry policy
    max_retries: int = Field(default=1, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)

    # Simulator
    simulator_command: Optional[str] = None
    simulator_args: List[str] = Field(default_factory=list)
    workdir: Optional[str] = None

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
