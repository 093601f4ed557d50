"""Process-level settings loaded from the environment."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment overrides for the agent.

    Every field is optional; a set value takes precedence over the
    corresponding entry in the YAML config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTPULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Explicit config file, bypasses the search path
    config_path: Optional[Path] = None

    # Delivery
    endpoint: Optional[str] = None
    auth_token: Optional[str] = Field(default=None, repr=False)

    # Logging
    log_level: Optional[str] = None
    log_file: Optional[Path] = None


def load_settings() -> Settings:
    """Read settings from the environment and ``.env``."""
    return Settings()
