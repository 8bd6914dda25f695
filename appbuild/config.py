"""Configuration settings for appbuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the APPBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    base_dir: Path = Field(
        default=Path("_build"),
        description="Build area, relative to the project root unless absolute",
    )
    profile: str = Field(
        default="default",
        min_length=1,
        description="Build profile; outputs go to <base_dir>/<profile>",
    )
    project_file: str = Field(
        default="appbuild.yaml",
        description="Project file name looked up in the working directory",
    )

    # Staging
    link_mode: Literal["auto", "symlink", "copy"] = Field(
        default="auto",
        description="How source directories are made visible in output dirs",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    jobs: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Maximum applications built in parallel",
    )

    # Timeouts (in seconds)
    command_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for external compiler and hook commands",
    )

    def profile_dir(self, project_root: Path) -> Path:
        """Return the absolute build directory of the active profile."""
        base = self.base_dir
        if not base.is_absolute():
            base = project_root / base
        return base / self.profile


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
