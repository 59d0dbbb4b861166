# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for data paths, git backing-store options, backup
retention and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Local data layout ===
    data_dir: Path = Path("./data")
    content_dir: Path = Path("./data/content")
    archive_dir: Path = Path("./data/archive")
    db_path: Path = Path("./data/db/docvault-db.json")
    backup_dir: Path = Path("./data/backups")

    # === Git backing store ===
    git_repo_dir: Path = Path(".")
    git_remote: str = "origin"
    git_branch: str = "main"
    git_read_ref: str = "HEAD"
    git_push_enabled: bool = False
    git_user_name: str = "docvault"
    git_user_email: str = "docvault@localhost"
    git_command_timeout_seconds: float = 30.0
    git_network_timeout_seconds: float = 120.0

    # === Backup ===
    backup_retention: int = 10
    hydrate_mode: Literal["merge", "replace"] = "merge"
    auto_hydrate: bool = True
    auto_dehydrate: bool = True

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("backup_retention")
    @classmethod
    def validate_backup_retention(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("backup_retention must be >= 1")
        return v

    @field_validator("git_command_timeout_seconds", "git_network_timeout_seconds")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("git timeouts must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field path rules."""
        errors: list[str] = []

        content = self.content_dir.expanduser().resolve()
        archive = self.archive_dir.expanduser().resolve()
        backups = self.backup_dir.expanduser().resolve()

        if content == archive:
            errors.append("CONTENT_DIR and ARCHIVE_DIR must differ")

        if backups == content or content in backups.parents:
            errors.append("BACKUP_DIR must not be inside CONTENT_DIR")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
