"""Unified configuration via pydantic-settings."""

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitEngineConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GITENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Subprocess
    git_binary: str = "git"
    command_timeout_seconds: float = 60.0
    clone_timeout_seconds: float = 600.0
    max_output_bytes: int = 10 * 1024 * 1024
    clone_max_output_bytes: int = 50 * 1024 * 1024

    # Stash retry on index.lock contention
    stash_retry_attempts: int = 3
    stash_retry_delay_seconds: float = 0.5

    # Remotes & credentials
    default_remote: str = "origin"
    askpass_dir: Path | None = None
    auth_token: str | None = None

    # Identity applied at startup
    identity_name: str | None = None
    identity_email: str | None = None

    # Activity log
    activity_log_path: Path | None = None

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator(
        "command_timeout_seconds",
        "clone_timeout_seconds",
        "max_output_bytes",
        "clone_max_output_bytes",
    )
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("stash_retry_attempts")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("stash_retry_attempts must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("askpass_dir")
    @classmethod
    def askpass_dir_must_exist(cls, v: Path | None) -> Path | None:
        if v is None:
            return v
        resolved = v.expanduser().resolve()
        if not resolved.is_dir():
            raise ValueError(f"askpass directory does not exist: {resolved}")
        return resolved
