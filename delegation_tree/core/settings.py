"""Delegation tree - configuration with Pydantic Settings"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pydantic_settings
from pydantic import Field, field_validator
from pydantic_settings import (
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
)
from pydantic_settings.main import SettingsConfigDict

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "reload_settings",
]


class Settings(pydantic_settings.BaseSettings):
    """Engine and collaborator settings with type-safe validation"""

    # Traversal bounds; the authority's configuration must agree with these
    max_chain_length: int = Field(default=5, ge=1)
    initial_max_fanout: int = Field(default=8, ge=1)
    decay_factor: int = Field(default=2, ge=2)
    sibling_concurrency: int = Field(default=1, ge=1)

    # HTTP authority gateway
    authority_url: Optional[str] = Field(default=None)
    http_timeout: float = Field(default=30.0, gt=0)
    http_max_retries: int = Field(default=3, ge=0)

    # Logging
    log_level: str = Field(default="WARNING")
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[pydantic_settings.BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        del env_settings, dotenv_settings

        model_case_sensitive = settings_cls.model_config.get("case_sensitive")
        case_sensitive = model_case_sensitive if isinstance(model_case_sensitive, bool) else None

        return (
            init_settings,
            EnvSettingsSource(
                settings_cls,
                env_prefix=ENV_PREFIX,
                case_sensitive=case_sensitive,
            ),
            DotEnvSettingsSource(
                settings_cls,
                env_prefix=ENV_PREFIX,
                env_file=_dotenv_paths(settings_cls),
                case_sensitive=case_sensitive,
            ),
            file_secret_settings,
        )

    def effective_log_level(self) -> str:
        """Log level after applying the debug switch."""
        return "DEBUG" if self.debug else self.log_level


ENV_PREFIX = "DELEGATION_TREE_"
APP_DIR_NAME = "delegation-tree"


def _config_dir() -> Path:
    env_value = os.getenv("XDG_CONFIG_HOME")
    base = Path(env_value).expanduser() if env_value else Path.home() / ".config"
    return base / APP_DIR_NAME


def _dotenv_paths(settings_cls: type[pydantic_settings.BaseSettings]) -> tuple[Path | str, ...]:
    explicit_env_files = settings_cls.model_config.get("env_file")
    if explicit_env_files is not None:
        if isinstance(explicit_env_files, (str, Path)):
            return (explicit_env_files,)
        return tuple(explicit_env_files)

    return (".env", _config_dir() / ".env")


settings: Settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings singleton instance.

    Returns:
        The global Settings instance.
    """
    return settings


def reload_settings() -> Settings:
    """
    Rebuild the global settings from the current environment.

    Returns:
        The new Settings instance.
    """
    global settings
    settings = Settings()
    return settings
