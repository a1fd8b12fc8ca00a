"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Settings live in dockwork.toml. Environment variables override it using the
``DOCKWORK_`` prefix and ``__`` as the nested delimiter (e.g.
``DOCKWORK_DOCKER__CLI=podman``).

Priority (highest wins): init args > env vars > .env > dockwork.toml

Usage::

    from dockwork.config import get_settings

    s = get_settings()
    print(s.docker.cli)
    print(s.docker.min_version)
"""

from __future__ import annotations

import re

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in dockwork.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models. Reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class DockerConfig(_StrictModel):
    cli: str = "docker"  # looked up on PATH when no named tool is requested
    tools: dict[str, str] = {}  # tool name -> executable path
    min_version: str = "1.4"  # oldest engine with `docker exec`

    @field_validator("min_version")
    @classmethod
    def validate_min_version(cls, v: str) -> str:
        if not re.fullmatch(r"\d+(\.\d+)*", v.strip()):
            raise ValueError(f"min_version must be a dotted number, got {v!r}")
        return v.strip()


class WorkspaceConfig(_StrictModel):
    # Temp dir for workspace "job" is the sibling "job@tmp"
    tmp_suffix: str = "@"

    @field_validator("tmp_suffix")
    @classmethod
    def validate_tmp_suffix(cls, v: str) -> str:
        if "/" in v:
            raise ValueError("tmp_suffix cannot contain a path separator")
        return v


class ScopeConfig(_StrictModel):
    cookie_var: str = "DOCKWORK_SCOPE_COOKIE"
    include_volumes: bool = True
    include_environment: bool = False

    @field_validator("cookie_var")
    @classmethod
    def validate_cookie_var(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", v):
            raise ValueError(f"cookie_var must be a valid environment variable name, got {v!r}")
        return v


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


class PluginConfig(_StrictModel):
    enabled: bool = True


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="dockwork.toml",
        env_file=".env",
        env_prefix="DOCKWORK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    docker: DockerConfig = DockerConfig()
    workspace: WorkspaceConfig = WorkspaceConfig()
    scope: ScopeConfig = ScopeConfig()
    logging: LoggingConfig = LoggingConfig()
    plugins: dict[str, PluginConfig] = {}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > dockwork.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
