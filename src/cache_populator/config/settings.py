"""Settings and configuration management."""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger = logging.getLogger(__name__)

# Regex for ${ENV_VAR} placeholders in YAML values
_ENV_VAR_PLACEHOLDER_RE = re.compile(r"^\$\{[A-Z_][A-Z0-9_]*\}$")

# YAML config search paths (checked in order, first found wins)
_YAML_SEARCH_PATHS = [
    Path("cache-populator.yaml"),
    Path("config/cache-populator.yaml"),
    Path.home() / ".config" / "cache-populator" / "cache-populator.yaml",
]


def _find_yaml_config() -> Path | None:
    """Find the first cache-populator.yaml in search paths."""
    for path in _YAML_SEARCH_PATHS:
        if path.is_file():
            return path
    return None


class Settings(BaseSettings):
    """Cache populator settings.

    Priority chain: init kwargs > env vars > .env file > YAML file > defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHE_POPULATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Class-level cache for the resolved YAML path (not a pydantic field)
    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Priority: init kwargs > env vars > .env file > YAML file > file secrets > defaults
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        yaml_path = _find_yaml_config()
        cls._yaml_path = yaml_path
        if yaml_path:
            sources.append(
                YamlConfigSettingsSource(
                    settings_cls,
                    yaml_file=yaml_path,
                    yaml_file_encoding="utf-8",
                )
            )

        sources.append(file_secret_settings)
        return tuple(sources)

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_var_placeholders(cls, data: dict) -> dict:
        """Strip unresolved ${VAR} placeholders so they become None.

        YAML files may reference secrets such as the Redis URL through
        ${ENV_VAR} syntax. When the variable is unset the raw placeholder
        would otherwise be taken as the field value.
        """
        if not isinstance(data, dict):
            return data
        for key, value in data.items():
            if isinstance(value, str) and _ENV_VAR_PLACEHOLDER_RE.match(value):
                data[key] = None
        return data

    # Store
    redis_url: str | None = Field(None, description="Redis connection URL")
    key_prefix: str = Field("cache:", description="Prefix applied to every Redis key")
    default_ttl: int | None = Field(
        None, description="Default TTL in seconds for populated values (None = no expiry)"
    )
    memory_max_size: int = Field(1000, description="Entry limit for the in-memory store")

    # Population
    dedupe_inflight: bool = Field(
        False,
        description="Let concurrent on-demand misses for one key share a single producer call",
    )
    scheduler_timezone: str = Field("UTC", description="Timezone for cron refresh schedules")

    # Logging
    log_level: str = Field("INFO", description="Root logging level")
    log_format: str = Field("text", description="Log format: 'text' or 'json'")
    sanitize_logs: bool = Field(True, description="Redact credentials from logs")
    scheduler_log_level: str = Field("WARNING", description="Logging level for APScheduler")

    @field_validator("default_ttl", "memory_max_size")
    @classmethod
    def _positive(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value.lower() not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return value.lower()

    @field_validator("log_level", "scheduler_log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
