"""IdBridge Configuration Settings."""

from __future__ import annotations

import logging
import os
from enum import StrEnum
from functools import cached_property, lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

__all__ = [
    "BaseStrEnum",
    "CacheConfig",
    "IdBridgeConfig",
    "LogLevel",
    "ProviderConfig",
    "get_config",
]

_log = logging.getLogger("IdBridge.config")


def _data_path() -> Path:
    return Path(os.getenv("IB_DATA_PATH", "./data")).resolve()


def find_yaml_config_file() -> Path:
    """Find the YAML configuration file in the data path.

    Returns:
        Path: The path to an existing YAML configuration file or the default location.
    """
    data_path = _data_path()

    for ext in ("yaml", "yml"):
        yaml_file = data_path / f"config.{ext}"
        if yaml_file.exists():
            _log.debug(f"Using YAML config file: {yaml_file.resolve()}")
            return yaml_file.resolve()
    return data_path / "config.yaml"


class BaseStrEnum(StrEnum):
    """Base class for string-based enumerations with a custom __repr__ method.

    Provides case-insensitive lookup functionality and consistent string
    representation for enumeration values.
    """

    @classmethod
    def _missing_(cls, value: object) -> BaseStrEnum | None:
        """Handle case-insensitive lookup for enum values.

        Args:
            value: The value to look up in the enumeration

        Returns:
            BaseStrEnum | None: The matching enum member if found, None otherwise
        """
        value = value.lower() if isinstance(value, str) else value
        for member in cls:
            if member.lower() == value:
                return member
        return None

    def __repr__(self) -> str:
        """Return the string value of the enum member."""
        return self.value

    def __str__(self) -> str:
        """Return the string representation of the enum member."""
        return repr(self)


class LogLevel(BaseStrEnum):
    """Enumeration of available logging levels.

    Note: SUCCESS is a custom level used by this application.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Configuration for the equivalence cache and its maintenance."""

    ttl_days: int = Field(
        default=90, ge=1, description="Days before a cached mapping expires"
    )
    max_size: int = Field(
        default=100_000, ge=1, description="Maximum number of cached mappings"
    )
    maintenance_interval: int = Field(
        default=86400,
        ge=0,
        description="Seconds between periodic optimize passes (0 disables them)",
    )


class ProviderConfig(BaseModel):
    """Configuration shared by the external identifier provider clients."""

    tmdb_api_key: SecretStr | None = Field(
        default=None, description="Default TMDB v3 API key"
    )
    tvdb_api_key: SecretStr | None = Field(
        default=None, description="Default TVDB v4 API key"
    )
    request_timeout: float = Field(
        default=15.0, gt=0, description="Per-request timeout in seconds"
    )
    max_retries: int = Field(
        default=3, ge=0, description="Retries for transient provider failures"
    )


class IdBridgeConfig(BaseSettings):
    """Configuration for the IdBridge application.

    Values are read from keyword arguments, then `IB_`-prefixed environment
    variables (nested with `__`, e.g. `IB_CACHE__TTL_DAYS`), then the YAML file
    in the data path.
    """

    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="Logging level for the application"
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig, description="Equivalence cache settings"
    )
    providers: ProviderConfig = Field(
        default_factory=ProviderConfig, description="Provider client settings"
    )
    anime_mappings_path: Path | None = Field(
        default=None,
        description=(
            "Path to an anime-list JSON file. If not set, the bundled dataset is used."
        ),
    )
    metrics_queue_size: int = Field(
        default=1000, ge=1, description="Capacity of the provider metrics channel"
    )

    @cached_property
    def data_path(self) -> Path:
        """Get the data path for IdBridge.

        Returns:
            Path: The data path resolved from the environment or default location.
        """
        return _data_path()

    @model_validator(mode="after")
    def validate_anime_mappings_path(self) -> IdBridgeConfig:
        """Ensure a configured anime mappings file actually exists.

        Raises:
            ValueError: If `anime_mappings_path` is set but is not a file.
        """
        if self.anime_mappings_path and not self.anime_mappings_path.is_file():
            raise ValueError("anime_mappings_path must point to an existing file")
        return self

    def __str__(self) -> str:
        """Creates a human-readable representation of the configuration."""
        return (
            f"IdBridge Config: DATA_PATH: {self.data_path}, "
            f"LOG_LEVEL: {self.log_level}, CACHE_TTL_DAYS: {self.cache.ttl_days}, "
            f"CACHE_MAX_SIZE: {self.cache.max_size}"
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of configuration sources."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=find_yaml_config_file()),
        )

    model_config = SettingsConfigDict(
        extra="ignore", env_prefix="IB_", env_nested_delimiter="__"
    )


@lru_cache(maxsize=1)
def get_config() -> IdBridgeConfig:
    """Get the singleton instance of IdBridgeConfig.

    Returns:
        IdBridgeConfig: The singleton configuration instance.
    """
    return IdBridgeConfig()
