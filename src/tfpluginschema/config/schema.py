"""Configuration schema.

Every section has defaults, so an empty configuration is valid and describes
the stock behaviour: the public OpenTofu registry, system temp directory and
warning-level logging.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from tfpluginschema.registry.api import DEFAULT_REGISTRY

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


def _normalize_level(value: str) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"unknown log level: {value}")
    return level


class RegistrySettings(BaseModel):
    """Registry access.

    Attributes:
        base_url: Provider registry base URL
        timeout: HTTP timeout in seconds
        download_retries: Attempts for archive downloads that fail in transport
    """

    base_url: str = DEFAULT_REGISTRY
    timeout: float = Field(default=30.0, gt=0)
    download_retries: int = Field(default=3, ge=1)

    model_config = {"extra": "forbid"}


class PluginSettings(BaseModel):
    """Plugin subprocess and RPC settings.

    Attributes:
        start_timeout: Seconds to wait for the plugin handshake
        connect_timeout: Seconds to wait for the gRPC channel
        rpc_timeout: Schema RPC deadline in seconds, None for no deadline
        executable_prefix: File name prefix of provider executables
        min_port: Lowest TCP port offered to plugins
        max_port: Highest TCP port offered to plugins
    """

    start_timeout: float = Field(default=60.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    rpc_timeout: Optional[float] = Field(default=None, gt=0)
    executable_prefix: str = "terraform-provider-"
    min_port: int = Field(default=10000, ge=1, le=65535)
    max_port: int = Field(default=25000, ge=1, le=65535)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _check_port_range(self) -> "PluginSettings":
        if self.min_port > self.max_port:
            raise ValueError(f"min_port ({self.min_port}) is greater than max_port ({self.max_port})")
        return self


class CacheSettings(BaseModel):
    """Download cache location; None uses the system temp directory."""

    temp_root: Optional[str] = None

    model_config = {"extra": "forbid"}


class LoggingSettings(BaseModel):
    """Logging configuration.

    Attributes:
        level: Root level for tfpluginschema loggers
        format: logging format string
        components: Per-logger level overrides, e.g. {"httpx": "WARNING"}
    """

    level: str = "WARNING"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    components: Dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        return _normalize_level(value)

    @field_validator("components")
    @classmethod
    def _validate_components(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name: _normalize_level(level) for name, level in value.items()}


class Settings(BaseModel):
    """Root configuration object."""

    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    plugin: PluginSettings = Field(default_factory=PluginSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {"extra": "forbid"}
