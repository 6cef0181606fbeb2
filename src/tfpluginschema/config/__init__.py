"""Configuration: schema, loader and logging setup."""

from tfpluginschema.config.loader import load_config, load_from_env, load_yaml_file, merge_dicts, resolve_env_vars
from tfpluginschema.config.logs import configure_logging, set_component_level
from tfpluginschema.config.schema import (
    CacheSettings,
    LoggingSettings,
    PluginSettings,
    RegistrySettings,
    Settings,
)

__all__ = [
    "CacheSettings",
    "LoggingSettings",
    "PluginSettings",
    "RegistrySettings",
    "Settings",
    "configure_logging",
    "load_config",
    "load_from_env",
    "load_yaml_file",
    "merge_dicts",
    "resolve_env_vars",
    "set_component_level",
]
