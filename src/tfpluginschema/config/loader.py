"""Configuration loader.

Configuration comes from, in increasing precedence:

1. model defaults;
2. a YAML file (``TFPLUGINSCHEMA_CONFIG`` or ``tfpluginschema.yaml``);
3. ``TFPLUGINSCHEMA_<SECTION>_<KEY>`` environment variables.

``${VAR}`` references inside string values are then replaced from the
environment, and the result is validated into a ``Settings`` object.
"""

import os
import re
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from tfpluginschema.config.schema import Settings
from tfpluginschema.exceptions import ConfigError

DEFAULT_CONFIG_FILE = "tfpluginschema.yaml"

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary with values that override the base

    Returns:
        Merged dictionary where override values take precedence
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


def _resolve_value(value: Any) -> Any:
    if isinstance(value, dict):
        return resolve_env_vars(value)
    if isinstance(value, list):
        return [_resolve_value(item) for item in value]
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    return value


def resolve_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """Replace ${VAR} patterns with environment variables.

    Unset variables resolve to the empty string.
    """
    return {key: _resolve_value(value) for key, value in config.items()}


def load_yaml_file(path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file.

    Returns:
        The mapping in the file, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or does not hold a mapping.
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", context={"path": path}) from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}", context={"path": path}) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping", context={"path": path})
    return data


def load_from_env(prefix: str = "TFPLUGINSCHEMA") -> Dict[str, Any]:
    """Collect ``{PREFIX}_{SECTION}_{KEY}`` variables into nested sections.

    ``{PREFIX}_CONFIG`` names the config file and is skipped. Values stay
    strings; the schema coerces them.
    """
    result: Dict[str, Any] = {}
    marker = f"{prefix.upper()}_"

    for key, value in os.environ.items():
        if not key.startswith(marker):
            continue
        section, sep, option = key[len(marker):].lower().partition("_")
        if not sep or not option:
            continue
        result.setdefault(section, {})[option] = value

    return result


def load_config(file_path: Optional[str] = None, env_prefix: str = "TFPLUGINSCHEMA") -> Settings:
    """Load Settings from file and environment.

    Args:
        file_path: Path to the config file, defaults to ``{env_prefix}_CONFIG``
            or ``tfpluginschema.yaml``
        env_prefix: Prefix of configuration environment variables

    Returns:
        Validated Settings instance

    Raises:
        ConfigError: On loading or validation failure
    """
    path = file_path or os.environ.get(f"{env_prefix}_CONFIG", DEFAULT_CONFIG_FILE)

    config_data: Dict[str, Any] = {}
    if os.path.exists(path):
        config_data = merge_dicts(config_data, load_yaml_file(path))
    elif file_path:
        raise ConfigError(f"Configuration file not found: {path}", context={"path": path})

    env_config = load_from_env(env_prefix)
    if env_config:
        config_data = merge_dicts(config_data, env_config)

    config_data = resolve_env_vars(config_data)

    try:
        return Settings.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", context={"path": path}) from e
