"""Logging setup driven by ``LoggingSettings``."""

from __future__ import annotations

import logging
from typing import Optional, Union

from tfpluginschema.config.schema import LoggingSettings

ROOT_LOGGER = "tfpluginschema"

# Third-party loggers that are noisy at INFO.
_QUIET_COMPONENTS = ("httpx", "httpcore", "grpc")


def set_component_level(component: str, level: Union[str, int]) -> None:
    """Set the level of one logger, accepting names ("INFO") or numbers."""

    if isinstance(level, str):
        level_value = getattr(logging, level.upper(), logging.INFO)
    else:
        level_value = level
    logging.getLogger(component).setLevel(level_value)


def configure_logging(settings: Optional[LoggingSettings] = None, *, verbose: bool = False) -> None:
    """Install a stderr handler and apply levels from ``settings``.

    Args:
        settings: Level, format and per-component overrides; defaults apply if None.
        verbose: Force DEBUG on the package logger.
    """
    settings = settings or LoggingSettings()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(settings.format))

    root = logging.getLogger(ROOT_LOGGER)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.propagate = False
    set_component_level(ROOT_LOGGER, "DEBUG" if verbose else settings.level)

    for component in _QUIET_COMPONENTS:
        set_component_level(component, "WARNING")
    for component, level in settings.components.items():
        set_component_level(component, level)
