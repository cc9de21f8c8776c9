"""Configuration module for box-view-client.

Settings are Pydantic models loaded from an optional YAML file and
``BOX_VIEW_*`` environment variables (nested keys use ``__``, e.g.
``BOX_VIEW_API__TIMEOUT=60``). YAML values support ``${VAR}`` and
``${VAR:-default}`` interpolation.

Example:
    >>> from box_view.config import load_settings
    >>> settings = load_settings()
    >>> settings.api.upload_url
    'https://upload.view-api.box.com/1'
"""

from __future__ import annotations

from box_view.config.exceptions import (
    ConfigurationError,
    ConfigurationFileNotFoundError,
    ConfigurationValidationError,
)
from box_view.config.schema import (
    BoxViewConfig,
    ConfigBaseModel,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ObservabilityConfig,
)
from box_view.config.settings import (
    TOKEN_ENV_VAR,
    Settings,
    find_config_file,
    load_settings,
)


__all__ = [
    "TOKEN_ENV_VAR",
    "BoxViewConfig",
    "ConfigBaseModel",
    "ConfigurationError",
    "ConfigurationFileNotFoundError",
    "ConfigurationValidationError",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "ObservabilityConfig",
    "Settings",
    "find_config_file",
    "load_settings",
]
