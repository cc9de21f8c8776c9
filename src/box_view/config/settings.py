"""Settings management for box-view-client.

Settings come from (highest priority first) constructor arguments,
``BOX_VIEW_*`` environment variables, a YAML file, and defaults. YAML values
may reference the environment with ``${VAR}`` or ``${VAR:-default}``.

Example:
    >>> from box_view.config import load_settings
    >>> settings = load_settings()
    >>> print(settings.api.api_url)
    https://view-api.box.com/1
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from box_view.config.exceptions import (
    ConfigurationError,
    ConfigurationFileNotFoundError,
    ConfigurationValidationError,
)
from box_view.config.schema import BoxViewConfig, ObservabilityConfig


if TYPE_CHECKING:
    from collections.abc import Sequence


__all__ = [
    "TOKEN_ENV_VAR",
    "Settings",
    "find_config_file",
    "load_settings",
]


TOKEN_ENV_VAR = "BOX_VIEW_API_TOKEN"

# ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _interpolate_env_vars(value: object) -> object:
    """Recursively replace ${VAR} and ${VAR:-default} in strings.

    Unset variables without a default become empty strings. Dicts and lists
    are walked; other values are returned unchanged.

    Example:
        >>> os.environ["MY_TOKEN"] = "secret123"
        >>> _interpolate_env_vars({"token": "${MY_TOKEN}"})
        {'token': 'secret123'}
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            return match.group(2) or ""

        return _ENV_VAR_PATTERN.sub(replace, value)

    if isinstance(value, dict):
        return {k: _interpolate_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_interpolate_env_vars(item) for item in value]

    return value


class _InterpolatingYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source that interpolates environment variables."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | str | None = None,
    ) -> None:
        # Without an explicit file, fall back to model_config['yaml_file']
        if yaml_file is not None:
            super().__init__(settings_cls, yaml_file=yaml_file)
        else:
            super().__init__(settings_cls)

    def _read_files(
        self,
        files: Path | str | Sequence[Path | str] | None,
    ) -> dict[str, Any]:
        interpolated = _interpolate_env_vars(super()._read_files(files))
        if not isinstance(interpolated, dict):  # pragma: no cover
            return {}
        return interpolated


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        api: Box View connection settings.
        observability: Logging settings.

    Example:
        >>> settings = load_settings("/etc/box-view/config.yaml")
        >>> settings.api.timeout
        30.0
    """

    model_config = SettingsConfigDict(
        yaml_file=None,  # No default file - search paths used instead
        yaml_file_encoding="utf-8",
        env_prefix="BOX_VIEW_",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    CONFIG_SEARCH_PATHS: ClassVar[list[Path]] = [
        Path("box-view.yaml"),
        Path("box-view.yml"),
        Path.home() / ".config" / "box-view" / "config.yaml",
        Path("/etc/box-view/config.yaml"),
    ]

    # Set by load_settings() for the duration of one instantiation
    _yaml_file_override: ClassVar[Path | str | None] = None

    api: BoxViewConfig = Field(default_factory=BoxViewConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @model_validator(mode="after")
    def resolve_api_token(self) -> Settings:
        """Resolve the API token.

        Order: explicit ``api.token``, then ``api.token_file``, then the
        ``BOX_VIEW_API_TOKEN`` environment variable.

        Raises:
            ValueError: If token_file is set but does not exist.
        """
        if self.api.token:
            return self

        if self.api.token_file:
            token_path = self.api.token_file
            if not token_path.is_file():
                msg = f"Token file not found: {token_path}"
                raise ValueError(msg)
            self.api.token = token_path.read_text().strip()
            return self

        env_token = os.environ.get(TOKEN_ENV_VAR)
        if env_token:
            self.api.token = env_token

        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Order sources: init, environment, YAML, file secrets (no dotenv)."""
        return (
            init_settings,
            env_settings,
            _InterpolatingYamlConfigSettingsSource(
                settings_cls,
                yaml_file=cls._yaml_file_override,
            ),
            file_secret_settings,
        )


def find_config_file(config_path: Path | str | None = None) -> Path | None:
    """Find the configuration file.

    Args:
        config_path: Explicit path, or None to search the default locations.

    Returns:
        Path to the config file if found, None otherwise.
    """
    if config_path is not None:
        path = Path(config_path)
        return path if path.is_file() else None

    for search_path in Settings.CONFIG_SEARCH_PATHS:
        if search_path.is_file():
            return search_path

    return None


def load_settings(
    config_path: Path | str | None = None,
    *,
    require_config_file: bool = False,
) -> Settings:
    """Load, validate, and cache application settings.

    Args:
        config_path: YAML config file. If None, the default locations are
            searched (./box-view.yaml, ./box-view.yml,
            ~/.config/box-view/config.yaml, /etc/box-view/config.yaml).
        require_config_file: Raise if no config file is found instead of
            using environment variables and defaults only.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationFileNotFoundError: When require_config_file=True and
            no config file is found.
        ConfigurationValidationError: When configuration validation fails.
    """
    config_file = find_config_file(config_path)

    if config_file is None and (require_config_file or config_path is not None):
        raise ConfigurationFileNotFoundError(
            path=str(config_path) if config_path else None,
            searched_paths=[str(p) for p in Settings.CONFIG_SEARCH_PATHS],
        )

    try:
        Settings._yaml_file_override = config_file  # noqa: SLF001
        try:
            settings = Settings()
        finally:
            Settings._yaml_file_override = None  # noqa: SLF001
    except ConfigurationError:
        raise
    except ValidationError as exc:
        msg = f"Invalid configuration: {exc.error_count()} error(s)"
        errors = [dict(e) for e in exc.errors()]
        raise ConfigurationValidationError(msg, errors=errors) from exc
    except Exception as exc:
        msg = f"Failed to load configuration: {exc}"
        raise ConfigurationValidationError(msg) from exc

    return settings
