"""Configuration schema models for box-view-client.

These models are used by the Settings class to validate configuration
loaded from YAML files and environment variables.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - needed at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from box_view.observability.logging import LogFormat, LogLevel


__all__ = [
    "BoxViewConfig",
    "ConfigBaseModel",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "ObservabilityConfig",
]


class ConfigBaseModel(BaseModel):
    """Base model for all configuration sections.

    Uses stricter settings than API models to catch configuration typos:
    - extra="forbid" raises errors for unknown fields
    - validate_default=True ensures defaults are validated
    """

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        validate_default=True,
    )


# ---------------------------------------------------------------------------
# Box View Connection
# ---------------------------------------------------------------------------


class BoxViewConfig(ConfigBaseModel):
    """Box View API connection configuration.

    If both `token` and `token_file` are set, `token` takes precedence.

    Attributes:
        token: API token (supports ${VAR} interpolation).
        token_file: Path to a file containing the API token.
        api_url: Base URL for documents and sessions.
        upload_url: Base URL for multipart uploads.
        timeout: Read/write timeout in seconds.
        connect_timeout: Connect timeout in seconds.
        retry: Default for polling pending responses (used by the CLI).
    """

    token: str | None = Field(
        default=None,
        description="API authentication token (supports ${VAR} interpolation)",
    )
    token_file: Path | None = Field(
        default=None,
        description="Path to file containing the API token",
    )
    api_url: str = Field(
        default="https://view-api.box.com/1",
        description="Base URL of the View API",
    )
    upload_url: str = Field(
        default="https://upload.view-api.box.com/1",
        description="Base URL of the upload API",
    )
    timeout: Annotated[float, Field(gt=0, description="Request timeout (s)")] = 30.0
    connect_timeout: Annotated[
        float,
        Field(gt=0, description="Connect timeout (s)"),
    ] = 10.0
    retry: bool = Field(
        default=True,
        description="Poll pending responses until they complete",
    )

    @field_validator("api_url", "upload_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Remove trailing slash from URL to avoid double slashes."""
        return v.rstrip("/")


# ---------------------------------------------------------------------------
# Observability Configuration
# ---------------------------------------------------------------------------


class LoggingConfig(ConfigBaseModel):
    """Logging configuration.

    Attributes:
        level: Log verbosity level.
        format: Output format; None picks console on a TTY, logfmt otherwise.
    """

    level: LogLevel = Field(default=LogLevel.INFO)
    format: LogFormat | None = Field(default=None)

    @field_validator("level", "format", mode="before")
    @classmethod
    def lowercase(cls, v: object) -> object:
        """Accept DEBUG/debug alike."""
        if isinstance(v, str):
            return v.lower()
        return v


class ObservabilityConfig(ConfigBaseModel):
    """Observability configuration.

    Attributes:
        logging: Logging configuration.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
