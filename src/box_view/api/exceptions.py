"""Custom exceptions for the Box View API client."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

import httpx


if TYPE_CHECKING:
    from collections.abc import Mapping


__all__ = [
    "BoxViewError",
    "ErrorKind",
    "RetryNotSupportedError",
]


class ErrorKind(StrEnum):
    """Where an error came from.

    Attributes:
        TRANSPORT: No response was received (connection, DNS, timeout).
        APPLICATION: A response arrived with a non-success status code.
    """

    TRANSPORT = "transport"
    APPLICATION = "application"


class BoxViewError(Exception):
    """Structured error delivered to operation callbacks.

    A pending response that is not retried is not an error: it produces no
    callback at all.

    Attributes:
        message: Human-readable error description.
        kind: Whether the failure happened in transport or in the API.
        status_code: HTTP status code, or 0 if no response was received.
        payload: Parsed JSON error body, raw text, or None.
        response: The HTTP response that caused this error, if available.
        cause: The underlying transport exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        status_code: int = 0,
        payload: Any = None,  # noqa: ANN401
        response: httpx.Response | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            kind: Error category.
            status_code: HTTP status code (0 for transport errors).
            payload: Parsed or raw response body.
            response: The HTTP response that caused this error.
            cause: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.payload = payload
        self.response = response
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return string representation with status code if available."""
        if self.response is not None:
            return f"{self.message} (status={self.status_code})"
        return self.message

    @classmethod
    def transport(cls, exc: Exception) -> Self:
        """Build an error for a request that never produced a response."""
        return cls(
            str(exc) or type(exc).__name__,
            kind=ErrorKind.TRANSPORT,
            cause=exc,
        )

    @classmethod
    def application(
        cls,
        payload: Any,  # noqa: ANN401
        response: httpx.Response,
    ) -> Self:
        """Build an error from a non-success response and its parsed body.

        The message is taken from the body's ``message`` field when present,
        falling back to the HTTP reason phrase.
        """
        message = None
        if isinstance(payload, dict):
            message = _message_from(payload)
        if not message:
            message = httpx.codes.get_reason_phrase(response.status_code) or "unknown"
        return cls(
            message,
            kind=ErrorKind.APPLICATION,
            status_code=response.status_code,
            payload=payload,
            response=response,
        )

    @property
    def is_transport(self) -> bool:
        """Return True if no response was received."""
        return self.kind is ErrorKind.TRANSPORT


def _message_from(payload: Mapping[str, Any]) -> str | None:
    message = payload.get("message")
    if message is None:
        return None
    return str(message)


class RetryNotSupportedError(TypeError):
    """Raised when an upload has no readable source to send or duplicate.

    This is raised synchronously, before any request is made, whether or
    not retries were requested.
    """

    def __init__(self, source: object) -> None:
        """Initialize the error.

        Args:
            source: The object that was passed as the upload source.
        """
        super().__init__(
            f"Cannot upload: {type(source).__name__} is not a readable "
            "stream, path, or bytes"
        )
        self.source = source
