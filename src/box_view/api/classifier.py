"""Classification of Box View responses into success, pending, or failure.

The View API renders documents asynchronously. While a rendition is being
prepared the server answers ``202 Accepted`` with a ``Retry-After`` header,
and the same request has to be sent again after that many seconds. This
module turns each raw response into exactly one verdict; acting on the
verdict is the job of :mod:`box_view.api.polling`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from box_view.api.exceptions import BoxViewError


if TYPE_CHECKING:
    from collections.abc import Collection

    import httpx


__all__ = [
    "ACCEPTED",
    "TOO_MANY_REQUESTS",
    "Failure",
    "Pending",
    "Success",
    "Verdict",
    "classify",
    "parse_body",
    "parse_retry_after",
    "transport_failure",
]


ACCEPTED = 202
TOO_MANY_REQUESTS = 429

_LEADING_INT = re.compile(r"^\s*(\d+)")


@dataclass(frozen=True, slots=True)
class Success:
    """Terminal success.

    Attributes:
        body: Parsed JSON body, raw text, None for an empty body, or the live
            response itself for streamed operations.
        response: The HTTP response.
    """

    body: Any
    response: httpx.Response


@dataclass(frozen=True, slots=True)
class Pending:
    """The server accepted the request but has not finished processing it.

    Attributes:
        delay: Seconds to wait before resubmitting, or None if the response
            gave no usable Retry-After header.
        response: The HTTP response.
    """

    delay: int | None
    response: httpx.Response


@dataclass(frozen=True, slots=True)
class Failure:
    """Terminal failure.

    Attributes:
        error: Structured error describing what went wrong.
    """

    error: BoxViewError


type Verdict = Success | Pending | Failure


def parse_body(content: bytes) -> Any:  # noqa: ANN401
    """Parse a response body as JSON, falling back to the raw text.

    Args:
        content: Raw response bytes.

    Returns:
        None for an empty body, the decoded JSON value if possible,
        otherwise the body decoded as text.
    """
    if not content:
        return None
    try:
        return json.loads(content)
    except ValueError:
        return content.decode("utf-8", errors="replace")


def parse_retry_after(headers: httpx.Headers) -> int | None:
    """Parse the Retry-After header as whole seconds.

    Only the leading digits count, so ``"0.5"`` means retry immediately.
    A value of ``0`` is a valid delay and is returned as such.

    Args:
        headers: Response headers (case-insensitive).

    Returns:
        The delay in seconds, or None if the header is missing or not numeric.
    """
    value = headers.get("retry-after")
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


async def classify(
    response: httpx.Response,
    *,
    ok_status_codes: Collection[int],
    stream: bool = False,
    retry: bool = False,
) -> Verdict:
    """Produce the verdict for a response.

    The response is expected to have been sent with ``stream=True``; the body
    is only read when the verdict needs it.

    Args:
        response: The HTTP response.
        ok_status_codes: Status codes that count as success for this operation.
        stream: If True, a successful response is handed over unread.
        retry: Whether the caller asked for automatic resubmission. Only
            affects 429, which is a failure when retries are off.

    Returns:
        Exactly one of Success, Pending, or Failure.
    """
    status = response.status_code
    retry_after = parse_retry_after(response.headers)

    if retry_after is not None and (
        status == ACCEPTED or (status == TOO_MANY_REQUESTS and retry)
    ):
        return Pending(retry_after, response)

    if status in ok_status_codes:
        if stream:
            return Success(response, response)
        return Success(parse_body(await response.aread()), response)

    if status == ACCEPTED:
        return Pending(None, response)

    payload = parse_body(await response.aread())
    return Failure(BoxViewError.application(payload, response))


def transport_failure(exc: Exception) -> Failure:
    """Build the verdict for a request that never produced a response."""
    return Failure(BoxViewError.transport(exc))
