"""Resubmission of pending requests until the server reaches a verdict.

A logical operation is one caller request ("create this session") that may
take several HTTP round trips. The controller sends the captured request,
classifies the response, and on a pending verdict waits ``Retry-After``
seconds and sends the very same request again. Attempts of one operation
never overlap; there is no limit on the number of attempts.

State per operation::

    INITIAL -> IN_FLIGHT -> DONE(success) | DONE(failure)
                         -> AWAITING_RETRY -> IN_FLIGHT
                         -> STALLED

An operation is STALLED when a pending response arrives and the caller did
not ask for retries (or the server gave no ``Retry-After``). A stalled
operation never invokes its callback.

Each operation runs inside its own operation id context, so log lines from
the controller and from the callback can be correlated.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from box_view.api.bodies import NoBody, RequestBody
from box_view.api.classifier import (
    Failure,
    Success,
    classify,
    transport_failure,
)
from box_view.observability import operation_context


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from box_view.api.classifier import Verdict
    from box_view.api.exceptions import BoxViewError


__all__ = [
    "Callback",
    "Operation",
    "OperationState",
    "PollingController",
    "RequestDescriptor",
    "deliver",
]


type Callback = Callable[
    [BoxViewError | None, Any, httpx.Response | None],
    Awaitable[None] | None,
]


class OperationState(StrEnum):
    """Lifecycle states of a logical operation."""

    INITIAL = "initial"
    IN_FLIGHT = "in_flight"
    AWAITING_RETRY = "awaiting_retry"
    DONE = "done"
    STALLED = "stalled"


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """Everything needed to send the same request again.

    Attributes:
        method: HTTP method.
        url: Absolute request URL.
        headers: Headers for this operation (merged over the client's).
        params: Query parameters, already serialised to strings.
        body: Request body, replayable across attempts.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)
    body: RequestBody = field(default_factory=NoBody)

    def build(self, client: httpx.AsyncClient) -> httpx.Request:
        """Build a fresh request for one attempt."""
        headers = dict(self.headers)
        if self.body.content_type is not None:
            headers.setdefault("Content-Type", self.body.content_type)
        return client.build_request(
            self.method,
            self.url,
            params=dict(self.params) if self.params else None,
            headers=headers,
            **self.body.request_kwargs(),
        )


@dataclass(frozen=True, slots=True)
class Operation:
    """One logical operation.

    Attributes:
        descriptor: The request to send on every attempt.
        ok_status_codes: Status codes that count as success.
        stream: If True, a successful response is delivered unread.
        retry: Whether pending responses are resubmitted.
    """

    descriptor: RequestDescriptor
    ok_status_codes: frozenset[int] = frozenset({200})
    stream: bool = False
    retry: bool = False


async def deliver(
    callback: Callback | None,
    error: BoxViewError | None,
    body: Any,  # noqa: ANN401
    response: httpx.Response | None,
) -> None:
    """Invoke a sync or async callback."""
    if callback is None:
        return
    result = callback(error, body, response)
    if inspect.isawaitable(result):
        await result


class PollingController:
    """Drives a logical operation until it succeeds, fails, or stalls.

    Example:
        ```python
        controller = PollingController(http_client)
        operation = Operation(
            RequestDescriptor("POST", url, body=JSONBody({"document_id": id})),
            ok_status_codes=frozenset({201, 202}),
            retry=True,
        )
        await controller.run(operation, on_session)
        ```
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the controller.

        Args:
            client: HTTP client used for every attempt.
            sleep: Awaitable delay, replaceable in tests.
        """
        self._client = client
        self._sleep = sleep
        self._logger = structlog.get_logger(__name__)

    async def run(
        self,
        operation: Operation,
        callback: Callback | None = None,
    ) -> Verdict | None:
        """Run an operation to its terminal state.

        Args:
            operation: The logical operation.
            callback: Called once with ``(error, body, response)`` on success
                or failure. Never called if the operation stalls.

        Returns:
            The terminal verdict, or None if the operation stalled.
        """
        descriptor = operation.descriptor
        with operation_context() as operation_id:
            log = self._logger.bind(
                operation_id=operation_id,
                method=descriptor.method,
                url=descriptor.url,
            )
            return await self._drive(operation, callback, log)

    async def _drive(
        self,
        operation: Operation,
        callback: Callback | None,
        log: structlog.typing.FilteringBoundLogger,
    ) -> Verdict | None:
        """Loop over attempts until a terminal verdict or a stall."""
        state = OperationState.INITIAL
        attempt = 0

        while True:
            attempt += 1
            state = OperationState.IN_FLIGHT
            verdict = await self._attempt(operation, log.bind(attempt=attempt))

            if isinstance(verdict, Success):
                state = OperationState.DONE
                await self._deliver_success(operation, verdict, callback)
                return verdict

            if isinstance(verdict, Failure):
                state = OperationState.DONE
                error = verdict.error
                await deliver(callback, error, error.payload, error.response)
                return verdict

            if not operation.retry or verdict.delay is None:
                state = OperationState.STALLED
                log.warning(
                    "operation_stalled",
                    state=state,
                    status_code=verdict.response.status_code,
                    retry=operation.retry,
                    retry_after=verdict.delay,
                )
                return None

            state = OperationState.AWAITING_RETRY
            log.info(
                "retry_scheduled",
                state=state,
                attempt=attempt,
                status_code=verdict.response.status_code,
                delay_s=verdict.delay,
            )
            await self._sleep(verdict.delay)

    async def _attempt(
        self,
        operation: Operation,
        log: structlog.typing.FilteringBoundLogger,
    ) -> Verdict:
        """Send one physical request and classify the result."""
        descriptor = operation.descriptor
        try:
            request = descriptor.build(self._client)
            try:
                response = await self._client.send(request, stream=True)
            except httpx.RequestError as exc:
                log.warning("transport_error", error=str(exc))
                return transport_failure(exc)

            log.debug("api_response", status_code=response.status_code)
            verdict: Verdict | None = None
            try:
                verdict = await classify(
                    response,
                    ok_status_codes=operation.ok_status_codes,
                    stream=operation.stream,
                    retry=operation.retry,
                )
            except httpx.RequestError as exc:
                log.warning("transport_error", error=str(exc))
                return transport_failure(exc)
            finally:
                # Only a streamed success leaves here with the response open
                if not (isinstance(verdict, Success) and operation.stream):
                    await response.aclose()
        finally:
            descriptor.body.release()

        return verdict

    async def _deliver_success(
        self,
        operation: Operation,
        verdict: Success,
        callback: Callback | None,
    ) -> None:
        """Hand a success to the callback, closing streamed responses after."""
        if not operation.stream:
            await deliver(callback, None, verdict.body, verdict.response)
            return
        try:
            await deliver(callback, None, verdict.body, verdict.response)
        finally:
            await verdict.response.aclose()
