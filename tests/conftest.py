"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest
import structlog

from box_view.config import TOKEN_ENV_VAR


if TYPE_CHECKING:
    from collections.abc import Generator


class CallbackRecorder:
    """Callable that records every ``(error, body, response)`` it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, Any, httpx.Response | None]] = []

    def __call__(
        self,
        error: Any,  # noqa: ANN401
        body: Any,  # noqa: ANN401
        response: httpx.Response | None,
    ) -> None:
        self.calls.append((error, body, response))

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def error(self) -> Any:  # noqa: ANN401
        return self.calls[-1][0]

    @property
    def body(self) -> Any:  # noqa: ANN401
        return self.calls[-1][1]

    @property
    def response(self) -> httpx.Response | None:
        return self.calls[-1][2]


class SleepRecorder:
    """Replacement for ``asyncio.sleep`` that records delays and returns."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recorder() -> CallbackRecorder:
    """Return a fresh callback recorder."""
    return CallbackRecorder()


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Return a sleep replacement that never waits."""
    return SleepRecorder()


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Keep the developer's environment and cached state out of tests."""
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)
    monkeypatch.delenv("BOX_VIEW_API__TOKEN", raising=False)
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
