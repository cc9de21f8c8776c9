"""CLI module for box-view-client."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import typer

from box_view import __version__
from box_view.api import (
    BoxViewClient,
    BoxViewError,
    ListParams,
    RequestOptions,
    SessionParams,
    UploadParams,
)
from box_view.config import ConfigurationError, Settings, load_settings
from box_view.observability import (
    LogLevel,
    configure_logging,
    get_logger,
    get_operation_id,
)


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from box_view.api import Callback


app = typer.Typer(
    name="box-view",
    help="Command line client for the Box View document conversion API.",
    no_args_is_help=True,
)

EXIT_ERROR = 1
EXIT_STALLED = 2

logger = get_logger(__name__)


def version_callback(value: bool) -> None:  # noqa: FBT001
    """Print version and exit."""
    if value:
        typer.echo(f"box-view version {__version__}")
        raise typer.Exit


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--verbose",
        "-V",
        help="Enable verbose (debug) logging.",
    ),
    quiet: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--quiet",
        "-q",
        help="Only show warnings and errors.",
    ),
    config_file: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
    ),
) -> None:
    """box-view CLI."""
    del version  # Handled by callback

    if verbose and quiet:
        typer.echo("Error: --verbose and --quiet are mutually exclusive.", err=True)
        raise typer.Exit(EXIT_ERROR)

    try:
        settings = load_settings(config_file)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(EXIT_ERROR) from exc

    if verbose:
        level = LogLevel.DEBUG
    elif quiet:
        level = LogLevel.WARNING
    else:
        level = settings.observability.logging.level

    configure_logging(level=level, log_format=settings.observability.logging.format)
    ctx.obj = settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _execute(
    settings: Settings,
    invoke: Callable[[BoxViewClient, Callback], Awaitable[None]],
    output: Path | None,
) -> dict[str, Any]:
    """Run one operation and capture what its callback received."""
    outcome: dict[str, Any] = {}

    async def on_done(
        error: BoxViewError | None,
        body: Any,  # noqa: ANN401
        response: httpx.Response | None,
    ) -> None:
        del response
        outcome["error"] = error
        outcome["operation_id"] = get_operation_id()
        if error is None and isinstance(body, httpx.Response):
            target = output or Path(_filename_for(body))
            size = 0
            with target.open("wb") as f:
                async for chunk in body.aiter_bytes():
                    f.write(chunk)
                    size += len(chunk)
            outcome["body"] = {"path": str(target), "bytes": size}
        else:
            outcome["body"] = body

    async with BoxViewClient.from_settings(settings) as client:
        await invoke(client, on_done)
    return outcome


def _filename_for(response: httpx.Response) -> str:
    return Path(response.url.path).name or "content"


def _run(
    ctx: typer.Context,
    invoke: Callable[[BoxViewClient, Callback], Awaitable[None]],
    *,
    output: Path | None = None,
) -> None:
    """Run an operation and report its outcome on the terminal."""
    settings: Settings = ctx.obj
    try:
        outcome = asyncio.run(_execute(settings, invoke, output))
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(EXIT_ERROR) from exc

    if not outcome:
        typer.echo(
            "Operation is still being processed by Box View and was not "
            "retried. Run it again later or pass --retry.",
            err=True,
        )
        raise typer.Exit(EXIT_STALLED)

    error: BoxViewError | None = outcome["error"]
    if error is not None:
        logger.debug(
            "operation_failed",
            operation_id=outcome["operation_id"],
            kind=error.kind,
            status=error.status_code,
        )
        typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(EXIT_ERROR)

    body = outcome["body"]
    if body is not None:
        typer.echo(json.dumps(body, indent=2) if not isinstance(body, str) else body)


def _retry(ctx: typer.Context, retry: bool | None) -> bool:  # noqa: FBT001
    if retry is not None:
        return retry
    settings: Settings = ctx.obj
    return settings.api.retry


RETRY_OPTION = typer.Option(
    None,
    "--retry/--no-retry",
    help="Poll while the API reports the result is not ready yet.",
)


# ---------------------------------------------------------------------------
# Document commands
# ---------------------------------------------------------------------------


@app.command(name="list")
def list_documents(
    ctx: typer.Context,
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max documents."),
    created_before: str | None = typer.Option(None, help="ISO 8601 upper bound."),
    created_after: str | None = typer.Option(None, help="ISO 8601 lower bound."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """List uploaded documents."""
    options = RequestOptions(
        retry=_retry(ctx, retry),
        params=ListParams(
            limit=limit,
            created_before=created_before,
            created_after=created_after,
        ),
    )
    _run(ctx, lambda client, done: client.documents.list(options, done))


@app.command()
def get(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    fields: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--field",
        "-f",
        help="Field to return (repeatable).",
    ),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Show a document's metadata."""
    options = RequestOptions(retry=_retry(ctx, retry), fields=fields or None)
    _run(ctx, lambda client, done: client.documents.get(document_id, options, done))


@app.command()
def update(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    name: str = typer.Option(..., "--name", help="New document name."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Rename a document."""
    options = RequestOptions(retry=_retry(ctx, retry))
    _run(
        ctx,
        lambda client, done: client.documents.update(
            document_id,
            {"name": name},
            options,
            done,
        ),
    )


@app.command()
def delete(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Delete a document."""
    options = RequestOptions(retry=_retry(ctx, retry))
    _run(ctx, lambda client, done: client.documents.delete(document_id, options, done))


@app.command()
def upload(  # noqa: PLR0913
    ctx: typer.Context,
    source: str = typer.Argument(..., help="File path or http(s) URL."),
    name: str | None = typer.Option(None, "--name", help="Document name."),
    thumbnails: str | None = typer.Option(
        None,
        "--thumbnails",
        help="Thumbnail sizes to pre-render, e.g. 128x128,256x256.",
    ),
    non_svg: bool | None = typer.Option(  # noqa: FBT001
        None,
        "--non-svg/--svg-only",
        help="Also create the non-SVG version.",
    ),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Upload a local file or a file by URL."""
    options = RequestOptions(
        retry=_retry(ctx, retry),
        params=UploadParams(name=name, thumbnails=thumbnails, non_svg=non_svg),
    )
    if source.startswith(("http://", "https://")):
        _run(ctx, lambda client, done: client.documents.upload_url(source, options, done))
        return

    path = Path(source)
    if not path.is_file():
        typer.echo(f"Error: file not found: {path}", err=True)
        raise typer.Exit(EXIT_ERROR)
    _run(ctx, lambda client, done: client.documents.upload_file(path, options, done))


@app.command()
def content(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    extension: str | None = typer.Option(
        None,
        "--extension",
        "-e",
        help="pdf or zip (default: original format).",
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Download a document's content."""
    options = RequestOptions(retry=_retry(ctx, retry), extension=extension)
    _run(
        ctx,
        lambda client, done: client.documents.get_content(document_id, options, done),
        output=output,
    )


@app.command()
def thumbnail(  # noqa: PLR0913
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    width: int = typer.Argument(..., help="Width in pixels."),
    height: int = typer.Argument(..., help="Height in pixels."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Download a thumbnail of a document."""
    options = RequestOptions(retry=_retry(ctx, retry))
    _run(
        ctx,
        lambda client, done: client.documents.get_thumbnail(
            document_id,
            width,
            height,
            options,
            done,
        ),
        output=output,
    )


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


@app.command(name="session-create")
def session_create(  # noqa: PLR0913
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    duration: int | None = typer.Option(None, help="Minutes until expiry."),
    expires_at: str | None = typer.Option(None, help="ISO 8601 expiry time."),
    downloadable: bool | None = typer.Option(  # noqa: FBT001
        None,
        "--downloadable/--not-downloadable",
        help="Allow downloading the original file.",
    ),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Create a viewing session."""
    options = RequestOptions(
        retry=_retry(ctx, retry),
        params=SessionParams(
            duration=duration,
            expires_at=expires_at,
            is_downloadable=downloadable,
        ),
    )
    _run(ctx, lambda client, done: client.sessions.create(document_id, options, done))


@app.command(name="session-delete")
def session_delete(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID."),
    retry: bool | None = RETRY_OPTION,  # noqa: FBT001
) -> None:
    """Delete a viewing session."""
    options = RequestOptions(retry=_retry(ctx, retry))
    _run(ctx, lambda client, done: client.sessions.delete(session_id, options, done))


__all__ = ["app"]
