"""Async HTTP client for the Box View API."""

from __future__ import annotations

import asyncio
import os
from pathlib import PurePosixPath
from typing import IO, TYPE_CHECKING, Any, Self
from urllib.parse import urlsplit

import httpx
import structlog

from box_view import __version__
from box_view.api.bodies import (
    JSONBody,
    MultipartBody,
    determine_filename,
    make_upload_source,
    response_source,
)
from box_view.api.models import RequestOptions, format_timestamp, serialize_params
from box_view.api.polling import Operation, PollingController, RequestDescriptor


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from box_view.api.classifier import Verdict
    from box_view.api.polling import Callback
    from box_view.config import Settings


__all__ = [
    "API_BASE",
    "DOCUMENTS_UPLOAD_URL",
    "DOCUMENTS_URL",
    "SESSIONS_URL",
    "UPLOAD_BASE",
    "BoxViewClient",
    "Documents",
    "Sessions",
    "create_client",
]


API_BASE = "https://view-api.box.com/1/"
UPLOAD_BASE = "https://upload.view-api.box.com/1/"
DOCUMENTS_URL = API_BASE + "documents"
DOCUMENTS_UPLOAD_URL = UPLOAD_BASE + "documents"
SESSIONS_URL = API_BASE + "sessions"

type OptionsArg = RequestOptions | Mapping[str, Any] | None
type UploadFile = str | os.PathLike[str] | bytes | IO[bytes] | httpx.Response


def _coerce_options(options: OptionsArg) -> RequestOptions:
    if options is None:
        return RequestOptions()
    if isinstance(options, RequestOptions):
        return options
    return RequestOptions.model_validate(options)


class BoxViewClient:
    """Async client for the Box View document conversion and viewing API.

    Every operation takes an optional :class:`RequestOptions` and a callback
    ``callback(error, body, response)``. The callback is called exactly once
    when the operation succeeds or fails. Conversion endpoints answer
    ``202 Accepted`` with a ``Retry-After`` header until the rendition is
    ready: with ``retry=True`` the request is resent after that delay until
    a final answer arrives; with ``retry=False`` the operation ends quietly
    and the callback is never called.

    Example:
        ```python
        async with BoxViewClient(token="your-api-token") as client:

            def on_session(error, session, response):
                if error is None:
                    print(session["urls"]["view"])

            await client.sessions.create(
                "4ad9a4b9ba4d4e1f9cb1c0c2b8e5e0e3",
                RequestOptions(retry=True),
                on_session,
            )
        ```

    Attributes:
        documents_url: Base URL of the documents resource.
        documents_upload_url: URL for multipart uploads.
        sessions_url: Base URL of the sessions resource.
        timeout: Default timeout for requests.
    """

    DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

    def __init__(  # noqa: PLR0913
        self,
        token: str,
        *,
        documents_url: str = DOCUMENTS_URL,
        documents_upload_url: str = DOCUMENTS_UPLOAD_URL,
        sessions_url: str = SESSIONS_URL,
        timeout: httpx.Timeout | None = None,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the Box View client.

        Args:
            token: API authentication token.
            documents_url: Override for the documents endpoint.
            documents_upload_url: Override for the upload endpoint.
            sessions_url: Override for the sessions endpoint.
            timeout: Optional custom timeout configuration.
            headers: Extra headers sent with every request.
            transport: Optional custom transport for testing or advanced config.
            sleep: Awaitable delay used between polling attempts.
        """
        self.documents_url = documents_url.rstrip("/")
        self.documents_upload_url = documents_upload_url.rstrip("/")
        self.sessions_url = sessions_url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._token = token
        self._extra_headers = dict(headers or {})
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None
        self._logger = structlog.get_logger(__name__)

        self.documents = Documents(self)
        self.sessions = Sessions(self)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> Self:  # noqa: ANN401
        """Create a client from loaded settings.

        Args:
            settings: Application settings.
            **kwargs: Overrides passed to the constructor.

        Returns:
            A configured client.

        Raises:
            ValueError: If no API token is configured.
        """
        config = settings.api
        if not config.token:
            msg = "No Box View API token configured"
            raise ValueError(msg)
        api_url = config.api_url.rstrip("/")
        upload_url = config.upload_url.rstrip("/")
        options: dict[str, Any] = {
            "documents_url": f"{api_url}/documents",
            "documents_upload_url": f"{upload_url}/documents",
            "sessions_url": f"{api_url}/sessions",
            "timeout": httpx.Timeout(config.timeout, connect=config.connect_timeout),
        }
        options.update(kwargs)
        return cls(config.token, **options)

    @property
    def _headers(self) -> dict[str, str]:
        """Default headers for API requests."""
        headers = {
            "Authorization": f"Token {self._token}",
            "User-Agent": f"box-view-python/{__version__}",
        }
        headers.update(self._extra_headers)
        return headers

    async def __aenter__(self) -> Self:
        """Enter async context and create HTTP client."""
        await self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context and close HTTP client."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure the HTTP client is initialized."""
        if self._client is None or self._client.is_closed:
            transport = self._transport or httpx.AsyncHTTPTransport()
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=self.timeout,
                transport=transport,
            )
            self._logger.debug(
                "http_client_created",
                documents_url=self.documents_url,
                timeout=self.timeout.read,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _run(
        self,
        operation: Operation,
        callback: Callback | None,
    ) -> Verdict | None:
        """Drive one logical operation through the polling controller."""
        client = await self._ensure_client()
        controller = PollingController(client, sleep=self._sleep)
        return await controller.run(operation, callback)


class Documents:
    """Operations on ``/documents``."""

    def __init__(self, client: BoxViewClient) -> None:
        self._client = client

    async def list(
        self,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Fetch the documents uploaded with this API token.

        Args:
            options: ``params`` may hold ``limit``, ``created_before`` and
                ``created_after`` (see :class:`ListParams`).
            callback: Receives the parsed document list.
        """
        opts = _coerce_options(options)
        params = opts.params_dict()
        for key in ("created_before", "created_after"):
            if params.get(key):
                params[key] = format_timestamp(params[key])

        descriptor = RequestDescriptor(
            "GET",
            self._client.documents_url,
            params=serialize_params(params),
        )
        await self._client._run(  # noqa: SLF001
            Operation(descriptor, retry=opts.retry),
            callback,
        )

    async def get(
        self,
        document_id: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Fetch the metadata of a single document.

        Args:
            document_id: The document id.
            options: ``fields`` limits the returned fields; ``id`` and
                ``type`` are always returned.
            callback: Receives the parsed document.
        """
        opts = _coerce_options(options)
        fields = opts.fields or ""
        if not isinstance(fields, str):
            fields = ",".join(fields)

        descriptor = RequestDescriptor(
            "GET",
            f"{self._client.documents_url}/{document_id}",
            params={"fields": fields} if fields else {},
        )
        await self._client._run(  # noqa: SLF001
            Operation(descriptor, retry=opts.retry),
            callback,
        )

    async def update(
        self,
        document_id: str,
        data: Mapping[str, Any],
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Update the metadata of a single document.

        Args:
            document_id: The document id.
            data: New metadata, e.g. ``{"name": "Report"}``.
            options: Only ``retry`` applies.
            callback: Receives the updated document.
        """
        opts = _coerce_options(options)
        descriptor = RequestDescriptor(
            "PUT",
            f"{self._client.documents_url}/{document_id}",
            body=JSONBody(data),
        )
        await self._client._run(  # noqa: SLF001
            Operation(descriptor, retry=opts.retry),
            callback,
        )

    async def delete(
        self,
        document_id: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Delete a single document.

        Args:
            document_id: The document id.
            options: Only ``retry`` applies.
            callback: Receives ``None`` as the body on success.
        """
        opts = _coerce_options(options)
        descriptor = RequestDescriptor(
            "DELETE",
            f"{self._client.documents_url}/{document_id}",
        )
        await self._client._run(  # noqa: SLF001
            Operation(descriptor, ok_status_codes=frozenset({204}), retry=opts.retry),
            callback,
        )

    async def upload_file(
        self,
        file: UploadFile,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Upload a file with a multipart request.

        The file may be a path, raw bytes, a readable binary stream, or a
        streamed ``httpx.Response`` to proxy. Streams are consumed once; with
        ``retry=True`` they are duplicated as they are read so a resubmitted
        upload sends identical bytes. A response streamed from an
        ``httpx.AsyncClient`` is read in full before the upload starts.

        Args:
            file: What to upload.
            options: ``params`` may hold ``name``, ``thumbnails`` and
                ``non_svg`` (see :class:`UploadParams`). The name defaults to
                one inferred from the source.
            callback: Receives the parsed document.

        Raises:
            FileNotFoundError: If a path does not point to a file.
            RetryNotSupportedError: If ``file`` is not readable.
        """
        opts = _coerce_options(options)
        params = opts.params_dict()

        if not params.get("name"):
            params["name"] = determine_filename(file)

        if isinstance(file, httpx.Response):
            source = await response_source(file, retry=opts.retry)
            self._client._logger.debug(  # noqa: SLF001
                "upload_source_proxied",
                name=params["name"],
                source=type(source).__name__,
            )
        else:
            source = make_upload_source(file, retry=opts.retry)

        fields = serialize_params(params)
        body = MultipartBody(fields, source, filename=fields["name"])
        descriptor = RequestDescriptor(
            "POST",
            self._client.documents_upload_url,
            body=body,
        )
        await self._client._run(  # noqa: SLF001
            Operation(
                descriptor,
                ok_status_codes=frozenset({200, 202}),
                retry=opts.retry,
            ),
            callback,
        )

    async def upload_url(
        self,
        url: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Upload a publicly accessible file by URL.

        Args:
            url: URL of the file to convert.
            options: Same ``params`` as :meth:`upload_file`; the name
                defaults to the last path segment of the URL.
            callback: Receives the parsed document.
        """
        opts = _coerce_options(options)
        params = opts.params_dict()

        if not params.get("name"):
            params["name"] = PurePosixPath(urlsplit(url).path).name
        params["url"] = url

        descriptor = RequestDescriptor(
            "POST",
            self._client.documents_url,
            body=JSONBody(params),
        )
        await self._client._run(  # noqa: SLF001
            Operation(
                descriptor,
                ok_status_codes=frozenset({200, 202}),
                retry=opts.retry,
            ),
            callback,
        )

    async def get_content(
        self,
        document_id: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Fetch a document's content as a live byte stream.

        The callback receives the unread response and may consume it with
        ``aiter_bytes()`` or ``aread()``; it is closed once the callback
        returns.

        Args:
            document_id: The document id.
            options: ``extension`` selects ``pdf`` or ``zip``; without it the
                original format is returned.
            callback: Receives the streamed response.
        """
        opts = _coerce_options(options)
        extension = opts.extension or ""
        if extension and not extension.startswith("."):
            extension = f".{extension}"

        descriptor = RequestDescriptor(
            "GET",
            f"{self._client.documents_url}/{document_id}/content{extension}",
        )
        await self._client._run(  # noqa: SLF001
            Operation(
                descriptor,
                ok_status_codes=frozenset({200, 202}),
                stream=True,
                retry=opts.retry,
            ),
            callback,
        )

    async def get_thumbnail(  # noqa: PLR0913
        self,
        document_id: str,
        width: int,
        height: int,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Fetch a thumbnail of a document as a live byte stream.

        Args:
            document_id: The document id.
            width: Thumbnail width in pixels.
            height: Thumbnail height in pixels.
            options: Only ``retry`` applies.
            callback: Receives the streamed response.
        """
        opts = _coerce_options(options)
        descriptor = RequestDescriptor(
            "GET",
            f"{self._client.documents_url}/{document_id}/thumbnail",
            params={"width": str(width), "height": str(height)},
        )
        await self._client._run(  # noqa: SLF001
            Operation(
                descriptor,
                ok_status_codes=frozenset({200, 202}),
                stream=True,
                retry=opts.retry,
            ),
            callback,
        )


class Sessions:
    """Operations on ``/sessions``."""

    def __init__(self, client: BoxViewClient) -> None:
        self._client = client

    async def create(
        self,
        document_id: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Request a viewing session for a document.

        Args:
            document_id: The document id.
            options: ``params`` may hold ``duration``, ``expires_at`` and
                ``is_downloadable`` (see :class:`SessionParams`).
            callback: Receives the parsed session.
        """
        opts = _coerce_options(options)
        params = opts.params_dict()
        params["document_id"] = document_id
        if params.get("expires_at"):
            params["expires_at"] = format_timestamp(params["expires_at"])

        descriptor = RequestDescriptor(
            "POST",
            self._client.sessions_url,
            body=JSONBody(params),
        )
        await self._client._run(  # noqa: SLF001
            Operation(
                descriptor,
                ok_status_codes=frozenset({201, 202}),
                retry=opts.retry,
            ),
            callback,
        )

    async def delete(
        self,
        session_id: str,
        options: OptionsArg = None,
        callback: Callback | None = None,
    ) -> None:
        """Delete a session.

        Args:
            session_id: The session id.
            options: Only ``retry`` applies.
            callback: Receives ``None`` as the body on success.
        """
        opts = _coerce_options(options)
        descriptor = RequestDescriptor(
            "DELETE",
            f"{self._client.sessions_url}/{session_id}",
        )
        await self._client._run(  # noqa: SLF001
            Operation(descriptor, ok_status_codes=frozenset({204}), retry=opts.retry),
            callback,
        )


def create_client(token: str, **kwargs: Any) -> BoxViewClient:  # noqa: ANN401
    """Create a :class:`BoxViewClient`; keyword arguments go to the constructor."""
    return BoxViewClient(token, **kwargs)
