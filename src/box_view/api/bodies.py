"""Request bodies that can be sent more than once.

A polled request is sent again with exactly the same payload. Buffered and
JSON bodies can simply be resent. Uploads from a single-use stream cannot,
so when retries are requested the stream is duplicated as it is read: the
first attempt consumes a pass-through reader that caches every chunk, and
later attempts get an independent in-memory copy of the cache.
"""

from __future__ import annotations

import contextlib
import io
import json
import os
import re
from pathlib import Path, PurePosixPath
from typing import IO, TYPE_CHECKING, Any

import httpx

from box_view.api.exceptions import RetryNotSupportedError


if TYPE_CHECKING:
    from collections.abc import Mapping


__all__ = [
    "DEFAULT_FILENAME",
    "BufferedBody",
    "BytesSource",
    "FileSource",
    "JSONBody",
    "MultipartBody",
    "NoBody",
    "PathSource",
    "ReplayableStream",
    "RequestBody",
    "ResponseReader",
    "StreamSource",
    "TeeReader",
    "determine_filename",
    "make_upload_source",
    "response_source",
]


DEFAULT_FILENAME = "untitled document"

_DISPOSITION_FILENAME = re.compile(r"filename=(.*)")


# ---------------------------------------------------------------------------
# File sources (the file part of a multipart upload)
# ---------------------------------------------------------------------------


class FileSource:
    """Something that yields the upload payload for one attempt."""

    replayable = True

    def open(self) -> IO[bytes] | bytes:
        """Return the payload for the next attempt."""
        raise NotImplementedError

    def close(self) -> None:
        """Release anything opened for the last attempt."""


class BytesSource(FileSource):
    """An in-memory payload, resent unchanged."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    def open(self) -> bytes:
        return self.data


class PathSource(FileSource):
    """A local file, reopened for every attempt."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: IO[bytes] | None = None

    def open(self) -> IO[bytes]:
        self.close()
        self._handle = self.path.open("rb")
        return self._handle

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class StreamSource(FileSource):
    """A single-use stream, used when the caller declined retries."""

    replayable = False

    def __init__(self, stream: IO[bytes]) -> None:
        self.stream = stream
        self._consumed = False

    def open(self) -> IO[bytes]:
        if self._consumed:
            msg = "Stream body has already been consumed"
            raise RuntimeError(msg)
        self._consumed = True
        return self.stream


class TeeReader:
    """Pass-through reader that caches everything it reads from the source.

    It exposes neither ``fileno`` nor ``seek``, so the transport streams it
    once, front to back, with chunked transfer encoding.
    """

    def __init__(self, source: IO[bytes], cache: io.BytesIO) -> None:
        self._source = source
        self._cache = cache
        name = getattr(source, "name", None)
        if isinstance(name, str):
            self.name = name

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        chunk = self._source.read(size)
        if chunk:
            self._cache.write(chunk)
        return chunk


class ResponseReader:
    """File-like reader over the body of a synchronous streamed response.

    Chunks are pulled from ``iter_bytes()`` only as they are read, so an
    upstream download is forwarded without being held in memory. Like
    :class:`TeeReader` it cannot be sized or rewound.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._chunks = response.iter_bytes()
        self._buffer = bytearray()
        self._exhausted = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            chunk = next(self._chunks, None)
            if chunk is None:
                self._exhausted = True
            else:
                self._buffer.extend(chunk)
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


class ReplayableStream(FileSource):
    """Duplicates a single-use stream so a retried upload resends it.

    The first ``open()`` returns a :class:`TeeReader` over the source. Every
    later ``open()`` first drains whatever the source still holds into the
    cache, then returns a fresh ``BytesIO`` over the cached bytes. Both
    copies carry the source's ``name`` so filename inference matches.
    """

    def __init__(self, stream: IO[bytes]) -> None:
        self._source = stream
        self._cache = io.BytesIO()
        self._opened = False
        self.name: str | None = None
        name = getattr(stream, "name", None)
        if isinstance(name, str):
            self.name = name

    def open(self) -> IO[bytes]:
        if not self._opened:
            self._opened = True
            return TeeReader(self._source, self._cache)

        rest = self._source.read()
        if rest:
            self._cache.write(rest)
        copy = io.BytesIO(self._cache.getvalue())
        if self.name is not None:
            copy.name = self.name
        return copy

    @property
    def cached(self) -> bytes:
        """Bytes read from the source so far."""
        return self._cache.getvalue()


def make_upload_source(
    file: str | os.PathLike[str] | bytes | IO[bytes],
    *,
    retry: bool,
) -> FileSource:
    """Wrap an upload argument in the matching file source.

    Args:
        file: A path, raw bytes, or a readable binary stream.
        retry: Whether the upload may be resent.

    Returns:
        A source whose ``open()`` yields the payload for each attempt.

    Raises:
        FileNotFoundError: If a path does not point to a file.
        RetryNotSupportedError: If there is nothing readable to send.
    """
    if isinstance(file, bytes | bytearray | memoryview):
        return BytesSource(bytes(file))

    if isinstance(file, str | os.PathLike):
        path = Path(file)
        if not path.is_file():
            msg = f"Upload file not found: {path}"
            raise FileNotFoundError(msg)
        return PathSource(path)

    if not callable(getattr(file, "read", None)):
        raise RetryNotSupportedError(file)

    if retry:
        return ReplayableStream(file)
    return StreamSource(file)


async def response_source(response: httpx.Response, *, retry: bool) -> FileSource:
    """Wrap an upstream ``httpx.Response`` whose body is to be uploaded.

    A body that was already read is resent as bytes. A synchronous stream
    is forwarded as it is read, duplicated only when ``retry`` is set. The
    multipart encoder reads files synchronously, so an asynchronous stream
    has to be read in full first.

    Args:
        response: The upstream response.
        retry: Whether the upload may be resent.

    Returns:
        A source whose ``open()`` yields the payload for each attempt.
    """
    with contextlib.suppress(httpx.ResponseNotRead):
        return BytesSource(response.content)

    if isinstance(response.stream, httpx.SyncByteStream):
        reader = ResponseReader(response)
        if retry:
            return ReplayableStream(reader)  # type: ignore[arg-type]
        return StreamSource(reader)  # type: ignore[arg-type]

    return BytesSource(await response.aread())


def determine_filename(file: object) -> str:
    """Guess a filename for an upload source.

    Args:
        file: An upstream ``httpx.Response``, a path, or a stream.

    Returns:
        The inferred filename, or ``"untitled document"``.
    """
    filename = None

    if isinstance(file, httpx.Response):
        disposition = file.headers.get("content-disposition")
        if disposition:
            match = _DISPOSITION_FILENAME.search(disposition)
            if match:
                filename = match.group(1).strip().strip('"')
        if not filename:
            with contextlib.suppress(RuntimeError):
                filename = PurePosixPath(file.request.url.path).name
    elif isinstance(file, str | os.PathLike):
        filename = Path(file).name
    else:
        name = getattr(file, "name", None)
        if isinstance(name, str):
            filename = os.path.basename(name)  # noqa: PTH119

    return filename or DEFAULT_FILENAME


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class RequestBody:
    """Base class for request bodies.

    ``request_kwargs()`` is called once per attempt and returns the keyword
    arguments for ``httpx.AsyncClient.build_request``; ``release()`` is
    called after the attempt has been classified.
    """

    content_type: str | None = None

    def request_kwargs(self) -> dict[str, Any]:
        return {}

    def release(self) -> None:
        """Release resources held by the last attempt."""


class NoBody(RequestBody):
    """No request body."""


class BufferedBody(RequestBody):
    """A fully buffered body, resent unchanged."""

    def __init__(self, content: bytes, content_type: str | None = None) -> None:
        self.content = content
        self.content_type = content_type

    def request_kwargs(self) -> dict[str, Any]:
        return {"content": self.content}


class JSONBody(BufferedBody):
    """A JSON document, serialised once."""

    def __init__(self, payload: Mapping[str, Any]) -> None:
        self.payload = dict(payload)
        super().__init__(
            json.dumps(self.payload).encode("utf-8"),
            content_type="application/json",
        )


class MultipartBody(RequestBody):
    """Form fields plus a single file part.

    The form fields are plain strings; the multipart boundary and its
    content-type header are generated by httpx for every attempt.
    """

    def __init__(
        self,
        fields: Mapping[str, str],
        source: FileSource,
        *,
        filename: str,
        field_name: str = "file",
        file_content_type: str | None = None,
    ) -> None:
        self.fields = dict(fields)
        self.source = source
        self.filename = filename
        self.field_name = field_name
        self.file_content_type = file_content_type

    def request_kwargs(self) -> dict[str, Any]:
        payload = self.source.open()
        file_part: tuple[Any, ...]
        if self.file_content_type is not None:
            file_part = (self.filename, payload, self.file_content_type)
        else:
            file_part = (self.filename, payload)
        return {
            "data": self.fields,
            "files": {self.field_name: file_part},
        }

    def release(self) -> None:
        self.source.close()
