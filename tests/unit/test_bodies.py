"""Unit tests for replayable request bodies."""

from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from box_view.api import (
    DEFAULT_FILENAME,
    ReplayableStream,
    RetryNotSupportedError,
    determine_filename,
    make_upload_source,
)
from box_view.api.bodies import (
    BufferedBody,
    BytesSource,
    JSONBody,
    MultipartBody,
    PathSource,
    ResponseReader,
    StreamSource,
    TeeReader,
    response_source,
)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path


PAYLOAD = b"%PDF-1.4\n" + bytes(range(256)) * 64


class NamedStream(io.BytesIO):
    """BytesIO with a ``name`` attribute, like an opened file."""

    def __init__(self, data: bytes, name: str) -> None:
        super().__init__(data)
        self.name = name


# ---------------------------------------------------------------------------
# make_upload_source
# ---------------------------------------------------------------------------


class TestMakeUploadSource:
    """Tests for make_upload_source."""

    def test_bytes(self) -> None:
        """Bytes are resent unchanged."""
        source = make_upload_source(b"abc", retry=True)
        assert isinstance(source, BytesSource)
        assert source.open() == b"abc"
        assert source.open() == b"abc"

    def test_path(self, tmp_path: Path) -> None:
        """A path is reopened for every attempt."""
        path = tmp_path / "report.pdf"
        path.write_bytes(PAYLOAD)

        source = make_upload_source(path, retry=True)
        assert isinstance(source, PathSource)
        assert source.open().read() == PAYLOAD
        assert source.open().read() == PAYLOAD
        source.close()

    def test_path_as_string(self, tmp_path: Path) -> None:
        """String paths are accepted too."""
        path = tmp_path / "report.pdf"
        path.write_bytes(PAYLOAD)
        assert isinstance(make_upload_source(str(path), retry=False), PathSource)

    def test_missing_path(self, tmp_path: Path) -> None:
        """A path that is not a file fails before any request."""
        with pytest.raises(FileNotFoundError):
            make_upload_source(tmp_path / "missing.pdf", retry=True)

    def test_stream_with_retry(self) -> None:
        """Streams are duplicated when retries are requested."""
        source = make_upload_source(io.BytesIO(PAYLOAD), retry=True)
        assert isinstance(source, ReplayableStream)

    def test_stream_without_retry(self) -> None:
        """Streams are used as-is when retries are off."""
        source = make_upload_source(io.BytesIO(PAYLOAD), retry=False)
        assert isinstance(source, StreamSource)
        assert not source.replayable

    def test_stream_without_retry_is_single_use(self) -> None:
        """A plain stream source refuses a second attempt."""
        source = make_upload_source(io.BytesIO(PAYLOAD), retry=False)
        source.open()
        with pytest.raises(RuntimeError, match="already been consumed"):
            source.open()

    @pytest.mark.parametrize("retry", [True, False])
    def test_unreadable_source(self, *, retry: bool) -> None:
        """Objects without read() are rejected synchronously."""
        with pytest.raises(
            RetryNotSupportedError,
            match="^Cannot upload: object",
        ) as exc_info:
            make_upload_source(object(), retry=retry)  # type: ignore[arg-type]
        assert isinstance(exc_info.value, TypeError)
        assert str(exc_info.value).endswith("not a readable stream, path, or bytes")


# ---------------------------------------------------------------------------
# ReplayableStream
# ---------------------------------------------------------------------------


class TestReplayableStream:
    """Tests for stream duplication."""

    def test_copies_are_identical(self) -> None:
        """Every attempt sees the same bytes."""
        stream = ReplayableStream(io.BytesIO(PAYLOAD))

        first = stream.open()
        assert isinstance(first, TeeReader)
        assert first.read() == PAYLOAD
        assert stream.open().read() == PAYLOAD
        assert stream.open().read() == PAYLOAD

    def test_first_reader_is_pass_through(self) -> None:
        """The first attempt reads the source chunk by chunk."""
        source = io.BytesIO(PAYLOAD)
        stream = ReplayableStream(source)
        reader = stream.open()

        assert reader.read(10) == PAYLOAD[:10]
        assert stream.cached == PAYLOAD[:10]
        assert source.tell() == 10

    def test_partial_first_read_is_completed(self) -> None:
        """A later copy drains what the first attempt left unread."""
        stream = ReplayableStream(io.BytesIO(PAYLOAD))
        stream.open().read(100)

        assert stream.open().read() == PAYLOAD
        assert stream.cached == PAYLOAD

    def test_copies_are_independent(self) -> None:
        """Reading one copy does not advance another."""
        stream = ReplayableStream(io.BytesIO(PAYLOAD))
        stream.open().read()
        a = stream.open()
        b = stream.open()
        a.read()
        assert b.read() == PAYLOAD

    def test_name_is_propagated(self) -> None:
        """Both copies carry the source's name."""
        stream = ReplayableStream(NamedStream(PAYLOAD, "/tmp/report.pdf"))
        first = stream.open()
        first.read()
        second = stream.open()
        assert first.name == "/tmp/report.pdf"
        assert second.name == "/tmp/report.pdf"

    def test_tee_reader_has_no_length(self) -> None:
        """The pass-through reader cannot be sized or rewound."""
        reader = ReplayableStream(io.BytesIO(PAYLOAD)).open()
        assert not hasattr(reader, "fileno")
        assert not hasattr(reader, "seek")


# ---------------------------------------------------------------------------
# determine_filename
# ---------------------------------------------------------------------------


class TestDetermineFilename:
    """Tests for determine_filename."""

    def test_path(self, tmp_path: Path) -> None:
        """The basename of a path is used."""
        assert determine_filename(tmp_path / "slides.pptx") == "slides.pptx"

    def test_stream_name(self) -> None:
        """A stream's name attribute is used."""
        assert determine_filename(NamedStream(b"", "/var/data/memo.docx")) == "memo.docx"

    def test_stream_without_name(self) -> None:
        """Anonymous streams get the default name."""
        assert determine_filename(io.BytesIO(b"")) == DEFAULT_FILENAME
        assert DEFAULT_FILENAME == "untitled document"

    def test_response_content_disposition(self) -> None:
        """An upstream response names the file in Content-Disposition."""
        response = httpx.Response(
            200,
            headers={"Content-Disposition": 'attachment; filename="q3.pdf"'},
            request=httpx.Request("GET", "https://files.example.com/dl/123"),
        )
        assert determine_filename(response) == "q3.pdf"

    def test_response_url_path(self) -> None:
        """Without Content-Disposition the request path is used."""
        response = httpx.Response(
            200,
            request=httpx.Request("GET", "https://files.example.com/docs/q3.pdf"),
        )
        assert determine_filename(response) == "q3.pdf"

    def test_response_without_request(self) -> None:
        """A detached response falls back to the default name."""
        assert determine_filename(httpx.Response(200)) == DEFAULT_FILENAME


# ---------------------------------------------------------------------------
# response_source
# ---------------------------------------------------------------------------


class ChunkedUpstream(httpx.SyncByteStream):
    """Synchronous response body delivered in fixed chunks."""

    def __init__(self, data: bytes, chunk_size: int = 1000) -> None:
        self.chunks = [
            data[i : i + chunk_size] for i in range(0, len(data), chunk_size)
        ]
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield from self.chunks

    def close(self) -> None:
        self.closed = True


class AsyncUpstream(httpx.AsyncByteStream):
    """Asynchronous response body delivered in one chunk."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.data


class TestResponseSource:
    """Tests for response_source."""

    async def test_read_response_is_resent_as_bytes(self) -> None:
        """A response whose body is already loaded is not streamed again."""
        response = httpx.Response(200, content=PAYLOAD)
        source = await response_source(response, retry=False)
        assert isinstance(source, BytesSource)
        assert source.open() == PAYLOAD

    async def test_sync_stream_without_retry(self) -> None:
        """A sync upstream is forwarded lazily and only once."""
        upstream = ChunkedUpstream(PAYLOAD)
        source = await response_source(
            httpx.Response(200, stream=upstream),
            retry=False,
        )

        assert isinstance(source, StreamSource)
        reader = source.open()
        assert isinstance(reader, ResponseReader)
        assert reader.read(10) == PAYLOAD[:10]
        assert not upstream.closed
        assert reader.read() == PAYLOAD[10:]
        assert upstream.closed

    async def test_sync_stream_with_retry(self) -> None:
        """A sync upstream is duplicated for resubmission."""
        source = await response_source(
            httpx.Response(200, stream=ChunkedUpstream(PAYLOAD)),
            retry=True,
        )

        assert isinstance(source, ReplayableStream)
        assert source.open().read() == PAYLOAD
        assert source.open().read() == PAYLOAD

    async def test_async_stream_is_read_first(self) -> None:
        """An async upstream is read in full, since encoding is synchronous."""
        source = await response_source(
            httpx.Response(200, stream=AsyncUpstream(PAYLOAD)),
            retry=False,
        )

        assert isinstance(source, BytesSource)
        assert source.data == PAYLOAD

    def test_reader_has_no_length(self) -> None:
        """The response reader cannot be sized or rewound."""
        reader = ResponseReader(httpx.Response(200, stream=ChunkedUpstream(PAYLOAD)))
        assert not hasattr(reader, "fileno")
        assert not hasattr(reader, "seek")
        assert reader.read(0) == b""


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class TestRequestBodies:
    """Tests for request body kwargs."""

    def test_buffered_body(self) -> None:
        """Buffered bodies pass raw content."""
        body = BufferedBody(b"raw", content_type="text/plain")
        assert body.request_kwargs() == {"content": b"raw"}
        assert body.content_type == "text/plain"

    def test_json_body(self) -> None:
        """JSON bodies are serialised once with a JSON content type."""
        body = JSONBody({"document_id": "d1", "duration": 10})
        assert json.loads(body.request_kwargs()["content"]) == {
            "document_id": "d1",
            "duration": 10,
        }
        assert body.content_type == "application/json"

    def test_multipart_body(self) -> None:
        """Multipart bodies hold the fields and a file part."""
        body = MultipartBody({"name": "a.pdf"}, BytesSource(b"x"), filename="a.pdf")
        assert body.request_kwargs() == {
            "data": {"name": "a.pdf"},
            "files": {"file": ("a.pdf", b"x")},
        }

    def test_multipart_body_with_content_type(self) -> None:
        """The file part may carry its own content type."""
        body = MultipartBody(
            {},
            BytesSource(b"x"),
            filename="a.pdf",
            file_content_type="application/pdf",
        )
        assert body.request_kwargs()["files"]["file"] == (
            "a.pdf",
            b"x",
            "application/pdf",
        )

    def test_multipart_release_closes_path(self, tmp_path: Path) -> None:
        """Releasing a multipart body closes the opened file."""
        path = tmp_path / "a.pdf"
        path.write_bytes(b"x")
        body = MultipartBody({}, PathSource(path), filename="a.pdf")
        handle = body.request_kwargs()["files"]["file"][1]
        body.release()
        assert handle.closed
