"""Pydantic models for Box View API payloads and per-call options."""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


__all__ = [
    "Document",
    "DocumentCollection",
    "DocumentList",
    "DocumentStatus",
    "ListParams",
    "RequestOptions",
    "Session",
    "SessionParams",
    "SessionUrls",
    "UploadParams",
    "format_timestamp",
    "serialize_params",
]


def format_timestamp(value: datetime | date | str | None = None) -> str:
    """Return an RFC 3339 timestamp in UTC with millisecond precision.

    Naive datetimes are taken to be UTC. Strings are parsed as ISO 8601.

    Args:
        value: The moment to format (default: now).

    Returns:
        A string such as ``"2014-01-01T00:00:00.000Z"``.

    Example:
        >>> format_timestamp(datetime(2014, 1, 1, tzinfo=UTC))
        '2014-01-01T00:00:00.000Z'
    """
    if value is None:
        moment = datetime.now(UTC)
    elif isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=UTC)
    else:
        moment = datetime.fromisoformat(value)

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _serialize_value(value: object) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, datetime | date):
        return format_timestamp(value)
    return str(value)


def serialize_params(params: BaseModel | dict[str, Any] | None) -> dict[str, str]:
    """Flatten call parameters into strings for query strings and form fields.

    None values are dropped, booleans become ``true``/``false`` and dates
    become RFC 3339 timestamps.
    """
    if params is None:
        return {}
    if isinstance(params, BaseModel):
        params = params.model_dump(exclude_none=True)
    return {k: _serialize_value(v) for k, v in params.items() if v is not None}


class BoxViewBaseModel(BaseModel):
    """Base model with common configuration for all Box View models."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",  # Ignore unknown fields from API
    )


# ---------------------------------------------------------------------------
# Call options
# ---------------------------------------------------------------------------


class ListParams(BoxViewBaseModel):
    """Parameters for listing documents.

    Attributes:
        limit: Number of documents to return (default 10, max 50).
        created_before: Upper limit on creation timestamps (default: now).
        created_after: Lower limit on creation timestamps.
    """

    limit: int | None = Field(default=None, ge=1, le=50)
    created_before: datetime | date | None = None
    created_after: datetime | date | None = None


class UploadParams(BoxViewBaseModel):
    """Parameters for file and URL uploads.

    Attributes:
        name: Name of the document (inferred from the source if omitted).
        thumbnails: Comma-separated ``{width}x{height}`` list to pre-render.
        non_svg: Whether to also create the non-SVG version.
    """

    name: str | None = None
    thumbnails: str | None = None
    non_svg: bool | None = None


class SessionParams(BoxViewBaseModel):
    """Parameters for creating a viewing session.

    Attributes:
        duration: Minutes until the session expires (default 60).
        expires_at: Timestamp at which the session expires.
        is_downloadable: Whether the original file can be downloaded
            while the session is active.
    """

    duration: int | None = Field(default=None, ge=1)
    expires_at: datetime | date | None = None
    is_downloadable: bool | None = None


class RequestOptions(BoxViewBaseModel):
    """Options accepted by every operation.

    Attributes:
        retry: Resubmit the request after ``Retry-After`` seconds while the
            server answers "accepted, still processing". If False, such a
            response ends the operation without invoking the callback.
        params: Operation parameters (query, form, or JSON fields).
        fields: Document fields to return (``documents.get`` only).
        extension: Content format such as ``pdf`` or ``zip``
            (``documents.get_content`` only).
    """

    retry: bool = False
    params: dict[str, Any] | BoxViewBaseModel = Field(
        default_factory=dict,
        union_mode="left_to_right",
    )
    fields: list[str] | str | None = None
    extension: str | None = None

    def params_dict(self) -> dict[str, Any]:
        """Return params as a plain dict, keeping native field names."""
        if isinstance(self.params, BaseModel):
            return self.params.model_dump(exclude_none=True)
        return dict(self.params)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

# Callbacks always receive the raw parsed JSON. These models are for callers
# that want typed access, e.g. `DocumentList.model_validate(body)`.


class DocumentStatus(StrEnum):
    """Conversion states of a document."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class Document(BoxViewBaseModel):
    """A document uploaded to the View API.

    Validate the body passed to a ``get``, ``update`` or upload callback
    with ``Document.model_validate(body)``. Unknown fields are ignored.
    """

    type: str = "document"
    id: str
    status: DocumentStatus | str | None = None
    name: str | None = None
    created_at: datetime | None = None


class DocumentCollection(BoxViewBaseModel):
    """Page of documents inside a list response."""

    total_count: int = 0
    entries: list[Document] = Field(default_factory=list)


class DocumentList(BoxViewBaseModel):
    """Response of the document list endpoint.

    Example:
        ```python
        async def on_list(error, body, response):
            if error is None:
                documents = DocumentList.model_validate(body)
                for document in documents.document_collection.entries:
                    print(document.id, document.status)
        ```
    """

    document_collection: DocumentCollection = Field(default_factory=DocumentCollection)


class SessionUrls(BoxViewBaseModel):
    """URLs for viewing a session."""

    view: str | None = None
    assets: str | None = None
    realtime: str | None = None


class Session(BoxViewBaseModel):
    """A viewing session, as passed to a ``sessions.create`` callback."""

    type: str = "session"
    id: str
    document: Document | None = None
    expires_at: datetime | None = None
    urls: SessionUrls | None = None
