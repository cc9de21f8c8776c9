"""Box View API client module.

This module provides an async HTTP client for the Box View API: document
upload, listing, metadata, content and thumbnail retrieval, and viewing
sessions. Conversion endpoints answer ``202 Accepted`` with a
``Retry-After`` header while work is in progress; operations called with
``retry=True`` keep polling until the server gives a final answer.

Operations deliver their outcome through a callback
``callback(error, body, response)``. With ``retry=False`` a pending response
ends the operation without calling the callback at all.

Example:
    ```python
    from box_view.api import BoxViewClient, RequestOptions, UploadParams

    async with BoxViewClient(token="your-api-token") as client:

        async def on_upload(error, document, response):
            if error is not None:
                print(f"upload failed: {error}")
                return
            await client.sessions.create(
                document["id"],
                RequestOptions(retry=True),
                on_session,
            )

        async def on_session(error, session, response):
            print(session["urls"]["view"])

        await client.documents.upload_file(
            "report.pdf",
            RequestOptions(retry=True, params=UploadParams(non_svg=True)),
            on_upload,
        )
    ```
"""

from __future__ import annotations

from box_view.api.bodies import (
    DEFAULT_FILENAME,
    ReplayableStream,
    determine_filename,
    make_upload_source,
)
from box_view.api.classifier import (
    Failure,
    Pending,
    Success,
    Verdict,
    classify,
    parse_body,
    parse_retry_after,
)
from box_view.api.client import (
    DOCUMENTS_UPLOAD_URL,
    DOCUMENTS_URL,
    SESSIONS_URL,
    BoxViewClient,
    Documents,
    Sessions,
    create_client,
)
from box_view.api.exceptions import BoxViewError, ErrorKind, RetryNotSupportedError
from box_view.api.models import (
    Document,
    DocumentCollection,
    DocumentList,
    DocumentStatus,
    ListParams,
    RequestOptions,
    Session,
    SessionParams,
    SessionUrls,
    UploadParams,
    format_timestamp,
)
from box_view.api.polling import (
    Callback,
    Operation,
    OperationState,
    PollingController,
    RequestDescriptor,
)


__all__ = [
    "DEFAULT_FILENAME",
    "DOCUMENTS_UPLOAD_URL",
    "DOCUMENTS_URL",
    "SESSIONS_URL",
    "BoxViewClient",
    "BoxViewError",
    "Callback",
    "Document",
    "DocumentCollection",
    "DocumentList",
    "DocumentStatus",
    "Documents",
    "ErrorKind",
    "Failure",
    "ListParams",
    "Operation",
    "OperationState",
    "Pending",
    "PollingController",
    "ReplayableStream",
    "RequestDescriptor",
    "RequestOptions",
    "RetryNotSupportedError",
    "Session",
    "SessionParams",
    "SessionUrls",
    "Sessions",
    "Success",
    "UploadParams",
    "Verdict",
    "classify",
    "create_client",
    "determine_filename",
    "format_timestamp",
    "make_upload_source",
    "parse_body",
    "parse_retry_after",
]
