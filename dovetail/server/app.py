"""FastAPI application exposing NBT decode and encode over HTTP.

WHY: Tools that cannot embed Python (web front ends, bots, automation
flows) still want to turn an NBT upload into editable SNBT and back. The
service runs the same decode session and codec the editor uses, so the
strict/relaxed policy and the envelope detection are identical.

HOW: POST /documents/decode takes a multipart upload and a ``strict``
form field, and drives a DecodeSession with a non-interactive host whose
answer to the relaxed-retry prompt is ``not strict``. POST
/documents/encode takes SNBT plus format metadata and returns the
encoded bytes as an attachment. GET /extensions and GET /health are
informational.

RULES:
- Trailing data under strict=true is HTTP 409; retry with strict=false
- Every other decode failure is HTTP 422
- Malformed SNBT or unencodable metadata on encode is HTTP 422
- Error responses use the ErrorResponse schema ({"detail": ...})
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import logging
from typing import Annotated, List, Optional, Sequence

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from dovetail import __version__
from dovetail.codec import default_bridge, default_codec
from dovetail.config import ACCEPTED_EXTENSIONS, SERVER_HOST, SERVER_PORT, SNBT_INDENT
from dovetail.core.decoder import DecodeSession
from dovetail.core.errors import TRAILING_DATA, EncodeError
from dovetail.core.metadata import FormatMetadataStore
from dovetail.core.model import ByteSource
from dovetail.core.sources import SourceInput
from dovetail.host.base import BaseHost
from dovetail.server.models import (
    DecodedDocument,
    EncodeRequest,
    ErrorResponse,
    ExtensionsResponse,
    FormatModel,
    HealthResponse,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Dovetail API",
    description=(
        "Decode Minecraft NBT files (Java and Bedrock, any compression) into "
        "SNBT text with their format metadata, and encode SNBT back into NBT."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Non-interactive host
# ---------------------------------------------------------------------------


class ServiceHost(BaseHost):
    """Host for request handlers: answers prompts from request parameters.

    Alerts are collected rather than shown; the handler turns them into
    the HTTP error detail.
    """

    def __init__(self, allow_relaxed: bool) -> None:
        self._allow_relaxed = allow_relaxed
        self.alerts: List[str] = []

    async def confirm(self, message: str) -> bool:
        return self._allow_relaxed

    async def alert(self, message: str) -> None:
        self.alerts.append(message)

    async def pick_file(self, extensions: Sequence[str]) -> Optional[SourceInput]:
        return None

    async def download(self, name: str, data: bytes) -> str:
        raise NotImplementedError("The HTTP service returns bytes in the response")

    async def share(self, name: str, data: bytes) -> None:
        raise NotImplementedError("The HTTP service cannot share")

    def supports_share(self) -> bool:
        return False

    def prefers_share(self) -> bool:
        return False


def _content_disposition(filename: str) -> str:
    safe = filename.replace("\\", "_").replace('"', "_").replace("/", "_") or "document.nbt"
    return 'attachment; filename="{}"'.format(safe)


# ---------------------------------------------------------------------------
# Endpoints: Documents
# ---------------------------------------------------------------------------


@app.post(
    "/documents/decode",
    response_model=DecodedDocument,
    tags=["documents"],
    summary="Decode an NBT file to SNBT",
    description=(
        "Upload an NBT file. The envelope (compression, endianness, root "
        "name, Bedrock header) is detected automatically. With strict=true, "
        "trailing bytes after the root tag are rejected with 409; resend "
        "with strict=false to drop them."
    ),
    responses={
        409: {"model": ErrorResponse, "description": "Trailing data after the root tag"},
        422: {"model": ErrorResponse, "description": "The file is not valid NBT"},
    },
)
async def decode_document(
    file: Annotated[
        UploadFile,
        File(description="NBT file to decode"),
    ],
    strict: Annotated[
        bool,
        Form(description="Reject trailing data instead of dropping it."),
    ] = True,
) -> DecodedDocument:
    filename = file.filename or "document.nbt"
    data = await file.read()
    host = ServiceHost(allow_relaxed=not strict)
    result = await DecodeSession(default_codec(), host).run(ByteSource(name=filename, data=data))

    if not result.ok:
        detail = result.error or "Could not read '{}' as NBT data.".format(filename)
        if result.error_kind == TRAILING_DATA and not result.fatal:
            raise HTTPException(status_code=409, detail=detail)
        raise HTTPException(status_code=422, detail=detail)

    document = result.document
    snbt = default_bridge().serialize(document.root, indent=SNBT_INDENT)
    logger.info("Decoded %s (%d bytes, relaxed=%s)", filename, len(data), result.relaxed)
    return DecodedDocument(
        filename=filename,
        snbt=snbt,
        format=FormatModel.from_metadata(document.format),
        relaxed=result.relaxed,
    )


@app.post(
    "/documents/encode",
    tags=["documents"],
    summary="Encode SNBT into an NBT file",
    description=(
        "Encode SNBT text with the given format metadata. The response body "
        "is the encoded file, sent as an attachment."
    ),
    response_class=Response,
    responses={
        200: {"content": {"application/octet-stream": {}}, "description": "Encoded NBT bytes"},
        422: {"model": ErrorResponse, "description": "Invalid SNBT or format metadata"},
    },
)
async def encode_document(request: EncodeRequest) -> Response:
    codec = default_codec()
    store = FormatMetadataStore(default_bridge())
    try:
        document = store.apply(request.snbt, request.format.to_metadata())
        payload = codec.encode(document)
    except EncodeError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return Response(
        content=payload,
        media_type="application/octet-stream",
        headers={"Content-Disposition": _content_disposition(request.filename)},
    )


# ---------------------------------------------------------------------------
# Endpoints: Info
# ---------------------------------------------------------------------------


@app.get(
    "/extensions",
    response_model=ExtensionsResponse,
    tags=["info"],
    summary="List accepted file extensions",
)
async def list_extensions() -> ExtensionsResponse:
    return ExtensionsResponse(extensions=list(ACCEPTED_EXTENSIONS))


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: str = SERVER_HOST, port: int = SERVER_PORT) -> None:
    """Entry point for the dovetail-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
