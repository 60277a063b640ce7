"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. The format
metadata model mirrors FormatMetadata so that a document decoded by one
request can be re-encoded by another with no translation on the client.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- root_name null means "no root name", "" is an empty name
- bedrock_level is an unsigned 32-bit integer or null
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from dovetail.core.model import UINT32_MAX, FormatMetadata


class FormatModel(BaseModel):
    """Envelope metadata of an NBT document."""

    root_name: Optional[str] = Field(
        default="",
        description="Root tag name. null writes no root name at all.",
    )
    endian: Literal["big", "little"] = Field(default="big", description="Byte order.")
    compression: Optional[Literal["gzip", "deflate", "deflate-raw"]] = Field(
        default=None,
        description="Compression wrapper. null means uncompressed.",
    )
    bedrock_level: Optional[int] = Field(
        default=None,
        ge=0,
        le=UINT32_MAX,
        description="Bedrock level header version. null means no header.",
    )

    @classmethod
    def from_metadata(cls, metadata: FormatMetadata) -> "FormatModel":
        return cls(
            root_name=metadata.root_name,
            endian=metadata.endian,
            compression=metadata.compression,
            bedrock_level=metadata.bedrock_level,
        )

    def to_metadata(self) -> FormatMetadata:
        return FormatMetadata(
            root_name=self.root_name,
            endian=self.endian,
            compression=self.compression,
            bedrock_level=self.bedrock_level,
        )


class DecodedDocument(BaseModel):
    """A decoded document as SNBT text plus its format metadata."""

    filename: str = Field(description="Name of the uploaded file.")
    snbt: str = Field(description="The document as stringified NBT.")
    format: FormatModel = Field(description="Detected envelope metadata.")
    relaxed: bool = Field(
        description="True when trailing data was dropped by a relaxed decode.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "filename": "hello_world.nbt",
                "snbt": '{\n  name: "Bananrama"\n}',
                "format": {
                    "root_name": "hello world",
                    "endian": "big",
                    "compression": None,
                    "bedrock_level": None,
                },
                "relaxed": False,
            }
        ]
    }}


class EncodeRequest(BaseModel):
    """SNBT text and format metadata to encode into NBT bytes."""

    filename: str = Field(
        default="document.nbt",
        description="Filename for the Content-Disposition header.",
    )
    snbt: str = Field(description="The document as stringified NBT.")
    format: FormatModel = Field(
        default_factory=FormatModel,
        description="Envelope metadata to encode with.",
    )


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})


class ExtensionsResponse(BaseModel):
    """File extensions the editor's picker offers."""

    extensions: List[str] = Field(description="Lowercase extensions, with dot.")
