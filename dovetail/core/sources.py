"""Source normalizer: turn any open input into bytes plus an optional handle.

WHY: A document can arrive as a raw blob (plain file-input fallback,
URL download), as a file handle (picker, launch arguments), or as a
drag/drop item that may or may not resolve to a handle. Downstream code
must not care which — it needs a ByteSource and, when possible, a handle
to write back to.

HOW: Inputs are wrapped in one of three tagged variants (BlobInput,
HandleInput, DragItemInput). normalize() resolves the variant once:
drag items try the handle capability first and fall back to the blob;
handles are retained and dereferenced; blobs pass straight through.

RULES:
- retained_handle is set if and only if the input carried a handle
- A missing capability means "use the next weaker variant", not an error
- No retries, no network or disk access beyond what the handle/item does
- Unknown input shapes raise TypeError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union, runtime_checkable

from dovetail.core.errors import SourceUnavailableError
from dovetail.core.model import ByteSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Host-provided capability protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class WritableStream(Protocol):
    """A writable stream opened on a retained handle."""

    async def write(self, data: bytes) -> None:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class FileHandle(Protocol):
    """A capability to read, and later rewrite, one storage location.

    Uses structural subtyping - no inheritance required.
    """

    @property
    def name(self) -> str:
        ...

    async def get_file(self) -> ByteSource:
        ...

    async def create_writable(self) -> WritableStream:
        ...


@runtime_checkable
class DragItem(Protocol):
    """One item from a drag/drop payload."""

    @property
    def kind(self) -> str:
        """Payload kind; only "file" items are opened on drop."""
        ...

    async def get_as_handle(self) -> Optional[FileHandle]:
        """Resolve to a file handle, or None when the host cannot.

        Hosts without the capability may also raise NotImplementedError.
        """
        ...

    async def get_as_blob(self) -> Optional[ByteSource]:
        ...


# ---------------------------------------------------------------------------
# Tagged input variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BlobInput:
    """A raw payload with no way to write it back."""

    blob: ByteSource


@dataclass(frozen=True)
class HandleInput:
    """A file handle from a picker, launch queue, or resolved drop."""

    handle: FileHandle


@dataclass(frozen=True)
class DragItemInput:
    """An unresolved drag/drop item."""

    item: DragItem


SourceInput = Union[BlobInput, HandleInput, DragItemInput]


@dataclass(frozen=True)
class NormalizedSource:
    """Result of normalization: the bytes and, when available, the handle."""

    byte_source: ByteSource
    retained_handle: Optional[FileHandle] = None


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


async def _resolve_drag_item(item: DragItem) -> SourceInput:
    """Resolve a drag item to a handle when possible, else to a blob."""
    try:
        handle = await item.get_as_handle()
    except NotImplementedError:
        handle = None

    if handle is not None:
        return HandleInput(handle)

    logger.debug("Drag item has no file handle; falling back to its blob")
    blob = await item.get_as_blob()
    if blob is None:
        raise SourceUnavailableError("The dropped item does not contain a file.")
    return BlobInput(blob)


async def normalize(source: SourceInput) -> NormalizedSource:
    """Normalize one open input into a ByteSource and optional handle.

    Args:
        source: A BlobInput, HandleInput, or DragItemInput.

    Returns:
        NormalizedSource with retained_handle set only for handle inputs
        (including drag items that resolved to a handle).

    Raises:
        TypeError: If source is not one of the tagged variants.
        SourceUnavailableError: If a drag item yields no file at all.
    """
    if isinstance(source, DragItemInput):
        source = await _resolve_drag_item(source.item)

    if isinstance(source, HandleInput):
        byte_source = await source.handle.get_file()
        return NormalizedSource(byte_source=byte_source, retained_handle=source.handle)

    if isinstance(source, BlobInput):
        return NormalizedSource(byte_source=source.blob, retained_handle=None)

    raise TypeError("Unsupported source input: {!r}".format(type(source).__name__))
