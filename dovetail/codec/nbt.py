"""Binary NBT codec backed by nbtlib tags.

WHY: nbtlib parses and writes tag payloads, but the files Dovetail opens
wrap that payload in several envelopes — gzip, zlib or raw deflate
compression, an optional Bedrock level header, big or little endian, a
named or unnamed root — and nbtlib quietly tolerates short reads and
leftover bytes. The session core needs a codec that detects the envelope
and reports trailing data precisely so it can offer a relaxed retry.

HOW: decode() peels compression (sniffed from magic bytes, raw deflate as
a last resort), then tries root layouts in order: Bedrock header (little
endian), big endian named, little endian named, then unnamed roots. The
payload is read through a BytesIO subclass that raises on short reads, so
truncation is an error instead of silent zeros. encode() reverses the
envelope from the document's FormatMetadata.

RULES:
- The root tag must be a compound or a list
- Strict mode raises TrailingDataError when bytes remain after a named
  root or after the end of a compressed stream; relaxed mode drops them
- Unnamed roots are accepted only when they consume the whole payload
- gzip output uses mtime=0 so identical documents encode identically
- The Bedrock header is two little-endian uint32s: level, payload length
"""

from __future__ import annotations

import gzip
import io
import logging
import struct
import zlib
from typing import Any, List, Optional, Tuple

from nbtlib.tag import (
    Byte,
    ByteArray,
    Compound,
    Double,
    Float,
    Int,
    IntArray,
    List as ListTag,
    Long,
    LongArray,
    Short,
    String,
)

from dovetail.codec.base import Codec
from dovetail.core.errors import (
    MALFORMED,
    TRUNCATED,
    DecodeError,
    EncodeError,
    TrailingDataError,
)
from dovetail.core.model import Document, FormatMetadata

logger = logging.getLogger(__name__)

_TAG_TYPES = {
    1: Byte,
    2: Short,
    3: Int,
    4: Long,
    5: Float,
    6: Double,
    7: ByteArray,
    8: String,
    9: ListTag,
    10: Compound,
    11: IntArray,
    12: LongArray,
}
_ROOT_TAG_IDS = (9, 10)
_GZIP_MAGIC = b"\x1f\x8b"
_BEDROCK_HEADER = struct.Struct("<II")
_NAME_LENGTH = {"big": struct.Struct(">H"), "little": struct.Struct("<H")}


class _Truncated(EOFError):
    pass


class _StrictReader(io.BytesIO):
    """BytesIO that refuses short reads."""

    def read(self, size: Optional[int] = -1) -> bytes:
        data = super().read(size)
        if size is not None and size >= 0 and len(data) < size:
            raise _Truncated("needed {} bytes at offset {}, found {}".format(
                size, self.tell() - len(data), len(data)
            ))
        return data


# ---------------------------------------------------------------------------
# Compression
# ---------------------------------------------------------------------------


def _has_zlib_header(data: bytes) -> bool:
    return len(data) >= 2 and data[0] == 0x78 and ((data[0] << 8) | data[1]) % 31 == 0


def _inflate(data: bytes, wbits: int, label: str) -> Tuple[bytes, int]:
    """Inflate one compressed stream.

    Returns:
        (inflated body, count of bytes left after the end of the stream)
    """
    inflater = zlib.decompressobj(wbits)
    try:
        body = inflater.decompress(data) + inflater.flush()
    except zlib.error as exc:
        raise DecodeError(MALFORMED, "Could not decompress {} data: {}".format(label, exc))
    if not inflater.eof:
        raise DecodeError(TRUNCATED, "The {} stream ends early".format(label))
    return body, len(inflater.unused_data)


def _decompress(data: bytes) -> Tuple[Optional[str], bytes, int]:
    """Sniff and remove gzip or zlib compression."""
    if data[:2] == _GZIP_MAGIC:
        body, unused = _inflate(data, 16 + zlib.MAX_WBITS, "gzip")
        return "gzip", body, unused
    if _has_zlib_header(data):
        body, unused = _inflate(data, zlib.MAX_WBITS, "deflate")
        return "deflate", body, unused
    return None, data, 0


def _inflate_raw(data: bytes) -> Optional[Tuple[bytes, int]]:
    try:
        body, unused = _inflate(data, -zlib.MAX_WBITS, "raw deflate")
    except DecodeError:
        return None
    if not body:
        return None
    return body, unused


def _compress(body: bytes, compression: Optional[str]) -> bytes:
    if compression is None:
        return body
    if compression == "gzip":
        return gzip.compress(body, mtime=0)
    if compression == "deflate":
        return zlib.compress(body)
    if compression == "deflate-raw":
        deflater = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        return deflater.compress(body) + deflater.flush()
    raise EncodeError("Unknown compression {!r}".format(compression))


# ---------------------------------------------------------------------------
# Root layout
# ---------------------------------------------------------------------------


def _bedrock_level(body: bytes) -> Optional[int]:
    """Return the level version if ``body`` starts with a Bedrock header."""
    if len(body) < _BEDROCK_HEADER.size + 1:
        return None
    level, length = _BEDROCK_HEADER.unpack_from(body, 0)
    if length == 0 or length > len(body) - _BEDROCK_HEADER.size:
        return None
    if body[_BEDROCK_HEADER.size] not in _ROOT_TAG_IDS:
        return None
    return level


def _parse_root(body: bytes, offset: int, endian: str, named: bool) -> Tuple[Any, Optional[str], int]:
    """Parse one root tag starting at ``offset``.

    Returns:
        (root tag, root name or None, bytes consumed from offset)
    """
    reader = _StrictReader(body)
    reader.seek(offset)
    try:
        tag_id = reader.read(1)[0]
        if tag_id not in _ROOT_TAG_IDS:
            raise DecodeError(
                MALFORMED,
                "Expected a compound or list root tag, found tag type {}".format(tag_id),
            )
        name = None
        if named:
            (length,) = _NAME_LENGTH[endian].unpack(reader.read(2))
            name = reader.read(length).decode("utf-8")
        root = _TAG_TYPES[tag_id].parse(reader, endian)
    except DecodeError:
        raise
    except _Truncated as exc:
        raise DecodeError(TRUNCATED, "Unexpected end of data ({})".format(exc))
    except Exception as exc:
        raise DecodeError(MALFORMED, "Invalid NBT data: {}".format(exc))
    return root, name, reader.tell() - offset


class NbtCodec(Codec):
    """Codec for Java and Bedrock edition NBT files."""

    def decode(self, data: bytes, *, strict: bool = True) -> Document:
        if not data:
            raise DecodeError(MALFORMED, "The file is empty")

        compression, body, unused = _decompress(data)
        try:
            document = self._decode_body(body, compression, strict)
        except DecodeError as exc:
            if compression is not None or exc.recoverable:
                raise
            inflated = _inflate_raw(data)
            if inflated is None:
                raise
            body, unused = inflated
            try:
                document = self._decode_body(body, "deflate-raw", strict)
            except DecodeError as inner:
                if inner.recoverable:
                    raise
                raise exc

        # bytes after the end of the compressed stream
        if unused:
            if strict:
                raise TrailingDataError(unused)
            logger.info("Ignoring %d bytes after the compressed stream", unused)
        return document

    def _decode_body(self, body: bytes, compression: Optional[str], strict: bool) -> Document:
        # (endian, named, bedrock level, offset, may report trailing data)
        layouts: List[Tuple[str, bool, Optional[int], int, bool]] = []
        level = _bedrock_level(body)
        if level is not None:
            layouts.append(("little", True, level, _BEDROCK_HEADER.size, True))
        layouts.append(("big", True, None, 0, True))
        layouts.append(("little", True, None, 0, True))
        if level is not None:
            layouts.append(("little", False, level, _BEDROCK_HEADER.size, False))
        layouts.append(("big", False, None, 0, False))
        layouts.append(("little", False, None, 0, False))

        first_error: Optional[DecodeError] = None
        trailing: Optional[TrailingDataError] = None
        for endian, named, bedrock_level, offset, reports_trailing in layouts:
            try:
                root, name, consumed = _parse_root(body, offset, endian, named)
            except DecodeError as exc:
                first_error = first_error or exc
                continue

            remaining = len(body) - offset - consumed
            if remaining:
                if not reports_trailing:
                    continue
                if strict:
                    trailing = trailing or TrailingDataError(remaining)
                    continue
                logger.info("Ignoring %d trailing bytes", remaining)

            metadata = FormatMetadata(
                root_name=name,
                endian=endian,
                compression=compression,
                bedrock_level=bedrock_level,
            )
            return Document(root=root, format=metadata)

        if trailing is not None:
            raise trailing
        raise first_error or DecodeError(MALFORMED, "Invalid NBT data")

    def encode(self, document: Document) -> bytes:
        metadata = document.format
        problems = metadata.problems()
        if problems:
            raise EncodeError("; ".join(problems))

        root = document.root
        tag_id = getattr(root, "tag_id", None)
        if tag_id not in _ROOT_TAG_IDS:
            raise EncodeError("The root tag must be a compound or a list")

        buffer = io.BytesIO()
        buffer.write(bytes([tag_id]))
        if metadata.root_name is not None:
            encoded_name = metadata.root_name.encode("utf-8")
            if len(encoded_name) > 0xFFFF:
                raise EncodeError("The root name is too long")
            buffer.write(_NAME_LENGTH[metadata.endian].pack(len(encoded_name)))
            buffer.write(encoded_name)
        try:
            root.write(buffer, metadata.endian)
        except (struct.error, OverflowError, ValueError) as exc:
            raise EncodeError("Could not encode the document: {}".format(exc)) from exc

        body = buffer.getvalue()
        if metadata.bedrock_level is not None:
            body = _BEDROCK_HEADER.pack(metadata.bedrock_level, len(body)) + body
        return _compress(body, metadata.compression)
