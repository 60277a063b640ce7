"""Abstract codec and text-bridge interfaces.

WHY: The session core must drive decoding, encoding, and SNBT conversion
without knowing how NBT is laid out on disk. These two base classes are
the whole contract the core relies on, so the binary codec can be swapped
(or faked in tests) without touching the session logic.

HOW: Codec is an ABC with ``decode()`` and ``encode()``; TextBridge is an
ABC with ``serialize()`` and ``parse()``. Implementations live beside
this module (nbt.py, snbt.py).

RULES:
- decode() raises DecodeError; kind "trailing_data" only when the root
  parsed cleanly but bytes remain and strict is True
- decode() with strict=False ignores trailing bytes
- encode() raises EncodeError for metadata it cannot write
- parse() raises ParseError for malformed text
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from dovetail.core.model import Document


class Codec(ABC):
    """Binary document codec."""

    @abstractmethod
    def decode(self, data: bytes, *, strict: bool = True) -> Document:
        """Decode a binary payload into a Document.

        Args:
            data: The raw file contents.
            strict: Reject trailing bytes after the root tag.

        Returns:
            The decoded Document with its detected FormatMetadata.
        """

    @abstractmethod
    def encode(self, document: Document) -> bytes:
        """Encode a Document using its FormatMetadata."""


class TextBridge(ABC):
    """Conversion between a document root and its editable text."""

    @abstractmethod
    def serialize(self, root: Any, *, indent: int = 2) -> str:
        """Render a root tag as text."""

    @abstractmethod
    def parse(self, text: str) -> Any:
        """Parse text back into a root tag."""
