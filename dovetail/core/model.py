"""Session data model: byte sources, format metadata, documents, sessions.

WHY: The controller, decoder, metadata store, and persistence dispatcher
all pass the same few values around. Giving them explicit, typed shapes
keeps every piece of editor state in one Session value owned by the
controller.

HOW: Four dataclasses form the model:
  ByteSource      — opaque payload plus display name (frozen)
  FormatMetadata  — editable envelope fields (frozen, replaced on edit)
  Document        — the codec's root tag tree plus its FormatMetadata
  Session         — the aggregate root the editor displays

RULES:
- root_name None (no name written) and "" (empty name) are distinct states
- bedrock_level, when set, is an unsigned 32-bit integer
- Session is replaced as a whole on a successful Open, never patched
- Document is not kept while editing; the SNBT text is the source of truth
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

ENDIANS: Tuple[str, ...] = ("big", "little")
COMPRESSIONS: Tuple[Optional[str], ...] = (None, "gzip", "deflate", "deflate-raw")
UINT32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class ByteSource:
    """An immutable binary payload with the name it was opened under."""

    name: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FormatMetadata:
    """Envelope metadata of an NBT document.

    WHY: The same tag tree can be stored several ways — with or without a
    root name, big or little endian, compressed three different ways, with
    or without a Bedrock level header. Users edit these independently of
    the document content.

    RULES:
    - root_name: None means "no root name is written", "" is an empty name
    - endian: "big" or "little"
    - compression: None, "gzip", "deflate" (zlib) or "deflate-raw"
    - bedrock_level: None, or the Bedrock level header version (uint32)
    """

    root_name: Optional[str] = ""
    endian: str = "big"
    compression: Optional[str] = None
    bedrock_level: Optional[int] = None

    def problems(self) -> list[str]:
        """Describe every field that the codec cannot encode."""
        found: list[str] = []
        if self.root_name is not None and not isinstance(self.root_name, str):
            found.append("root name must be a string or None")
        if self.endian not in ENDIANS:
            found.append("endian must be one of {}, got {!r}".format(ENDIANS, self.endian))
        if self.compression not in COMPRESSIONS:
            found.append(
                "compression must be one of {}, got {!r}".format(COMPRESSIONS, self.compression)
            )
        if self.bedrock_level is not None:
            if isinstance(self.bedrock_level, bool) or not isinstance(self.bedrock_level, int):
                found.append("bedrock level must be an integer")
            elif not 0 <= self.bedrock_level <= UINT32_MAX:
                found.append(
                    "bedrock level must fit in an unsigned 32-bit integer, got {}".format(
                        self.bedrock_level
                    )
                )
        return found

    def with_changes(self, **changes: Any) -> FormatMetadata:
        return replace(self, **changes)


@dataclass
class Document:
    """A decoded NBT document: the codec's root tag plus its envelope.

    The root is opaque to the session core; only the envelope getters are
    read outside the codec package.
    """

    root: Any
    format: FormatMetadata = field(default_factory=FormatMetadata)

    @property
    def root_name(self) -> Optional[str]:
        return self.format.root_name

    @property
    def endian(self) -> str:
        return self.format.endian

    @property
    def compression(self) -> Optional[str]:
        return self.format.compression

    @property
    def bedrock_level(self) -> Optional[int]:
        return self.format.bedrock_level


@dataclass
class Session:
    """The one active editing session.

    WHY: The editor, title bar, format dialog, and save path all read the
    same state. Keeping it in one value lets the controller swap it in a
    single assignment, so a half-finished Open is never visible.

    RULES:
    - name: display name of the opened file ("" before the first Open)
    - handle: RetainedHandle for in-place rewrite, or None
    - text: current SNBT editor contents
    - format: current (possibly edited) FormatMetadata
    - editor_enabled: Save / Format Options / editor are usable
    """

    name: str = ""
    handle: Optional[Any] = None
    text: str = ""
    format: FormatMetadata = field(default_factory=FormatMetadata)
    editor_enabled: bool = False

    @property
    def is_open(self) -> bool:
        return bool(self.name)
