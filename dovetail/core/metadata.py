"""Format metadata store: the editable envelope of the open document.

WHY: The Format Options dialog edits root name, endianness, compression,
and the Bedrock level header independently of the SNBT text. Those edits
must survive until save, be seeded from every newly opened document, and
be combined with the edited text to rebuild a Document for encoding.

HOW: FormatMetadataStore holds one frozen FormatMetadata and replaces it
on every edit. seed() projects a Document's envelope, apply() parses text
through the text bridge and attaches the metadata. to_dict()/from_dict()
give a JSON shape validated with jsonschema for sidecar files and APIs.

RULES:
- Editing one field never changes another
- set_name_disabled(True) forces root_name to None
- set_name_disabled(False) restores "" — never the pre-toggle name
- bedrock_level accepts None or 0..4294967295
- apply() wraps text parse failures in EncodeError
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jsonschema

from dovetail.codec.base import TextBridge
from dovetail.core.errors import EncodeError, ParseError
from dovetail.core.model import COMPRESSIONS, ENDIANS, UINT32_MAX, Document, FormatMetadata

logger = logging.getLogger(__name__)

FORMAT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Dovetail format metadata",
    "type": "object",
    "properties": {
        "root_name": {"type": ["string", "null"]},
        "endian": {"enum": list(ENDIANS)},
        "compression": {"enum": list(COMPRESSIONS)},
        "bedrock_level": {
            "type": ["integer", "null"],
            "minimum": 0,
            "maximum": UINT32_MAX,
        },
    },
    "required": ["root_name", "endian", "compression", "bedrock_level"],
    "additionalProperties": False,
}


def to_dict(metadata: FormatMetadata) -> Dict[str, Any]:
    """Project FormatMetadata into its JSON shape."""
    return {
        "root_name": metadata.root_name,
        "endian": metadata.endian,
        "compression": metadata.compression,
        "bedrock_level": metadata.bedrock_level,
    }


def from_dict(data: Dict[str, Any]) -> FormatMetadata:
    """Build FormatMetadata from its JSON shape.

    Raises:
        jsonschema.ValidationError: If ``data`` does not match FORMAT_SCHEMA.
    """
    jsonschema.validate(instance=data, schema=FORMAT_SCHEMA)
    return FormatMetadata(
        root_name=data["root_name"],
        endian=data["endian"],
        compression=data["compression"],
        bedrock_level=data["bedrock_level"],
    )


class FormatMetadataStore:
    """Holds the envelope fields the user is editing."""

    def __init__(self, bridge: TextBridge, initial: Optional[FormatMetadata] = None) -> None:
        self._bridge = bridge
        self._value = initial or FormatMetadata()

    # ------------------------------------------------------------------
    # Seeding and reading
    # ------------------------------------------------------------------

    @staticmethod
    def project(document: Document) -> FormatMetadata:
        return FormatMetadata(
            root_name=document.root_name,
            endian=document.endian,
            compression=document.compression,
            bedrock_level=document.bedrock_level,
        )

    def seed(self, document: Document) -> FormatMetadata:
        """Replace the current metadata with ``document``'s envelope."""
        self._value = self.project(document)
        return self._value

    def load(self, metadata: FormatMetadata) -> None:
        self._value = metadata

    def current_value(self) -> FormatMetadata:
        return self._value

    @property
    def name_disabled(self) -> bool:
        return self._value.root_name is None

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def set_root_name(self, name: str) -> FormatMetadata:
        if not isinstance(name, str):
            raise ValueError("Root name must be a string; use set_name_disabled() to remove it")
        self._value = self._value.with_changes(root_name=name)
        return self._value

    def set_name_disabled(self, disabled: bool) -> FormatMetadata:
        self._value = self._value.with_changes(root_name=None if disabled else "")
        return self._value

    def set_endian(self, endian: str) -> FormatMetadata:
        if endian not in ENDIANS:
            raise ValueError("Unknown endian {!r}".format(endian))
        self._value = self._value.with_changes(endian=endian)
        return self._value

    def set_compression(self, compression: Optional[str]) -> FormatMetadata:
        # The dialog uses "none" for the uncompressed radio button
        if compression == "none":
            compression = None
        if compression not in COMPRESSIONS:
            raise ValueError("Unknown compression {!r}".format(compression))
        self._value = self._value.with_changes(compression=compression)
        return self._value

    def set_bedrock_level(self, level: Optional[int]) -> FormatMetadata:
        if level is not None:
            if isinstance(level, bool) or not isinstance(level, int):
                raise ValueError("Bedrock level must be an integer")
            if not 0 <= level <= UINT32_MAX:
                raise ValueError("Bedrock level must be between 0 and {}".format(UINT32_MAX))
        self._value = self._value.with_changes(bedrock_level=level)
        return self._value

    def set_bedrock_level_text(self, text: str) -> FormatMetadata:
        """Set the Bedrock level from an input field; "" clears it."""
        text = text.strip()
        if text == "":
            return self.set_bedrock_level(None)
        try:
            level = int(text, 10)
        except ValueError:
            raise ValueError("Bedrock level must be a whole number, got {!r}".format(text))
        return self.set_bedrock_level(level)

    # ------------------------------------------------------------------
    # Rebuilding a document
    # ------------------------------------------------------------------

    def apply(self, text: str, metadata: Optional[FormatMetadata] = None) -> Document:
        """Rebuild a Document from edited text and format metadata.

        Raises:
            EncodeError: If the text is not valid SNBT or the metadata is
                         outside what the codec can write.
        """
        metadata = metadata if metadata is not None else self._value
        problems = metadata.problems()
        if problems:
            raise EncodeError("; ".join(problems))
        try:
            root = self._bridge.parse(text)
        except ParseError as exc:
            raise EncodeError(str(exc)) from exc
        return Document(root=root, format=metadata)
