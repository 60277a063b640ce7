"""SNBT text bridge backed by nbtlib's literal parser and serializer."""

from __future__ import annotations

from typing import Any

from nbtlib import parse_nbt, serialize_tag

from dovetail.codec.base import TextBridge
from dovetail.core.errors import ParseError


class SnbtBridge(TextBridge):
    """Convert root tags to and from stringified NBT."""

    def serialize(self, root: Any, *, indent: int = 2) -> str:
        return serialize_tag(root, indent=indent)

    def parse(self, text: str) -> Any:
        try:
            return parse_nbt(text)
        except ValueError as exc:
            raise ParseError(str(exc)) from exc
