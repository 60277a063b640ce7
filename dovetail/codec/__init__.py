"""Codec registry — binary codec and text bridge implementations.

WHY: The CLI, GUI, and HTTP service all need the same codec pair. A
single factory keeps them from constructing mismatched implementations.

HOW: default_codec() and default_bridge() return the nbtlib-backed
implementations. Tests pass their own Codec/TextBridge subclasses to the
controller instead.
"""

from __future__ import annotations

from dovetail.codec.base import Codec, TextBridge
from dovetail.codec.nbt import NbtCodec
from dovetail.codec.snbt import SnbtBridge


def default_codec() -> Codec:
    return NbtCodec()


def default_bridge() -> TextBridge:
    return SnbtBridge()


__all__ = ["Codec", "TextBridge", "NbtCodec", "SnbtBridge", "default_codec", "default_bridge"]
