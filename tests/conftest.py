"""Shared fakes and fixtures for the dovetail test suite.

WHY: The session core (decode session, metadata store, persistence
dispatcher, controller) is independent of the NBT codec and of any real
platform. Tests drive it with a JSON-backed fake codec, a scripted host,
and in-memory file handles so every branch can be reached
deterministically.

HOW: FakeCodec decodes UTF-8 JSON. Bytes after the first JSON value are
"trailing data"; payloads starting with BAD are malformed. FakeHost
answers confirm() from a queue of scripted answers and records every
alert, download, share, and title. FakeHandle keeps written bytes in
memory and can be told to fail.

RULES:
- Hello-world NBT bytes match the classic test file exactly
- Fakes never touch the filesystem; tmp_path is used where real files matter
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence, Tuple

import pytest

from dovetail.codec.base import Codec, TextBridge
from dovetail.core.controller import FrontController
from dovetail.core.errors import MALFORMED, DecodeError, ParseError, TrailingDataError
from dovetail.core.model import ByteSource, Document, FormatMetadata
from dovetail.core.sources import SourceInput
from dovetail.host.base import BaseHost


# ---------------------------------------------------------------------------
# Sample NBT payloads
# ---------------------------------------------------------------------------

# Big-endian compound named "hello world" with name: "Bananrama"
HELLO_WORLD = (
    b"\x0a\x00\x0bhello world"
    b"\x08\x00\x04name\x00\x09Bananrama"
    b"\x00"
)

# Same document, little endian
HELLO_WORLD_LE = (
    b"\x0a\x0b\x00hello world"
    b"\x08\x04\x00name\x09\x00Bananrama"
    b"\x00"
)

# Same compound with no root name, big endian
HELLO_WORLD_UNNAMED = (
    b"\x0a"
    b"\x08\x00\x04name\x00\x09Bananrama"
    b"\x00"
)


# ---------------------------------------------------------------------------
# Fake codec and bridge
# ---------------------------------------------------------------------------


class FakeCodec(Codec):
    """JSON codec with the same trailing-data semantics as the NBT codec."""

    def __init__(self, metadata: Optional[FormatMetadata] = None) -> None:
        self.metadata = metadata or FormatMetadata()
        self.decode_calls: List[bool] = []
        self.encoded: List[Document] = []

    def decode(self, data: bytes, *, strict: bool = True) -> Document:
        self.decode_calls.append(strict)
        if data.startswith(b"BAD"):
            raise DecodeError(MALFORMED, "Invalid header")
        try:
            text = data.decode("utf-8")
            root, end = json.JSONDecoder().raw_decode(text)
        except ValueError as exc:
            raise DecodeError(MALFORMED, str(exc))
        remaining = len(data) - len(text[:end].encode("utf-8"))
        if remaining and strict:
            raise TrailingDataError(remaining)
        return Document(root=root, format=self.metadata)

    def encode(self, document: Document) -> bytes:
        self.encoded.append(document)
        return json.dumps(document.root, sort_keys=True, separators=(",", ":")).encode("utf-8")


class FakeBridge(TextBridge):
    def serialize(self, root: Any, *, indent: int = 2) -> str:
        return json.dumps(root, indent=indent, sort_keys=True)

    def parse(self, text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ParseError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Fake host
# ---------------------------------------------------------------------------


class FakeHost(BaseHost):
    """Scripted host that records every interaction."""

    def __init__(
        self,
        answers: Sequence[bool] = (),
        picked: Optional[SourceInput] = None,
        share_supported: bool = False,
        share_preferred: bool = False,
        secure: bool = True,
        share_error: Optional[Exception] = None,
        download_error: Optional[Exception] = None,
    ) -> None:
        self.answers = list(answers)
        self.picked = picked
        self.share_supported = share_supported
        self.share_preferred = share_preferred
        self.secure = secure
        self.share_error = share_error
        self.download_error = download_error

        self.confirms: List[str] = []
        self.alerts: List[str] = []
        self.pick_calls: List[Tuple[str, ...]] = []
        self.downloads: List[Tuple[str, bytes]] = []
        self.shared: List[Tuple[str, bytes]] = []
        self.titles: List[str] = []

    async def confirm(self, message: str) -> bool:
        self.confirms.append(message)
        return self.answers.pop(0) if self.answers else False

    async def alert(self, message: str) -> None:
        self.alerts.append(message)

    async def pick_file(self, extensions: Sequence[str]) -> Optional[SourceInput]:
        self.pick_calls.append(tuple(extensions))
        return self.picked

    async def download(self, name: str, data: bytes) -> str:
        if self.download_error is not None:
            raise self.download_error
        self.downloads.append((name, data))
        return "/downloads/{}".format(name)

    async def share(self, name: str, data: bytes) -> None:
        if self.share_error is not None:
            raise self.share_error
        self.shared.append((name, data))

    def supports_share(self) -> bool:
        return self.share_supported

    def prefers_share(self) -> bool:
        return self.share_preferred

    def is_secure_context(self) -> bool:
        return self.secure

    def set_title(self, title: str) -> None:
        self.titles.append(title)


# ---------------------------------------------------------------------------
# Fake handles and drag items
# ---------------------------------------------------------------------------


class FakeWritable:
    def __init__(self, handle: "FakeHandle") -> None:
        self._handle = handle
        self._chunks: List[bytes] = []

    async def write(self, data: bytes) -> None:
        if self._handle.fail_on == "write":
            raise OSError("disk full")
        self._chunks.append(data)

    async def close(self) -> None:
        if self._handle.fail_on == "close":
            raise OSError("close failed")
        self._handle.written.append(b"".join(self._chunks))


class FakeHandle:
    """In-memory FileHandle.

    ``fail_on`` is None, "open", "write" or "close".
    """

    def __init__(self, name: str, data: bytes, fail_on: Optional[str] = None) -> None:
        self.name = name
        self.data = data
        self.fail_on = fail_on
        self.written: List[bytes] = []

    async def get_file(self) -> ByteSource:
        return ByteSource(name=self.name, data=self.data)

    async def create_writable(self) -> FakeWritable:
        if self.fail_on == "open":
            raise PermissionError("permission denied")
        return FakeWritable(self)


class FakeDragItem:
    def __init__(
        self,
        kind: str = "file",
        handle: Optional[FakeHandle] = None,
        blob: Optional[ByteSource] = None,
        handle_unsupported: bool = False,
    ) -> None:
        self.kind = kind
        self._handle = handle
        self._blob = blob
        self._handle_unsupported = handle_unsupported

    async def get_as_handle(self) -> Optional[FakeHandle]:
        if self._handle_unsupported:
            raise NotImplementedError
        return self._handle

    async def get_as_blob(self) -> Optional[ByteSource]:
        return self._blob


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def controller(codec, bridge, host):
    return FrontController(codec, bridge, host, indent=2)


@pytest.fixture
def document_bytes():
    """A well-formed fake-codec payload."""
    return b'{"name": "Bananrama"}'


@pytest.fixture
def trailing_bytes(document_bytes):
    """The same payload with three trailing bytes."""
    return document_bytes + b"xyz"

