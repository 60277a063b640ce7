"""Front controller: shortcuts, drag/drop, and the session lifecycle.

WHY: Open and Save can be triggered from buttons, keyboard chords, drops,
and launch arguments. All of them must go through one place that owns the
editor-enabled flag and the active Session, so a decode or save can never
race another one and a failed Open never leaves the editor half-updated.

HOW: FrontController wires the Source Normalizer, Decode Session, Format
Metadata Store, and Persistence Dispatcher together. open() disables the
editor, resolves the input, decodes, and swaps in a new Session only on
DONE; otherwise the previous Session is put back untouched. Key events are
reduced to an unordered chord and matched against the Shortcut table.

RULES:
- The controller is the only mutator of Session.editor_enabled and handle
- While an Open or Save is in flight, further intents are ignored
- Open with no input shows the picker; a closed picker is silent
- Matched chords are consumed; auto-repeats of them never dispatch
- Drag-over always answers "copy"; drop always prevents the default
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from dovetail.codec.base import Codec, TextBridge
from dovetail.config import ACCEPTED_EXTENSIONS, APP_TITLE, SNBT_INDENT
from dovetail.core.decoder import DecodeResult, decode
from dovetail.core.errors import SourceUnavailableError
from dovetail.core.metadata import FormatMetadataStore
from dovetail.core.model import FormatMetadata, Session
from dovetail.core.persistence import PersistenceDispatcher, PersistResult
from dovetail.core.sources import (
    DragItem,
    DragItemInput,
    FileHandle,
    HandleInput,
    SourceInput,
    normalize,
)
from dovetail.host.base import BaseHost

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]


# ---------------------------------------------------------------------------
# Keyboard shortcuts
# ---------------------------------------------------------------------------


class Shortcut(str, enum.Enum):
    OPEN = "ControlOrCommand+O"
    SAVE = "ControlOrCommand+S"

    @property
    def keys(self) -> FrozenSet[str]:
        return frozenset(self.value.split("+"))


@dataclass(frozen=True)
class KeyEvent:
    """A host-neutral key-down event."""

    key: str
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    shift: bool = False
    repeat: bool = False


def chord_keys(event: KeyEvent) -> Tuple[str, ...]:
    """Reduce a key-down event to its chord, modifiers first."""
    keys: dict = {}
    if event.ctrl or event.meta:
        keys["ControlOrCommand"] = None
    if event.alt:
        keys["Alt"] = None
    if event.shift:
        keys["Shift"] = None
    if event.key not in ("Control", "Meta"):
        keys[event.key.upper() if len(event.key) == 1 else event.key] = None
    return tuple(keys)


def chord_for(event: KeyEvent) -> str:
    return "+".join(chord_keys(event))


def match_shortcut(event: KeyEvent) -> Optional[Shortcut]:
    pressed = frozenset(chord_keys(event))
    for shortcut in Shortcut:
        if shortcut.keys == pressed:
            return shortcut
    return None


def title_for(session: Session) -> str:
    if session.name:
        return "{} - {}".format(APP_TITLE, session.name)
    return APP_TITLE


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class FrontController:
    """Owns the active Session and turns intents into core operations."""

    def __init__(
        self,
        codec: Codec,
        bridge: TextBridge,
        host: BaseHost,
        indent: int = SNBT_INDENT,
        extensions: Sequence[str] = ACCEPTED_EXTENSIONS,
    ) -> None:
        self._codec = codec
        self._bridge = bridge
        self._host = host
        self._indent = indent
        self._extensions = tuple(extensions)
        self.store = FormatMetadataStore(bridge)
        self.dispatcher = PersistenceDispatcher(codec, self.store, host)
        self.session = Session()
        self._busy = False
        self._listeners: List[SessionListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def editor_enabled(self) -> bool:
        return self.session.editor_enabled

    @property
    def title(self) -> str:
        return title_for(self.session)

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _set_session(self, session: Session) -> None:
        self.session = session
        for listener in list(self._listeners):
            listener(session)

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    async def open(self, source: Optional[SourceInput] = None) -> Optional[DecodeResult]:
        """Open a document, replacing the Session only on success.

        Args:
            source: A tagged source input, or None to show the picker.

        Returns:
            The DecodeResult, or None when nothing was decoded (busy,
            picker closed, or the source yielded no file).
        """
        if self._busy:
            logger.debug("Open ignored; another operation is in flight")
            return None

        self._busy = True
        previous = self.session
        committed = False
        self._set_session(replace(previous, editor_enabled=False))
        try:
            if source is None:
                source = await self._host.pick_file(self._extensions)
                if source is None:
                    return None

            try:
                normalized = await normalize(source)
            except SourceUnavailableError as exc:
                await self._host.alert(str(exc))
                return None
            except OSError as exc:
                logger.info("Could not read source: %s", exc)
                await self._host.alert("Could not open the file.\n\n{}".format(exc))
                return None

            result = await decode(normalized.byte_source, self._codec, self._host)
            if not result.ok:
                return result

            document = result.document
            text = self._bridge.serialize(document.root, indent=self._indent)
            metadata = self.store.seed(document)
            session = Session(
                name=normalized.byte_source.name,
                handle=normalized.retained_handle,
                text=text,
                format=metadata,
                editor_enabled=True,
            )
            committed = True
            self._set_session(session)
            self._host.set_title(self.title)
            logger.info(
                "Opened %s (%s endian, compression=%s%s)",
                session.name,
                metadata.endian,
                metadata.compression,
                ", relaxed" if result.relaxed else "",
            )
            return result
        finally:
            if not committed:
                self._set_session(previous)
            self._busy = False

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_text(self, text: str) -> None:
        if not self.session.editor_enabled:
            return
        self.session.text = text

    def _sync_format(self, metadata: FormatMetadata) -> FormatMetadata:
        self.session.format = metadata
        return metadata

    def set_root_name(self, name: str) -> FormatMetadata:
        return self._sync_format(self.store.set_root_name(name))

    def set_name_disabled(self, disabled: bool) -> FormatMetadata:
        return self._sync_format(self.store.set_name_disabled(disabled))

    def set_endian(self, endian: str) -> FormatMetadata:
        return self._sync_format(self.store.set_endian(endian))

    def set_compression(self, compression: Optional[str]) -> FormatMetadata:
        return self._sync_format(self.store.set_compression(compression))

    def set_bedrock_level(self, level: Optional[int]) -> FormatMetadata:
        return self._sync_format(self.store.set_bedrock_level(level))

    def set_bedrock_level_text(self, text: str) -> FormatMetadata:
        return self._sync_format(self.store.set_bedrock_level_text(text))

    def load_format(self, metadata: FormatMetadata) -> FormatMetadata:
        self.store.load(metadata)
        return self._sync_format(metadata)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self) -> Optional[PersistResult]:
        """Persist the current Session; ignored when the editor is disabled."""
        if self._busy:
            logger.debug("Save ignored; another operation is in flight")
            return None
        if not self.session.editor_enabled:
            logger.debug("Save ignored; no document is open")
            return None

        self._busy = True
        try:
            return await self.dispatcher.persist(self.session)
        finally:
            self._busy = False

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    async def handle_key(self, event: KeyEvent) -> bool:
        """Dispatch a key-down event.

        Returns:
            True when the event matched a shortcut and its default action
            should be prevented.
        """
        shortcut = match_shortcut(event)
        if shortcut is None:
            return False
        if event.repeat:
            return True

        if shortcut is Shortcut.OPEN:
            await self.open()
        elif shortcut is Shortcut.SAVE:
            await self.save()
        return True

    def handle_drag_over(self) -> str:
        return "copy"

    async def handle_drop(self, items: Iterable[DragItem]) -> bool:
        """Open the first file item of a drop.

        Returns:
            Always True: the host's default drop navigation is prevented.
        """
        files = [item for item in items if item.kind == "file"]
        if files:
            await self.open(DragItemInput(files[0]))
        return True

    async def handle_launch(self, handles: Sequence[FileHandle]) -> Optional[DecodeResult]:
        """Open the first file the application was launched with."""
        if not handles:
            return None
        return await self.open(HandleInput(handles[0]))
