"""Tests for the front controller: open/save lifecycle and gestures."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeBridge, FakeCodec, FakeDragItem, FakeHandle, FakeHost
from dovetail.config import ACCEPTED_EXTENSIONS
from dovetail.core.controller import (
    FrontController,
    KeyEvent,
    Shortcut,
    chord_for,
    match_shortcut,
)
from dovetail.core.model import ByteSource, FormatMetadata
from dovetail.core.persistence import PersistOutcome
from dovetail.core.sources import BlobInput, HandleInput


def _controller(host: FakeHost, codec=None) -> FrontController:
    return FrontController(codec or FakeCodec(), FakeBridge(), host, indent=2)


def _open(controller, source=None):
    return asyncio.run(controller.open(source))


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------


class TestOpen:
    def test_open_handle_enables_editor(self, document_bytes):
        host = FakeHost()
        controller = _controller(host)
        handle = FakeHandle("level.dat", document_bytes)
        result = _open(controller, HandleInput(handle))

        assert result.ok
        session = controller.session
        assert session.editor_enabled
        assert session.name == "level.dat"
        assert session.handle is handle
        assert session.text == '{\n  "name": "Bananrama"\n}'
        assert host.titles == ["Dovetail - level.dat"]
        assert not controller.busy

    def test_open_blob_has_no_handle(self, document_bytes):
        controller = _controller(FakeHost())
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        assert controller.session.editor_enabled
        assert controller.session.handle is None

    def test_open_seeds_format_metadata(self, document_bytes):
        codec = FakeCodec(FormatMetadata(root_name=None, endian="little", compression="gzip"))
        controller = _controller(FakeHost(), codec)
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        assert controller.session.format.root_name is None
        assert controller.store.current_value() == codec.metadata

    def test_no_input_shows_filtered_picker(self, document_bytes):
        host = FakeHost(picked=HandleInput(FakeHandle("picked.nbt", document_bytes)))
        controller = _controller(host)
        _open(controller)
        assert host.pick_calls == [tuple(ACCEPTED_EXTENSIONS)]
        assert controller.session.name == "picked.nbt"

    def test_closed_picker_is_silent(self):
        host = FakeHost(picked=None)
        controller = _controller(host)
        assert _open(controller) is None
        assert host.alerts == []
        assert not controller.editor_enabled

    def test_unavailable_drag_item_alerts(self):
        host = FakeHost()
        controller = _controller(host)
        asyncio.run(controller.handle_drop([FakeDragItem()]))
        assert len(host.alerts) == 1
        assert not controller.editor_enabled


class TestFailedOpenKeepsPreviousSession:
    def test_declined_relaxed_on_first_open_leaves_editor_disabled(self, trailing_bytes):
        host = FakeHost(answers=[False])
        controller = _controller(host)
        result = _open(controller, BlobInput(ByteSource("junk.nbt", trailing_bytes)))

        assert not result.ok
        assert not controller.editor_enabled
        assert controller.session.name == ""
        assert host.alerts == []

    def test_declined_relaxed_restores_open_document(self, document_bytes, trailing_bytes):
        host = FakeHost(answers=[False])
        controller = _controller(host)
        first = FakeHandle("first.nbt", document_bytes)
        _open(controller, HandleInput(first))
        controller.update_text('{"name": "edited"}')

        _open(controller, BlobInput(ByteSource("junk.nbt", trailing_bytes)))

        assert controller.editor_enabled
        assert controller.session.name == "first.nbt"
        assert controller.session.handle is first
        assert controller.session.text == '{"name": "edited"}'

    def test_fatal_open_alerts_without_prompt(self):
        host = FakeHost(answers=[True])
        controller = _controller(host)
        _open(controller, BlobInput(ByteSource("broken.nbt", b"BAD")))

        assert host.confirms == []
        assert len(host.alerts) == 1
        assert not controller.editor_enabled
        assert host.titles == []

    def test_editor_disabled_while_decoding(self, document_bytes):
        observed = []
        host = FakeHost()
        controller = _controller(host)
        controller.subscribe(lambda session: observed.append(session.editor_enabled))
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        assert observed == [False, True]


class TestRelaxedOpenThenSave:
    def test_trailing_bytes_dropped_from_save(self, trailing_bytes):
        host = FakeHost(answers=[True])
        codec = FakeCodec()
        controller = _controller(host, codec)
        handle = FakeHandle("junk.nbt", trailing_bytes)
        result = _open(controller, HandleInput(handle))

        assert result.relaxed
        assert controller.editor_enabled

        saved = asyncio.run(controller.save())
        assert saved.outcome is PersistOutcome.WRITTEN_IN_PLACE
        assert handle.written == [b'{"name":"Bananrama"}']
        assert b"xyz" not in handle.written[0]


# ---------------------------------------------------------------------------
# Concurrent intents
# ---------------------------------------------------------------------------


class PausingHost(FakeHost):
    """FakeHost whose confirm() waits until the test releases it."""

    def __init__(self, answer: bool) -> None:
        super().__init__()
        self.answer = answer
        self.prompted = asyncio.Event()
        self.release = asyncio.Event()

    async def confirm(self, message: str) -> bool:
        self.confirms.append(message)
        self.prompted.set()
        await self.release.wait()
        return self.answer


class TestIntentsWhilePrompting:
    def test_open_and_save_ignored_during_relaxed_prompt(self, document_bytes, trailing_bytes):
        async def scenario():
            host = PausingHost(answer=True)
            controller = _controller(host)
            await controller.open(BlobInput(ByteSource("a.nbt", document_bytes)))

            first = asyncio.ensure_future(
                controller.open(BlobInput(ByteSource("b.nbt", trailing_bytes)))
            )
            await host.prompted.wait()
            assert controller.busy

            second = await controller.open(BlobInput(ByteSource("c.nbt", document_bytes)))
            saved = await controller.save()

            host.release.set()
            result = await first
            return controller, host, second, saved, result

        controller, host, second, saved, result = asyncio.run(scenario())

        assert second is None
        assert saved is None
        assert result.relaxed
        assert controller.session.name == "b.nbt"
        assert len(host.confirms) == 1
        assert host.downloads == []
        assert not controller.busy

    def test_open_ignored_during_save_fallback_prompt(self, document_bytes):
        async def scenario():
            host = PausingHost(answer=True)
            controller = _controller(host)
            handle = FakeHandle("level.dat", document_bytes, fail_on="open")
            await controller.open(HandleInput(handle))

            pending_save = asyncio.ensure_future(controller.save())
            await host.prompted.wait()

            second = await controller.open(BlobInput(ByteSource("c.nbt", document_bytes)))
            host.release.set()
            saved = await pending_save
            return controller, host, second, saved

        controller, host, second, saved = asyncio.run(scenario())

        assert second is None
        assert saved.outcome is PersistOutcome.DOWNLOADED
        assert controller.session.name == "level.dat"
        assert host.downloads == [("level.dat", b'{"name":"Bananrama"}')]


# ---------------------------------------------------------------------------
# Editing and save
# ---------------------------------------------------------------------------


class TestSave:
    def test_save_ignored_when_disabled(self):
        host = FakeHost()
        controller = _controller(host)
        assert asyncio.run(controller.save()) is None
        assert host.downloads == []

    def test_save_uses_edited_text_and_format(self, document_bytes):
        host = FakeHost()
        codec = FakeCodec()
        controller = _controller(host, codec)
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        controller.update_text('{"name": "Other"}')
        controller.set_name_disabled(True)
        controller.set_endian("little")

        result = asyncio.run(controller.save())

        assert result.outcome is PersistOutcome.DOWNLOADED
        assert host.downloads == [("a.nbt", b'{"name":"Other"}')]
        encoded = codec.encoded[-1]
        assert encoded.root_name is None
        assert encoded.endian == "little"

    def test_disable_then_enable_name_gives_empty(self, document_bytes):
        controller = _controller(FakeHost())
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        assert controller.set_name_disabled(True).root_name is None
        assert controller.set_name_disabled(False).root_name == ""
        assert controller.session.format.root_name == ""

    def test_update_text_ignored_when_disabled(self):
        controller = _controller(FakeHost())
        controller.update_text("anything")
        assert controller.session.text == ""


# ---------------------------------------------------------------------------
# Gestures
# ---------------------------------------------------------------------------


class TestShortcuts:
    @pytest.mark.parametrize(
        "event, expected",
        [
            (KeyEvent("o", ctrl=True), Shortcut.OPEN),
            (KeyEvent("O", meta=True), Shortcut.OPEN),
            (KeyEvent("s", ctrl=True), Shortcut.SAVE),
            (KeyEvent("s", ctrl=True, shift=True), None),
            (KeyEvent("s", ctrl=True, alt=True), None),
            (KeyEvent("s"), None),
            (KeyEvent("Control", ctrl=True), None),
        ],
    )
    def test_match(self, event, expected):
        assert match_shortcut(event) is expected

    def test_chord_order_is_irrelevant(self):
        assert Shortcut.SAVE.keys == frozenset({"S", "ControlOrCommand"})
        assert chord_for(KeyEvent("s", shift=True, ctrl=True)) == "ControlOrCommand+Shift+S"

    def test_open_chord_shows_picker_and_is_consumed(self):
        host = FakeHost()
        controller = _controller(host)
        consumed = asyncio.run(controller.handle_key(KeyEvent("o", ctrl=True)))
        assert consumed
        assert len(host.pick_calls) == 1

    def test_repeat_is_consumed_but_not_dispatched(self):
        host = FakeHost()
        controller = _controller(host)
        consumed = asyncio.run(controller.handle_key(KeyEvent("o", ctrl=True, repeat=True)))
        assert consumed
        assert host.pick_calls == []

    def test_unmatched_key_passes_through(self):
        controller = _controller(FakeHost())
        assert not asyncio.run(controller.handle_key(KeyEvent("x", ctrl=True)))

    def test_save_chord_saves(self, document_bytes):
        host = FakeHost()
        controller = _controller(host)
        _open(controller, BlobInput(ByteSource("a.nbt", document_bytes)))
        assert asyncio.run(controller.handle_key(KeyEvent("s", ctrl=True)))
        assert len(host.downloads) == 1


class TestDragAndLaunch:
    def test_drag_over_is_copy(self):
        assert _controller(FakeHost()).handle_drag_over() == "copy"

    def test_drop_opens_first_file_item(self, document_bytes):
        host = FakeHost()
        controller = _controller(host)
        first = FakeHandle("first.nbt", document_bytes)
        second = FakeHandle("second.nbt", document_bytes)
        items = [
            FakeDragItem(kind="string"),
            FakeDragItem(handle=first),
            FakeDragItem(handle=second),
        ]
        assert asyncio.run(controller.handle_drop(items)) is True
        assert controller.session.name == "first.nbt"
        assert controller.session.handle is first

    def test_drop_without_files_is_ignored(self):
        host = FakeHost()
        controller = _controller(host)
        assert asyncio.run(controller.handle_drop([FakeDragItem(kind="string")])) is True
        assert host.alerts == []
        assert not controller.editor_enabled

    def test_launch_opens_first_handle(self, document_bytes):
        controller = _controller(FakeHost())
        handles = [FakeHandle("one.nbt", document_bytes), FakeHandle("two.nbt", document_bytes)]
        asyncio.run(controller.handle_launch(handles))
        assert controller.session.name == "one.nbt"
        assert controller.session.handle is handles[0]

    def test_launch_with_nothing(self):
        assert asyncio.run(_controller(FakeHost()).handle_launch([])) is None
