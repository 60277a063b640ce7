"""Tests for the GUI's key translation helpers (no window is created)."""

from __future__ import annotations

import sys

import pytest

pytest.importorskip("tkinter")

from dovetail.core.controller import Shortcut, match_shortcut  # noqa: E402
from dovetail.gui import (  # noqa: E402
    SHORTCUT_TAG,
    KeyRepeatTracker,
    filetypes_for,
    key_event_from_tk,
    shortcut_bindtags,
)

_CONTROL = 0x0004
_SHIFT = 0x0001


class TestKeyTranslation:
    def test_control_o_is_open(self):
        event = key_event_from_tk("o", _CONTROL)
        assert match_shortcut(event) is Shortcut.OPEN

    def test_control_shift_s_is_not_save(self):
        event = key_event_from_tk("S", _CONTROL | _SHIFT)
        assert match_shortcut(event) is None

    def test_repeat_flag_is_carried(self):
        assert key_event_from_tk("s", _CONTROL, repeat=True).repeat

    def test_modifier_keysyms_are_normalized(self):
        assert key_event_from_tk("Control_L", _CONTROL).key == "Control"

    @pytest.mark.skipif(sys.platform != "darwin", reason="Command maps to Mod1 on macOS")
    def test_command_s_is_save_on_macos(self):
        assert match_shortcut(key_event_from_tk("s", 0x0008)) is Shortcut.SAVE


def test_filetypes_for():
    assert filetypes_for([".nbt", ".dat"]) == [("NBT files", "*.nbt *.dat"), ("All files", "*")]


class TestShortcutBindtags:
    def test_shortcut_tag_runs_before_text_class_bindings(self):
        tags = shortcut_bindtags((".!frame.!text", "Text", ".", "all"))
        assert tags == (SHORTCUT_TAG, ".!frame.!text", "Text", ".", "all")

    def test_applying_twice_keeps_one_tag(self):
        tags = shortcut_bindtags(shortcut_bindtags((".!text", "Text", ".", "all")))
        assert tags.count(SHORTCUT_TAG) == 1
        assert tags[0] == SHORTCUT_TAG


class TestKeyRepeatTracker:
    def test_fresh_press_after_release(self):
        keys = KeyRepeatTracker()
        assert not keys.press("o", 100)
        keys.release("o", 150)
        assert not keys.press("o", 400)

    def test_press_without_release_is_repeat(self):
        keys = KeyRepeatTracker()
        keys.press("o", 100)
        assert keys.press("o", 130)

    def test_x11_release_press_pair_is_repeat(self):
        keys = KeyRepeatTracker()
        keys.press("s", 100)
        keys.release("s", 130)
        assert keys.press("s", 130)

    def test_reset_forgets_release_lost_to_a_dialog(self):
        keys = KeyRepeatTracker()
        keys.press("o", 100)
        # the release went to the native file dialog
        keys.reset()
        assert not keys.press("o", 900)
