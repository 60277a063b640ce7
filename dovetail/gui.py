"""Tkinter desktop editor for Dovetail.

WHY: Most people editing a level.dat or a structure file want a window:
open the file, change a value in the SNBT text, press Ctrl+S. The GUI is
a thin shell over the FrontController, so strict decoding, the relaxed
retry prompt, and the save fallbacks behave exactly as in the CLI.

HOW: EditorApp builds one window: Open / Save / Format Options buttons
above an SNBT text editor. The controller and all of its async work run
on an asyncio loop in a background thread. When the core needs the user
(confirm, alert, file picker), TkHost posts a call to a thread-safe queue
that the main thread drains with .after(), and awaits the result through
a concurrent future. Session changes reach the widgets the same way.

RULES:
- Python 3.9 compatible: no slots=True, no match/case, no X | Y unions
- tkinter widgets are ONLY touched from the main thread
- The UI queue is the ONLY path from the loop thread to the widgets
- Ctrl/Cmd+O and Ctrl/Cmd+S are consumed ("break") and go through
  FrontController.handle_key; auto-repeats never dispatch
- Editor text is pushed to the controller right before each save
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import queue
import sys
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, ttk
from typing import Any, Callable, Coroutine, Dict, List, Optional, Sequence, Tuple

from dovetail.codec import default_bridge, default_codec
from dovetail.config import APP_TITLE, LOG_LEVEL
from dovetail.core.controller import FrontController, KeyEvent, match_shortcut
from dovetail.core.model import ENDIANS, FormatMetadata, Session
from dovetail.core.sources import HandleInput, SourceInput
from dovetail.host.desktop import DesktopHost, PathHandle, is_url, resolve_argument

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_WINDOW_MIN_WIDTH = 640
_WINDOW_MIN_HEIGHT = 480
_PAD = 8
_POLL_MS = 50

_CONTROL_MASK = 0x0004
_SHIFT_MASK = 0x0001
_MOD1_MASK = 0x0008
_MOD2_MASK = 0x0010

# (radio value, label); "none" maps to no compression
_COMPRESSION_OPTIONS: List[Tuple[str, str]] = [
    ("none", "None"),
    ("gzip", "gzip"),
    ("deflate", "Deflate (zlib)"),
    ("deflate-raw", "Deflate (raw)"),
]


def key_event_from_tk(keysym: str, state: int, repeat: bool = False) -> KeyEvent:
    """Translate a Tk key press into a host-neutral KeyEvent.

    On macOS, Tk reports Command as Mod1 and Option as Mod2; elsewhere
    Mod1 is Alt.
    """
    if sys.platform == "darwin":
        meta = bool(state & _MOD1_MASK)
        alt = bool(state & _MOD2_MASK)
    else:
        meta = False
        alt = bool(state & _MOD1_MASK)
    key = keysym
    if key.startswith("Control_"):
        key = "Control"
    elif key.startswith(("Meta_", "Super_")):
        key = "Meta"
    return KeyEvent(
        key=key,
        ctrl=bool(state & _CONTROL_MASK),
        meta=meta,
        alt=alt,
        shift=bool(state & _SHIFT_MASK),
        repeat=repeat,
    )


SHORTCUT_TAG = "DovetailShortcuts"


def shortcut_bindtags(tags: Sequence[str]) -> Tuple[str, ...]:
    """Put the shortcut tag ahead of a widget's own and class bindings.

    Tk runs bindtags in order, so a class binding such as Text's
    <Control-o> (insert newline) would otherwise fire before "break".
    """
    return (SHORTCUT_TAG,) + tuple(tag for tag in tags if tag != SHORTCUT_TAG)


class KeyRepeatTracker:
    """Tells held-key auto-repeat apart from fresh presses.

    X11 auto-repeat arrives as release/press pairs with the same
    timestamp; other platforms send presses without a release.
    """

    def __init__(self) -> None:
        self._held: Dict[str, bool] = {}
        self._released_at: Dict[str, int] = {}

    def press(self, keysym: str, time: int) -> bool:
        """Record a press and return True when it is a repeat."""
        repeat = self._held.get(keysym, False) or self._released_at.get(keysym) == time
        self._held[keysym] = True
        return repeat

    def release(self, keysym: str, time: int) -> None:
        self._held.pop(keysym, None)
        self._released_at[keysym] = time

    def reset(self) -> None:
        # releases delivered to another window (a native dialog) never reach us
        self._held.clear()
        self._released_at.clear()


def filetypes_for(extensions: Sequence[str]) -> List[Tuple[str, str]]:
    return [
        ("NBT files", " ".join("*{}".format(ext) for ext in extensions)),
        ("All files", "*"),
    ]


# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------


class TkHost(DesktopHost):
    """DesktopHost whose prompts run on the Tk main thread."""

    def __init__(self, app: "EditorApp") -> None:
        super().__init__()
        self._app = app

    async def _on_ui(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.wrap_future(self._app.call_in_ui(fn, *args, **kwargs))

    async def confirm(self, message: str) -> bool:
        return bool(await self._on_ui(messagebox.askyesno, APP_TITLE, message))

    async def alert(self, message: str) -> None:
        await self._on_ui(messagebox.showerror, APP_TITLE, message)

    async def pick_file(self, extensions: Sequence[str]) -> Optional[SourceInput]:
        path = await self._on_ui(filedialog.askopenfilename, filetypes=filetypes_for(extensions))
        if not path:
            return None
        return HandleInput(PathHandle(path))

    def set_title(self, title: str) -> None:
        self._app.call_in_ui(self._app.root.title, title)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class EditorApp:
    """Main application window.

    Owns the background event loop, the UI call queue, and the widgets.
    Everything that touches the session goes through ``self.controller``
    on the loop thread.
    """

    def __init__(self, root: tk.Tk) -> None:
        self.root = root
        self.root.title(APP_TITLE)
        self.root.minsize(_WINDOW_MIN_WIDTH, _WINDOW_MIN_HEIGHT)

        # Thread communication
        self._ui_queue: queue.Queue = queue.Queue()
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever, name="dovetail-loop", daemon=True
        )
        self._loop_thread.start()

        self.host = TkHost(self)
        self.controller = FrontController(default_codec(), default_bridge(), self.host)
        self.controller.subscribe(self._on_session)

        self._keys = KeyRepeatTracker()

        self._format_dialog: Optional[FormatDialog] = None

        self._build_ui()
        self._render_session(self.controller.session)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.after(_POLL_MS, self._poll_ui)

    # ------------------------------------------------------------------
    # Thread plumbing
    # ------------------------------------------------------------------

    def call_in_ui(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> concurrent.futures.Future:
        """Schedule ``fn`` on the main thread; safe from any thread."""
        future: concurrent.futures.Future = concurrent.futures.Future()
        self._ui_queue.put((fn, args, kwargs, future))
        return future

    def _poll_ui(self) -> None:
        try:
            while True:
                fn, args, kwargs, future = self._ui_queue.get_nowait()
                if not future.set_running_or_notify_cancel():
                    continue
                try:
                    future.set_result(fn(*args, **kwargs))
                except Exception as exc:
                    future.set_exception(exc)
        except queue.Empty:
            pass
        self.root.after(_POLL_MS, self._poll_ui)

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """Run ``coro`` on the background loop."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(self._report_failure)
        return future

    def _report_failure(self, future: concurrent.futures.Future) -> None:
        if future.cancelled() or future.exception() is None:
            return
        exc = future.exception()
        logger.error("Background operation failed", exc_info=exc)
        self.call_in_ui(messagebox.showerror, APP_TITLE, str(exc))

    def _on_close(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self.root.destroy()

    # ------------------------------------------------------------------
    # UI Construction
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        toolbar = ttk.Frame(self.root, padding=_PAD)
        toolbar.pack(fill=tk.X)

        self._open_btn = ttk.Button(toolbar, text="Open", command=self._open)
        self._open_btn.pack(side=tk.LEFT)
        self._save_btn = ttk.Button(toolbar, text="Save", command=self._save)
        self._save_btn.pack(side=tk.LEFT, padx=(_PAD, 0))
        self._format_btn = ttk.Button(toolbar, text="Format Options", command=self._show_format_dialog)
        self._format_btn.pack(side=tk.LEFT, padx=(_PAD, 0))

        editor_frame = ttk.Frame(self.root, padding=(_PAD, 0, _PAD, _PAD))
        editor_frame.pack(fill=tk.BOTH, expand=True)
        self._editor = tk.Text(editor_frame, wrap=tk.NONE, undo=True, font=("TkFixedFont", 11))
        y_scroll = ttk.Scrollbar(editor_frame, orient=tk.VERTICAL, command=self._editor.yview)
        x_scroll = ttk.Scrollbar(editor_frame, orient=tk.HORIZONTAL, command=self._editor.xview)
        self._editor.configure(yscrollcommand=y_scroll.set, xscrollcommand=x_scroll.set)
        y_scroll.pack(side=tk.RIGHT, fill=tk.Y)
        x_scroll.pack(side=tk.BOTTOM, fill=tk.X)
        self._editor.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)

        # the editor gets its own leading tag; every other widget goes through "all"
        self._editor.bindtags(shortcut_bindtags(self._editor.bindtags()))
        self.root.bind_class(SHORTCUT_TAG, "<KeyPress>", self._on_key_press)
        self.root.bind_class(SHORTCUT_TAG, "<KeyRelease>", self._on_key_release)
        self.root.bind_all("<KeyPress>", self._on_window_key_press)
        self.root.bind_all("<KeyRelease>", self._on_window_key_release)
        self.root.bind("<FocusIn>", self._on_focus_in)

    # ------------------------------------------------------------------
    # Session rendering
    # ------------------------------------------------------------------

    def _on_session(self, session: Session) -> None:
        # Called on the loop thread.
        self.call_in_ui(self._render_session, session)

    def _render_session(self, session: Session) -> None:
        enabled = session.editor_enabled
        if enabled and self._editor.get("1.0", "end-1c") != session.text:
            self._editor.configure(state=tk.NORMAL)
            self._editor.delete("1.0", tk.END)
            self._editor.insert("1.0", session.text)
            self._editor.edit_reset()
        self._editor.configure(state=tk.NORMAL if enabled else tk.DISABLED)
        button_state = tk.NORMAL if enabled else tk.DISABLED
        self._save_btn.configure(state=button_state)
        self._format_btn.configure(state=button_state)
        if not enabled and self._format_dialog is not None:
            self._format_dialog.close()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def _open(self) -> None:
        self.submit(self._open_picker(self._editor.get("1.0", "end-1c")))

    async def _open_picker(self, text: str) -> None:
        self.controller.update_text(text)
        await self.controller.open()

    def _save(self) -> None:
        self.submit(self._save_text(self._editor.get("1.0", "end-1c")))

    async def _save_text(self, text: str) -> None:
        self.controller.update_text(text)
        await self.controller.save()

    def _on_key_press(self, event: tk.Event) -> Optional[str]:
        repeat = self._keys.press(event.keysym, event.time)
        key_event = key_event_from_tk(event.keysym, event.state, repeat=repeat)
        if match_shortcut(key_event) is None:
            return None
        self.submit(self._dispatch_key(key_event, self._editor.get("1.0", "end-1c")))
        return "break"

    def _on_key_release(self, event: tk.Event) -> None:
        self._keys.release(event.keysym, event.time)

    def _on_window_key_press(self, event: tk.Event) -> Optional[str]:
        if event.widget is self._editor:
            return None
        return self._on_key_press(event)

    def _on_window_key_release(self, event: tk.Event) -> None:
        if event.widget is not self._editor:
            self._on_key_release(event)

    def _on_focus_in(self, event: tk.Event) -> None:
        self._keys.reset()

    async def _dispatch_key(self, key_event: KeyEvent, text: str) -> None:
        self.controller.update_text(text)
        await self.controller.handle_key(key_event)

    def open_launch_files(self, files: Sequence[str]) -> None:
        """Open the first file the editor was launched with."""
        if files:
            self.submit(self._open_launch(files))

    async def _open_launch(self, files: Sequence[str]) -> None:
        first = files[0]
        if is_url(first):
            await self.controller.open(await resolve_argument(first))
        else:
            await self.controller.handle_launch([PathHandle(path) for path in files])

    # ------------------------------------------------------------------
    # Format options
    # ------------------------------------------------------------------

    def _show_format_dialog(self) -> None:
        if not self.controller.editor_enabled:
            return
        if self._format_dialog is not None:
            self._format_dialog.lift()
            return
        self._format_dialog = FormatDialog(self, self.controller.session.format)

    def _format_dialog_closed(self) -> None:
        self._format_dialog = None

    def apply_format(self, metadata: FormatMetadata) -> None:
        self.submit(self._load_format(metadata))

    async def _load_format(self, metadata: FormatMetadata) -> None:
        self.controller.load_format(metadata)


class FormatDialog:
    """Format Options window: root name, endian, compression, Bedrock level."""

    def __init__(self, app: EditorApp, metadata: FormatMetadata) -> None:
        self._app = app
        self._window = tk.Toplevel(app.root)
        self._window.title("Format Options")
        self._window.transient(app.root)
        self._window.resizable(False, False)
        self._window.protocol("WM_DELETE_WINDOW", self.close)

        self._name_var = tk.StringVar(value=metadata.root_name or "")
        self._name_disabled_var = tk.BooleanVar(value=metadata.root_name is None)
        self._endian_var = tk.StringVar(value=metadata.endian)
        self._compression_var = tk.StringVar(value=metadata.compression or "none")
        self._bedrock_var = tk.StringVar(
            value="" if metadata.bedrock_level is None else str(metadata.bedrock_level)
        )
        self._build()

    def _build(self) -> None:
        frame = ttk.Frame(self._window, padding=_PAD * 2)
        frame.pack(fill=tk.BOTH, expand=True)

        ttk.Label(frame, text="Root name:").grid(row=0, column=0, sticky=tk.W)
        self._name_entry = ttk.Entry(frame, textvariable=self._name_var, width=30)
        self._name_entry.grid(row=0, column=1, sticky=tk.EW, pady=2)
        ttk.Checkbutton(
            frame,
            text="Disable root name",
            variable=self._name_disabled_var,
            command=self._toggle_name,
        ).grid(row=1, column=1, sticky=tk.W)
        self._sync_name_state()

        ttk.Label(frame, text="Endian:").grid(row=2, column=0, sticky=tk.W, pady=(_PAD, 0))
        endian_row = ttk.Frame(frame)
        endian_row.grid(row=2, column=1, sticky=tk.W, pady=(_PAD, 0))
        for endian in ENDIANS:
            ttk.Radiobutton(
                endian_row, text=endian.capitalize(), value=endian, variable=self._endian_var
            ).pack(side=tk.LEFT, padx=(0, _PAD))

        ttk.Label(frame, text="Compression:").grid(row=3, column=0, sticky=tk.NW, pady=(_PAD, 0))
        compression_col = ttk.Frame(frame)
        compression_col.grid(row=3, column=1, sticky=tk.W, pady=(_PAD, 0))
        for value, label in _COMPRESSION_OPTIONS:
            ttk.Radiobutton(
                compression_col, text=label, value=value, variable=self._compression_var
            ).pack(anchor=tk.W)

        ttk.Label(frame, text="Bedrock level:").grid(row=4, column=0, sticky=tk.W, pady=(_PAD, 0))
        ttk.Entry(frame, textvariable=self._bedrock_var, width=12).grid(
            row=4, column=1, sticky=tk.W, pady=(_PAD, 0)
        )

        buttons = ttk.Frame(frame)
        buttons.grid(row=5, column=0, columnspan=2, sticky=tk.E, pady=(_PAD * 2, 0))
        ttk.Button(buttons, text="Apply", command=self._apply).pack(side=tk.LEFT)
        ttk.Button(buttons, text="Close", command=self.close).pack(side=tk.LEFT, padx=(_PAD, 0))

    def _toggle_name(self) -> None:
        # Re-enabling the name starts from an empty string.
        if not self._name_disabled_var.get():
            self._name_var.set("")
        self._sync_name_state()

    def _sync_name_state(self) -> None:
        state = tk.DISABLED if self._name_disabled_var.get() else tk.NORMAL
        self._name_entry.configure(state=state)

    def _collect(self) -> FormatMetadata:
        """Read the widgets into FormatMetadata.

        Raises:
            ValueError: If the Bedrock level is not a whole number or any
                        field is out of range.
        """
        level_text = self._bedrock_var.get().strip()
        try:
            level = int(level_text, 10) if level_text else None
        except ValueError:
            raise ValueError("Bedrock level must be a whole number, got {!r}".format(level_text))
        compression = self._compression_var.get()
        metadata = FormatMetadata(
            root_name=None if self._name_disabled_var.get() else self._name_var.get(),
            endian=self._endian_var.get(),
            compression=None if compression == "none" else compression,
            bedrock_level=level,
        )
        problems = metadata.problems()
        if problems:
            raise ValueError("; ".join(problems))
        return metadata

    def _apply(self) -> None:
        try:
            metadata = self._collect()
        except ValueError as e:
            messagebox.showerror("Format Options", str(e), parent=self._window)
            return
        self._app.apply_format(metadata)
        self.close()

    def lift(self) -> None:
        self._window.lift()

    def close(self) -> None:
        self._window.destroy()
        self._app._format_dialog_closed()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(files: Optional[Sequence[str]] = None) -> None:
    """Launch the Tkinter editor.

    RULES:
    - This function blocks until the window is closed
    - Must be called from the main thread
    - ``files`` are launch arguments; the first one is opened on start
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    root = tk.Tk()
    app = EditorApp(root)
    app.open_launch_files(list(files or []))
    root.mainloop()


if __name__ == "__main__":
    main(sys.argv[1:])
