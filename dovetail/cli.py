"""Command-line interface for Dovetail.

WHY: Not every NBT edit needs a window. Converting a level.dat to SNBT,
fixing a value in a text editor, and writing it back is a common
scripting workflow, and the HTTP service needs a launcher too. The CLI
exposes the same session core the GUI uses, so strict decoding, the
relaxed retry, and the persistence fallbacks behave identically.

HOW: argparse subcommands. ``decode`` opens a path or URL through the
FrontController and writes SNBT plus a JSON format sidecar. ``encode``
reads SNBT and a sidecar, applies flag overrides through the
FormatMetadataStore, and persists through the PersistenceDispatcher
(in-place to -o when given, else the download directory). ``serve`` runs
the FastAPI app. ConsoleHost answers prompts on the terminal.

RULES:
- Status output goes to stderr; SNBT goes to stdout unless -o is given
- --relaxed (alias --yes) accepts the relaxed-retry prompt up front
- Without a terminal, prompts are answered "no"
- Exit status: 0 success, 1 failure or cancelled Open/Save, 130 on Ctrl-C
- Python 3.9 compatible: no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
import jsonschema

from dovetail import __version__
from dovetail.codec import default_bridge, default_codec
from dovetail.config import ACCEPTED_EXTENSIONS, LOG_LEVEL, SERVER_HOST, SERVER_PORT, SNBT_INDENT
from dovetail.core.controller import FrontController
from dovetail.core.metadata import FormatMetadataStore, from_dict, to_dict
from dovetail.core.model import COMPRESSIONS, ENDIANS, FormatMetadata, Session
from dovetail.core.persistence import PersistenceDispatcher, PersistOutcome
from dovetail.core.sources import HandleInput, SourceInput
from dovetail.host.desktop import DesktopHost, PathHandle, resolve_argument

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Terminal host
# ---------------------------------------------------------------------------


class ConsoleHost(DesktopHost):
    """DesktopHost that prompts on stdin and reports on stderr.

    Args:
        assume_yes: Answer every confirm() with this value instead of
                    asking. None means ask when a terminal is attached.
        share: Force sharing on or off; None defers to configuration.
    """

    def __init__(
        self,
        assume_yes: Optional[bool] = None,
        share: Optional[bool] = None,
        download_dir: Optional[Path] = None,
    ) -> None:
        super().__init__(download_dir=download_dir)
        self._assume_yes = assume_yes
        self._share = share

    async def _ask(self, prompt: str) -> Optional[str]:
        if not sys.stdin.isatty():
            return None
        try:
            return await asyncio.to_thread(input, prompt)
        except EOFError:
            return None

    async def confirm(self, message: str) -> bool:
        _status(message)
        if self._assume_yes is not None:
            _status("[{}]".format("yes" if self._assume_yes else "no"))
            return self._assume_yes
        answer = await self._ask("[y/N] ")
        return (answer or "").strip().lower() in ("y", "yes")

    async def alert(self, message: str) -> None:
        _status("Error: {}".format(message))

    async def pick_file(self, extensions: Sequence[str]) -> Optional[SourceInput]:
        answer = await self._ask("File to open ({}): ".format(", ".join(extensions)))
        if not answer or not answer.strip():
            return None
        return HandleInput(PathHandle(Path(answer.strip()).expanduser()))

    def prefers_share(self) -> bool:
        if self._share is not None:
            return self._share
        return super().prefers_share()


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _load_format(path: Optional[str]) -> FormatMetadata:
    if path is None:
        return FormatMetadata()
    with open(path, "r", encoding="utf-8") as handle:
        return from_dict(json.load(handle))


async def run_decode(args: argparse.Namespace, host: Optional[ConsoleHost] = None) -> int:
    """Open INPUT through the controller and write its SNBT."""
    host = host or ConsoleHost(assume_yes=True if args.relaxed else None)
    controller = FrontController(default_codec(), default_bridge(), host, indent=args.indent)

    source = await resolve_argument(args.input)
    result = await controller.open(source)
    if result is None or not result.ok:
        _status("Open cancelled.")
        return 1

    session = controller.session
    if args.output:
        Path(args.output).write_text(session.text + "\n", encoding="utf-8")
        _status("Wrote SNBT: {}".format(args.output))
    else:
        sys.stdout.write(session.text + "\n")
        sys.stdout.flush()

    if args.format_out:
        with open(args.format_out, "w", encoding="utf-8") as handle:
            json.dump(to_dict(session.format), handle, indent=2)
            handle.write("\n")
        _status("Wrote format: {}".format(args.format_out))

    if result.relaxed:
        _status("Note: trailing data was dropped and will not be saved.")
    return 0


def _apply_overrides(store: FormatMetadataStore, args: argparse.Namespace) -> FormatMetadata:
    if args.root_name is False:
        store.set_name_disabled(True)
    elif args.root_name is True and store.name_disabled:
        store.set_name_disabled(False)
    if args.name is not None:
        store.set_root_name(args.name)
    if args.endian is not None:
        store.set_endian(args.endian)
    if args.compression is not None:
        store.set_compression(args.compression)
    if args.bedrock_level is not None:
        store.set_bedrock_level_text(args.bedrock_level)
    return store.current_value()


async def run_encode(args: argparse.Namespace, host: Optional[ConsoleHost] = None) -> int:
    """Encode SNBT and persist it through the dispatcher."""
    host = host or ConsoleHost(share=args.share)
    text = _read_text(args.snbt)
    store = FormatMetadataStore(default_bridge(), initial=_load_format(args.format))
    metadata = _apply_overrides(store, args)

    if args.output:
        output = Path(args.output).expanduser()
        name = output.name
        handle = PathHandle(output)
    else:
        stem = "document" if args.snbt == "-" else Path(args.snbt).stem
        name = stem + ".nbt"
        handle = None

    session = Session(name=name, handle=handle, text=text, format=metadata, editor_enabled=True)
    dispatcher = PersistenceDispatcher(default_codec(), store, host)
    result = await dispatcher.persist(session)

    if result.outcome is PersistOutcome.WRITTEN_IN_PLACE:
        _status("Saved: {}".format(args.output))
    elif result.outcome is PersistOutcome.DOWNLOADED:
        _status("Saved: {}".format(result.location))
    elif result.outcome is PersistOutcome.SHARED:
        _status("Shared: {}".format(name))
    else:
        _status("Save {}.".format(result.outcome.value))
    return 0 if result.saved else 1


def run_serve(args: argparse.Namespace) -> int:
    from dovetail.server.app import run_api

    run_api(host=args.host, port=args.port)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() lets tests inspect the
    parser without touching the filesystem.

    RULES:
    - decode: INPUT (path or http(s) URL), -o, --format-out, --relaxed/--yes
    - encode: SNBT (path or "-"), --format, overrides, -o, --share/--no-share
    - serve: --host, --port
    """
    parser = argparse.ArgumentParser(
        prog="dovetail",
        description="Open, edit, and save Minecraft NBT files as SNBT text.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level (default: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    decode_parser = subparsers.add_parser(
        "decode",
        help="Decode an NBT file to SNBT.",
        description="Decode an NBT file ({}) to SNBT.".format(" ".join(ACCEPTED_EXTENSIONS)),
    )
    decode_parser.add_argument("input", help="Path or http(s) URL of the NBT file.")
    decode_parser.add_argument("-o", "--output", default=None, help="SNBT output path (default: stdout).")
    decode_parser.add_argument(
        "--format-out",
        default=None,
        help="Write the detected format metadata to this JSON file.",
    )
    decode_parser.add_argument(
        "--relaxed",
        "--yes",
        action="store_true",
        help="Retry without strict mode when the file has trailing data.",
    )
    decode_parser.add_argument(
        "--indent",
        type=int,
        default=SNBT_INDENT,
        help="SNBT indent width (default: %(default)s).",
    )

    encode_parser = subparsers.add_parser("encode", help="Encode SNBT into an NBT file.")
    encode_parser.add_argument("snbt", help='SNBT input path, or "-" for stdin.')
    encode_parser.add_argument("--format", default=None, help="Format metadata JSON (from decode --format-out).")
    encode_parser.add_argument("--name", default=None, help="Root tag name.")
    encode_parser.add_argument(
        "--root-name",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write a root name (--no-root-name omits it entirely).",
    )
    encode_parser.add_argument("--endian", choices=ENDIANS, default=None)
    encode_parser.add_argument(
        "--compression",
        choices=["none"] + [c for c in COMPRESSIONS if c is not None],
        default=None,
    )
    encode_parser.add_argument("--bedrock-level", default=None, help='Bedrock level header version ("" clears it).')
    encode_parser.add_argument(
        "--share",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Hand the result to the share command instead of writing it.",
    )
    encode_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write to this path (default: the download directory).",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default=SERVER_HOST)
    serve_parser.add_argument("--port", type=int, default=SERVER_PORT)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``dovetail`` command.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Always exits through sys.exit with the subcommand's status
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "serve":
            code = run_serve(args)
        elif args.command == "decode":
            code = asyncio.run(run_decode(args))
        else:
            code = asyncio.run(run_encode(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (OSError, ValueError, httpx.HTTPError, jsonschema.ValidationError) as e:
        logger.debug("Command failed", exc_info=True)
        print("Error: {}".format(getattr(e, "message", None) or e), file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
