"""Desktop host: filesystem handles, downloads, share commands, URLs.

WHY: Outside a browser, "a file handle" is a path, "a download" is a
file landing in the Downloads folder, and "the share sheet" is whatever
share command the platform offers (termux-share on Android). The CLI and
GUI both need these, and differ only in how they prompt the user.

HOW: PathHandle implements the FileHandle protocol over a Path; its
writable stream writes to a swap file next to the target and moves it
into place on close. PathDragItem wraps a dropped path. DesktopHost
implements the persistence and capability half of BaseHost; subclasses
supply confirm(), alert(), and pick_file().

RULES:
- In-place writes are atomic: the target is only replaced on close()
- Downloads never overwrite; conflicts get a numeric suffix (-2, -3, ...)
- The download's temporary file is released as soon as it is moved
- A non-zero exit from the share command means the user dismissed it
- URLs are fetched with httpx and never get a retained handle
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from dovetail.config import SHARE_COMMAND, load_download_dir, load_share_preference
from dovetail.core.errors import ShareCancelled
from dovetail.core.model import ByteSource
from dovetail.core.sources import BlobInput, HandleInput, SourceInput
from dovetail.host.base import BaseHost

logger = logging.getLogger(__name__)

_FETCH_TIMEOUT_S = 30.0


# ---------------------------------------------------------------------------
# Handles and drag items
# ---------------------------------------------------------------------------


class PathWritable:
    """Writable stream that commits to its target on close()."""

    def __init__(self, target: Path) -> None:
        self._target = target
        fd, temp_name = tempfile.mkstemp(
            prefix=".{}.".format(target.name), suffix=".swap", dir=str(target.parent)
        )
        self._temp = Path(temp_name)
        self._file = os.fdopen(fd, "wb")

    async def write(self, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._file.write, data)
        except BaseException:
            self.abort()
            raise

    async def close(self) -> None:
        try:
            self._file.close()
            await asyncio.to_thread(os.replace, self._temp, self._target)
        except BaseException:
            self.abort()
            raise

    def abort(self) -> None:
        if not self._file.closed:
            self._file.close()
        self._temp.unlink(missing_ok=True)


class PathHandle:
    """FileHandle over a local path."""

    def __init__(self, path: Union[Path, str]) -> None:
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    async def get_file(self) -> ByteSource:
        data = await asyncio.to_thread(self.path.read_bytes)
        return ByteSource(name=self.path.name, data=data)

    async def create_writable(self) -> PathWritable:
        return PathWritable(self.path)

    def __repr__(self) -> str:
        return "PathHandle({!r})".format(str(self.path))


class PathDragItem:
    """A dropped local file.

    ``allow_handle`` mirrors hosts whose drop payloads cannot be resolved
    to writable handles; such drops open read-only.
    """

    kind = "file"

    def __init__(self, path: Union[Path, str], allow_handle: bool = True) -> None:
        self.path = Path(path)
        self.allow_handle = allow_handle

    async def get_as_handle(self) -> Optional[PathHandle]:
        if not self.allow_handle:
            return None
        return PathHandle(self.path)

    async def get_as_blob(self) -> Optional[ByteSource]:
        if not self.path.is_file():
            return None
        data = await asyncio.to_thread(self.path.read_bytes)
        return ByteSource(name=self.path.name, data=data)


# ---------------------------------------------------------------------------
# URL and argument resolution
# ---------------------------------------------------------------------------


def is_url(value: str) -> bool:
    return urlparse(value).scheme in ("http", "https")


def _name_from_url(url: str) -> str:
    name = Path(unquote(urlparse(url).path)).name
    return name or "download.nbt"


async def fetch_url(url: str, client: Optional[httpx.AsyncClient] = None) -> ByteSource:
    """Download a document from ``url`` into a ByteSource.

    Raises:
        httpx.HTTPError: On connection failures or non-2xx responses.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=_FETCH_TIMEOUT_S, follow_redirects=True) as own:
            return await fetch_url(url, own)

    response = await client.get(url)
    response.raise_for_status()
    logger.info("Fetched %s (%d bytes)", url, len(response.content))
    return ByteSource(name=_name_from_url(url), data=response.content)


async def resolve_argument(value: str, client: Optional[httpx.AsyncClient] = None) -> SourceInput:
    """Turn a command-line argument into a tagged source input."""
    if is_url(value):
        return BlobInput(await fetch_url(value, client))
    return HandleInput(PathHandle(Path(value).expanduser()))


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------


def resolve_download_path(name: str, directory: Path) -> Path:
    """Pick a free path for ``name``, adding a numeric suffix on conflict.

    RULES:
    - First attempt: {name}
    - Conflict: {stem}-2{suffix}, {stem}-3{suffix}, ...
    """
    safe_name = Path(name).name or "download.nbt"
    base_path = directory / safe_name
    if not base_path.exists():
        return base_path

    stem = base_path.stem
    suffix = base_path.suffix
    counter = 2
    while True:
        candidate = directory / "{}-{}{}".format(stem, counter, suffix)
        if not candidate.exists():
            return candidate
        counter += 1


def _write_download(name: str, data: bytes, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=".dovetail-", suffix=".part", dir=str(directory))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        target = resolve_download_path(name, directory)
        os.replace(temp_name, target)
    finally:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
    return target


# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------


def _touch_platform() -> bool:
    """Best-effort detection of an Android/Termux session."""
    return "ANDROID_ROOT" in os.environ or "TERMUX_VERSION" in os.environ or sys.platform == "android"


class DesktopHost(BaseHost):
    """Filesystem-backed persistence and capability answers."""

    def __init__(
        self,
        download_dir: Optional[Path] = None,
        share_command: str = SHARE_COMMAND,
    ) -> None:
        self._download_dir = download_dir
        self._share_command = share_command

    @property
    def download_dir(self) -> Path:
        return self._download_dir or load_download_dir()

    async def download(self, name: str, data: bytes) -> str:
        target = await asyncio.to_thread(_write_download, name, data, self.download_dir)
        return str(target)

    def supports_share(self) -> bool:
        return shutil.which(self._share_command) is not None

    def prefers_share(self) -> bool:
        forced = load_share_preference()
        if forced is not None:
            return forced
        return _touch_platform()

    async def share(self, name: str, data: bytes) -> None:
        with tempfile.TemporaryDirectory(prefix="dovetail-share-") as temp_dir:
            path = Path(temp_dir) / (Path(name).name or "document.nbt")
            path.write_bytes(data)
            process = await asyncio.create_subprocess_exec(self._share_command, str(path))
            returncode = await process.wait()
        if returncode != 0:
            raise ShareCancelled("Share dismissed (exit status {})".format(returncode))
