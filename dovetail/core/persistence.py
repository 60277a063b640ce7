"""Persistence dispatcher: encode once, then share, rewrite, or download.

WHY: Where a document can be saved depends on the platform — touch
devices expect the share sheet, a retained handle allows rewriting the
original file in place, and everything else falls back to a manual
download. In-place writes can fail (permissions revoked, file moved,
disk full), and the user must decide whether to fall back rather than
having a file silently appear in Downloads.

HOW: persist() encodes the session exactly once (text → Document →
bytes). Any encode failure aborts before a channel is touched. Then the
decision order is: share (touch + secure context), in-place rewrite
(retained handle), manual download. A failed rewrite asks the host whether
to download instead.

RULES:
- Encode failures alert "Could not save ..." and try no channel
- A dismissed share prompt is a silent CANCELLED; other share errors are
  logged and FAILED
- A declined fallback ends CANCELLED with no download
- No exception escapes persist()
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from dovetail.codec.base import Codec
from dovetail.core.errors import EncodeError, PersistenceChannelError, ShareCancelled
from dovetail.core.metadata import FormatMetadataStore
from dovetail.core.model import Session
from dovetail.core.sources import FileHandle
from dovetail.host.base import BaseHost

logger = logging.getLogger(__name__)


class PersistOutcome(str, enum.Enum):
    """How a save attempt ended."""

    SHARED = "shared"
    WRITTEN_IN_PLACE = "written_in_place"
    DOWNLOADED = "downloaded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class PersistResult:
    outcome: PersistOutcome
    location: Optional[str] = None
    error: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.outcome in (
            PersistOutcome.SHARED,
            PersistOutcome.WRITTEN_IN_PLACE,
            PersistOutcome.DOWNLOADED,
        )


def save_failed_message(name: str, error: Exception) -> str:
    return "Could not save '{}' as NBT data.\n\n{}".format(name, error)


def fallback_prompt(name: str) -> str:
    return (
        "'{}' could not be saved in-place. Would you like to try saving it "
        "manually? It may go directly to your Downloads folder.".format(name)
    )


async def write_in_place(handle: FileHandle, payload: bytes) -> None:
    """Write the full payload through a fresh writable stream.

    Raises:
        PersistenceChannelError: If opening, writing, or closing fails.
    """
    try:
        writable = await handle.create_writable()
        await writable.write(payload)
        await writable.close()
    except Exception as exc:
        raise PersistenceChannelError(str(exc) or type(exc).__name__) from exc


class PersistenceDispatcher:
    """Choose and drive the persistence channel for a session."""

    def __init__(self, codec: Codec, store: FormatMetadataStore, host: BaseHost) -> None:
        self._codec = codec
        self._store = store
        self._host = host

    def encode(self, session: Session) -> bytes:
        """Encode the session's text and format into bytes.

        Raises:
            EncodeError: On malformed text or unencodable metadata.
        """
        document = self._store.apply(session.text, session.format)
        try:
            return self._codec.encode(document)
        except EncodeError:
            raise
        except (ValueError, TypeError, OverflowError) as exc:
            raise EncodeError(str(exc)) from exc

    def _should_share(self) -> bool:
        return (
            self._host.prefers_share()
            and self._host.is_secure_context()
            and self._host.supports_share()
        )

    async def _share(self, name: str, payload: bytes) -> PersistResult:
        try:
            await self._host.share(name, payload)
        except ShareCancelled:
            logger.debug("Share of %s dismissed", name)
            return PersistResult(PersistOutcome.CANCELLED)
        except Exception as exc:
            logger.warning("Sharing %s failed: %s", name, exc)
            return PersistResult(PersistOutcome.FAILED, error=str(exc))
        return PersistResult(PersistOutcome.SHARED)

    async def _download(self, name: str, payload: bytes) -> PersistResult:
        try:
            location = await self._host.download(name, payload)
        except Exception as exc:
            logger.exception("Download of %s failed", name)
            await self._host.alert(save_failed_message(name, exc))
            return PersistResult(PersistOutcome.FAILED, error=str(exc))
        logger.info("Downloaded %s to %s", name, location)
        return PersistResult(PersistOutcome.DOWNLOADED, location=location)

    async def persist(self, session: Session) -> PersistResult:
        """Save ``session`` through the best available channel."""
        name = session.name
        try:
            payload = self.encode(session)
        except EncodeError as exc:
            logger.info("Encoding %s failed: %s", name, exc)
            await self._host.alert(save_failed_message(name, exc))
            return PersistResult(PersistOutcome.FAILED, error=str(exc))

        if self._should_share():
            return await self._share(name, payload)

        if session.handle is not None:
            try:
                await write_in_place(session.handle, payload)
            except PersistenceChannelError as exc:
                logger.warning("In-place save of %s failed: %s", name, exc)
                if not await self._host.confirm(fallback_prompt(name)):
                    return PersistResult(PersistOutcome.CANCELLED, error=str(exc))
            else:
                logger.info("Saved %s in place", name)
                return PersistResult(PersistOutcome.WRITTEN_IN_PLACE, location=name)

        return await self._download(name, payload)
