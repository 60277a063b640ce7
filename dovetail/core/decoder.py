"""Decode session: strict decode with an interactive relaxed retry.

WHY: Real-world NBT files sometimes carry junk after the root tag (old
tools padding files, concatenated writes). Silently ignoring it would hide
data loss on the next save; rejecting it outright would make the file
unopenable. Structural corruption, on the other hand, must never be
masked by relaxing validation.

HOW: DecodeSession is a small state machine. It always starts with a
strict decode. A trailing-data failure moves it to OFFER_RELAXED, where
the host is asked whether to retry without strict validation. Any other
failure is FATAL: the error is reported and the run ends CANCELLED.

RULES:
- Only DecodeError.kind == "trailing_data" offers the relaxed retry
- Declining the offer ends CANCELLED silently (no alert)
- FATAL always alerts, then terminates CANCELLED
- A relaxed decode that fails is FATAL too
- Every transition is appended to ``history``
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from dovetail.codec.base import Codec
from dovetail.core.errors import DecodeError
from dovetail.core.model import ByteSource, Document
from dovetail.host.base import BaseHost

logger = logging.getLogger(__name__)


class DecodeState(str, enum.Enum):
    """States of one decode run."""

    START = "start"
    STRICT_DECODE = "strict_decode"
    OFFER_RELAXED = "offer_relaxed"
    RELAXED_DECODE = "relaxed_decode"
    DONE = "done"
    FATAL = "fatal"
    CANCELLED = "cancelled"


@dataclass
class DecodeResult:
    """Outcome of a decode run.

    RULES:
    - document is set only when state is DONE
    - relaxed is True when the document came from the relaxed retry
    - error carries the last codec error message, if any
    - fatal is True when the run passed through FATAL
    """

    state: DecodeState
    document: Optional[Document] = None
    relaxed: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
    fatal: bool = False
    history: List[DecodeState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is DecodeState.DONE


def relaxed_prompt(name: str, error: DecodeError) -> str:
    return (
        "{}\n\nEncountered extra data at the end of '{}'. Would you like to try "
        "opening it again without 'strict mode' enabled? The trailing data will "
        "be lost when re-saving your file again.".format(error, name)
    )


def fatal_message(name: str, error: Exception) -> str:
    return "Could not read '{}' as NBT data.\n\n{}".format(name, error)


class DecodeSession:
    """Drive one ByteSource through the strict/relaxed decode protocol."""

    def __init__(self, codec: Codec, host: BaseHost) -> None:
        self._codec = codec
        self._host = host
        self.state = DecodeState.START
        self.history: List[DecodeState] = [DecodeState.START]

    def _transition(self, state: DecodeState) -> None:
        logger.debug("Decode %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _result(self, **kwargs) -> DecodeResult:
        return DecodeResult(state=self.state, history=list(self.history), **kwargs)

    async def _fail(self, source: ByteSource, error: DecodeError) -> DecodeResult:
        self._transition(DecodeState.FATAL)
        logger.info("Could not decode %s: %s", source.name, error)
        await self._host.alert(fatal_message(source.name, error))
        self._transition(DecodeState.CANCELLED)
        return self._result(error=str(error), error_kind=error.kind, fatal=True)

    async def run(self, source: ByteSource) -> DecodeResult:
        """Decode ``source``, prompting for a relaxed retry when allowed.

        Returns:
            DecodeResult in state DONE (with a document) or CANCELLED.
        """
        if self.state is not DecodeState.START:
            raise RuntimeError("A DecodeSession can only run once")

        self._transition(DecodeState.STRICT_DECODE)
        try:
            document = self._codec.decode(source.data, strict=True)
        except DecodeError as exc:
            if not exc.recoverable:
                return await self._fail(source, exc)
            strict_error = exc
        else:
            self._transition(DecodeState.DONE)
            return self._result(document=document)

        self._transition(DecodeState.OFFER_RELAXED)
        accepted = await self._host.confirm(relaxed_prompt(source.name, strict_error))
        if not accepted:
            logger.info("Relaxed decode of %s declined", source.name)
            self._transition(DecodeState.CANCELLED)
            return self._result(error=str(strict_error), error_kind=strict_error.kind)

        self._transition(DecodeState.RELAXED_DECODE)
        try:
            document = self._codec.decode(source.data, strict=False)
        except DecodeError as exc:
            return await self._fail(source, exc)

        self._transition(DecodeState.DONE)
        return self._result(document=document, relaxed=True)


async def decode(source: ByteSource, codec: Codec, host: BaseHost) -> DecodeResult:
    """Run a fresh DecodeSession over ``source``."""
    return await DecodeSession(codec, host).run(source)
