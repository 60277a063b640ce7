"""Error taxonomy for the Dovetail session core.

WHY: Each failure class has a different recovery policy — trailing data
is offered a relaxed retry, other decode failures are fatal, encode
failures abort the save before any channel is tried, in-place write
failures are offered a manual download, and user cancellation is always
silent. Typed exceptions let each boundary pick the right policy without
string matching.

RULES:
- Codec and host layers raise; the core resolves at the boundary
- DecodeError.kind is "trailing_data" only for extra bytes after the root
- ShareCancelled is a user decision, never reported as an error
"""

from __future__ import annotations

TRAILING_DATA = "trailing_data"
MALFORMED = "malformed"
TRUNCATED = "truncated"


class DecodeError(Exception):
    """Raised by a codec when bytes cannot be decoded as a document.

    Attributes:
        kind: Failure category ("trailing_data", "truncated", "malformed").
        message: Human-readable description.
    """

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return self.kind == TRAILING_DATA


class TrailingDataError(DecodeError):
    """Raised in strict mode when bytes remain after the root tag ends."""

    def __init__(self, remaining: int) -> None:
        self.remaining = remaining
        super().__init__(
            TRAILING_DATA,
            "Encountered unexpected end of document, {} unread bytes remaining".format(remaining),
        )


class ParseError(ValueError):
    """Raised by a text bridge when edited text is not valid SNBT."""


class EncodeError(ValueError):
    """Raised when a document or its metadata cannot be encoded.

    Covers malformed edited text (wrapping ParseError) and metadata the
    codec rejects, such as an out-of-range Bedrock level.
    """


class PersistenceChannelError(Exception):
    """Raised when an in-place write through a retained handle fails."""


class ShareCancelled(Exception):
    """Raised by a host when the user dismisses the native share prompt."""


class SourceUnavailableError(Exception):
    """Raised when a drag item yields neither a handle nor a blob."""
