"""Abstract host capability surface.

WHY: Where files come from and where they go depends on the platform:
file pickers, native share sheets, touch detection, secure contexts.
Collecting those capabilities behind one base class lets the session
core make its decisions (picker fallback, share vs. in-place vs.
download) without probing the platform, and lets tests script every
answer.

HOW: BaseHost is an ABC. The desktop host (host/desktop.py) implements
filesystem downloads, share commands, and platform detection; the CLI and
GUI subclass it to add their own prompts and pickers.

RULES:
- confirm() and alert() are awaited; a pending prompt blocks only the
  operation awaiting it
- pick_file() returns None when the user closes the picker
- share() raises ShareCancelled when the user dismisses the share prompt
- download() returns a description of where the bytes went
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from dovetail.core.sources import SourceInput


class BaseHost(ABC):
    """Capabilities the session core needs from its environment."""

    # -- prompts ---------------------------------------------------------

    @abstractmethod
    async def confirm(self, message: str) -> bool:
        """Ask a yes/no question; True means yes."""

    @abstractmethod
    async def alert(self, message: str) -> None:
        """Report a failure to the user."""

    # -- acquisition -----------------------------------------------------

    @abstractmethod
    async def pick_file(self, extensions: Sequence[str]) -> Optional[SourceInput]:
        """Show an open-file picker filtered to ``extensions``."""

    # -- persistence -----------------------------------------------------

    @abstractmethod
    async def download(self, name: str, data: bytes) -> str:
        """Save ``data`` under ``name`` without a handle."""

    @abstractmethod
    async def share(self, name: str, data: bytes) -> None:
        """Hand ``data`` to the platform share sheet."""

    # -- capability queries ----------------------------------------------

    @abstractmethod
    def supports_share(self) -> bool:
        """Whether share() can be called at all."""

    @abstractmethod
    def prefers_share(self) -> bool:
        """Whether this is a touch/mobile context where sharing is the norm."""

    def is_secure_context(self) -> bool:
        return True

    # -- presentation ----------------------------------------------------

    def set_title(self, title: str) -> None:
        """Reflect the session title; hosts without a title bar ignore it."""
