"""Host implementations: the capability surface the session core calls.

BaseHost declares the prompts, pickers, and persistence channels; the
desktop host backs them with the filesystem and a share command.
"""

from dovetail.host.base import BaseHost
from dovetail.host.desktop import DesktopHost, PathDragItem, PathHandle

__all__ = ["BaseHost", "DesktopHost", "PathDragItem", "PathHandle"]
