"""Configuration constants, accepted extensions, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. The accepted file extensions, download location,
share preference, and SNBT indent are plain data — not buried in logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with sensible defaults.
Helpers parse the few values that need interpretation.

RULES:
- ACCEPTED_EXTENSIONS only filters the file picker; decode never checks it
- DOVETAIL_PREFER_SHARE is "auto", "true" or "false"
- The download directory defaults to ~/Downloads and is created on demand
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

APP_TITLE = "Dovetail"

# ---------------------------------------------------------------------------
# Accepted document extensions
# ---------------------------------------------------------------------------

ACCEPTED_EXTENSIONS: Tuple[str, ...] = (
    ".nbt", ".dat", ".dat_old", ".mcstructure",
    ".litematic", ".schem", ".schematic",
)
"""File extensions offered by the open-file picker (lowercase, with dot)."""

# ---------------------------------------------------------------------------
# Editor / persistence defaults
# ---------------------------------------------------------------------------

SNBT_INDENT = int(os.getenv("DOVETAIL_INDENT", "2"))
DOWNLOAD_DIR = os.getenv("DOVETAIL_DOWNLOAD_DIR", "")
PREFER_SHARE = os.getenv("DOVETAIL_PREFER_SHARE", "auto").strip().lower()
SHARE_COMMAND = os.getenv("DOVETAIL_SHARE_COMMAND", "termux-share")
LOG_LEVEL = os.getenv("DOVETAIL_LOG_LEVEL", "WARNING").upper()

SERVER_HOST = os.getenv("DOVETAIL_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("DOVETAIL_PORT", "8000"))


def load_download_dir() -> Path:
    """Resolve the directory that receives manual downloads.

    WHY: Without a retained handle the only way to save is a "download",
    which on the desktop means a file landing in the Downloads folder.

    HOW: Reads DOVETAIL_DOWNLOAD_DIR at call time (so tests can
    monkeypatch the environment), falling back to ~/Downloads.

    RULES:
    - Always returns an absolute path
    - Does not create the directory; the download channel does that
    """
    configured = os.getenv("DOVETAIL_DOWNLOAD_DIR", DOWNLOAD_DIR).strip()
    if configured:
        return Path(configured).expanduser().resolve()
    return (Path.home() / "Downloads").resolve()


def load_share_preference() -> Optional[bool]:
    """Return the forced share preference, or None for auto-detection."""
    value = os.getenv("DOVETAIL_PREFER_SHARE", PREFER_SHARE).strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return None
