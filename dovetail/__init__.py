"""Dovetail — NBT document editor session.

WHY: NBT files (Minecraft worlds, structures, schematics) arrive from many
places — file pickers, drag/drop, launch arguments, URLs — and in several
envelope variants (compression, endianness, Bedrock level header, named or
unnamed root). Users need to open them, edit them as SNBT text, tweak the
envelope, and write them back without losing data or getting stuck on
slightly malformed input.

HOW: Four stages behind one controller — normalize the source into bytes,
decode with a strict-then-relaxed recovery protocol, project the envelope
into editable format metadata, and persist through the best available
channel (share, in-place rewrite, manual download).

RULES:
- The SNBT text is the source of truth while editing
- The binary codec is an external collaborator (nbtlib behind an adapter)
- Every user decision is an awaited prompt, never a side effect
- A failed or cancelled Open never leaves the session half-updated
"""

__version__ = "0.1.0"
