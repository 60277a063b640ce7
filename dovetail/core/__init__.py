"""Session core: sources, decoding, format metadata, persistence, control.

WHY: This is the only part of Dovetail with real protocol and failure
handling — everything else (the NBT codec, the GUI, the HTTP service) is
a collaborator that plugs into it.

HOW: model.py and errors.py define the shared vocabulary. sources.py
normalizes inputs, decoder.py runs the strict/relaxed protocol,
metadata.py holds the editable envelope, persistence.py saves, and
controller.py ties them into one session lifecycle.

RULES:
- Nothing in core imports tkinter, FastAPI, or nbtlib
- Host capabilities arrive through dovetail.host.base.BaseHost
"""
