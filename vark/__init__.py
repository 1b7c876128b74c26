"""Vark: a document whose only storage is its own shareable locator.

WHY: Vark keeps the whole document (text plus render mode) inside a
compact, versioned payload that lives in the link itself, so there is no
server-side storage to run. Dictation plugs third-party speech-to-text
services into the same document through one provider contract.

HOW: Two subsystems. ``vark.core`` + ``vark.sync`` turn live edits into a
gzip/base64 payload under a size budget and coordinate commits with the
navigation history. ``vark.providers`` + ``vark.storage`` + ``vark.dictation``
normalize speech vendors behind a transcribe/validate/format-list contract
with three-state credential validation.

RULES:
- The codec never raises: corrupt payloads decode to the empty document
- Commits always read the latest document state, never a captured copy
- Provider failures surface as typed errors; internal failures degrade to defaults
"""

__version__ = "0.1.0"
