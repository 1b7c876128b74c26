"""Locator payload codec: document state <-> compact transport-safe string.

WHY: The document is persisted only as a string inside a share link, so
it must be small (compressed), link-safe (URL-safe base64), versioned
(mode travels with the text), and backward compatible (links created
before modes existed hold gzip'd raw text). A bad link must open as an
empty document, never as a crash.

HOW: encode serializes {"content", "mode"} as compact JSON, UTF-8 encodes
it, compresses it through the injected Compressor, and base64url-encodes
the bytes without padding. decode reverses the pipeline, accepting both
base64 alphabets with or without padding, and falls back to treating the
decompressed text as a legacy plain-text document when it is not a JSON
record with a "content" key.

RULES:
- encode("", EDIT) == "" (the sentinel for the default document)
- Any other state always encodes, so a non-default mode is never lost
- encode returns "" instead of raising when the pipeline fails
- decode("") and decode(<anything corrupt>) return ContentState.empty()
- Gzip output is deterministic (mtime=0): equal states give equal payloads
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import logging
import zlib
from typing import Optional, Protocol, Union

from vark.core.models import ContentState, Mode

logger = logging.getLogger(__name__)


class CompressionError(ValueError):
    """Raised by a Compressor when input bytes cannot be (de)compressed."""


class Compressor(Protocol):
    """Byte-level compression capability injected into the codec."""

    def compress(self, data: bytes) -> bytes: ...

    def decompress(self, data: bytes) -> bytes: ...


class GzipCompressor:
    """Gzip framing, matching the browser CompressionStream('gzip') output."""

    def compress(self, data: bytes) -> bytes:
        # Fixed header timestamp so identical documents encode identically
        return gzip.compress(data, mtime=0)

    def decompress(self, data: bytes) -> bytes:
        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            raise CompressionError(str(exc)) from exc


class ContentCodec:
    """Stateless encoder/decoder for locator payloads.

    The compressor is the only collaborator; the default is gzip. Tests and
    alternative hosts can inject any object with compress/decompress.
    """

    def __init__(self, compressor: Optional[Compressor] = None) -> None:
        self._compressor = compressor or GzipCompressor()

    def encode(self, text: str, mode: Union[Mode, str] = Mode.EDIT) -> str:
        """Encode a document into a locator payload.

        Returns the empty sentinel for the default document, and also when
        the pipeline fails (for example text holding lone surrogates).
        """
        mode = Mode.parse(mode)
        if not text and mode is Mode.EDIT:
            return ""
        try:
            record = json.dumps(
                {"content": text, "mode": mode.value},
                ensure_ascii=False,
                separators=(",", ":"),
            )
            compressed = self._compressor.compress(record.encode("utf-8"))
        except (UnicodeEncodeError, CompressionError, TypeError) as exc:
            logger.warning("Could not encode document (%d chars): %s", len(text), exc)
            return ""
        return base64.urlsafe_b64encode(compressed).decode("ascii").rstrip("=")

    def encode_state(self, state: ContentState) -> str:
        return self.encode(state.text, state.mode)

    def decode(self, payload: str) -> ContentState:
        """Decode a locator payload. Never raises."""
        if not payload:
            return ContentState.empty()
        try:
            compressed = _transport_decode(payload)
            text = self._compressor.decompress(compressed).decode("utf-8")
        except (binascii.Error, ValueError) as exc:
            # CompressionError and UnicodeDecodeError are both ValueErrors
            logger.debug("Discarding corrupt payload (%d chars): %s", len(payload), exc)
            return ContentState.empty()
        return _parse_record(text)


def _transport_decode(payload: str) -> bytes:
    """Base64-decode either alphabet, tolerating missing padding."""
    data = "".join(payload.split())
    data += "=" * (-len(data) % 4)
    # altchars maps "-_" onto "+/", so standard-alphabet input also validates
    return base64.b64decode(data, altchars=b"-_", validate=True)


def _parse_record(text: str) -> ContentState:
    """Interpret decompressed text as a JSON record, else as legacy plain text."""
    try:
        record = json.loads(text)
    except (ValueError, RecursionError):
        return ContentState(text, Mode.EDIT)

    if isinstance(record, dict) and "content" in record:
        content = record.get("content")
        return ContentState(
            content if isinstance(content, str) else "",
            Mode.parse(record.get("mode")),
        )
    # Valid JSON that is not a record (e.g. a legacy note that reads "42")
    return ContentState(text, Mode.EDIT)


_DEFAULT_CODEC = ContentCodec()


def encode_content(text: str, mode: Union[Mode, str] = Mode.EDIT) -> str:
    """Encode with the default gzip codec."""
    return _DEFAULT_CODEC.encode(text, mode)


def decode_content(payload: str) -> ContentState:
    """Decode with the default gzip codec."""
    return _DEFAULT_CODEC.decode(payload)
