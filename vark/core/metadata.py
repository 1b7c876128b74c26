"""Page title and description derived from document text.

WHY: A shared link should preview well: the browser tab and link cards
show the first line of the note rather than a wall of base64. The
consumer refreshes these after every successful commit.

HOW: Strip common markdown punctuation, collapse whitespace, truncate.

RULES:
- Title uses the first line only; empty -> APP_NAME
- Description uses the first three lines; empty -> DEFAULT_DESCRIPTION
- Truncated values end with "..."
"""

from __future__ import annotations

import re

from vark.config import APP_NAME, DEFAULT_DESCRIPTION, DESCRIPTION_LENGTH, TITLE_PREVIEW_LENGTH

_MARKDOWN_CHARS = re.compile(r"[#*_`~\[\]]")
_WHITESPACE = re.compile(r"\s+")


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def document_title(text: str) -> str:
    first_line = text.split("\n", 1)[0].strip()
    clean = _MARKDOWN_CHARS.sub("", first_line).strip()
    if not clean:
        return APP_NAME
    return "{} | {}".format(APP_NAME, _truncate(clean, TITLE_PREVIEW_LENGTH))


def document_description(text: str) -> str:
    lines = " ".join(text.split("\n")[:3]).strip()
    clean = _WHITESPACE.sub(" ", _MARKDOWN_CHARS.sub("", lines)).strip()
    if not clean:
        return DEFAULT_DESCRIPTION
    return _truncate(clean, DESCRIPTION_LENGTH)
