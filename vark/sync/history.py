"""Navigation history: where committed payloads live.

WHY: In the browser the locator is the URL fragment and each commit is a
history entry, so back/forward walks through earlier versions of the
document. The controller only needs "what is persisted now" and "persist
this"; NavigationHistory provides that plus back/forward for hosts and
tests that have no browser.

HOW: A list of payloads with a cursor. push() drops any forward entries,
like pushState. back()/forward() move the cursor and announce the new
payload as an EXTERNAL_NAVIGATION event when a bus is attached.

RULES:
- The first entry is the payload the session was opened with
- push() never deduplicates; the controller skips no-op pushes itself
"""

from __future__ import annotations

from typing import List, Optional, Protocol
from urllib.parse import urldefrag

from vark.config import LOCATOR_DELIMITER
from vark.sync.events import EditorEvent, EventBus


class Locator(Protocol):
    """What the sync controller needs from its persistence target."""

    def current(self) -> str: ...

    def push(self, payload: str) -> None: ...


class NavigationHistory:
    def __init__(self, initial: str = "", bus: Optional[EventBus] = None) -> None:
        self._entries: List[str] = [initial]
        self._index = 0
        self._bus = bus

    def current(self) -> str:
        return self._entries[self._index]

    def push(self, payload: str) -> None:
        del self._entries[self._index + 1:]
        self._entries.append(payload)
        self._index += 1

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def can_go_back(self) -> bool:
        return self._index > 0

    @property
    def can_go_forward(self) -> bool:
        return self._index < len(self._entries) - 1

    def back(self) -> Optional[str]:
        if not self.can_go_back:
            return None
        self._index -= 1
        return self._announce()

    def forward(self) -> Optional[str]:
        if not self.can_go_forward:
            return None
        self._index += 1
        return self._announce()

    def _announce(self) -> str:
        payload = self.current()
        if self._bus is not None:
            self._bus.emit(EditorEvent.EXTERNAL_NAVIGATION, payload)
        return payload


def fragment_url(base_url: str, payload: str) -> str:
    """Attach a payload to a share link, replacing any existing fragment."""
    base = urldefrag(base_url).url
    if not payload:
        return base
    return base + LOCATOR_DELIMITER + payload


def payload_from_url(value: str) -> str:
    """Extract the payload from a share link, or return a bare payload as-is."""
    value = value.strip()
    if LOCATOR_DELIMITER in value:
        return value.split(LOCATOR_DELIMITER, 1)[1]
    if "://" in value:
        return ""
    return value
