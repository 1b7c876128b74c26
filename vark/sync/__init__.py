"""Synchronization between live edits and the persisted locator.

WHY: Every keystroke changes the document, but writing every keystroke
into the navigation history would flood it with entries. The sync layer
coalesces edits (debounce), saves at natural pauses (immediate triggers),
and yields to back/forward navigation.

HOW: session.py holds the single current document, events.py the
observer registration for editor events, history.py the navigation
history collaborator, controller.py the commit state machine.
"""

from vark.sync.controller import CommitResult, SyncController, SyncState
from vark.sync.events import EditorEvent, EventBus, Subscription
from vark.sync.history import NavigationHistory, fragment_url, payload_from_url
from vark.sync.session import DocumentSession

__all__ = [
    "CommitResult",
    "DocumentSession",
    "EditorEvent",
    "EventBus",
    "NavigationHistory",
    "Subscription",
    "SyncController",
    "SyncState",
    "fragment_url",
    "payload_from_url",
]
