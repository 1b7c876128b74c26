"""Observer registration for editor events.

WHY: The controller reacts to events produced by whatever hosts the
editor (focus loss, pointer activity, recording start, mode toggles,
back/forward navigation). Subscriptions are explicit objects tied to the
editing session's lifetime instead of global listeners, so closing a
session reliably stops all reactions.

HOW: EventBus keeps listeners per event. subscribe() returns a
Subscription handle whose unsubscribe() is idempotent. emit() calls
listeners in registration order with the event and an optional payload.

RULES:
- emit() iterates over a snapshot, so listeners may unsubscribe mid-emit
- Listener exceptions propagate to the emitter
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from typing import Any, Dict, List, Optional, Union


class EditorEvent(str, enum.Enum):
    FOCUS_LOST = "focus_lost"
    IDLE_POINTER_ACTIVITY = "idle_pointer_activity"
    RECORDING_STARTED = "recording_started"
    MODE_CHANGED = "mode_changed"
    EXTERNAL_NAVIGATION = "external_navigation"


Listener = Callable[[EditorEvent, Any], None]


class Subscription:
    def __init__(self, bus: EventBus, events: List[EditorEvent], listener: Listener) -> None:
        self._bus = bus
        self._events = events
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        for event in self._events:
            self._bus._remove(event, self._listener)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.unsubscribe()


class EventBus:
    def __init__(self) -> None:
        self._listeners: Dict[EditorEvent, List[Listener]] = {}

    def subscribe(
        self,
        events: Union[EditorEvent, Iterable[EditorEvent]],
        listener: Listener,
    ) -> Subscription:
        if isinstance(events, EditorEvent):
            events = [events]
        events = list(events)
        for event in events:
            self._listeners.setdefault(event, []).append(listener)
        return Subscription(self, events, listener)

    def emit(self, event: EditorEvent, payload: Optional[Any] = None) -> None:
        for listener in list(self._listeners.get(event, [])):
            listener(event, payload)

    def listener_count(self, event: EditorEvent) -> int:
        return len(self._listeners.get(event, []))

    def _remove(self, event: EditorEvent, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
