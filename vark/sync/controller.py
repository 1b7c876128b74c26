"""Commit state machine between the document session and the locator.

WHY: Edits must end up in the locator, but not on every keystroke, not
when the payload would exceed the locator budget, and never from a stale
copy of the document. The controller owns that decision.

HOW:
1. Every mutation goes through DocumentSession and marks the controller
   DIRTY_PENDING, restarting a single debounce timer (loop.call_later).
2. When the timer fires, or an immediate trigger arrives (focus lost,
   idle pointer activity, recording started, mode change), commit():
   - reads session.current() at execution time
   - encodes it and measures the payload against the budget
   - over budget: publishes usage, stays DIRTY_PENDING, no timer re-armed
   - otherwise pushes to the locator (skipped if identical) and goes CLEAN
3. External navigation cancels the timer and replaces the session state
   with the decoded locator, without pushing.

RULES:
- At most one debounce timer is armed at any time
- Usage is recomputed on every mutation, not only on commit
- An encode failure for a non-empty document never overwrites the locator
- Mutations and commits must run on the event loop thread
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, List, Optional

from vark.config import MAX_LOCATOR_LENGTH, SAVE_DELAY_S
from vark.core.budget import measure
from vark.core.codec import ContentCodec
from vark.core.models import ContentState, Mode, UsageMetric
from vark.sync.events import EditorEvent, EventBus, Subscription
from vark.sync.history import Locator
from vark.sync.session import AppendText, CycleMode, DocumentSession, Mutation, SetMode, SetText

logger = logging.getLogger(__name__)

_IMMEDIATE_EVENTS = (
    EditorEvent.FOCUS_LOST,
    EditorEvent.IDLE_POINTER_ACTIVITY,
    EditorEvent.RECORDING_STARTED,
    EditorEvent.MODE_CHANGED,
    EditorEvent.EXTERNAL_NAVIGATION,
)


class SyncState(str, enum.Enum):
    CLEAN = "clean"
    DIRTY_PENDING = "dirty-pending"
    DIRTY_COMMITTING = "dirty-committing"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of one commit attempt."""

    state: ContentState
    payload: str
    usage: UsageMetric
    persisted: bool
    changed: bool
    reason: str = "debounce"

    @property
    def over_budget(self) -> bool:
        return self.usage.over_budget


class SyncController:
    """Debounced, budget-aware persistence of one editing session."""

    def __init__(
        self,
        locator: Locator,
        codec: Optional[ContentCodec] = None,
        bus: Optional[EventBus] = None,
        save_delay_s: float = SAVE_DELAY_S,
        max_length: int = MAX_LOCATOR_LENGTH,
        on_usage: Optional[Callable[[UsageMetric], None]] = None,
        on_commit: Optional[Callable[[CommitResult], None]] = None,
        on_state_change: Optional[Callable[[SyncState, SyncState], None]] = None,
    ) -> None:
        self._locator = locator
        self._codec = codec or ContentCodec()
        self._save_delay_s = save_delay_s
        self._max_length = max_length
        self._on_usage = on_usage
        self._on_commit = on_commit
        self._on_state_change = on_state_change

        initial = self._codec.decode(locator.current())
        self._session = DocumentSession(initial)
        self._state = SyncState.CLEAN
        self._timer: Optional[asyncio.TimerHandle] = None
        self._usage = measure(locator.current(), self._max_length)
        self._subscriptions: List[Subscription] = []
        self._pointer_armed = True

        if bus is not None:
            self.attach(bus)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session(self) -> DocumentSession:
        return self._session

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def usage(self) -> UsageMetric:
        return self._usage

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def current(self) -> ContentState:
        return self._session.current()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def edit(self, text: str) -> ContentState:
        return self._mutate(SetText(text))

    def append_transcript(self, text: str) -> ContentState:
        """Merge dictated text into the document as it is now."""
        return self._mutate(AppendText(text.strip()))

    def set_mode(self, mode: Mode) -> Optional[CommitResult]:
        self._mutate(SetMode(mode))
        return self.commit_now(reason=EditorEvent.MODE_CHANGED.value)

    def cycle_mode(self) -> Optional[CommitResult]:
        self._mutate(CycleMode())
        return self.commit_now(reason=EditorEvent.MODE_CHANGED.value)

    def _mutate(self, mutation: Mutation) -> ContentState:
        state = self._session.apply(mutation)
        self._refresh_usage(state)
        self._arm_timer()
        if self._state is not SyncState.DIRTY_COMMITTING:
            self._transition(SyncState.DIRTY_PENDING)
        return state

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    def commit_now(self, reason: str = "explicit") -> Optional[CommitResult]:
        """Commit immediately if there is anything unsaved.

        Returns None when the session is clean or a commit is already
        running.
        """
        if self._state is not SyncState.DIRTY_PENDING:
            return None
        return self._commit(reason)

    def _on_timer(self) -> None:
        self._timer = None
        if self._state is SyncState.DIRTY_PENDING:
            self._commit("debounce")

    def _commit(self, reason: str) -> CommitResult:
        self._cancel_timer()
        self._transition(SyncState.DIRTY_COMMITTING)

        state = self._session.current()
        payload = self._codec.encode_state(state)
        usage = measure(payload, self._max_length)
        self._publish_usage(usage)

        if usage.over_budget:
            logger.info(
                "Payload over budget (%d > %d chars), keeping changes unsaved",
                usage.length, self._max_length,
            )
            self._transition(SyncState.DIRTY_PENDING)
            result = CommitResult(state, payload, usage, persisted=False, changed=False, reason=reason)
        elif not payload and not state.is_default:
            logger.warning("Encoding failed, locator left unchanged")
            self._transition(SyncState.DIRTY_PENDING)
            result = CommitResult(state, payload, usage, persisted=False, changed=False, reason=reason)
        else:
            changed = payload != self._locator.current()
            if changed:
                self._locator.push(payload)
            self._session.mark_committed(state)
            logger.debug("Committed %d chars (%s, pushed=%s)", len(payload), reason, changed)

            if self._session.current() != state:
                # Mutated while committing; the newer state still needs a save.
                self._transition(SyncState.DIRTY_PENDING)
                if self._timer is None:
                    self._arm_timer()
            else:
                self._transition(SyncState.CLEAN)
            result = CommitResult(state, payload, usage, persisted=True, changed=changed, reason=reason)

        if self._on_commit is not None:
            self._on_commit(result)
        return result

    # ------------------------------------------------------------------
    # External navigation
    # ------------------------------------------------------------------

    def navigate(self, payload: str) -> ContentState:
        """Adopt a locator value set from outside (back/forward)."""
        self._cancel_timer()
        state = self._codec.decode(payload)
        self._session.reset(state)
        self._publish_usage(measure(payload, self._max_length))
        self._transition(SyncState.CLEAN)
        logger.debug("Adopted external navigation (%d chars)", len(payload))
        return state

    # ------------------------------------------------------------------
    # Editor events
    # ------------------------------------------------------------------

    def attach(self, bus: EventBus) -> Subscription:
        subscription = bus.subscribe(_IMMEDIATE_EVENTS, self._handle_event)
        self._subscriptions.append(subscription)
        return subscription

    def pointer_moved(self) -> Optional[CommitResult]:
        """Pointer activity while the editor is idle; only the first one counts."""
        if not self._pointer_armed:
            return None
        self._pointer_armed = False
        return self.commit_now(reason=EditorEvent.IDLE_POINTER_ACTIVITY.value)

    def focus_gained(self) -> None:
        self._pointer_armed = True

    def _handle_event(self, event: EditorEvent, payload: Any) -> None:
        if event is EditorEvent.EXTERNAL_NAVIGATION:
            self.navigate(payload or "")
        elif event is EditorEvent.MODE_CHANGED and payload is not None:
            self.set_mode(Mode.parse(payload))
        else:
            self.commit_now(reason=event.value)

    def close(self) -> None:
        """Stop reacting to events and drop any pending timer.

        Unsaved changes stay unsaved; call commit_now() first to keep them.
        """
        self._cancel_timer()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm_timer(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._save_delay_s, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _refresh_usage(self, state: ContentState) -> None:
        self._publish_usage(measure(self._codec.encode_state(state), self._max_length))

    def _publish_usage(self, usage: UsageMetric) -> None:
        self._usage = usage
        if self._on_usage is not None:
            self._on_usage(usage)

    def _transition(self, new_state: SyncState) -> None:
        if new_state is self._state:
            return
        old_state = self._state
        self._state = new_state
        logger.debug("Sync %s -> %s", old_state.value, new_state.value)
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)
