"""The document session: one owner for the current document state.

WHY: Commits, transcript merges, and navigation all need "the document
as it is right now", not a copy captured when a timer was armed or a
transcription started. Routing every read and write through one object
makes stale copies impossible to reach by accident.

HOW: Mutations are small frozen dataclasses with an ``apply(state)``
method. DocumentSession applies them to its current state and tracks the
last committed state separately.

RULES:
- current() is always the latest applied state
- last_committed() only changes on mark_committed() / reset()
- AppendText splices onto the state at apply time, newline-separated
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from vark.core.models import ContentState, Mode


@dataclass(frozen=True)
class SetText:
    text: str

    def apply(self, state: ContentState) -> ContentState:
        return state.with_text(self.text)


@dataclass(frozen=True)
class SetMode:
    mode: Mode

    def apply(self, state: ContentState) -> ContentState:
        return state.with_mode(Mode.parse(self.mode))


@dataclass(frozen=True)
class CycleMode:
    def apply(self, state: ContentState) -> ContentState:
        return state.with_mode(state.mode.next())


@dataclass(frozen=True)
class AppendText:
    """Append a dictated fragment on its own line."""

    text: str

    def apply(self, state: ContentState) -> ContentState:
        current = state.text
        return state.with_text(current + ("\n" if current else "") + self.text)


Mutation = Union[SetText, SetMode, CycleMode, AppendText]


class DocumentSession:
    def __init__(self, initial: Optional[ContentState] = None) -> None:
        self._current = initial or ContentState.empty()
        self._committed = self._current
        self._revision = 0

    def current(self) -> ContentState:
        return self._current

    def last_committed(self) -> ContentState:
        return self._committed

    @property
    def revision(self) -> int:
        """Number of mutations applied since construction."""
        return self._revision

    @property
    def is_dirty(self) -> bool:
        return self._current != self._committed

    def apply(self, mutation: Mutation) -> ContentState:
        self._current = mutation.apply(self._current)
        self._revision += 1
        return self._current

    def mark_committed(self, state: ContentState) -> None:
        self._committed = state

    def reset(self, state: ContentState) -> None:
        """Replace both current and committed state (external navigation)."""
        self._current = state
        self._committed = state
