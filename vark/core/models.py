"""Value types for document state and usage feedback.

WHY: The codec, the budget check, and the sync controller all pass the
same two facts around: the document (text + render mode) and how much of
the locator budget its payload uses. Frozen dataclasses make equality
checks ("is this already committed?") trivial and safe.

HOW: Mode is a str-backed enum so it serializes directly into the payload
record. ContentState and UsageMetric are immutable dataclasses.

RULES:
- Mode values are exactly "edit", "live", "view" (wire format)
- Unknown or missing modes parse to EDIT, never raise
- ContentState.empty() is the default document ("", EDIT)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Mode(str, enum.Enum):
    """How the consumer renders the document text.

    The mode has no effect on codec correctness; it is carried through the
    round trip so a shared link opens in the mode it was saved in.
    """

    EDIT = "edit"
    LIVE = "live"
    VIEW = "view"

    @classmethod
    def parse(cls, value: object) -> Mode:
        """Return the Mode for ``value``, falling back to EDIT."""
        if isinstance(value, Mode):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.EDIT

    def next(self) -> Mode:
        """Cycle edit -> live -> view -> edit."""
        order = list(Mode)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class ContentState:
    """The logical document: text plus render mode."""

    text: str = ""
    mode: Mode = Mode.EDIT

    @classmethod
    def empty(cls) -> ContentState:
        return cls("", Mode.EDIT)

    @property
    def is_default(self) -> bool:
        """True for the empty edit-mode document (encodes to the sentinel)."""
        return not self.text and self.mode is Mode.EDIT

    def with_text(self, text: str) -> ContentState:
        return ContentState(text, self.mode)

    def with_mode(self, mode: Mode) -> ContentState:
        return ContentState(self.text, mode)


@dataclass(frozen=True)
class UsageMetric:
    """Locator budget utilization for one payload.

    Attributes:
        percentage: Rounded share of the budget used (may exceed 100).
        over_budget: True when the payload plus delimiter exceeds the budget.
        length: Payload length plus the one-character delimiter.
    """

    percentage: int
    over_budget: bool
    length: int = 0
