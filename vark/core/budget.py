"""Locator size budget.

WHY: Share links have a practical length ceiling. Editors need live
"N% used" feedback on every keystroke, and commits must refuse payloads
that would not fit.

HOW: A pure function of the payload length. The +1 accounts for the
fragment delimiter ("#") prepended when the payload is attached to a link.

RULES:
- percentage rounds half up, like the editor's original counter
- over_budget is strictly length > max_length
- max_length <= 0 yields percentage 0 and over_budget True
"""

from __future__ import annotations

from vark.config import LOCATOR_DELIMITER, MAX_LOCATOR_LENGTH
from vark.core.models import UsageMetric


def measure(payload: str, max_length: int = MAX_LOCATOR_LENGTH) -> UsageMetric:
    """Compute budget utilization for an encoded payload.

    Args:
        payload: The encoded locator payload (may be the empty sentinel).
        max_length: Budget ceiling in characters.

    Returns:
        UsageMetric with the rounded percentage and over-budget flag.
    """
    length = len(payload) + len(LOCATOR_DELIMITER)
    if max_length <= 0:
        return UsageMetric(percentage=0, over_budget=True, length=length)
    # Integer round-half-up of length * 100 / max_length
    percentage = (length * 200 + max_length) // (2 * max_length)
    return UsageMetric(
        percentage=percentage,
        over_budget=length > max_length,
        length=length,
    )
