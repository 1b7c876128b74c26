"""Core document model, payload codec, and size budget.

WHY: The locator payload is the document's only persistence. Everything
that touches it (encoding, decoding, measuring) lives here as pure code
with no knowledge of timers, history, or providers.

HOW: models.py holds the value types, codec.py the encode/decode pipeline,
budget.py the utilization check, metadata.py the title/description helpers.
"""

from vark.core.budget import measure
from vark.core.codec import ContentCodec, decode_content, encode_content
from vark.core.models import ContentState, Mode, UsageMetric

__all__ = [
    "ContentCodec",
    "ContentState",
    "Mode",
    "UsageMetric",
    "decode_content",
    "encode_content",
    "measure",
]
