"""Shared error codes and user-facing messages.

WHY: Credential and transcription failures need category-specific
remediation text ("replace the key" is wrong advice for a key that is
merely scope-restricted). Keeping codes and messages in one table lets the
dictation layer and the CLI speak with one voice.
"""

from __future__ import annotations

CONFIG_REQUIRED = "CONFIG_REQUIRED"
VALIDATING = "VALIDATING"
AUTH_FAILED = "AUTH_FAILED"
RESTRICTED = "RESTRICTED"
NETWORK_ERROR = "NETWORK_ERROR"
UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
EMPTY_TRANSCRIPT = "EMPTY_TRANSCRIPT"

ERROR_MESSAGES = {
    CONFIG_REQUIRED: "Provider configuration required. Add an API key first.",
    VALIDATING: "Configuration is being validated, please try again in a moment.",
    AUTH_FAILED: "API key is invalid. Replace it with a working key.",
    RESTRICTED: (
        "API key is valid but restricted. Remove the restriction or allow "
        "the speech-to-text API for this key."
    ),
    NETWORK_ERROR: "Network failed, please retry.",
    UNSUPPORTED_FORMAT: "This audio format is not supported by the selected provider.",
    EMPTY_TRANSCRIPT: "No speech was recognized.",
}


def message_for(code: str) -> str:
    return ERROR_MESSAGES.get(code, code)
