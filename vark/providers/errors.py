"""Provider error taxonomy.

WHY: Callers must tell "replace your key" apart from "lift the key's
restriction" and from "the network hiccupped, retry". Each failure
category is its own exception class carrying a stable error code that
maps to a user-facing message in vark.errors.

HOW: TranscriptionError is the base for every failure of a remote
transcription call. Registry and configuration problems are ValueErrors
because they are caller mistakes, not remote failures.

RULES:
- Every TranscriptionError subclass sets ``code``
- status_code is the HTTP status when one was received, else None
"""

from __future__ import annotations

from typing import Optional

from vark import errors


class ProviderError(Exception):
    """Base class for everything raised by the provider layer."""


class UnknownProviderError(ProviderError, ValueError):
    """Raised by create_provider() for an unregistered provider key."""

    def __init__(self, provider_key: str) -> None:
        self.provider_key = provider_key
        super().__init__("Unknown provider: {}".format(provider_key))


class ConfigurationError(ProviderError, ValueError):
    """Raised when a credential record does not satisfy the provider descriptor."""


class TranscriptionError(ProviderError):
    """A transcription or validation call failed.

    Attributes:
        code: Stable error code from vark.errors.
        status_code: HTTP status of the failing response, if any.
    """

    code = errors.NETWORK_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthError(TranscriptionError):
    """The credential does not authenticate."""

    code = errors.AUTH_FAILED


class QuotaOrRestrictionError(TranscriptionError):
    """The credential authenticates but may not use this capability right now."""

    code = errors.RESTRICTED


class NetworkError(TranscriptionError):
    """Transport failure or an unexpected remote error; retrying may help."""

    code = errors.NETWORK_ERROR


class UnsupportedFormatError(TranscriptionError):
    """The audio encoding is not accepted by the provider."""

    code = errors.UNSUPPORTED_FORMAT
