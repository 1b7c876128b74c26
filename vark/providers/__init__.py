"""Speech-to-text provider registry.

WHY: The dictation layer and the CLI need a single lookup to find a
provider by key and to list what can be configured. A central dict makes
adding a vendor trivial: create the provider class, import it here, add
one line.

HOW: PROVIDERS maps string keys to provider *classes* (not instances).
create_provider() instantiates one; available_providers() exposes the
static descriptors in registration order.

RULES:
- Keys are lowercase identifiers and double as credential storage suffixes
- Unknown keys raise UnknownProviderError naming the key
- Every provider listed here must be importable without side effects
"""

from __future__ import annotations

from typing import Any, Dict

from vark.providers.base import (
    AudioData,
    ConfigField,
    ProviderConfig,
    ProviderDescriptor,
    TranscriptionProvider,
    ValidationResult,
)
from vark.providers.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    ProviderError,
    QuotaOrRestrictionError,
    TranscriptionError,
    UnknownProviderError,
    UnsupportedFormatError,
)
from vark.providers.google import GoogleProvider
from vark.providers.openai import OpenAIProvider
from vark.providers.soniox import SonioxProvider

PROVIDERS: Dict[str, type[TranscriptionProvider]] = {
    "openai": OpenAIProvider,
    "google": GoogleProvider,
    "soniox": SonioxProvider,
}


def create_provider(provider_key: str, **kwargs: Any) -> TranscriptionProvider:
    """Instantiate the provider registered under ``provider_key``.

    Keyword arguments (base_url, transport, ...) go to the constructor.

    Raises:
        UnknownProviderError: No provider is registered under that key.
    """
    try:
        provider_cls = PROVIDERS[provider_key]
    except KeyError:
        raise UnknownProviderError(provider_key) from None
    return provider_cls(**kwargs)


def available_providers() -> Dict[str, ProviderDescriptor]:
    return {key: cls.descriptor for key, cls in PROVIDERS.items()}


__all__ = [
    "PROVIDERS",
    "AudioData",
    "AuthError",
    "ConfigField",
    "ConfigurationError",
    "NetworkError",
    "ProviderConfig",
    "ProviderDescriptor",
    "ProviderError",
    "QuotaOrRestrictionError",
    "TranscriptionError",
    "TranscriptionProvider",
    "UnknownProviderError",
    "UnsupportedFormatError",
    "ValidationResult",
    "available_providers",
    "create_provider",
]
