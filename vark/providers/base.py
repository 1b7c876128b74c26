"""Provider contract: descriptors, credential records, audio, and the base class.

WHY: Every speech vendor has its own auth scheme, endpoints, and error
shapes, but the editor wants one thing: "turn this audio into text with
this key", plus a way to check a key before the user hits record. The
base class pins that contract down so the registry, the dictation layer,
and the CLI can work with any vendor generically.

HOW: ProviderDescriptor is immutable per-vendor metadata (label, typed
config fields, minimum key length). ProviderConfig is a pydantic record
(``apiKey`` plus vendor extras) that each vendor subclasses with its own
typed fields. TranscriptionProvider implements the shared guard rails
(key length short-circuit, format pre-check, transport error wrapping)
and leaves the two vendor calls abstract.

RULES:
- validate_config never calls the network for empty/too-short keys
- transcribe checks the audio MIME type before any network call
- Transport failures always surface as NetworkError
- Returned transcripts are plain stripped text, never structured results
- Providers never persist credentials (the CredentialStore does)

To add a new provider:
1. Create a module in providers/
2. Subclass TranscriptionProvider, declare descriptor/supported_formats
3. Implement _check_credentials() and _transcribe()
4. Register it in PROVIDERS in providers/__init__.py
"""

from __future__ import annotations

import enum
import mimetypes
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional, Tuple, Type, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vark.config import HTTP_TIMEOUT_S
from vark.providers.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    QuotaOrRestrictionError,
    UnsupportedFormatError,
)

# ---------------------------------------------------------------------------
# Audio formats
# ---------------------------------------------------------------------------

_EXTENSION_MIME = {
    ".webm": "audio/webm",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".mpga": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".oga": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".aiff": "audio/aiff",
    ".amr": "audio/amr",
}

_MIME_EXTENSION = {
    "audio/webm": ".webm",
    "audio/wav": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "audio/aac": ".aac",
    "audio/aiff": ".aiff",
    "audio/amr": ".amr",
}

_MIME_ALIASES = {
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/x-flac": "audio/flac",
    "audio/x-m4a": "audio/mp4",
    "audio/x-aiff": "audio/aiff",
    "video/webm": "audio/webm",
    "video/mp4": "audio/mp4",
}


def normalize_mime_type(mime_type: str) -> str:
    """Lowercase, drop parameters (``;codecs=opus``), and resolve aliases."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_ALIASES.get(base, base)


@dataclass
class AudioData:
    """One recorded clip handed to a provider.

    Attributes:
        data: Raw encoded audio bytes (webm/opus, wav, ...).
        mime_type: Container MIME type as reported by the recorder,
                   parameters allowed (``audio/webm;codecs=opus``).
        filename: Upload filename; derived from the MIME type when empty.
    """

    data: bytes
    mime_type: str
    filename: str = field(default="")

    def __post_init__(self) -> None:
        if not self.filename:
            ext = _MIME_EXTENSION.get(normalize_mime_type(self.mime_type), ".bin")
            self.filename = "recording" + ext

    @property
    def base_mime_type(self) -> str:
        return normalize_mime_type(self.mime_type)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> AudioData:
        """Read an audio file, guessing its MIME type from the extension."""
        path = Path(path)
        if mime_type is None:
            mime_type = _EXTENSION_MIME.get(path.suffix.lower())
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(data=path.read_bytes(), mime_type=mime_type, filename=path.name)


# ---------------------------------------------------------------------------
# Descriptors and credential records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigField:
    """One input the user fills in to configure a provider."""

    key: str
    label: str
    kind: str = "password"
    required: bool = True
    placeholder: str = ""


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static metadata for one vendor, defined at import time.

    Attributes:
        key: Registry key and storage suffix, e.g. ``"openai"``.
        display_name: Short label for pickers, e.g. ``"OpenAI"``.
        description: One-line description of the service.
        config_fields: Ordered inputs; the first is always ``apiKey``.
        min_key_length: Keys shorter than this are invalid without a network call.
    """

    key: str
    display_name: str
    description: str
    config_fields: Tuple[ConfigField, ...]
    min_key_length: int = 10

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(f.key for f in self.config_fields if f.required)


API_KEY_FIELD_KEY = "apiKey"


class ProviderConfig(BaseModel):
    """Credential record shared by all providers.

    Serialized with field aliases (``apiKey``) so stored records keep the
    wire shape ``{"apiKey": ..., extra fields}``. Unknown string fields are
    kept so records written by newer versions survive a round trip.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)

    api_key: str = Field(default="", alias=API_KEY_FIELD_KEY, description="Vendor API key.")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidationResult(str, enum.Enum):
    """Outcome of a credential check.

    RULES:
    - valid: authenticates and may transcribe
    - invalid: does not authenticate at all (replace the key)
    - restricted: authenticates but the speech capability is blocked or
      out of quota (lift the restriction, keep the key)
    """

    VALID = "valid"
    INVALID = "invalid"
    RESTRICTED = "restricted"


ConfigInput = Union[ProviderConfig, Mapping[str, Any]]

# Raised while parsing a 2xx body that is not the JSON shape a vendor documents.
_MALFORMED_RESPONSE = (ValueError, KeyError, TypeError, AttributeError)


# ---------------------------------------------------------------------------
# Base provider
# ---------------------------------------------------------------------------


class TranscriptionProvider(ABC):
    """Abstract base for all speech-to-text providers.

    Subclasses declare ``descriptor``, ``product_name``,
    ``supported_formats`` and optionally a ``config_model`` with typed
    extra fields, then implement the two vendor calls.
    """

    descriptor: ClassVar[ProviderDescriptor]
    product_name: ClassVar[str]
    supported_formats: ClassVar[Tuple[str, ...]]
    config_model: ClassVar[Type[ProviderConfig]] = ProviderConfig
    default_base_url: ClassVar[str]

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: float = HTTP_TIMEOUT_S,
    ) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._transport = transport
        self._timeout_s = timeout_s

    @property
    def name(self) -> str:
        return self.descriptor.key

    @property
    def display_name(self) -> str:
        return self.product_name

    def get_supported_formats(self) -> list[str]:
        return list(self.supported_formats)

    def supports_format(self, mime_type: str) -> bool:
        return normalize_mime_type(mime_type) in self.supported_formats

    def parse_config(self, raw: ConfigInput, strict: bool = True) -> ProviderConfig:
        """Turn a stored or user-entered record into this provider's config model.

        Args:
            raw: A ProviderConfig or a plain mapping such as a stored record.
            strict: When True, every required descriptor field must be non-empty.

        Raises:
            ConfigurationError: Missing required fields or wrongly typed values.
        """
        if isinstance(raw, ProviderConfig):
            raw = raw.to_record()
        data = dict(raw)
        if strict:
            missing = [
                key for key in self.descriptor.required_fields
                if not str(data.get(key) or "").strip()
            ]
            if missing:
                raise ConfigurationError(
                    "{} configuration is missing: {}".format(
                        self.descriptor.display_name, ", ".join(missing)
                    )
                )
        try:
            return self.config_model.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                "Invalid {} configuration: {}".format(self.descriptor.display_name, exc)
            ) from exc

    async def validate_config(self, config: ConfigInput) -> ValidationResult:
        """Check a credential against the vendor.

        Raises:
            NetworkError: The vendor could not be reached or sent an unreadable body.
        """
        cfg = self.parse_config(config, strict=False)
        if len(cfg.api_key) < self.descriptor.min_key_length:
            return ValidationResult.INVALID
        try:
            return await self._check_credentials(cfg)
        except httpx.TransportError as exc:
            raise NetworkError(
                "Could not reach {}: {}".format(self.product_name, exc)
            ) from exc
        except _MALFORMED_RESPONSE as exc:
            raise NetworkError(
                "Unexpected {} response: {}".format(self.product_name, exc)
            ) from exc

    async def transcribe(self, audio: AudioData, config: ConfigInput) -> str:
        """Transcribe one clip and return the recognized text.

        Raises:
            AuthError: Missing or rejected key.
            QuotaOrRestrictionError: Key restricted or out of quota.
            UnsupportedFormatError: Audio MIME type not accepted.
            NetworkError: Transport failure or unexpected vendor error.
        """
        cfg = self.parse_config(config, strict=False)
        if not cfg.api_key:
            raise AuthError("{} API key is required".format(self.descriptor.display_name))
        if not self.supports_format(audio.mime_type):
            raise UnsupportedFormatError(
                "{} does not accept {} audio. Supported: {}".format(
                    self.product_name, audio.base_mime_type, ", ".join(self.supported_formats)
                )
            )
        try:
            text = await self._transcribe(audio, cfg)
        except httpx.TransportError as exc:
            raise NetworkError(
                "Could not reach {}: {}".format(self.product_name, exc)
            ) from exc
        except _MALFORMED_RESPONSE as exc:
            raise NetworkError(
                "Unexpected {} response: {}".format(self.product_name, exc)
            ) from exc
        return (text or "").strip()

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Build an httpx client bound to this provider's base URL."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout_s, connect=min(self._timeout_s, 30.0)),
            transport=self._transport,
            **kwargs,
        )

    @abstractmethod
    async def _check_credentials(self, config: ProviderConfig) -> ValidationResult:
        """Vendor-specific credential check (key length already verified)."""

    @abstractmethod
    async def _transcribe(self, audio: AudioData, config: ProviderConfig) -> str:
        """Vendor-specific transcription call (key and format already verified)."""


def credential_status(status_code: int) -> Optional[ValidationResult]:
    """Map a plain HTTP status from a credential probe to a result.

    Returns None for statuses that say nothing about the key (5xx), which
    callers turn into NetworkError.
    """
    if 200 <= status_code < 300:
        return ValidationResult.VALID
    if status_code in (403, 429):
        return ValidationResult.RESTRICTED
    if status_code >= 500:
        return None
    return ValidationResult.INVALID


def raise_for_transcription(response: httpx.Response, product_name: str) -> None:
    """Raise the categorized TranscriptionError for a failed response."""
    if response.is_success:
        return
    status = response.status_code
    detail = "{} error {}: {}".format(product_name, status, response.text[:500])
    if status == 401:
        raise AuthError(detail, status)
    if status in (403, 429):
        raise QuotaOrRestrictionError(detail, status)
    if status in (400, 415):
        raise UnsupportedFormatError(detail, status)
    raise NetworkError(detail, status)
