"""Google Cloud Speech-to-Text provider.

WHY: Google keys are often created with API restrictions (for example
"only Maps"). Such a key authenticates but cannot call Speech-to-Text, and
the user needs to be told to lift the restriction rather than to replace
the key. This provider is the main source of the "restricted" outcome.

HOW: API-key auth via the ``key`` query parameter on
POST /speech:recognize. Credentials are probed with a recognize request
carrying empty audio: a working key gets a 400 INVALID_ARGUMENT (it
authenticated, the request was just empty), a bad key gets
API_KEY_INVALID, a restricted key gets 403 PERMISSION_DENIED /
API_KEY_SERVICE_BLOCKED. Audio is sent inline as base64.

RULES:
- Encoding is derived from the MIME type (webm/ogg opus, flac, wav, mp3)
- Opus containers declare 48 kHz; wav/flac rely on the file header
- languageCode comes from the optional config field, else GOOGLE_LANGUAGE_CODE
- Multiple result chunks are joined with single spaces
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import Field

from vark.config import GOOGLE_BASE_URL, GOOGLE_LANGUAGE_CODE
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
    NetworkError,
    QuotaOrRestrictionError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

_ENCODINGS: Dict[str, tuple[str, Optional[int]]] = {
    "audio/webm": ("WEBM_OPUS", 48000),
    "audio/ogg": ("OGG_OPUS", 48000),
    "audio/flac": ("FLAC", None),
    "audio/wav": ("LINEAR16", None),
    "audio/mp3": ("MP3", None),
    "audio/mpeg": ("MP3", None),
}

_INVALID_REASONS = {"API_KEY_INVALID"}
_RESTRICTED_REASONS = {
    "API_KEY_SERVICE_BLOCKED",
    "API_KEY_HTTP_REFERRER_BLOCKED",
    "API_KEY_IP_ADDRESS_BLOCKED",
    "SERVICE_DISABLED",
    "RATE_LIMIT_EXCEEDED",
}
_RESTRICTED_STATUSES = {"PERMISSION_DENIED", "RESOURCE_EXHAUSTED"}


class GoogleConfig(ProviderConfig):
    language_code: Optional[str] = Field(
        default=None,
        alias="languageCode",
        description="BCP-47 language of the audio, e.g. 'en-US'.",
    )


def _error_kind(response: httpx.Response) -> str:
    """Classify a Google error response as "invalid", "restricted" or "other"."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error", {}) if isinstance(body, dict) else {}
    if not isinstance(error, dict):
        error = {}
    reasons = {
        d.get("reason")
        for d in error.get("details", [])
        if isinstance(d, dict)
    }
    message = str(error.get("message", ""))
    status = error.get("status", "")

    if response.status_code == 401 or reasons & _INVALID_REASONS or "API key not valid" in message:
        return "invalid"
    if (
        response.status_code in (403, 429)
        or reasons & _RESTRICTED_REASONS
        or status in _RESTRICTED_STATUSES
    ):
        return "restricted"
    return "other"


class GoogleProvider(TranscriptionProvider):
    descriptor = ProviderDescriptor(
        key="google",
        display_name="Google",
        description="Google Cloud Speech-to-Text",
        config_fields=(
            ConfigField(
                key="apiKey",
                label="API Key",
                kind="password",
                required=True,
                placeholder="Your Google Cloud API Key",
            ),
        ),
        min_key_length=10,
    )
    product_name = "Google Cloud Speech-to-Text"
    supported_formats = (
        "audio/webm",
        "audio/wav",
        "audio/flac",
        "audio/ogg",
        "audio/mp3",
        "audio/mpeg",
    )
    config_model = GoogleConfig
    default_base_url = GOOGLE_BASE_URL

    def _recognize_config(self, config: ProviderConfig, mime_type: Optional[str] = None) -> Dict[str, Any]:
        language = getattr(config, "language_code", None) or GOOGLE_LANGUAGE_CODE
        body: Dict[str, Any] = {"languageCode": language, "enableAutomaticPunctuation": True}
        if mime_type:
            encoding, sample_rate = _ENCODINGS[mime_type]
            body["encoding"] = encoding
            if sample_rate:
                body["sampleRateHertz"] = sample_rate
        return body

    async def _recognize(self, config: ProviderConfig, body: Dict[str, Any]) -> httpx.Response:
        async with self._client() as client:
            return await client.post(
                "/speech:recognize",
                params={"key": config.api_key},
                json=body,
            )

    async def _check_credentials(self, config: ProviderConfig) -> ValidationResult:
        resp = await self._recognize(
            config,
            {"config": self._recognize_config(config), "audio": {"content": ""}},
        )
        if resp.is_success:
            return ValidationResult.VALID
        kind = _error_kind(resp)
        logger.debug("Google key check: HTTP %s -> %s", resp.status_code, kind)
        if kind == "invalid":
            return ValidationResult.INVALID
        if kind == "restricted":
            return ValidationResult.RESTRICTED
        if resp.status_code == 400:
            # Authenticated; the empty probe request itself was rejected
            return ValidationResult.VALID
        if resp.status_code >= 500:
            raise NetworkError(
                "Google returned {} while validating the key".format(resp.status_code),
                resp.status_code,
            )
        return ValidationResult.INVALID

    async def _transcribe(self, audio: AudioData, config: ProviderConfig) -> str:
        mime_type = audio.base_mime_type
        logger.info("Transcribing %d bytes of %s with Google", len(audio.data), mime_type)
        resp = await self._recognize(
            config,
            {
                "config": self._recognize_config(config, mime_type),
                "audio": {"content": base64.b64encode(audio.data).decode("ascii")},
            },
        )
        if not resp.is_success:
            detail = "Google error {}: {}".format(resp.status_code, resp.text[:500])
            kind = _error_kind(resp)
            if kind == "invalid":
                raise AuthError(detail, resp.status_code)
            if kind == "restricted":
                raise QuotaOrRestrictionError(detail, resp.status_code)
            if resp.status_code == 400:
                raise UnsupportedFormatError(detail, resp.status_code)
            raise NetworkError(detail, resp.status_code)

        results = resp.json().get("results", [])
        transcripts = [
            r["alternatives"][0].get("transcript", "").strip()
            for r in results
            if r.get("alternatives")
        ]
        return " ".join(t for t in transcripts if t)
