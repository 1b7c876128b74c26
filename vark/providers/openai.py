"""OpenAI Whisper provider.

WHY: Whisper accepts the browser's native webm/opus recordings directly,
which makes it the default dictation backend.

HOW: Bearer-token auth. Credentials are probed with GET /models (cheap,
no audio). Transcription is a multipart POST /audio/transcriptions with
the configured model; the JSON response carries a single "text" field.

RULES:
- Keys shorter than 20 characters are rejected without a network call
- 401 -> invalid key; 403 (restricted key scopes) and 429 (quota) -> restricted
- The upload filename extension must match the audio container
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from vark.config import OPENAI_BASE_URL, OPENAI_MODEL
from vark.providers.base import (
    AudioData,
    ConfigField,
    ProviderConfig,
    ProviderDescriptor,
    TranscriptionProvider,
    ValidationResult,
    credential_status,
    raise_for_transcription,
)
from vark.providers.errors import NetworkError

logger = logging.getLogger(__name__)


class OpenAIProvider(TranscriptionProvider):
    descriptor = ProviderDescriptor(
        key="openai",
        display_name="OpenAI",
        description="OpenAI Whisper speech-to-text",
        config_fields=(
            ConfigField(
                key="apiKey",
                label="API Key",
                kind="password",
                required=True,
                placeholder="sk-...",
            ),
        ),
        min_key_length=20,
    )
    product_name = "OpenAI Whisper"
    supported_formats = (
        "audio/webm",
        "audio/mp4",
        "audio/mpeg",
        "audio/wav",
        "audio/ogg",
        "audio/flac",
    )
    default_base_url = OPENAI_BASE_URL

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        model: str = OPENAI_MODEL,
    ) -> None:
        super().__init__(base_url=base_url, transport=transport)
        self._model = model

    def _auth(self, config: ProviderConfig) -> dict:
        return {"Authorization": "Bearer {}".format(config.api_key)}

    async def _check_credentials(self, config: ProviderConfig) -> ValidationResult:
        async with self._client(headers=self._auth(config)) as client:
            resp = await client.get("/models")
        result = credential_status(resp.status_code)
        if result is None:
            raise NetworkError(
                "OpenAI returned {} while validating the key".format(resp.status_code),
                resp.status_code,
            )
        logger.debug("OpenAI key check: HTTP %s -> %s", resp.status_code, result.value)
        return result

    async def _transcribe(self, audio: AudioData, config: ProviderConfig) -> str:
        logger.info(
            "Transcribing %d bytes of %s with %s", len(audio.data), audio.base_mime_type, self._model
        )
        async with self._client(headers=self._auth(config)) as client:
            resp = await client.post(
                "/audio/transcriptions",
                files={"file": (audio.filename, audio.data, audio.base_mime_type)},
                data={"model": self._model, "response_format": "json"},
            )
        raise_for_transcription(resp, self.product_name)
        return str(resp.json().get("text", ""))
