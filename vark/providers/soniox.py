"""Soniox async speech-to-text provider.

WHY: Soniox handles long, multilingual recordings well and takes
language hints, which suits dictation that switches languages mid-note.
Its non-realtime API is a job workflow rather than a single request.

HOW: Bearer-token auth over one httpx client per call. The workflow is
upload_file → create_transcription → poll_until_complete →
fetch_transcript → cleanup. Polling uses exponential backoff. The
transcript endpoint returns pre-assembled plaintext in its "text" field;
that is all the editor needs, so tokens are ignored. Credentials are
probed with GET /files.

RULES:
- Polling: 2s initial, 1.5x factor, 15s max interval, 10 min timeout
- Job status "error" and polling timeouts surface as NetworkError
- Cleanup always runs once a file was uploaded, and is best-effort
- languageHints is an optional comma-separated list of ISO 639-1 codes
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

import httpx
from pydantic import Field

from vark.config import SONIOX_BASE_URL, SONIOX_MODEL
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

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_POLL_INITIAL_INTERVAL_S = 2.0
_POLL_BACKOFF_FACTOR = 1.5
_POLL_MAX_INTERVAL_S = 15.0
_POLL_TIMEOUT_S = 10 * 60


class SonioxConfig(ProviderConfig):
    language_hints: Optional[str] = Field(
        default=None,
        alias="languageHints",
        description="Comma-separated ISO 639-1 codes, e.g. 'en, sv'.",
    )

    @property
    def hints(self) -> List[str]:
        if not self.language_hints:
            return []
        return [h.strip() for h in self.language_hints.split(",") if h.strip()]


class SonioxProvider(TranscriptionProvider):
    descriptor = ProviderDescriptor(
        key="soniox",
        display_name="Soniox",
        description="Soniox async speech-to-text",
        config_fields=(
            ConfigField(
                key="apiKey",
                label="API Key",
                kind="password",
                required=True,
                placeholder="Your Soniox API Key",
            ),
            ConfigField(
                key="languageHints",
                label="Language hints",
                kind="text",
                required=False,
                placeholder="en, sv",
            ),
        ),
        min_key_length=20,
    )
    product_name = "Soniox"
    supported_formats = (
        "audio/aac",
        "audio/aiff",
        "audio/amr",
        "audio/flac",
        "audio/mpeg",
        "audio/mp4",
        "audio/ogg",
        "audio/wav",
        "audio/webm",
    )
    config_model = SonioxConfig
    default_base_url = SONIOX_BASE_URL

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        model: str = SONIOX_MODEL,
        poll_interval_s: float = _POLL_INITIAL_INTERVAL_S,
        poll_timeout_s: float = _POLL_TIMEOUT_S,
    ) -> None:
        super().__init__(base_url=base_url, transport=transport)
        self._model = model
        self._poll_interval_s = poll_interval_s
        self._poll_timeout_s = poll_timeout_s

    def _auth(self, config: ProviderConfig) -> dict:
        return {"Authorization": "Bearer {}".format(config.api_key)}

    async def _check_credentials(self, config: ProviderConfig) -> ValidationResult:
        async with self._client(headers=self._auth(config)) as client:
            resp = await client.get("/files", params={"limit": 1})
        result = credential_status(resp.status_code)
        if result is None:
            raise NetworkError(
                "Soniox returned {} while validating the key".format(resp.status_code),
                resp.status_code,
            )
        return result

    async def _transcribe(self, audio: AudioData, config: ProviderConfig) -> str:
        hints = config.hints if isinstance(config, SonioxConfig) else []
        async with self._client(headers=self._auth(config)) as client:
            file_id = await self._upload_file(client, audio)
            transcription_id: Optional[str] = None
            try:
                transcription_id = await self._create_transcription(client, file_id, hints)
                await self._poll_until_complete(client, transcription_id)
                return await self._fetch_text(client, transcription_id)
            finally:
                await self._cleanup(client, transcription_id, file_id)

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    async def _upload_file(self, client: httpx.AsyncClient, audio: AudioData) -> str:
        logger.info("Uploading %d bytes of %s to Soniox", len(audio.data), audio.base_mime_type)
        resp = await client.post(
            "/files",
            files={"file": (audio.filename, audio.data, audio.base_mime_type)},
        )
        raise_for_transcription(resp, self.product_name)
        return resp.json()["id"]

    async def _create_transcription(
        self,
        client: httpx.AsyncClient,
        file_id: str,
        language_hints: List[str],
    ) -> str:
        body: dict = {"model": self._model, "file_id": file_id}
        if language_hints:
            body["language_hints"] = language_hints
        resp = await client.post("/transcriptions", json=body)
        raise_for_transcription(resp, self.product_name)
        return resp.json()["id"]

    async def _poll_until_complete(self, client: httpx.AsyncClient, transcription_id: str) -> None:
        interval = self._poll_interval_s
        start_time = time.monotonic()

        while True:
            elapsed = time.monotonic() - start_time
            if elapsed > self._poll_timeout_s:
                raise NetworkError(
                    "Soniox transcription {} timed out after {:.0f}s".format(
                        transcription_id, elapsed
                    )
                )

            resp = await client.get("/transcriptions/{}".format(transcription_id))
            raise_for_transcription(resp, self.product_name)
            data = resp.json()
            status = data.get("status")
            logger.debug("Soniox transcription %s: %s", transcription_id, status)

            if status == "completed":
                return
            if status == "error":
                raise NetworkError(
                    "Soniox transcription failed: {}".format(data.get("error_message"))
                )

            await asyncio.sleep(interval)
            interval = min(interval * _POLL_BACKOFF_FACTOR, _POLL_MAX_INTERVAL_S)

    async def _fetch_text(self, client: httpx.AsyncClient, transcription_id: str) -> str:
        resp = await client.get("/transcriptions/{}/transcript".format(transcription_id))
        raise_for_transcription(resp, self.product_name)
        return str(resp.json().get("text", ""))

    async def _cleanup(
        self,
        client: httpx.AsyncClient,
        transcription_id: Optional[str],
        file_id: str,
    ) -> None:
        # Best-effort: the transcript is already in hand (or the job failed)
        if transcription_id:
            try:
                await client.delete("/transcriptions/{}".format(transcription_id))
            except httpx.HTTPError:
                logger.warning("Failed to delete Soniox transcription %s", transcription_id)
        try:
            await client.delete("/files/{}".format(file_id))
        except httpx.HTTPError:
            logger.warning("Failed to delete Soniox file %s", file_id)
