"""Provider selection and the dictation session.

WHY: Dictation is only usable once the chosen provider has a working
key, and the user must get a specific reason when it is not ("add a
key", "still checking", "key is restricted"). The transcript must land
in the document as it is when transcription finishes, not as it was
when recording began.

HOW:
- ProviderSelection owns the active provider, its credential record, and
  the validation status. A validation outcome decides whether the record
  is kept in the CredentialStore.
- DictationSession gates recording on that status, asks the sync
  controller for an immediate commit when recording starts, and appends
  the transcript through controller.append_transcript() when done.

RULES:
- valid -> store; restricted -> store (unless persist_restricted=False);
  invalid -> remove; network failure -> status invalid with failure_code
  NETWORK_ERROR, store untouched
- Clearing an optional field keeps the key and re-validates
- A validation that finishes after the provider changed is discarded
- start() refuses with CONFIG_REQUIRED when idle/invalid, VALIDATING
  while a check runs, and silently while already busy
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from typing import Any, Dict, Optional

from vark import errors
from vark.config import DEFAULT_PROVIDER
from vark.providers import create_provider
from vark.providers.base import API_KEY_FIELD_KEY, AudioData, TranscriptionProvider, ValidationResult
from vark.providers.errors import ConfigurationError, NetworkError, TranscriptionError
from vark.storage import CredentialStore
from vark.sync.controller import SyncController

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, str], None]


class ValidationStatus(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    RESTRICTED = "restricted"


_RESULT_STATUS = {
    ValidationResult.VALID: ValidationStatus.VALID,
    ValidationResult.INVALID: ValidationStatus.INVALID,
    ValidationResult.RESTRICTED: ValidationStatus.RESTRICTED,
}


class ProviderSelection:
    def __init__(
        self,
        store: CredentialStore,
        provider_key: Optional[str] = None,
        persist_restricted: bool = True,
        provider_factory: Callable[..., TranscriptionProvider] = create_provider,
        on_status_change: Optional[Callable[[ValidationStatus], None]] = None,
    ) -> None:
        self._store = store
        self._persist_restricted = persist_restricted
        self._factory = provider_factory
        self._on_status_change = on_status_change

        self._provider: Optional[TranscriptionProvider] = None
        self._config: Optional[Dict[str, Any]] = None
        self._status = ValidationStatus.IDLE
        self._generation = 0
        self._failure_code: Optional[str] = None
        if provider_key is not None:
            self._load(provider_key)

    @property
    def provider(self) -> Optional[TranscriptionProvider]:
        return self._provider

    @property
    def provider_key(self) -> Optional[str]:
        return self._provider.name if self._provider is not None else None

    @property
    def config(self) -> Optional[Dict[str, Any]]:
        return dict(self._config) if self._config is not None else None

    @property
    def status(self) -> ValidationStatus:
        return self._status

    @property
    def failure_code(self) -> Optional[str]:
        """Error code behind the last INVALID status, when it was not the key."""
        return self._failure_code

    @property
    def ready(self) -> bool:
        return self._provider is not None and self._status in (
            ValidationStatus.VALID,
            ValidationStatus.RESTRICTED,
        )

    async def select(self, provider_key: str = DEFAULT_PROVIDER) -> ValidationStatus:
        """Switch provider, load its stored record, and re-check it.

        Raises:
            UnknownProviderError: provider_key is not registered.
        """
        self._load(provider_key)
        if self._config and str(self._config.get("apiKey") or "").strip():
            return await self.validate(self._config)
        return self._status

    async def validate(self, config: Mapping[str, Any]) -> ValidationStatus:
        """Validate a credential record for the selected provider and persist by outcome."""
        if self._provider is None:
            raise ConfigurationError("No provider selected")
        provider = self._provider
        record = dict(config)
        self._config = record
        if not str(record.get("apiKey") or "").strip():
            self._store.remove(provider.name)
            self._set_status(ValidationStatus.IDLE)
            return self._status

        self._generation += 1
        generation = self._generation
        self._failure_code = None
        self._set_status(ValidationStatus.VALIDATING)
        try:
            result = await provider.validate_config(record)
        except NetworkError as exc:
            if generation != self._generation:
                return self._status
            logger.warning("Could not validate %s credentials: %s", provider.name, exc)
            self._failure_code = errors.NETWORK_ERROR
            self._set_status(ValidationStatus.INVALID)
            return self._status
        except ConfigurationError as exc:
            if generation != self._generation:
                return self._status
            logger.warning("Rejected %s configuration: %s", provider.name, exc)
            self._store.remove(provider.name)
            self._set_status(ValidationStatus.INVALID)
            return self._status

        if generation != self._generation:
            logger.debug("Discarding stale validation for %s", provider.name)
            return self._status

        status = _RESULT_STATUS[result]
        if status is ValidationStatus.VALID or (
            status is ValidationStatus.RESTRICTED and self._persist_restricted
        ):
            self._store.set(provider.name, record)
        else:
            self._store.remove(provider.name)
        self._set_status(status)
        return status

    async def update_field(self, key: str, value: str) -> ValidationStatus:
        """Change one config field and re-validate the whole record.

        Clearing a required field drops the stored record and returns to
        idle. Clearing an optional field removes it from the record and
        re-validates what is left.
        """
        record = dict(self._config or {})
        if not value and not self._is_required(key):
            record.pop(key, None)
            return await self.validate(record)
        record[key] = value
        if not value:
            if self._provider is not None:
                self._store.remove(self._provider.name)
            self._generation += 1
            self._config = record
            self._set_status(ValidationStatus.IDLE)
            return self._status
        return await self.validate(record)

    def _is_required(self, key: str) -> bool:
        if key == API_KEY_FIELD_KEY or self._provider is None:
            return True
        return key in self._provider.descriptor.required_fields

    def _load(self, provider_key: str) -> None:
        provider = self._factory(provider_key)
        self._generation += 1
        self._provider = provider
        self._config = self._store.get(provider_key)
        self._set_status(ValidationStatus.IDLE)
        logger.info("Selected provider %s", provider_key)

    def forget(self) -> None:
        if self._provider is not None:
            self._store.remove(self._provider.name)
        self._generation += 1
        self._config = None
        self._set_status(ValidationStatus.IDLE)

    def _set_status(self, status: ValidationStatus) -> None:
        if status is not ValidationStatus.INVALID:
            self._failure_code = None
        if status is self._status:
            return
        self._status = status
        if self._on_status_change is not None:
            self._on_status_change(status)


class DictationState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class DictationSession:
    def __init__(
        self,
        selection: ProviderSelection,
        controller: SyncController,
        on_state_change: Optional[Callable[[DictationState, DictationState], None]] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._selection = selection
        self._controller = controller
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._state = DictationState.IDLE

    @property
    def state(self) -> DictationState:
        return self._state

    def start(self) -> bool:
        """Begin recording if the provider is usable; returns whether it started."""
        if self._state is not DictationState.IDLE:
            return False
        status = self._selection.status
        if status is ValidationStatus.VALIDATING:
            self._emit_error(errors.VALIDATING)
            return False
        if not self._selection.ready:
            self._emit_error(errors.CONFIG_REQUIRED)
            return False
        self._controller.commit_now(reason="recording_started")
        self._transition(DictationState.RECORDING)
        return True

    async def finish(self, audio: AudioData) -> Optional[str]:
        """Transcribe the recorded clip and append it to the document."""
        if self._state is not DictationState.RECORDING:
            return None
        provider = self._selection.provider
        config = self._selection.config or {}
        self._transition(DictationState.TRANSCRIBING)
        try:
            text = await provider.transcribe(audio, config)
        except TranscriptionError as exc:
            logger.warning("Transcription failed (%s): %s", exc.code, exc)
            self._emit_error(exc.code, str(exc))
            return None
        except ConfigurationError as exc:
            self._emit_error(errors.CONFIG_REQUIRED, str(exc))
            return None
        finally:
            self._transition(DictationState.IDLE)

        text = text.strip()
        if not text:
            self._emit_error(errors.EMPTY_TRANSCRIPT)
            return None
        self._controller.append_transcript(text)
        return text

    def cancel(self) -> None:
        if self._state is DictationState.RECORDING:
            self._transition(DictationState.IDLE)

    def _emit_error(self, code: str, detail: Optional[str] = None) -> None:
        message = errors.message_for(code)
        if detail:
            logger.debug("%s: %s", code, detail)
        if self._on_error is not None:
            self._on_error(code, message)

    def _transition(self, new_state: DictationState) -> None:
        if new_state is self._state:
            return
        old_state = self._state
        self._state = new_state
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)
