"""Credential storage for speech-to-text providers.

WHY: Provider API keys must survive restarts, but the same code runs in
two environments: embedded in a host that offers an in-process key/value
area (the browser's localStorage in the original editor) and as a
command-line tool that keeps settings in a file. Providers never persist
their own credentials; this store owns them.

HOW: A key/value *area* is any MutableMapping[str, str]. MemoryArea is a
plain in-process mapping; FileArea mirrors a JSON object file on every
read and write. CredentialStore layers the four-operation contract on top
of an area, storing each provider's config as JSON under
STORAGE_PREFIX + provider key. create_store() picks the area from config.

RULES:
- get() returns None for missing AND corrupt records (never raises)
- A corrupt or unreadable config file reads as an empty area
- list_configured() only reports keys carrying the storage prefix
- set() overwrites the whole record (no field merging)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, MutableMapping
from pathlib import Path
from typing import Any, Dict, List, Optional

from vark.config import CONFIG_DIR, CONFIG_FILENAME, STORAGE_BACKEND, STORAGE_PREFIX

logger = logging.getLogger(__name__)


class MemoryArea(dict):
    """In-process key/value area; every store built on it shares its data."""


class FileArea(MutableMapping):
    """JSON-file backed key/value area.

    The file holds one JSON object mapping string keys to string values.
    Each operation re-reads the file so several stores (or processes) see
    each other's writes.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path else CONFIG_DIR / CONFIG_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def __getitem__(self, key: str) -> str:
        return self._read_all()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def __delitem__(self, key: str) -> None:
        data = self._read_all()
        del data[key]
        self._write_all(data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._read_all()))

    def __len__(self) -> int:
        return len(self._read_all())

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: not a JSON object", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


class CredentialStore:
    """Per-provider credential records over a key/value area.

    WHY: Dictation needs to remember which providers are configured and
    with what key, without each provider knowing where that lives.

    HOW: Records are JSON objects ({"apiKey": ..., extra fields}) stored as
    strings under ``prefix + provider_key``.

    RULES:
    - get(): None when absent, not JSON, or not a JSON object
    - remove(): missing keys are ignored
    - list_configured(): provider keys in area order, prefix stripped
    """

    def __init__(
        self,
        area: Optional[MutableMapping] = None,
        prefix: str = STORAGE_PREFIX,
    ) -> None:
        self._area = area if area is not None else MemoryArea()
        self._prefix = prefix

    @property
    def area(self) -> MutableMapping:
        return self._area

    def _key(self, provider_key: str) -> str:
        return self._prefix + provider_key

    def get(self, provider_key: str) -> Optional[Dict[str, Any]]:
        stored = self._area.get(self._key(provider_key))
        if not stored:
            return None
        try:
            record = json.loads(stored)
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupt credential record for %s", provider_key)
            return None
        if not isinstance(record, dict):
            logger.warning("Ignoring non-object credential record for %s", provider_key)
            return None
        return record

    def set(self, provider_key: str, config: Dict[str, Any]) -> None:
        self._area[self._key(provider_key)] = json.dumps(config, ensure_ascii=False)
        logger.debug("Stored credentials for %s", provider_key)

    def remove(self, provider_key: str) -> None:
        self._area.pop(self._key(provider_key), None)
        logger.debug("Removed credentials for %s", provider_key)

    def list_configured(self) -> List[str]:
        return [
            key[len(self._prefix):]
            for key in list(self._area)
            if key.startswith(self._prefix)
        ]


def create_store(backend: Optional[str] = None, path: Optional[Path] = None) -> CredentialStore:
    """Build a CredentialStore for the current environment.

    Args:
        backend: "file" or "memory"; defaults to VARK_STORAGE (file).
        path: Config file location for the file backend.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = (backend or STORAGE_BACKEND).lower()
    if backend == "file":
        return CredentialStore(FileArea(path))
    if backend == "memory":
        return CredentialStore(MemoryArea())
    raise ValueError("Unknown storage backend: {}. Use 'file' or 'memory'.".format(backend))
