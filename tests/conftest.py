"""Shared test fixtures for the vark test suite.

WHY: Provider, dictation, and CLI tests all need a credential store that
never touches the user's home directory, and HTTP mocks that never reach
a real vendor.

HOW: Fixtures provide an in-memory store, a file store under tmp_path,
and a helper that builds an httpx.MockTransport from a handler function
while recording every request it sees.

RULES:
- No test performs real network I/O
- No test reads or writes ~/.vark
"""

from __future__ import annotations

from typing import Callable, List

import httpx
import pytest

from vark.providers.base import AudioData
from vark.storage import CredentialStore, FileArea, MemoryArea


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers the requests it handled."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def memory_store():
    return CredentialStore(MemoryArea())


@pytest.fixture
def file_store(tmp_path):
    return CredentialStore(FileArea(tmp_path / "config.json"))


@pytest.fixture
def make_transport():
    """Build a RecordingTransport from a request handler."""
    return RecordingTransport


@pytest.fixture
def webm_audio():
    return AudioData(data=b"\x1aE\xdf\xa3fake-webm", mime_type="audio/webm;codecs=opus")
