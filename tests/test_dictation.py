"""Tests for provider selection and the dictation session.

WHY: The tri-state validation result decides whether a key is kept, and
the transcript must be merged into the document as it is when
transcription finishes. Both are easy to get subtly wrong.

HOW: Real provider classes with an httpx.MockTransport injected through
provider_factory. Scenarios run under asyncio.run() because the sync
controller arms event-loop timers.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from vark import errors
from vark.core.codec import decode_content
from vark.core.models import ContentState
from vark.dictation import DictationSession, DictationState, ProviderSelection, ValidationStatus
from vark.providers import UnknownProviderError, create_provider
from vark.sync.controller import SyncController
from vark.sync.history import NavigationHistory

OPENAI_KEY = "sk-test-0123456789abcdefghij"


def _factory(transport):
    def build(key):
        return create_provider(key, transport=transport)
    return build


def _openai_server(models_status=200, transcript="hello there", transcribe_status=200):
    def handler(request):
        if request.url.path == "/v1/models":
            return httpx.Response(models_status, json={"data": []})
        if request.url.path == "/v1/audio/transcriptions":
            return httpx.Response(transcribe_status, json={"text": transcript})
        return httpx.Response(404)
    return handler


# ---------------------------------------------------------------------------
# ProviderSelection
# ---------------------------------------------------------------------------


class TestProviderSelection:
    def test_select_without_stored_config_is_idle(self, memory_store, make_transport):
        transport = make_transport(_openai_server())
        selection = ProviderSelection(memory_store, provider_factory=_factory(transport))
        status = asyncio.run(selection.select("openai"))
        assert status is ValidationStatus.IDLE
        assert selection.provider_key == "openai"
        assert not selection.ready
        assert transport.requests == []

    def test_constructor_selects_without_network(self, memory_store, make_transport):
        memory_store.set("openai", {"apiKey": OPENAI_KEY})
        transport = make_transport(_openai_server())
        selection = ProviderSelection(memory_store, "openai", provider_factory=_factory(transport))
        assert selection.config == {"apiKey": OPENAI_KEY}
        assert selection.status is ValidationStatus.IDLE
        assert transport.requests == []

    def test_select_revalidates_stored_config(self, memory_store, make_transport):
        memory_store.set("openai", {"apiKey": OPENAI_KEY})
        transport = make_transport(_openai_server())
        selection = ProviderSelection(memory_store, provider_factory=_factory(transport))
        assert asyncio.run(selection.select("openai")) is ValidationStatus.VALID
        assert selection.ready
        assert len(transport.requests) == 1

    def test_unknown_provider(self, memory_store):
        selection = ProviderSelection(memory_store)
        with pytest.raises(UnknownProviderError):
            asyncio.run(selection.select("nope"))

    def test_valid_key_is_stored(self, memory_store, make_transport):
        seen = []
        selection = ProviderSelection(
            memory_store,
            "openai",
            provider_factory=_factory(make_transport(_openai_server())),
            on_status_change=seen.append,
        )
        status = asyncio.run(selection.validate({"apiKey": OPENAI_KEY}))
        assert status is ValidationStatus.VALID
        assert memory_store.get("openai") == {"apiKey": OPENAI_KEY}
        assert seen == [ValidationStatus.VALIDATING, ValidationStatus.VALID]

    def test_invalid_key_is_removed(self, memory_store, make_transport):
        memory_store.set("openai", {"apiKey": "sk-old-key-that-used-to-work"})
        selection = ProviderSelection(
            memory_store, "openai", provider_factory=_factory(make_transport(_openai_server(401)))
        )
        assert asyncio.run(selection.validate({"apiKey": OPENAI_KEY})) is ValidationStatus.INVALID
        assert memory_store.get("openai") is None
        assert not selection.ready
        assert selection.failure_code is None

    def test_restricted_key_is_stored_by_default(self, memory_store, make_transport):
        selection = ProviderSelection(
            memory_store, "openai", provider_factory=_factory(make_transport(_openai_server(403)))
        )
        assert asyncio.run(selection.validate({"apiKey": OPENAI_KEY})) is ValidationStatus.RESTRICTED
        assert memory_store.get("openai") == {"apiKey": OPENAI_KEY}
        assert selection.ready

    def test_restricted_key_removed_when_not_persisting(self, memory_store, make_transport):
        memory_store.set("openai", {"apiKey": OPENAI_KEY})
        selection = ProviderSelection(
            memory_store,
            "openai",
            persist_restricted=False,
            provider_factory=_factory(make_transport(_openai_server(429))),
        )
        assert asyncio.run(selection.validate({"apiKey": OPENAI_KEY})) is ValidationStatus.RESTRICTED
        assert memory_store.get("openai") is None

    def test_network_failure_is_invalid_but_keeps_stored_key(self, memory_store, make_transport):
        memory_store.set("openai", {"apiKey": OPENAI_KEY})

        def offline(request):
            raise httpx.ConnectError("offline", request=request)

        selection = ProviderSelection(memory_store, "openai", provider_factory=_factory(make_transport(offline)))
        assert asyncio.run(selection.validate({"apiKey": OPENAI_KEY})) is ValidationStatus.INVALID
        assert memory_store.get("openai") == {"apiKey": OPENAI_KEY}
        assert selection.failure_code == errors.NETWORK_ERROR

    def test_failure_code_clears_once_the_vendor_answers(self, memory_store, make_transport):
        online = {"up": False}

        def flaky(request):
            if not online["up"]:
                raise httpx.ConnectError("offline", request=request)
            return httpx.Response(200, json={"data": []})

        selection = ProviderSelection(memory_store, "openai", provider_factory=_factory(make_transport(flaky)))
        asyncio.run(selection.validate({"apiKey": OPENAI_KEY}))
        assert selection.failure_code == errors.NETWORK_ERROR
        online["up"] = True
        assert asyncio.run(selection.validate({"apiKey": OPENAI_KEY})) is ValidationStatus.VALID
        assert selection.failure_code is None

    def test_empty_key_is_idle_without_request(self, memory_store, make_transport):
        transport = make_transport(_openai_server())
        selection = ProviderSelection(memory_store, "openai", provider_factory=_factory(transport))
        assert asyncio.run(selection.validate({"apiKey": "  "})) is ValidationStatus.IDLE
        assert transport.requests == []

    def test_update_field_validates_merged_record(self, memory_store, make_transport):
        transport = make_transport(lambda r: httpx.Response(200, json={"files": []}))
        selection = ProviderSelection(memory_store, "soniox", provider_factory=_factory(transport))

        async def scenario():
            await selection.update_field("apiKey", "soniox-key-0123456789abcdef")
            return await selection.update_field("languageHints", "en, sv")

        assert asyncio.run(scenario()) is ValidationStatus.VALID
        assert memory_store.get("soniox") == {
            "apiKey": "soniox-key-0123456789abcdef",
            "languageHints": "en, sv",
        }

    def test_clearing_a_field_goes_idle_and_forgets(self, memory_store, make_transport):
        selection = ProviderSelection(
            memory_store, "openai", provider_factory=_factory(make_transport(_openai_server()))
        )

        async def scenario():
            await selection.update_field("apiKey", OPENAI_KEY)
            return await selection.update_field("apiKey", "")

        assert asyncio.run(scenario()) is ValidationStatus.IDLE
        assert memory_store.get("openai") is None

    def test_clearing_an_optional_field_keeps_the_key(self, memory_store, make_transport):
        transport = make_transport(lambda r: httpx.Response(200, json={"files": []}))
        selection = ProviderSelection(memory_store, "soniox", provider_factory=_factory(transport))

        async def scenario():
            await selection.update_field("apiKey", "soniox-key-0123456789abcdef")
            await selection.update_field("languageHints", "en, sv")
            return await selection.update_field("languageHints", "")

        assert asyncio.run(scenario()) is ValidationStatus.VALID
        assert memory_store.get("soniox") == {"apiKey": "soniox-key-0123456789abcdef"}
        assert selection.config == {"apiKey": "soniox-key-0123456789abcdef"}
        assert selection.ready

    def test_stale_validation_is_discarded(self, memory_store, make_transport):
        async def scenario():
            gate = asyncio.Event()

            async def slow(request):
                await gate.wait()
                return httpx.Response(200, json={"data": []})

            selection = ProviderSelection(
                memory_store, "openai", provider_factory=_factory(make_transport(slow))
            )
            task = asyncio.create_task(selection.validate({"apiKey": OPENAI_KEY}))
            await asyncio.sleep(0.01)
            assert selection.status is ValidationStatus.VALIDATING
            await selection.select("google")
            gate.set()
            await task
            return selection

        selection = asyncio.run(scenario())
        assert selection.provider_key == "google"
        assert selection.status is ValidationStatus.IDLE
        assert memory_store.get("openai") is None

    def test_forget(self, memory_store, make_transport):
        selection = ProviderSelection(
            memory_store, "openai", provider_factory=_factory(make_transport(_openai_server()))
        )
        asyncio.run(selection.validate({"apiKey": OPENAI_KEY}))
        selection.forget()
        assert memory_store.get("openai") is None
        assert selection.status is ValidationStatus.IDLE
        assert selection.config is None


# ---------------------------------------------------------------------------
# DictationSession
# ---------------------------------------------------------------------------


class _StubSelection:
    """Selection double for gating tests; only status and ready are read."""

    def __init__(self, status):
        self.status = status
        self.ready = status in (ValidationStatus.VALID, ValidationStatus.RESTRICTED)
        self.provider = None
        self.config = None


def _configured(memory_store, make_transport, **server):
    selection = ProviderSelection(
        memory_store, "openai", provider_factory=_factory(make_transport(_openai_server(**server)))
    )
    return selection


class TestDictationGating:
    @pytest.mark.parametrize("status", [ValidationStatus.IDLE, ValidationStatus.INVALID])
    def test_unconfigured_requires_config(self, status):
        failures = []
        controller = SyncController(NavigationHistory())
        session = DictationSession(_StubSelection(status), controller, on_error=lambda c, m: failures.append((c, m)))
        assert session.start() is False
        assert failures == [(errors.CONFIG_REQUIRED, errors.message_for(errors.CONFIG_REQUIRED))]
        assert session.state is DictationState.IDLE

    def test_validating_warns(self):
        failures = []
        controller = SyncController(NavigationHistory())
        session = DictationSession(
            _StubSelection(ValidationStatus.VALIDATING), controller, on_error=lambda c, m: failures.append(c)
        )
        assert session.start() is False
        assert failures == [errors.VALIDATING]

    def test_restricted_may_record(self):
        controller = SyncController(NavigationHistory())
        session = DictationSession(_StubSelection(ValidationStatus.RESTRICTED), controller)
        assert session.start() is True
        assert session.state is DictationState.RECORDING

    def test_busy_start_is_ignored(self):
        failures = []
        controller = SyncController(NavigationHistory())
        session = DictationSession(
            _StubSelection(ValidationStatus.VALID), controller, on_error=lambda c, m: failures.append(c)
        )
        assert session.start() is True
        assert session.start() is False
        assert failures == []

    def test_cancel_returns_to_idle(self):
        controller = SyncController(NavigationHistory())
        transitions = []
        session = DictationSession(
            _StubSelection(ValidationStatus.VALID),
            controller,
            on_state_change=lambda old, new: transitions.append(new),
        )
        session.start()
        session.cancel()
        assert session.state is DictationState.IDLE
        assert transitions == [DictationState.RECORDING, DictationState.IDLE]


class TestDictationFlow:
    def test_start_commits_and_transcript_merges_into_current_text(self, memory_store, make_transport, webm_audio):
        async def scenario():
            selection = _configured(memory_store, make_transport, transcript="  dictated words ")
            await selection.validate({"apiKey": OPENAI_KEY})
            history = NavigationHistory()
            controller = SyncController(history, save_delay_s=10)
            session = DictationSession(selection, controller)

            controller.edit("typed before")
            assert session.start()
            committed_at_start = decode_content(history.current()).text

            # The user keeps typing while audio is being captured
            controller.edit("typed before\ntyped during")
            text = await session.finish(webm_audio)
            state = controller.current()
            controller.close()
            return committed_at_start, text, state, session.state

        committed_at_start, text, state, final_state = asyncio.run(scenario())
        assert committed_at_start == "typed before"
        assert text == "dictated words"
        assert state == ContentState("typed before\ntyped during\ndictated words")
        assert final_state is DictationState.IDLE

    def test_transcript_into_empty_document_has_no_leading_newline(self, memory_store, make_transport, webm_audio):
        async def scenario():
            selection = _configured(memory_store, make_transport)
            await selection.validate({"apiKey": OPENAI_KEY})
            controller = SyncController(NavigationHistory(), save_delay_s=10)
            session = DictationSession(selection, controller)
            session.start()
            await session.finish(webm_audio)
            state = controller.current()
            controller.close()
            return state

        assert asyncio.run(scenario()).text == "hello there"

    def test_provider_error_leaves_document_untouched(self, memory_store, make_transport, webm_audio):
        async def scenario():
            selection = _configured(memory_store, make_transport, transcribe_status=401)
            await selection.validate({"apiKey": OPENAI_KEY})
            failures = []
            controller = SyncController(NavigationHistory(), save_delay_s=10)
            controller.edit("keep")
            session = DictationSession(selection, controller, on_error=lambda c, m: failures.append((c, m)))
            session.start()
            text = await session.finish(webm_audio)
            return text, controller.current(), failures, session.state

        text, state, failures, final_state = asyncio.run(scenario())
        assert text is None
        assert state.text == "keep"
        assert failures == [(errors.AUTH_FAILED, errors.message_for(errors.AUTH_FAILED))]
        assert final_state is DictationState.IDLE

    def test_unreadable_transcript_reports_network_error(self, memory_store, make_transport, webm_audio):
        def gateway(request):
            if request.url.path == "/v1/models":
                return httpx.Response(200, json={"data": []})
            return httpx.Response(200, text="<html>gateway</html>")

        async def scenario():
            selection = ProviderSelection(
                memory_store, "openai", provider_factory=_factory(make_transport(gateway))
            )
            await selection.validate({"apiKey": OPENAI_KEY})
            failures = []
            controller = SyncController(NavigationHistory(), save_delay_s=10)
            controller.edit("keep")
            session = DictationSession(selection, controller, on_error=lambda c, m: failures.append(c))
            session.start()
            text = await session.finish(webm_audio)
            return text, controller.current(), failures

        text, state, failures = asyncio.run(scenario())
        assert text is None
        assert state.text == "keep"
        assert failures == [errors.NETWORK_ERROR]

    def test_restricted_error_message(self, memory_store, make_transport, webm_audio):
        async def scenario():
            selection = _configured(memory_store, make_transport, transcribe_status=403)
            await selection.validate({"apiKey": OPENAI_KEY})
            failures = []
            session = DictationSession(
                selection, SyncController(NavigationHistory()), on_error=lambda c, m: failures.append(m)
            )
            session.start()
            await session.finish(webm_audio)
            return failures

        failures = asyncio.run(scenario())
        assert "restricted" in failures[0]

    def test_empty_transcript(self, memory_store, make_transport, webm_audio):
        async def scenario():
            selection = _configured(memory_store, make_transport, transcript="   ")
            await selection.validate({"apiKey": OPENAI_KEY})
            failures = []
            controller = SyncController(NavigationHistory())
            session = DictationSession(selection, controller, on_error=lambda c, m: failures.append(c))
            session.start()
            text = await session.finish(webm_audio)
            return text, controller.current(), failures

        text, state, failures = asyncio.run(scenario())
        assert text is None
        assert state == ContentState.empty()
        assert failures == [errors.EMPTY_TRANSCRIPT]

    def test_finish_without_start_is_ignored(self, memory_store, make_transport, webm_audio):
        selection = _configured(memory_store, make_transport)
        session = DictationSession(selection, SyncController(NavigationHistory()))
        assert asyncio.run(session.finish(webm_audio)) is None
