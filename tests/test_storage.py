"""Tests for the credential store and its key/value areas.

WHY: A corrupt config file or record must never crash dictation setup;
it reads as "not configured" and the user re-enters the key.

HOW: Exercise CredentialStore over both MemoryArea and FileArea, then
damage the underlying data directly.
"""

from __future__ import annotations

import json

import pytest

from vark.storage import CredentialStore, FileArea, MemoryArea, create_store


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return CredentialStore(MemoryArea())
    return CredentialStore(FileArea(tmp_path / "nested" / "config.json"))


class TestCredentialStore:
    def test_get_missing_is_none(self, store):
        assert store.get("openai") is None

    def test_set_then_get(self, store):
        store.set("openai", {"apiKey": "sk-abc", "extra": "1"})
        assert store.get("openai") == {"apiKey": "sk-abc", "extra": "1"}

    def test_set_overwrites_whole_record(self, store):
        store.set("soniox", {"apiKey": "a", "languageHints": "en"})
        store.set("soniox", {"apiKey": "b"})
        assert store.get("soniox") == {"apiKey": "b"}

    def test_remove(self, store):
        store.set("google", {"apiKey": "k"})
        store.remove("google")
        assert store.get("google") is None

    def test_remove_missing_is_noop(self, store):
        store.remove("google")
        assert store.list_configured() == []

    def test_list_configured(self, store):
        store.set("openai", {"apiKey": "a"})
        store.set("google", {"apiKey": "b"})
        store.area["unrelated-setting"] = "x"
        assert sorted(store.list_configured()) == ["google", "openai"]

    def test_records_use_prefixed_keys(self, store):
        store.set("openai", {"apiKey": "a"})
        assert "vark-provider-openai" in store.area

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"just a string"'])
    def test_corrupt_record_reads_as_absent(self, store, raw):
        store.area["vark-provider-openai"] = raw
        assert store.get("openai") is None


class TestFileArea:
    def test_writes_json_object(self, tmp_path):
        path = tmp_path / "config.json"
        CredentialStore(FileArea(path)).set("openai", {"apiKey": "sk"})
        data = json.loads(path.read_text(encoding="utf-8"))
        assert json.loads(data["vark-provider-openai"]) == {"apiKey": "sk"}

    def test_two_stores_share_the_file(self, tmp_path):
        path = tmp_path / "config.json"
        CredentialStore(FileArea(path)).set("google", {"apiKey": "g"})
        assert CredentialStore(FileArea(path)).get("google") == {"apiKey": "g"}

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{{{ garbage", encoding="utf-8")
        store = CredentialStore(FileArea(path))
        assert store.get("openai") is None
        assert store.list_configured() == []

    def test_non_object_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[]", encoding="utf-8")
        assert len(FileArea(path)) == 0

    def test_write_after_corruption_recovers(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("garbage", encoding="utf-8")
        store = CredentialStore(FileArea(path))
        store.set("openai", {"apiKey": "new"})
        assert store.get("openai") == {"apiKey": "new"}


class TestCreateStore:
    def test_memory_backend(self):
        assert isinstance(create_store("memory").area, MemoryArea)

    def test_file_backend_with_path(self, tmp_path):
        store = create_store("file", path=tmp_path / "c.json")
        assert isinstance(store.area, FileArea)
        assert store.area.path == tmp_path / "c.json"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_store("redis")
