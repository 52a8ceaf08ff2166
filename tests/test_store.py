"""JSON-file settings store tests."""

import json

from task_purge.models.settings import MonitorSettings
from task_purge.store import JsonFileSettingsStore


async def test_load_missing_file_returns_none(tmp_path):
    store = JsonFileSettingsStore(tmp_path / "settings.json")
    assert await store.load("u1") is None


async def test_save_then_load(tmp_path):
    store = JsonFileSettingsStore(tmp_path / "nested" / "settings.json")
    settings = MonitorSettings(access_token="tok", watched_user_id="1001", board_id="b1")

    await store.save("u1", settings)

    assert await store.load("u1") == settings
    assert await store.load("u2") is None


async def test_saved_document_uses_camel_case(tmp_path):
    path = tmp_path / "settings.json"
    store = JsonFileSettingsStore(path)

    await store.save("u1", MonitorSettings(access_token="tok", watched_user_id="1001"))

    document = json.loads(path.read_text(encoding="utf-8"))["u1"]
    assert document["accessToken"] == "tok"
    assert document["watchedUserId"] == "1001"
    assert document["pollIntervalMs"] == 900_000
    assert "boardId" not in document


async def test_save_is_an_upsert(tmp_path):
    store = JsonFileSettingsStore(tmp_path / "settings.json")
    await store.save("u1", MonitorSettings(access_token="a", watched_user_id="1"))
    await store.save("u2", MonitorSettings(access_token="b", watched_user_id="2"))
    await store.save("u1", MonitorSettings(access_token="c", watched_user_id="1"))

    assert (await store.load("u1")).access_token == "c"
    assert (await store.load("u2")).access_token == "b"


async def test_invalid_document_treated_as_missing(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"u1": {"pollIntervalMs": -5}}), encoding="utf-8")

    assert await JsonFileSettingsStore(path).load("u1") is None
