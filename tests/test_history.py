from __future__ import annotations

import json
import re

import pytest

from smart_qr_tool.config import AppConfig, HistorySettings
from smart_qr_tool.content import ContentType
from smart_qr_tool.errors import ValidationError
from smart_qr_tool.history import HistoryItem, HistoryStore, compute_stats


def test_add_prepends_and_generates_ids(store):
    first = store.add("generated", ContentType.URL, "https://example.com")
    second = store.add("scanned", "phone", "tel:555")

    assert [item.id for item in store.items] == [second.id, first.id]
    assert re.fullmatch(r"\d+-[0-9a-z]{9}", first.id)
    assert second.content_type is ContentType.PHONE


def test_add_evicts_oldest_beyond_cap(store):
    for index in range(7):
        store.add("generated", "text", f"item {index}")

    assert len(store) == 5
    assert [item.content for item in store.items] == [f"item {index}" for index in range(6, 1, -1)]


def test_add_rejects_unknown_type(store):
    with pytest.raises(ValidationError):
        store.add("printed", "text", "x")


def test_remove_and_clear(store):
    item = store.add("generated", "text", "x")
    store.add("generated", "text", "y")

    assert store.remove(item.id) is True
    assert store.remove(item.id) is False
    assert [entry.content for entry in store.items] == ["y"]

    store.clear()
    assert store.items == []


def test_update_settings_reapplies_cap(store):
    for index in range(5):
        store.add("scanned", "text", str(index))

    store.update_settings(max_history_items=2)

    assert [item.content for item in store.items] == ["4", "3"]
    with pytest.raises(ValidationError):
        store.update_settings(colour="blue")


def test_save_and_load_roundtrip(store, tmp_path):
    store.update_settings(enable_geolocation=True)
    store.add(
        "generated",
        "wifi",
        "WIFI:T:WPA;S:Home;P:pw;;",
        metadata={"size": 256, "error_correction": "M"},
        location={"lat": 1.5, "lng": -2.25},
    )
    store.save()

    loaded = HistoryStore(store.path).load()

    assert loaded.settings.enable_geolocation is True
    assert loaded.settings.max_history_items == 5
    assert loaded.items == store.items
    document = json.loads(store.path.read_text(encoding="utf-8"))
    assert document["history"][0]["content_type"] == "wifi"
    assert list(tmp_path.glob("*.tmp")) == []


def test_load_missing_file_is_empty(tmp_path):
    assert HistoryStore(tmp_path / "nothing.json").load().items == []


def test_load_corrupt_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING"):
        store = HistoryStore(path).load()

    assert store.items == []
    assert "Ignoring unreadable history file" in caplog.text


def test_history_item_from_dict_requires_fields():
    with pytest.raises(ValueError):
        HistoryItem.from_dict({"id": "1", "type": "scanned"})


def test_compute_stats():
    store = HistoryStore("unused.json", HistorySettings())
    store.add("generated", "url", "https://a")
    store.add("generated", "url", "https://b")
    store.add("scanned", "phone", "tel:1")

    stats = compute_stats(store.items)

    assert stats.generated == 2
    assert stats.scanned == 1
    assert stats.by_content_type[ContentType.URL] == 2
    assert stats.by_content_type[ContentType.SMS] == 0
    assert stats.most_common is ContentType.URL


def test_compute_stats_empty_and_ties():
    assert compute_stats([]).most_common is ContentType.TEXT

    store = HistoryStore("unused.json")
    store.add("scanned", "email", "a@b.com")
    store.add("scanned", "phone", "1")

    assert store.stats().most_common is ContentType.PHONE


def test_environment_cap_survives_saved_settings(tmp_path):
    path = tmp_path / "history.json"
    first = HistoryStore(path).load()
    for index in range(3):
        first.add("generated", "text", str(index))
    first.save()

    config = AppConfig.from_env(
        {"SMART_QR_HISTORY": str(path), "SMART_QR_MAX_HISTORY": "1"}
    )
    store = HistoryStore(config.history_path, config.history).load()

    assert store.settings is config.history
    assert store.settings.max_history_items == 1
    assert [item.content for item in store.items] == ["2"]

    store.add("scanned", "text", "new")
    store.save()
    reloaded = HistoryStore(path, AppConfig.from_env({"SMART_QR_MAX_HISTORY": "1"}).history).load()
    assert reloaded.settings.max_history_items == 1
    assert len(reloaded) == 1


def test_load_merges_saved_settings_into_passed_object(tmp_path):
    path = tmp_path / "history.json"
    HistoryStore(path, HistorySettings(default_size=512, default_error_correction="H")).save()

    settings = HistorySettings()
    store = HistoryStore(path, settings).load()

    assert store.settings is settings
    assert settings.default_size == 512
    assert settings.default_error_correction == "H"
