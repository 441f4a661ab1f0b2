# tests/test_kv_store.py

from __future__ import annotations

from pathlib import Path

from deskboard.storage.kv_store import KeyValueStore, items_key, minimized_key


def test_json_roundtrip_and_defaults(tmp_path: Path) -> None:
    store = KeyValueStore(tmp_path / "kv.sqlite3")

    assert store.get_json("missing", []) == []
    store.set_json("tasks", [{"id": "t1", "text": "milk"}])
    assert store.get_json("tasks", None) == [{"id": "t1", "text": "milk"}]

    # A second store over the same file sees the data.
    again = KeyValueStore(tmp_path / "kv.sqlite3")
    assert again.get_list("tasks") == [{"id": "t1", "text": "milk"}]


def test_malformed_blob_reads_as_default(tmp_path: Path) -> None:
    store = KeyValueStore(tmp_path / "kv.sqlite3")
    store.set("events", "{not json")
    store.set_json("viewMode", {"oops": 1})

    assert store.get_json("events", []) == []
    assert store.get_list("viewMode") == []


def test_set_many_writes_all_keys(tmp_path: Path) -> None:
    store = KeyValueStore(tmp_path / "kv.sqlite3")
    store.set_many_json({items_key("free"): [1], minimized_key("free"): [2]})

    assert store.get_json("items:free", None) == [1]
    assert store.get_json("minimized:free", None) == [2]
    assert store.keys() == ["items:free", "minimized:free"]

    store.delete("items:free")
    assert store.get("items:free") is None
