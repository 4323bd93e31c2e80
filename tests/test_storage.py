"""Tests for reader storage backends."""

from reader.services import LocalLibrary
from reader.storage import JsonFileStorage, MemoryStorage


def test_memory_storage_basic_operations():
    storage = MemoryStorage()
    storage.set_item("fmc_theme", "light")
    assert storage.get_item("fmc_theme") == "light"
    assert len(storage) == 1

    storage.remove_item("fmc_theme")
    storage.remove_item("missing")
    assert storage.get_item("fmc_theme") is None


def test_json_file_storage_persists_across_instances(tmp_path):
    path = tmp_path / "state" / "fmc_storage.json"
    LocalLibrary(JsonFileStorage(path)).toggle_bookmark({"slug": "one-piece", "title": "One Piece"})

    reloaded = LocalLibrary(JsonFileStorage(path))
    assert reloaded.is_bookmarked("one-piece")
    assert reloaded.get_bookmarks()[0].comic.title == "One Piece"


def test_json_file_storage_remove_is_persisted(tmp_path):
    path = tmp_path / "fmc_storage.json"
    storage = JsonFileStorage(path)
    storage.set_item("fmc_theme", "light")
    storage.remove_item("fmc_theme")

    assert JsonFileStorage(path).get_item("fmc_theme") is None


def test_json_file_storage_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "fmc_storage.json"
    path.write_text("{{{ definitely not json", encoding="utf-8")

    storage = JsonFileStorage(path)
    assert storage.keys() == []

    storage.set_item("fmc_theme", "dark")
    assert JsonFileStorage(path).get_item("fmc_theme") == "dark"


def test_json_file_storage_ignores_non_object_file(tmp_path):
    path = tmp_path / "fmc_storage.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert JsonFileStorage(path).keys() == []
