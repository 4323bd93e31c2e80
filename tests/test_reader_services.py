"""Tests for the local progress/history/bookmark store."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from reader.models import ComicRef, ReaderSettings
from reader.services import (
    BOOKMARKS_KEY,
    HISTORY_KEY,
    MAX_HISTORY_ITEMS,
    MAX_PROGRESS_ITEMS,
    PROGRESS_KEY,
    LocalLibrary,
)
from reader.storage import MemoryStorage


class TickingClock:
    """Deterministic clock: each call is one minute after the previous."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def library(storage):
    return LocalLibrary(storage, clock=TickingClock())


def _comic(slug, title=None):
    return ComicRef(slug=slug, title=title or slug.replace("-", " ").title())


def test_toggle_bookmark_twice_restores_membership(library):
    comic = _comic("one-piece")
    assert library.is_bookmarked("one-piece") is False

    assert library.toggle_bookmark(comic) is True
    assert library.is_bookmarked("one-piece") is True

    assert library.toggle_bookmark(comic) is False
    assert library.is_bookmarked("one-piece") is False
    assert library.get_bookmarks() == []


def test_toggle_bookmark_matches_by_slug_only(library):
    library.toggle_bookmark(_comic("one-piece", "One Piece"))
    assert library.toggle_bookmark({"slug": "one-piece", "title": "Renamed"}) is False


def test_remove_bookmark(library):
    library.toggle_bookmark(_comic("naruto"))
    assert library.remove_bookmark("naruto") is True
    assert library.remove_bookmark("naruto") is False


def test_add_history_keeps_one_entry_per_comic_most_recent_first(library):
    library.add_history(_comic("one-piece"), {"slug": "op-1", "title": "Chapter 1"}, 100)
    library.add_history(_comic("naruto"), {"slug": "naruto-1", "title": "Chapter 1"}, 40)
    library.add_history(_comic("one-piece"), {"slug": "op-2", "title": "Chapter 2"}, 10)

    history = library.get_history()
    assert [h.comic.slug for h in history] == ["one-piece", "naruto"]
    assert history[0].chapter.slug == "op-2"
    assert history[0].progress == 10


def test_history_is_capped(library):
    for i in range(MAX_HISTORY_ITEMS + 10):
        library.add_history(_comic(f"comic-{i}"), {"slug": f"c-{i}"}, 50)

    history = library.get_history()
    assert len(history) == MAX_HISTORY_ITEMS
    assert history[0].comic.slug == f"comic-{MAX_HISTORY_ITEMS + 9}"


def test_remove_and_clear_history(library, storage):
    library.add_history(_comic("a"), {"slug": "a-1"}, 10)
    library.add_history(_comic("b"), {"slug": "b-1"}, 10)

    assert library.remove_history("a") is True
    assert [h.comic.slug for h in library.get_history()] == ["b"]

    library.clear_history()
    assert library.get_history() == []
    assert storage.get_item(HISTORY_KEY) is None


def test_progress_list_never_exceeds_cap(library):
    for i in range(MAX_PROGRESS_ITEMS * 2):
        library.save_progress(f"comic-{i % 70}", f"ch-{i}", f"Chapter {i}", 50)
        assert len(library.list_progress()) <= MAX_PROGRESS_ITEMS

    assert len(library.list_progress()) == MAX_PROGRESS_ITEMS


def test_save_progress_replaces_record_and_accumulates_read_chapters(library):
    library.save_progress("one-piece", "op-1", "Chapter 1", 100, total_chapters=3)
    library.save_progress("naruto", "naruto-1", "Chapter 1", 20)
    library.save_progress("one-piece", "op-2", "Chapter 2", 30, total_chapters=3)
    library.save_progress("one-piece", "op-1", "Chapter 1", 60, total_chapters=3)

    records = library.list_progress()
    assert [p.comic_slug for p in records] == ["one-piece", "naruto"]

    record = library.get_progress("one-piece")
    assert record.chapter_slug == "op-1"
    assert record.progress == 60
    assert record.read_chapters == ["op-1", "op-2"]
    assert library.get_progress_percent("one-piece") == 60
    assert library.get_progress_percent("unknown") == 0


def test_progress_is_clamped(library):
    assert library.save_progress("a", "a-1", "", 150).progress == 100
    assert library.save_progress("a", "a-1", "", -5).progress == 0


def test_clear_progress_single_and_all(library):
    library.save_progress("a", "a-1", "", 10)
    library.save_progress("b", "b-1", "", 10)

    library.clear_progress("a")
    assert [p.comic_slug for p in library.list_progress()] == ["b"]

    library.clear_progress()
    assert library.list_progress() == []


def test_record_read_updates_progress_history_and_bookmark(library):
    comic = _comic("one-piece")
    library.toggle_bookmark(comic)

    library.record_read(comic, {"slug": "op-5", "title": "Chapter 5"}, 75, total_chapters=10)

    assert library.get_progress("one-piece").chapter_slug == "op-5"
    assert library.get_history()[0].chapter.title == "Chapter 5"
    last_read = library.get_bookmarks()[0].last_read
    assert last_read.chapter_slug == "op-5"
    assert last_read.progress == 75


def test_record_read_without_bookmark_does_not_bookmark(library):
    library.record_read(_comic("naruto"), {"slug": "n-1"}, 10)
    assert library.get_bookmarks() == []


def test_corrupt_values_read_as_empty(storage, library):
    storage.set_item(PROGRESS_KEY, "{not json")
    storage.set_item(HISTORY_KEY, json.dumps({"not": "a list"}))
    storage.set_item(BOOKMARKS_KEY, json.dumps([{"comic": {"slug": "ok"}, "added_at": "2025-01-01T00:00:00Z"}, {"broken": True}]))

    assert library.list_progress() == []
    assert library.get_history() == []
    assert [b.comic.slug for b in library.get_bookmarks()] == ["ok"]


def test_storage_read_failure_is_fail_open():
    class BrokenStorage(MemoryStorage):
        def get_item(self, key):
            raise OSError("disk unavailable")

    library = LocalLibrary(BrokenStorage())
    assert library.get_bookmarks() == []
    assert library.get_history() == []
    assert library.get_theme() == "dark"
    assert library.get_reader_settings() == ReaderSettings()


def test_theme_defaults_to_dark(library):
    assert library.get_theme() == "dark"
    library.set_theme("light")
    assert library.get_theme() == "light"
    with pytest.raises(ValueError):
        library.set_theme("sepia")


def test_reader_settings_merge_over_defaults(library, storage):
    storage.set_item("fmc_reader_settings", json.dumps({"mode": "horizontal"}))
    settings = library.get_reader_settings()
    assert settings.mode == "horizontal"
    assert settings.quality == "high"
    assert settings.auto_next is True

    library.save_reader_settings({"quality": "low"})
    settings = library.get_reader_settings()
    assert (settings.mode, settings.quality) == ("horizontal", "low")


def test_clear_all_only_removes_prefixed_keys(library, storage):
    storage.set_item("other_app_key", "keep me")
    library.toggle_bookmark(_comic("a"))
    library.save_progress("a", "a-1", "", 5)
    library.set_theme("light")

    assert library.clear_all() == 3
    assert storage.keys() == ["other_app_key"]
