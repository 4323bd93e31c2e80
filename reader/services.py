"""Reader services: device-local reading progress, history and bookmarks.

Every record lives under an ``fmc_`` key in a key/value storage backend
(see reader.storage). Lists are stored as JSON arrays, most recent first
for progress and history, insertion order for bookmarks.

Reads are fail-open: a missing, corrupt or partially invalid value falls
back to the empty default (invalid entries are dropped, not raised).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from server.logging_config import get_logger

from .models import (
    Bookmark,
    BookmarkLastRead,
    ChapterRef,
    ComicRef,
    HistoryItem,
    ReaderSettings,
    ReadingProgress,
    Theme,
)
from .storage import MemoryStorage

logger = get_logger(__name__)

PREFIX = "fmc_"
PROGRESS_KEY = f"{PREFIX}reading_progress"
BOOKMARKS_KEY = f"{PREFIX}bookmarks"
HISTORY_KEY = f"{PREFIX}history"
THEME_KEY = f"{PREFIX}theme"
READER_SETTINGS_KEY = f"{PREFIX}reader_settings"

MAX_PROGRESS_ITEMS = 50
MAX_HISTORY_ITEMS = 50

M = TypeVar("M", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_comic(comic: Union[ComicRef, dict]) -> ComicRef:
    return comic if isinstance(comic, ComicRef) else ComicRef.model_validate(comic)


def _as_chapter(chapter: Union[ChapterRef, dict]) -> ChapterRef:
    return chapter if isinstance(chapter, ChapterRef) else ChapterRef.model_validate(chapter)


class LocalLibrary:
    """Progress, history, bookmarks and reader preferences for one device."""

    def __init__(self, storage=None, clock: Callable[[], datetime] = _utcnow):
        self.storage = storage if storage is not None else MemoryStorage()
        self._clock = clock

    # --- raw JSON access ---

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.storage.get_item(key)
        except Exception as exc:
            logger.warning(f"Storage read failed for {key}: {exc}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unparseable value under {key}")
            return None

    def _write_json(self, key: str, value: Any) -> None:
        self.storage.set_item(key, json.dumps(value, ensure_ascii=False))

    def _read_list(self, key: str, model: Type[M]) -> List[M]:
        data = self._read_json(key)
        if not isinstance(data, list):
            return []
        items = []
        for entry in data:
            try:
                items.append(model.model_validate(entry))
            except PydanticValidationError:
                logger.debug(f"Dropping invalid {model.__name__} entry under {key}")
        return items

    def _write_list(self, key: str, items: List[BaseModel]) -> None:
        self._write_json(key, [item.model_dump(mode="json") for item in items])

    # --- Reading progress ---

    def list_progress(self) -> List[ReadingProgress]:
        """All progress records, most recently read first."""
        return self._read_list(PROGRESS_KEY, ReadingProgress)

    def get_progress(self, comic_slug: str) -> Optional[ReadingProgress]:
        return next(
            (p for p in self.list_progress() if p.comic_slug == comic_slug), None
        )

    def get_progress_percent(self, comic_slug: str) -> float:
        """Progress of the last chapter read for a comic, 0 when never read."""
        record = self.get_progress(comic_slug)
        return record.progress if record else 0.0

    def save_progress(
        self,
        comic_slug: str,
        chapter_slug: str,
        chapter_title: str,
        progress: float,
        total_chapters: int = 0,
    ) -> ReadingProgress:
        """Replace the comic's progress record and move it to the front.

        read_chapters carries over from the previous record, with
        chapter_slug appended once.
        """
        records = self.list_progress()
        previous = next((p for p in records if p.comic_slug == comic_slug), None)

        read_chapters = list(previous.read_chapters) if previous else []
        if chapter_slug not in read_chapters:
            read_chapters.append(chapter_slug)

        record = ReadingProgress(
            comic_slug=comic_slug,
            chapter_slug=chapter_slug,
            chapter_title=chapter_title,
            progress=progress,
            last_read=self._clock(),
            total_chapters=total_chapters,
            read_chapters=read_chapters,
        )
        remaining = [p for p in records if p.comic_slug != comic_slug]
        self._write_list(PROGRESS_KEY, [record, *remaining][:MAX_PROGRESS_ITEMS])
        return record

    def clear_progress(self, comic_slug: Optional[str] = None) -> None:
        """Forget one comic's progress, or all of it when no slug is given."""
        if comic_slug is None:
            self._write_list(PROGRESS_KEY, [])
            return
        records = [p for p in self.list_progress() if p.comic_slug != comic_slug]
        self._write_list(PROGRESS_KEY, records)

    # --- Bookmarks ---

    def get_bookmarks(self) -> List[Bookmark]:
        return self._read_list(BOOKMARKS_KEY, Bookmark)

    def is_bookmarked(self, comic_slug: str) -> bool:
        return any(b.comic.slug == comic_slug for b in self.get_bookmarks())

    def toggle_bookmark(self, comic: Union[ComicRef, dict]) -> bool:
        """Add the comic if absent, remove it if present.

        Returns True when the comic is bookmarked afterwards.
        """
        comic = _as_comic(comic)
        bookmarks = self.get_bookmarks()
        kept = [b for b in bookmarks if b.comic.slug != comic.slug]
        if len(kept) != len(bookmarks):
            self._write_list(BOOKMARKS_KEY, kept)
            logger.debug(f"Bookmark removed: {comic.slug}")
            return False

        bookmarks.append(Bookmark(comic=comic, added_at=self._clock()))
        self._write_list(BOOKMARKS_KEY, bookmarks)
        logger.debug(f"Bookmark added: {comic.slug}")
        return True

    def remove_bookmark(self, comic_slug: str) -> bool:
        """Returns True if a bookmark was removed."""
        bookmarks = self.get_bookmarks()
        kept = [b for b in bookmarks if b.comic.slug != comic_slug]
        if len(kept) == len(bookmarks):
            return False
        self._write_list(BOOKMARKS_KEY, kept)
        return True

    def _touch_bookmark(self, comic_slug: str, chapter: ChapterRef, progress: float) -> None:
        bookmarks = self.get_bookmarks()
        changed = False
        for bookmark in bookmarks:
            if bookmark.comic.slug == comic_slug:
                bookmark.last_read = BookmarkLastRead(
                    chapter_slug=chapter.slug,
                    chapter_title=chapter.title,
                    progress=progress,
                    date=self._clock(),
                )
                changed = True
        if changed:
            self._write_list(BOOKMARKS_KEY, bookmarks)

    # --- History ---

    def get_history(self) -> List[HistoryItem]:
        return self._read_list(HISTORY_KEY, HistoryItem)

    def add_history(
        self,
        comic: Union[ComicRef, dict],
        chapter: Union[ChapterRef, dict],
        progress: float,
    ) -> HistoryItem:
        """Prepend a history entry, dropping any older entry for the same comic."""
        comic = _as_comic(comic)
        item = HistoryItem(
            comic=comic,
            chapter=_as_chapter(chapter),
            read_at=self._clock(),
            progress=progress,
        )
        remaining = [h for h in self.get_history() if h.comic.slug != comic.slug]
        self._write_list(HISTORY_KEY, [item, *remaining][:MAX_HISTORY_ITEMS])
        return item

    def remove_history(self, comic_slug: str) -> bool:
        history = self.get_history()
        kept = [h for h in history if h.comic.slug != comic_slug]
        if len(kept) == len(history):
            return False
        self._write_list(HISTORY_KEY, kept)
        return True

    def clear_history(self) -> None:
        self.storage.remove_item(HISTORY_KEY)

    # --- Read events ---

    def record_read(
        self,
        comic: Union[ComicRef, dict],
        chapter: Union[ChapterRef, dict],
        progress: float,
        total_chapters: int = 0,
    ) -> ReadingProgress:
        """Record one read event: progress, history and the bookmark's last read."""
        comic = _as_comic(comic)
        chapter = _as_chapter(chapter)
        record = self.save_progress(
            comic.slug, chapter.slug, chapter.title, progress, total_chapters
        )
        self.add_history(comic, chapter, record.progress)
        self._touch_bookmark(comic.slug, chapter, record.progress)
        return record

    # --- Preferences ---

    def get_theme(self) -> Theme:
        try:
            theme = self.storage.get_item(THEME_KEY)
        except Exception as exc:
            logger.warning(f"Storage read failed for {THEME_KEY}: {exc}")
            return "dark"
        return theme if theme in ("dark", "light") else "dark"

    def set_theme(self, theme: Theme) -> None:
        if theme not in ("dark", "light"):
            raise ValueError(f"Unknown theme: {theme!r}")
        self.storage.set_item(THEME_KEY, theme)

    def get_reader_settings(self) -> ReaderSettings:
        """Stored settings merged over the defaults."""
        stored = self._read_json(READER_SETTINGS_KEY)
        defaults = ReaderSettings().model_dump()
        if not isinstance(stored, dict):
            return ReaderSettings()
        try:
            return ReaderSettings.model_validate({**defaults, **stored})
        except PydanticValidationError:
            logger.warning("Stored reader settings are invalid, using defaults")
            return ReaderSettings()

    def save_reader_settings(self, settings: Union[ReaderSettings, dict]) -> ReaderSettings:
        """Persist settings; a dict may hold only the fields being changed."""
        if isinstance(settings, dict):
            settings = ReaderSettings.model_validate(
                {**self.get_reader_settings().model_dump(), **settings}
            )
        self._write_json(READER_SETTINGS_KEY, settings.model_dump(mode="json"))
        return settings

    # --- Everything ---

    def clear_all(self) -> int:
        """Remove every fmc_ key; other keys in the storage are left alone."""
        keys = [k for k in self.storage.keys() if k.startswith(PREFIX)]
        for key in keys:
            self.storage.remove_item(key)
        logger.info(f"Cleared {len(keys)} stored entries")
        return len(keys)
