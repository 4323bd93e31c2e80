"""New-chapter check for bookmarked comics."""

from __future__ import annotations

from typing import Any, List, NamedTuple, Optional

from pydantic import ValidationError as PydanticValidationError

from server.logging_config import get_logger

from .komikcast import KomikCastClient
from .models import Bookmark, ChapterRef, ComicRef
from .services import LocalLibrary

logger = get_logger(__name__)


class NewChapter(NamedTuple):
    comic: ComicRef
    chapter: ChapterRef


def _newest_chapter(detail: Any) -> Optional[ChapterRef]:
    """First entry of detail["chapters"]; the scraper lists newest first."""
    if not isinstance(detail, dict):
        return None
    chapters = detail.get("chapters")
    if not isinstance(chapters, list) or not chapters or not isinstance(chapters[0], dict):
        return None
    try:
        newest = ChapterRef.model_validate(chapters[0])
    except PydanticValidationError:
        return None
    return newest if newest.slug else None


def _last_read_chapter(library: LocalLibrary, bookmark: Bookmark) -> Optional[str]:
    if bookmark.last_read is not None:
        return bookmark.last_read.chapter_slug
    progress = library.get_progress(bookmark.comic.slug)
    return progress.chapter_slug if progress else None


def check_new_chapters(library: LocalLibrary, client: KomikCastClient) -> List[NewChapter]:
    """Bookmarked comics whose newest chapter is not the one last read.

    Comics the API cannot return (or that list no chapters) are skipped.
    """
    found = []
    for bookmark in library.get_bookmarks():
        newest = _newest_chapter(client.detail(bookmark.comic.slug))
        if newest is None:
            logger.debug(f"No chapter list for {bookmark.comic.slug}, skipping")
            continue
        if newest.slug != _last_read_chapter(library, bookmark):
            found.append(NewChapter(bookmark.comic, newest))
    return found
