"""Pydantic models for the reader's local records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class Genre(BaseModel):
    model_config = {"extra": "ignore"}

    title: str


class ComicRef(BaseModel):
    """The slice of a KomikCast comic kept alongside bookmarks and history."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    slug: str
    title: str = ""
    image: str = ""
    type: str = "other"
    status: Optional[str] = None
    rating: Optional[str] = None
    genres: List[Genre] = Field(default_factory=list)
    latest_chapter: Optional[str] = Field(default=None, alias="latestChapter")


class ChapterRef(BaseModel):
    model_config = {"extra": "ignore"}

    slug: str
    title: str = ""


class ReadingProgress(BaseModel):
    comic_slug: str
    chapter_slug: str
    chapter_title: str = ""
    progress: float = 0.0
    last_read: datetime
    total_chapters: int = 0
    read_chapters: List[str] = Field(default_factory=list)

    @field_validator("progress")
    @classmethod
    def clamp_progress(cls, value: float) -> float:
        return _clamp_percent(value)


class BookmarkLastRead(BaseModel):
    chapter_slug: str
    chapter_title: str = ""
    progress: float = 0.0
    date: datetime


class Bookmark(BaseModel):
    comic: ComicRef
    added_at: datetime
    last_read: Optional[BookmarkLastRead] = None


class HistoryItem(BaseModel):
    comic: ComicRef
    chapter: ChapterRef
    read_at: datetime
    progress: float = 0.0

    @field_validator("progress")
    @classmethod
    def clamp_progress(cls, value: float) -> float:
        return _clamp_percent(value)


class ReaderSettings(BaseModel):
    model_config = {"extra": "ignore"}

    mode: Literal["vertical", "horizontal"] = "vertical"
    quality: Literal["low", "medium", "high"] = "high"
    auto_next: bool = True
    show_progress: bool = True


Theme = Literal["dark", "light"]
