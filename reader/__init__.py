"""Headless core of the FMC Comic reader.

Device-local progress/history/bookmarks plus the HTTP clients for the
KomikCast scraper and the mapping service.
"""

from .services import LocalLibrary
from .storage import JsonFileStorage, MemoryStorage

__all__ = ["LocalLibrary", "JsonFileStorage", "MemoryStorage"]
