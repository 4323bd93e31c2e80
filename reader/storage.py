"""Device-local key/value storage for the reader.

Both backends mimic browser localStorage: string keys, string values,
synchronous reads and writes. JsonFileStorage keeps everything in one
JSON object on disk and rewrites it atomically on every change.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from server.logging_config import get_logger

logger = get_logger(__name__)


class MemoryStorage:
    """In-process storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStorage(MemoryStorage):
    """Storage persisted to a single JSON file.

    An unreadable or corrupt file is treated as empty (logged, not raised);
    it is overwritten on the next write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Could not read {self.path}, starting empty: {exc}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring {self.path}: expected a JSON object")
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=".fmc_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        if key in self._data:
            super().remove_item(key)
            self._flush()
