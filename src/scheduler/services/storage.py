"""JSON key-value storage.

Each key maps to one JSON array on disk, read and written wholesale.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

APPOINTMENTS_KEY = "quickSchedulerAppointments"
CLIENTS_KEY = "quickSchedulerClients"


class JsonStore:
    def __init__(self, data_dir: Path | str | None = None):
        if data_dir is None:
            from scheduler.config import settings

            data_dir = settings.data_dir
        self.data_dir = Path(data_dir).expanduser()

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> list[dict[str, Any]]:
        """Return the array stored under ``key``.

        A missing file is an empty array. An unreadable or non-array
        document is logged and also treated as empty.
        """
        path = self.path_for(key)
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading {key}: {e}")
            return []

        if not isinstance(data, list):
            logger.error(f"Error loading {key}: expected a JSON array, got {type(data).__name__}")
            return []
        return data

    def save(self, key: str, items: list[dict[str, Any]]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)

        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved {len(items)} item(s) under {key}")


_store: JsonStore | None = None


def get_store() -> JsonStore:
    global _store
    if _store is None:
        _store = JsonStore()
    return _store
