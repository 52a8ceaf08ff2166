"""Settings document store keyed by user id.

The production deployment keeps settings in a hosted document store; the
JSON-file store below implements the same read/upsert contract for
single-process use.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from task_purge.models.settings import MonitorSettings

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    """Read returns the settings or None when not found; save upserts."""

    async def load(self, user_id: str) -> MonitorSettings | None: ...

    async def save(self, user_id: str, settings: MonitorSettings) -> None: ...


class JsonFileSettingsStore:
    """All users' settings in one JSON document, ``{user_id: {camelCase fields}}``.

    File I/O runs in a worker thread; writes are serialized with a lock.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self._path)

    async def load(self, user_id: str) -> MonitorSettings | None:
        data = await asyncio.to_thread(self._read_all)
        document = data.get(user_id)
        if document is None:
            return None
        try:
            return MonitorSettings.model_validate(document)
        except ValidationError:
            logger.warning("Stored settings for %s are invalid, treating as missing", user_id)
            return None

    async def save(self, user_id: str, settings: MonitorSettings) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[user_id] = settings.model_dump(mode="json", by_alias=True, exclude_none=True)
            await asyncio.to_thread(self._write_all, data)
        logger.info("Saved settings", extra={"user_id": user_id})
