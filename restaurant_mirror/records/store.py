from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from ..errors import StoreCorrupt
from .backends import KeyValueStore
from .models import Record, RecordCollection

logger = logging.getLogger(__name__)


class RecordStore:
    """Durable mirror of the most recent restaurant collection, keyed by id.

    Backend calls block, so they run in a worker thread; the backend's own
    transaction handling keeps ``put_all`` atomic with respect to ``get_all``.
    """

    def __init__(self, backend: KeyValueStore) -> None:
        self._backend = backend
        self._opened = False
        self._open_lock = asyncio.Lock()

    async def _ensure_open(self) -> None:
        if self._opened:
            return
        async with self._open_lock:
            if not self._opened:
                await asyncio.to_thread(self._backend.open)
                self._opened = True

    async def put_all(self, records: RecordCollection) -> None:
        """Upsert every record; ids not present in ``records`` are left alone."""
        await self._ensure_open()
        values = [record.model_dump(mode="json") for record in records]
        await asyncio.to_thread(self._backend.put_all, values)
        logger.debug("Stored %d restaurants", len(values))

    async def get_all(self) -> RecordCollection:
        """Return every stored record in no particular order."""
        await self._ensure_open()
        rows = await asyncio.to_thread(self._backend.get_all)
        try:
            return [Record.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise StoreCorrupt(f"Stored restaurant failed validation: {exc.error_count()} error(s)") from exc

    async def clear(self) -> None:
        await self._ensure_open()
        await asyncio.to_thread(self._backend.clear)
