"""Per-job mutual exclusion within one process."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List


class JobLockMap:
    """asyncio locks keyed by job id.

    Entries are reference counted and dropped once no task holds or waits for
    them, so the map only contains jobs currently being reconciled.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, List] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, job_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(job_id)
        if entry is None:
            entry = self._entries[job_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[job_id]
