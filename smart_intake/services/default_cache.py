"""
TTL cache for aggregated field defaults.

Reads are lock-free; writes, evictions and invalidations for a field are
serialized through that field's lock. Expired entries are never returned
and are dropped on the lookup that finds them stale.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from smart_intake.logging_config import get_logger
from smart_intake.schemas.defaults import FieldDefault
from smart_intake.schemas.fields import RequirementField

logger = get_logger(__name__)


@dataclass(frozen=True)
class CachedDefault:
    value: FieldDefault
    timestamp: float


class DefaultsCache:
    """Field-keyed default cache shared by every session of an aggregator."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[RequirementField, CachedDefault] = {}
        self._locks: defaultdict[RequirementField, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CachedDefault) -> bool:
        return self._clock() - entry.timestamp > self.ttl_seconds

    async def get(self, field: RequirementField) -> FieldDefault | None:
        """Return the live entry for ``field``, evicting it if stale."""
        entry = self._entries.get(field)
        if entry is None:
            return None
        if not self._is_expired(entry):
            return entry.value

        async with self._locks[field]:
            # A concurrent writer may have refreshed it while we waited
            current = self._entries.get(field)
            if current is entry:
                del self._entries[field]
                logger.debug("cache_entry_expired", field=field.value)
            elif current is not None and not self._is_expired(current):
                return current.value
        return None

    async def set(self, field: RequirementField, value: FieldDefault) -> None:
        async with self._locks[field]:
            self._entries[field] = CachedDefault(value=value, timestamp=self._clock())

    async def invalidate(self, field: RequirementField) -> None:
        async with self._locks[field]:
            if self._entries.pop(field, None) is not None:
                logger.debug("cache_entry_invalidated", field=field.value)

    async def clear(self) -> None:
        for field in list(self._entries):
            await self.invalidate(field)
