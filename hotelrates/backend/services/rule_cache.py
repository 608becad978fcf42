"""Read-through TTL cache in front of a rule store."""
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import logging
import time
from hotelrates.backend.schemas.rates import RateWindow, SeasonalRate
from hotelrates.backend.services.rule_store import RuleStore


logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, Optional[str], date, date]


class CachedRuleStore(RuleStore):
    """
    Rule store wrapper caching query results for a short TTL.

    Entries are keyed by record kind, org, room type and date range so a
    stay's nights share one fetch while administrative edits show up once
    the TTL lapses, or immediately after invalidate().
    """

    def __init__(
        self,
        store: RuleStore,
        ttl_seconds: float = 120.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize cached rule store.

        Args:
            store: Underlying rule store
            ttl_seconds: Seconds an entry stays fresh
            max_entries: Entry bound; the oldest entry is evicted first
            clock: Monotonic time source
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, List[Any]]] = {}
        # Bumped by invalidate(); a fetch started under an older generation is not stored
        self._generation = 0
        self._org_generations: Dict[str, int] = {}

    async def get_windows(
        self,
        org_id: str,
        room_type: Optional[str],
        start: date,
        end: date
    ) -> List[RateWindow]:
        key = ("windows", org_id, room_type, start, end)
        return await self._read_through(
            key, lambda: self.store.get_windows(org_id, room_type, start, end)
        )

    async def get_seasonal_rates(
        self,
        org_id: str,
        room_type: str,
        start: date,
        end: date
    ) -> List[SeasonalRate]:
        key = ("seasonal", org_id, room_type, start, end)
        return await self._read_through(
            key, lambda: self.store.get_seasonal_rates(org_id, room_type, start, end)
        )

    def invalidate(self, org_id: Optional[str] = None) -> int:
        """
        Drop cached entries.

        Args:
            org_id: Only drop this organisation's entries; None drops everything

        Returns:
            Number of entries removed
        """
        if org_id is None:
            removed = len(self._entries)
            self._entries.clear()
            self._generation += 1
        else:
            self._org_generations[org_id] = self._org_generations.get(org_id, 0) + 1
            stale = [key for key in self._entries if key[1] == org_id]
            for key in stale:
                del self._entries[key]
            removed = len(stale)
        logger.info(f"Rule cache invalidated ({removed} entries, org={org_id or 'all'})")
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def _generation_of(self, org_id: str) -> Tuple[int, int]:
        return self._generation, self._org_generations.get(org_id, 0)

    async def _read_through(
        self,
        key: CacheKey,
        fetch: Callable[[], Awaitable[List[Any]]]
    ) -> List[Any]:
        cached = self._entries.get(key)
        if cached is not None:
            stored_at, rows = cached
            if self._clock() - stored_at < self.ttl_seconds:
                logger.debug(f"Rule cache hit for {key}")
                return list(rows)
            del self._entries[key]

        org_id = key[1]
        generation = self._generation_of(org_id)

        # Store errors propagate and are never cached
        rows = await fetch()

        if self._generation_of(org_id) != generation:
            logger.debug(f"Rule cache invalidated during fetch of {key}, not storing")
            return list(rows)

        if len(self._entries) >= self.max_entries:
            # Remove oldest entry (simple FIFO)
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
        self._entries[key] = (self._clock(), list(rows))
        return list(rows)
