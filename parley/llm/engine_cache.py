"""Process-wide cache of completion engines, keyed by workflow type."""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Set

from parley.llm.engine import CompletionEngine

logger = logging.getLogger(__name__)

EngineBuilder = Callable[[], Awaitable[CompletionEngine]]


@dataclass
class EngineCacheEntry:
    engine: CompletionEngine
    # Names of static plugins already attached to the engine
    static_functions: Set[str] = field(default_factory=set)


class EngineCache:
    """Build-on-miss cache guarded by a single lock.

    An empty key bypasses the cache. With ``max_entries`` set, the least
    recently used entry is evicted once the bound is exceeded.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, EngineCacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get_or_create(self, key: str, build_fn: EngineBuilder) -> EngineCacheEntry:
        if not key:
            logger.debug("Empty engine cache key, building uncached engine")
            return EngineCacheEntry(engine=await build_fn())

        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                logger.debug(f"Using cached engine for {key}")
                return entry

            logger.info(f"Creating new engine for {key}")
            entry = EngineCacheEntry(engine=await build_fn())
            self._entries[key] = entry

            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted engine for {evicted}")
            return entry

    def get(self, key: str) -> Optional[EngineCacheEntry]:
        return self._entries.get(key)

    def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(f"Invalidated engine for {key}")
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
