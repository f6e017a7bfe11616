from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from ..config import get_search_debounce_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationGate:
    """
    Last-write-wins guard for async lookups keyed by a logical query name.

    Every submission takes a new generation id. When a result arrives it is
    only handed back if no newer submission for the same key has started
    since; otherwise the caller gets None.
    """

    def __init__(self, debounce_s: Optional[float] = None) -> None:
        self.debounce_s = get_search_debounce_seconds() if debounce_s is None else debounce_s
        self._counter = 0
        self._latest: Dict[str, int] = {}

    def begin(self, key: str = "default") -> int:
        self._counter += 1
        self._latest[key] = self._counter
        return self._counter

    def is_current(self, generation: int, key: str = "default") -> bool:
        return self._latest.get(key) == generation

    async def submit(
        self,
        factory: Callable[[], Awaitable[T]],
        key: str = "default",
        debounce_s: Optional[float] = None,
    ) -> Optional[T]:
        generation = self.begin(key)
        wait = self.debounce_s if debounce_s is None else debounce_s
        if wait > 0:
            await asyncio.sleep(wait)
        # superseded while waiting, skip the call entirely
        if not self.is_current(generation, key):
            logger.debug("Generation %d for %r superseded before fetch", generation, key)
            return None

        result = await factory()
        if not self.is_current(generation, key):
            logger.debug("Discarding stale result for %r (generation %d)", key, generation)
            return None
        return result
