# path: graftrack-api/graftrack/services/query_cache.py

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from graftrack.errors import NetworkFailure


LOCATIONS = "locations"
PROSPECTS = "prospects"


class QueryCache:
    """Read-through cache of list queries, invalidated after writes.

    An invalidated entry keeps its last value so a failed refetch can keep
    serving it; the next read retries.
    """

    def __init__(self) -> None:
        self._fetchers: Dict[str, Callable[[], Any]] = {}
        self._data: Dict[str, Any] = {}
        self._stale: set = set()
        self._subscribers: List[Callable[[str], None]] = []

    def register(self, key: str, fetcher: Callable[[], Any]) -> None:
        self._fetchers[key] = fetcher
        self._stale.add(key)

    def subscribe(self, cb: Callable[[str], None]) -> None:
        self._subscribers.append(cb)

    def unsubscribe(self, cb: Callable[[str], None]) -> None:
        if cb in self._subscribers:
            self._subscribers.remove(cb)

    def peek(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def get(self, key: str) -> Any:
        if key in self._data and key not in self._stale:
            return self._data[key]
        try:
            value = self._fetchers[key]()
        except NetworkFailure:
            if key in self._data:
                logger.warning(f"Refetch of {key} failed; serving cached copy")
                return self._data[key]
            raise
        self._data[key] = value
        self._stale.discard(key)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        keys = [key] if key is not None else list(self._fetchers)
        for k in keys:
            self._stale.add(k)
        for k in keys:
            for cb in list(self._subscribers):
                cb(k)
