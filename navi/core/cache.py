"""Keyed metadata cache with per-entry fetch timestamps.

One instance per cache kind (git metadata by working directory, task-provider
results by project directory, resource usage by session). Each instance has
its own staleness window; callers may override it per lookup.

Stale entries are still returned so callers can render them while a refetch
runs in the background.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Iterator, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CachedItem(Generic[V]):
    """Wrapper for a cached value or error with its fetch timestamp."""

    def __init__(self, data: V | None, fetched_at: float, error: BaseException | None = None) -> None:
        self.data = data
        self.error = error
        self.fetched_at = fetched_at

    def is_stale(self, max_age: float, now: float) -> bool:
        """Check if the entry has exceeded `max_age` seconds.

        Args:
            max_age: Staleness window (0=always stale, <0=never stale)
            now: Current time in seconds since the epoch

        Returns:
            True if the entry is older than the window, False otherwise
        """
        if max_age == 0:
            return True
        if max_age < 0:
            return False
        return now - self.fetched_at > max_age


@dataclass(frozen=True)
class CacheLookup(Generic[V]):
    """Result of a cache read."""

    value: V | None
    found: bool
    stale: bool
    error: BaseException | None = None

    @property
    def fresh(self) -> bool:
        return self.found and not self.stale


_MISS: CacheLookup[object] = CacheLookup(value=None, found=False, stale=True)


class MetadataCache(Generic[K, V]):
    """Keyed store for one kind of fetched metadata.

    Size is bounded by the number of distinct keys (working directories or
    session identities), so there is no eviction beyond `invalidate`.
    """

    def __init__(self, name: str, max_age: float, clock: Callable[[], float] = time.time) -> None:
        self.name = name
        self.max_age = max_age
        self._clock = clock
        self._items: dict[K, CachedItem[V]] = {}

    def get(self, key: K, max_age: float | None = None) -> CacheLookup[V]:
        """Look up `key`.

        Returns found=False if the key was never set. A present entry is
        returned with stale=True once it is older than `max_age` (defaults to
        the cache's window).
        """
        item = self._items.get(key)
        if item is None:
            return _MISS  # type: ignore[return-value]
        window = self.max_age if max_age is None else max_age
        return CacheLookup(
            value=item.data,
            found=True,
            stale=item.is_stale(window, self._clock()),
            error=item.error,
        )

    def set(
        self,
        key: K,
        value: V | None = None,
        error: BaseException | None = None,
        fetched_at: float | None = None,
    ) -> None:
        """Store a value or an error for `key`, overwriting any entry.

        Remembering errors keeps a permanently failing source from being
        retried before the window elapses.
        """
        if value is not None and error is not None:
            raise ValueError("cache entry holds either a value or an error, not both")
        stamp = self._clock() if fetched_at is None else fetched_at
        self._items[key] = CachedItem(value, stamp, error)

    def invalidate(self, key: K) -> bool:
        """Drop one entry. Returns True if it existed."""
        existed = self._items.pop(key, None) is not None
        if existed:
            logger.debug("Invalidated %s cache entry %s", self.name, key)
        return existed

    def values(self) -> Iterator[tuple[K, V]]:
        """Iterate (key, value) for entries holding a value, stale or not."""
        for key, item in self._items.items():
            if item.data is not None:
                yield key, item.data

    def stale_keys(self, keys: list[K] | None = None) -> list[K]:
        """Return keys from `keys` (default: all cached) that need a refetch.

        Keys never fetched count as stale.
        """
        candidates = list(self._items) if keys is None else keys
        return [key for key in candidates if not self.get(key).fresh]

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
