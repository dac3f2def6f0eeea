"""In-process tier of the catalog cache."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from modelatlas.catalog.types import CacheEntry, CacheSource

logger = logging.getLogger(__name__)


class MemoryCache:
    """Hold the current catalog snapshot for lock-free reads.

    The entry is published by a single reference assignment, so ``get`` never
    takes a lock and never sees a partially replaced snapshot. Writers are
    serialized among themselves.
    """

    def __init__(self) -> None:
        self._entry: Optional[CacheEntry] = None
        self._write_lock = threading.Lock()

    def get(self) -> Optional[CacheEntry]:
        return self._entry

    def set(self, entry: CacheEntry) -> None:
        """Replace the current snapshot with ``entry``."""
        with self._write_lock:
            self._entry = entry
        logger.debug(
            "Published catalog snapshot from %s fetched at %s",
            entry.source.value,
            entry.fetched_at.isoformat(),
        )

    def seed(self, entry: CacheEntry, *, over_network: bool = True) -> bool:
        """Publish ``entry`` only if it is newer than what is already cached.

        Args:
            entry: Candidate snapshot, typically loaded from disk.
            over_network: When False, a cached network snapshot is kept even if
                ``entry`` is newer.

        Returns:
            bool: True if ``entry`` became the current snapshot.
        """
        with self._write_lock:
            current = self._entry
            if not over_network and current is not None and current.source is CacheSource.NETWORK:
                logger.debug("Keeping network snapshot over %s snapshot", entry.source.value)
                return False
            if not entry.is_newer_than(current):
                logger.debug("Ignoring %s snapshot older than the cached one", entry.source.value)
                return False
            self._entry = entry
        return True

    def clear(self) -> None:
        with self._write_lock:
            self._entry = None


__all__ = ["MemoryCache"]
