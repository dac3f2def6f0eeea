"""Two-tier catalog cache: in-memory snapshot, on-disk copy, refresh coordination."""

from modelatlas.cache.coordinator import RefreshCoordinator
from modelatlas.cache.disk import DiskStore
from modelatlas.cache.memory import MemoryCache

__all__ = ["DiskStore", "MemoryCache", "RefreshCoordinator"]
