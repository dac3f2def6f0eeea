"""Provider registry: the public entry point for catalog queries.

The registry owns one in-memory snapshot, seeded from disk on first use and
replaced wholesale by each successful refresh. Queries never touch the
network and never fail because a refresh failed; they answer from whatever
snapshot is current, which may be none.

Examples:
    >>> registry = ProviderRegistry()                       # doctest: +SKIP
    >>> registry.ensure_loaded()                            # doctest: +SKIP
    >>> await registry.refresh()                            # doctest: +SKIP
    >>> registry.find_best_model_for_use_case("code")       # doctest: +SKIP
    ('anthropic', 'claude-sonnet-4')
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generic, Optional, TypeVar, Union

from modelatlas import lookup, selection
from modelatlas.cache.coordinator import RefreshCoordinator
from modelatlas.cache.disk import DiskStore
from modelatlas.cache.memory import MemoryCache
from modelatlas.catalog.types import (
    CacheEntry,
    CacheSource,
    Catalog,
    FetchOutcome,
    Model,
    Provider,
)
from modelatlas.config.settings import RegistrySettings, load_settings
from modelatlas.discovery.fetcher import CatalogFetcher, supports_cancellation
from modelatlas.discovery.models_dev import ModelsDevFetcher
from modelatlas.environment import (
    ConfigLookup,
    EnvironmentLookup,
    ProviderConnectionInfo,
    check_provider_configuration,
    connection_info,
    is_provider_configured,
)
from modelatlas.exceptions import FetchError, PersistError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Stamped(Generic[T]):
    """A query result paired with the ``fetched_at`` of the snapshot it came from."""

    value: T
    fetched_at: datetime


@dataclass(frozen=True)
class CacheStats:
    """State of both cache tiers, as reported by :meth:`ProviderRegistry.cache_stats`."""

    has_snapshot: bool
    source: Optional[CacheSource]
    fetched_at: Optional[datetime]
    disk_path: Path
    disk_exists: bool
    disk_max_age: timedelta


class ProviderRegistry:
    """Cached, concurrently readable view of the remote model catalog.

    Args:
        fetcher: Source of fresh catalogs. Defaults to a :class:`ModelsDevFetcher`
            for ``settings.catalog_url``.
        settings: Registry settings. Defaults to :func:`load_settings`.
        disk_store: Persistent tier. Defaults to a :class:`DiskStore` at
            ``settings.cache_path``.
        environment: Lookup used for "is this provider configured" checks.
            Defaults to the process environment.
        clock: Returns the current UTC time; used for staleness checks.

    Raises:
        ConfigurationError: If the settings are invalid.
    """

    def __init__(
        self,
        fetcher: Optional[CatalogFetcher] = None,
        *,
        settings: Optional[RegistrySettings] = None,
        disk_store: Optional[DiskStore] = None,
        environment: Optional[ConfigLookup] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings if settings is not None else load_settings()
        self._fetcher = fetcher if fetcher is not None else ModelsDevFetcher.from_settings(self._settings)
        self._disk = disk_store if disk_store is not None else DiskStore(self._settings.cache_path)
        self._environment = environment if environment is not None else EnvironmentLookup()
        self._clock = clock or _utc_now

        self._memory = MemoryCache()
        self._coordinator = RefreshCoordinator(cancel_abandoned=supports_cancellation(self._fetcher))

        self._load_lock = threading.Lock()
        self._loaded = False

        self._persist_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="modelatlas-persist"
        )
        self._pending: set[concurrent.futures.Future[None]] = set()
        self._pending_lock = threading.Lock()
        self._closed = False

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    @property
    def disk_store(self) -> DiskStore:
        return self._disk

    # Refresh ------------------------------------------------------------------
    async def refresh(self) -> Catalog:
        """Fetch a new catalog, or join the fetch already running.

        On success the new snapshot is published before this returns; writing it
        to disk happens in the background.

        Returns:
            Catalog: The freshly fetched snapshot.

        Raises:
            FetchError: If the fetch failed. The current snapshot is kept.
        """
        outcome = await self.try_refresh()
        return outcome.unwrap()

    async def try_refresh(self) -> FetchOutcome:
        """Like :meth:`refresh`, but return the failure instead of raising it."""
        return await self._coordinator.refresh_or_join(self._fetch_and_publish)

    def refresh_sync(self) -> Catalog:
        """Run :meth:`refresh` to completion from synchronous code."""
        return asyncio.run(self.refresh())

    @property
    def refresh_in_progress(self) -> bool:
        return self._coordinator.in_flight

    async def _fetch_and_publish(self) -> FetchOutcome:
        try:
            catalog = await self._fetcher.fetch()
        except FetchError as exc:
            logger.warning("Catalog refresh failed (%s): %s", exc.kind.value, exc)
            return FetchOutcome.failure(exc)

        entry = CacheEntry(catalog=catalog, source=CacheSource.NETWORK)
        self._memory.set(entry)
        # Disk seeding never replaces a network snapshot.
        self._loaded = True
        logger.info(
            "Refreshed catalog: %d providers, %d models",
            len(catalog.providers),
            catalog.model_count,
        )
        self._schedule_persist(entry)
        return FetchOutcome.success(catalog)

    # Persistence --------------------------------------------------------------
    def _schedule_persist(self, entry: CacheEntry) -> None:
        with self._pending_lock:
            if self._closed:
                logger.debug("Registry closed; not persisting catalog snapshot")
                return
            future = self._persist_executor.submit(self._persist, entry)
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _persist(self, entry: CacheEntry) -> None:
        try:
            self._disk.save(entry)
        except PersistError as exc:
            logger.warning("%s", exc)

    def _discard_pending(self, future: concurrent.futures.Future[None]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    async def flush(self) -> None:
        """Wait until every scheduled disk write has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            await asyncio.gather(*(asyncio.wrap_future(future) for future in pending))

    def close(self) -> None:
        """Finish pending disk writes, then stop the persistence and refresh workers."""
        with self._pending_lock:
            was_closed, self._closed = self._closed, True
        if not was_closed:
            self._persist_executor.shutdown(wait=True)
        self._coordinator.close()

    def __enter__(self) -> "ProviderRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> "ProviderRegistry":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.flush()
        self.close()

    # Cache maintenance --------------------------------------------------------
    def clear_caches(self) -> None:
        """Drop the in-memory snapshot and delete the disk file.

        Scheduled disk writes finish first, so none of them recreates the file.
        A refresh already in flight still publishes its result.

        Raises:
            PersistError: If the disk file cannot be removed.
        """
        with self._pending_lock:
            pending = list(self._pending)
        concurrent.futures.wait(pending)
        with self._load_lock:
            self._memory.clear()
            self._disk.clear()
            self._loaded = False
        logger.info("Cleared cached catalog snapshots (memory and %s)", self._disk.path)

    def cache_stats(self) -> CacheStats:
        """Describe the cache tiers without loading or fetching anything."""
        entry = self._memory.get()
        return CacheStats(
            has_snapshot=entry is not None,
            source=entry.source if entry is not None else None,
            fetched_at=entry.fetched_at if entry is not None else None,
            disk_path=self._disk.path,
            disk_exists=self._disk.path.exists(),
            disk_max_age=self._settings.max_age,
        )

    # Loading ------------------------------------------------------------------
    def ensure_loaded(self) -> bool:
        """Seed the in-memory snapshot from disk on first use.

        Never fetches. A disk snapshot older than ``settings.disk_max_age`` is
        ignored (but left on disk). Safe to call from any thread, any number
        of times.

        Returns:
            bool: True if a snapshot is available afterwards.
        """
        if not self._loaded:
            with self._load_lock:
                if not self._loaded:
                    self._seed_from_disk()
                    self._loaded = True
        return self._memory.get() is not None

    def _seed_from_disk(self) -> None:
        if self._memory.get() is not None:
            return
        entry = self._disk.load()
        if entry is None:
            logger.debug("No usable disk snapshot; starting cold")
            return
        age = entry.catalog.age(self._clock())
        if age > self._settings.max_age:
            logger.info(
                "Ignoring disk snapshot from %s: older than %s",
                entry.fetched_at.isoformat(),
                self._settings.max_age,
            )
            return
        if self._memory.seed(entry, over_network=False):
            logger.info(
                "Loaded catalog snapshot from %s (%d providers, fetched %s)",
                self._disk.path,
                len(entry.catalog.providers),
                entry.fetched_at.isoformat(),
            )

    # Snapshot access ----------------------------------------------------------
    def entry(self) -> Optional[CacheEntry]:
        self.ensure_loaded()
        return self._memory.get()

    def snapshot(self) -> Optional[Catalog]:
        """Return the current catalog, or ``None`` if nothing was ever loaded."""
        entry = self.entry()
        return entry.catalog if entry is not None else None

    def fetched_at(self) -> Optional[datetime]:
        entry = self.entry()
        return entry.fetched_at if entry is not None else None

    def staleness(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Age of the current snapshot, or ``None`` without one."""
        catalog = self.snapshot()
        if catalog is None:
            return None
        return catalog.age(now or self._clock())

    def is_stale(self, max_age: Union[timedelta, float]) -> bool:
        """True when there is no snapshot or it is older than ``max_age``.

        Args:
            max_age: A timedelta or a number of seconds.
        """
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)
        age = self.staleness()
        return age is None or age > max_age

    def stamped(self, query: Callable[[Catalog], T]) -> Optional[Stamped[T]]:
        """Evaluate ``query`` against one snapshot and pair it with ``fetched_at``.

        Returns:
            The stamped result, or ``None`` when there is no snapshot.
        """
        catalog = self.snapshot()
        if catalog is None:
            return None
        return Stamped(value=query(catalog), fetched_at=catalog.fetched_at)

    # Lookups ------------------------------------------------------------------
    def get_provider(self, provider_id: str) -> Optional[Provider]:
        catalog = self.snapshot()
        return catalog.get_provider(provider_id) if catalog is not None else None

    def get_model(self, provider_id: str, model_id: str) -> Optional[Model]:
        catalog = self.snapshot()
        return catalog.get_model(provider_id, model_id) if catalog is not None else None

    def providers(self) -> tuple[Provider, ...]:
        catalog = self.snapshot()
        return catalog.providers if catalog is not None else ()

    def find_provider_for_model(self, model_id: str) -> Optional[str]:
        catalog = self.snapshot()
        return lookup.find_provider_for_model(catalog, model_id) if catalog is not None else None

    def find_provider_for_cloud_service(self, service: str) -> Optional[str]:
        catalog = self.snapshot()
        if catalog is None:
            return None
        return lookup.find_provider_for_cloud_service(catalog, service)

    # Selection ----------------------------------------------------------------
    def find_models_with_capability(self, capability: str) -> list[tuple[str, str]]:
        catalog = self.snapshot()
        if catalog is None:
            return []
        return selection.find_models_with_capability(catalog, capability)

    def find_best_model_for_use_case(
        self, use_case: str, configured_only: bool = False
    ) -> Optional[tuple[str, str]]:
        """Pick the best model for ``use_case`` from the current snapshot.

        Args:
            use_case: Use-case name or alias, e.g. ``"code"``.
            configured_only: Only consider providers whose required
                configuration is present in the environment lookup.
        """
        catalog = self.snapshot()
        if catalog is None:
            return None
        provider_filter = self._configured_filter() if configured_only else None
        return selection.find_best_model_for_use_case(catalog, use_case, provider_filter)

    def get_capability_summary(self) -> dict[str, list[tuple[str, str]]]:
        catalog = self.snapshot()
        return selection.get_capability_summary(catalog) if catalog is not None else {}

    def _configured_filter(self) -> selection.ProviderFilter:
        lookup_ = self._environment
        return lambda provider: is_provider_configured(provider, lookup_)

    # Configuration checks -----------------------------------------------------
    def is_provider_configured(self, provider_id: str) -> bool:
        provider = self.get_provider(provider_id)
        if provider is None:
            return False
        return is_provider_configured(provider, self._environment)

    def check_provider_configuration(self, provider_id: str) -> list[str]:
        """List the problems that keep ``provider_id`` from being usable."""
        provider = self.get_provider(provider_id)
        if provider is None:
            return [f"Provider '{provider_id}' not found"]
        return check_provider_configuration(provider, self._environment)

    def connection_info(self, provider_id: str) -> Optional[ProviderConnectionInfo]:
        provider = self.get_provider(provider_id)
        return connection_info(provider) if provider is not None else None


__all__ = ["CacheStats", "ProviderRegistry", "Stamped"]
