"""Tests for ProviderRegistry."""

import asyncio
import logging
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from modelatlas.cache.disk import DiskStore
from modelatlas.catalog.types import CacheEntry, CacheSource
from modelatlas.config.settings import RegistrySettings
from modelatlas.environment import EnvironmentLookup
from modelatlas.exceptions import (
    ConfigurationError,
    FetchErrorKind,
    HttpStatusError,
    NetworkError,
    PersistError,
)
from modelatlas.registry import CacheStats, ProviderRegistry, Stamped
from tests.test_doubles import (
    FIXED_TIME,
    FakeClock,
    FakeFetcher,
    Gate,
    make_catalog,
    make_provider,
    sample_catalog,
    wait_until,
)


class CountingDiskStore(DiskStore):
    def __init__(self, path):
        super().__init__(path)
        self.loads = 0

    def load(self):
        self.loads += 1
        return super().load()


class BlockingDiskStore(DiskStore):
    """Disk store whose saves wait until released."""

    def __init__(self, path):
        super().__init__(path)
        self.release = threading.Event()
        self.saving = threading.Event()

    def save(self, entry):
        self.saving.set()
        self.release.wait(timeout=5)
        super().save(entry)


class SlowLoadingDiskStore(DiskStore):
    """Disk store whose loads wait until released."""

    def __init__(self, path):
        super().__init__(path)
        self.release = threading.Event()
        self.loading = threading.Event()

    def load(self):
        self.loading.set()
        self.release.wait(timeout=5)
        return super().load()


class FailingDiskStore(DiskStore):
    def save(self, entry):
        raise PersistError(self.path, "read-only file system")


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "catalog.json"


@pytest.fixture
def clock():
    return FakeClock(FIXED_TIME + timedelta(hours=1))


@pytest.fixture
def make_registry(cache_path, clock):
    registries = []

    def factory(fetcher=None, **kwargs):
        kwargs.setdefault("settings", RegistrySettings(cache_path=cache_path))
        kwargs.setdefault("environment", EnvironmentLookup({}))
        kwargs.setdefault("clock", clock)
        registry = ProviderRegistry(fetcher or FakeFetcher(), **kwargs)
        registries.append(registry)
        return registry

    yield factory
    for registry in registries:
        registry.close()


class TestConstruction:
    def test_invalid_settings_fail_at_construction(self, tmp_path):
        environ = {
            "MODELATLAS_CONFIG_PATH": str(tmp_path / "missing.yaml"),
            "MODELATLAS_DISK_MAX_AGE": "-5",
        }
        with patch.dict("os.environ", environ):
            with pytest.raises(ConfigurationError):
                ProviderRegistry(FakeFetcher())

    def test_defaults_come_from_settings(self, cache_path):
        registry = ProviderRegistry(settings=RegistrySettings(cache_path=cache_path))
        try:
            assert registry.disk_store.path == cache_path
            assert registry._fetcher.url == registry.settings.catalog_url
        finally:
            registry.close()

    def test_instances_do_not_share_state(self, make_registry, tmp_path):
        first = make_registry(FakeFetcher(sample_catalog()))
        second = make_registry(
            settings=RegistrySettings(cache_path=tmp_path / "other" / "catalog.json")
        )
        first.refresh_sync()
        assert first.snapshot() is not None
        assert second.snapshot() is None


class TestColdStart:
    def test_no_disk_cache_means_no_snapshot(self, make_registry):
        fetcher = FakeFetcher(sample_catalog())
        registry = make_registry(fetcher)

        assert registry.ensure_loaded() is False
        assert registry.snapshot() is None
        assert registry.fetched_at() is None
        assert fetcher.calls == 0

    def test_seeds_from_disk_without_network(self, make_registry, cache_path):
        catalog = sample_catalog()
        DiskStore(cache_path).save(CacheEntry(catalog))
        fetcher = FakeFetcher()
        registry = make_registry(fetcher)

        assert registry.snapshot() == catalog
        assert registry.entry().source is CacheSource.DISK
        assert registry.fetched_at() == FIXED_TIME
        assert fetcher.calls == 0

    def test_disk_snapshot_past_max_age_is_ignored(self, make_registry, cache_path, clock):
        DiskStore(cache_path).save(CacheEntry(sample_catalog()))
        clock.now = FIXED_TIME + timedelta(days=8)
        registry = make_registry()

        assert registry.snapshot() is None
        assert cache_path.exists()

    def test_custom_max_age(self, make_registry, cache_path):
        DiskStore(cache_path).save(CacheEntry(sample_catalog()))
        registry = make_registry(
            settings=RegistrySettings(cache_path=cache_path, disk_max_age=60)
        )
        assert registry.snapshot() is None

    def test_corrupt_disk_file_is_a_cold_start(self, make_registry, cache_path):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text("{corrupt", encoding="utf-8")
        assert make_registry().snapshot() is None

    def test_ensure_loaded_reads_disk_once(self, make_registry, cache_path):
        DiskStore(cache_path).save(CacheEntry(sample_catalog()))
        store = CountingDiskStore(cache_path)
        registry = make_registry(disk_store=store)

        threads = [threading.Thread(target=registry.ensure_loaded) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        registry.snapshot()

        assert store.loads == 1
        assert registry.ensure_loaded() is True


@pytest.mark.asyncio
class TestRefresh:
    async def test_refresh_publishes_before_returning(self, make_registry):
        catalog = sample_catalog()
        registry = make_registry(FakeFetcher(catalog))

        result = await registry.refresh()

        assert result is catalog
        assert registry.snapshot() is catalog
        assert registry.entry().source is CacheSource.NETWORK

    async def test_fail_then_succeed(self, make_registry, cache_path):
        catalog = sample_catalog()
        fetcher = FakeFetcher(NetworkError("offline"), catalog)
        registry = make_registry(fetcher)

        with pytest.raises(NetworkError):
            await registry.refresh()
        assert registry.snapshot() is None

        await registry.refresh()
        assert registry.snapshot() is catalog

        await registry.flush()
        stored = DiskStore(cache_path).load()
        assert stored is not None
        assert stored.catalog == catalog

    async def test_failed_refresh_keeps_previous_snapshot(self, make_registry):
        catalog = sample_catalog()
        registry = make_registry(FakeFetcher(catalog, HttpStatusError(503)))

        await registry.refresh()
        with pytest.raises(HttpStatusError) as excinfo:
            await registry.refresh()

        assert excinfo.value.kind is FetchErrorKind.HTTP_STATUS
        assert registry.snapshot() is catalog
        assert registry.fetched_at() == FIXED_TIME

    async def test_try_refresh_returns_failure(self, make_registry):
        registry = make_registry(FakeFetcher(NetworkError("offline")))

        outcome = await registry.try_refresh()

        assert not outcome.ok
        assert isinstance(outcome.error, NetworkError)

    async def test_concurrent_refreshes_fetch_once(self, make_registry):
        gate = Gate()
        fetcher = FakeFetcher(sample_catalog(), gate=gate)
        registry = make_registry(fetcher)

        tasks = [asyncio.create_task(registry.refresh()) for _ in range(10)]
        await fetcher.started.wait()
        assert registry.refresh_in_progress
        gate.set()
        results = await asyncio.gather(*tasks)

        assert fetcher.calls == 1
        assert all(result is results[0] for result in results)

    async def test_cancelled_refresh_abandons_cancellable_fetch(self, make_registry):
        gate = Gate()
        fetcher = FakeFetcher(sample_catalog(), gate=gate, supports_cancellation=True)
        registry = make_registry(fetcher)

        task = asyncio.create_task(registry.refresh())
        await fetcher.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await wait_until(lambda: fetcher.cancelled)

        assert registry.snapshot() is None

    async def test_cancelled_refresh_still_publishes_when_fetch_is_not_cancellable(
        self, make_registry
    ):
        gate = Gate()
        catalog = sample_catalog()
        fetcher = FakeFetcher(catalog, gate=gate)
        registry = make_registry(fetcher)

        task = asyncio.create_task(registry.refresh())
        await fetcher.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        gate.set()
        await wait_until(lambda: registry.snapshot() is not None)

        assert not fetcher.cancelled
        assert registry.snapshot() is catalog

    async def test_network_snapshot_is_not_replaced_by_disk(self, make_registry, cache_path):
        newer_on_disk = make_catalog(
            make_provider("stale"), fetched_at=FIXED_TIME + timedelta(minutes=30)
        )
        DiskStore(cache_path).save(CacheEntry(newer_on_disk))
        fetched = sample_catalog()
        registry = make_registry(FakeFetcher(fetched))

        await registry.refresh()

        assert registry.ensure_loaded()
        assert registry.snapshot() is fetched

    async def test_refresh_replaces_disk_seed(self, make_registry, cache_path):
        DiskStore(cache_path).save(CacheEntry(make_catalog(make_provider("old"))))
        fresh = sample_catalog(FIXED_TIME + timedelta(minutes=5))
        registry = make_registry(FakeFetcher(fresh))

        assert registry.get_provider("old") is not None
        await registry.refresh()

        assert registry.get_provider("old") is None
        assert registry.snapshot() is fresh

    async def test_follower_gets_result_after_starting_loop_exits(self, make_registry):
        gate = Gate()
        catalog = sample_catalog()
        fetcher = FakeFetcher(catalog, gate=gate)
        registry = make_registry(fetcher)
        gave_up = []

        async def start_and_give_up():
            try:
                await asyncio.wait_for(registry.try_refresh(), 0.05)
            except asyncio.TimeoutError:
                gave_up.append(True)

        worker = threading.Thread(target=lambda: asyncio.run(start_and_give_up()))
        worker.start()
        await fetcher.started.wait()
        follower = asyncio.create_task(registry.try_refresh())
        await asyncio.get_running_loop().run_in_executor(None, worker.join)
        gate.set()
        outcome = await follower

        assert gave_up == [True]
        assert outcome.ok
        assert outcome.catalog is catalog
        assert registry.snapshot() is catalog
        assert fetcher.calls == 1
        assert not fetcher.cancelled

    async def test_refresh_is_not_blocked_by_a_slow_disk_seed(self, make_registry, cache_path):
        newer_on_disk = make_catalog(
            make_provider("stale"), fetched_at=FIXED_TIME + timedelta(minutes=30)
        )
        DiskStore(cache_path).save(CacheEntry(newer_on_disk))
        store = SlowLoadingDiskStore(cache_path)
        fetched = sample_catalog()
        registry = make_registry(FakeFetcher(fetched), disk_store=store)
        loop = asyncio.get_running_loop()

        seeding = loop.run_in_executor(None, registry.ensure_loaded)
        await loop.run_in_executor(None, store.loading.wait)
        await asyncio.wait_for(registry.refresh(), timeout=2)
        store.release.set()
        await seeding

        assert registry.snapshot() is fetched
        assert registry.entry().source is CacheSource.NETWORK


@pytest.mark.asyncio
class TestPersistence:
    async def test_refresh_does_not_wait_for_disk(self, make_registry, cache_path):
        store = BlockingDiskStore(cache_path)
        catalog = sample_catalog()
        registry = make_registry(FakeFetcher(catalog), disk_store=store)

        await registry.refresh()
        assert registry.snapshot() is catalog
        assert not cache_path.exists()

        store.release.set()
        await registry.flush()
        assert DiskStore(cache_path).load().catalog == catalog

    async def test_persist_failure_is_logged_not_raised(self, make_registry, cache_path, caplog):
        catalog = sample_catalog()
        registry = make_registry(FakeFetcher(catalog), disk_store=FailingDiskStore(cache_path))

        with caplog.at_level(logging.WARNING, logger="modelatlas"):
            await registry.refresh()
            await registry.flush()

        assert registry.snapshot() is catalog
        assert any("read-only file system" in record.getMessage() for record in caplog.records)

    async def test_closed_registry_stops_persisting(self, make_registry, cache_path):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.close()

        await registry.refresh()
        await registry.flush()

        assert registry.snapshot() is not None
        assert not cache_path.exists()

    async def test_async_context_manager_flushes(self, cache_path, clock):
        catalog = sample_catalog()
        async with ProviderRegistry(
            FakeFetcher(catalog),
            settings=RegistrySettings(cache_path=cache_path),
            clock=clock,
        ) as registry:
            await registry.refresh()

        assert DiskStore(cache_path).load().catalog == catalog


@pytest.mark.asyncio
class TestCacheMaintenance:
    async def test_clear_caches_drops_memory_and_disk(self, make_registry, cache_path):
        store = BlockingDiskStore(cache_path)
        registry = make_registry(FakeFetcher(sample_catalog()), disk_store=store)
        await registry.refresh()
        store.release.set()

        registry.clear_caches()

        assert not cache_path.exists()
        assert registry.snapshot() is None
        assert registry.ensure_loaded() is False

    async def test_refresh_after_clear_publishes_again(self, make_registry, cache_path):
        catalog = sample_catalog()
        registry = make_registry(FakeFetcher(catalog))
        await registry.refresh()
        await registry.flush()
        registry.clear_caches()

        await registry.refresh()
        await registry.flush()

        assert registry.snapshot() is catalog
        assert DiskStore(cache_path).load().catalog == catalog

    async def test_clear_caches_reports_disk_failure(self, make_registry, cache_path):
        registry = make_registry(FakeFetcher(sample_catalog()))
        await registry.refresh()

        with patch.object(DiskStore, "clear", side_effect=PersistError(cache_path, "busy")):
            with pytest.raises(PersistError):
                registry.clear_caches()

    async def test_cache_stats(self, make_registry, cache_path):
        registry = make_registry(
            FakeFetcher(sample_catalog()),
            settings=RegistrySettings(cache_path=cache_path, disk_max_age=3600),
        )

        empty = registry.cache_stats()
        assert empty == CacheStats(
            has_snapshot=False,
            source=None,
            fetched_at=None,
            disk_path=cache_path,
            disk_exists=False,
            disk_max_age=timedelta(hours=1),
        )

        await registry.refresh()
        await registry.flush()
        stats = registry.cache_stats()

        assert stats.has_snapshot
        assert stats.source is CacheSource.NETWORK
        assert stats.fetched_at == FIXED_TIME
        assert stats.disk_exists

    async def test_cache_stats_does_not_seed_from_disk(self, make_registry, cache_path):
        DiskStore(cache_path).save(CacheEntry(sample_catalog()))
        store = CountingDiskStore(cache_path)
        registry = make_registry(disk_store=store)

        stats = registry.cache_stats()

        assert not stats.has_snapshot
        assert stats.disk_exists
        assert store.loads == 0


class TestAtomicPublish:
    def test_readers_never_see_mixed_snapshots(self, make_registry):
        catalogs = [
            make_catalog(
                make_provider(f"a{i}", [("m",)]),
                make_provider(f"b{i}", [("m",)]),
                fetched_at=FIXED_TIME + timedelta(seconds=i),
            )
            for i in range(20)
        ]
        registry = make_registry(FakeFetcher(*catalogs))
        registry.refresh_sync()
        stop = threading.Event()
        torn = []

        def reader():
            while not stop.is_set():
                ids = registry.snapshot().provider_ids
                if ids[0][1:] != ids[1][1:]:
                    torn.append(ids)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        try:
            for _ in catalogs[1:]:
                registry.refresh_sync()
        finally:
            stop.set()
            for thread in threads:
                thread.join()

        assert torn == []
        assert registry.snapshot() is catalogs[-1]


class TestQueries:
    def test_queries_without_snapshot(self, make_registry):
        registry = make_registry()

        assert registry.get_provider("openai") is None
        assert registry.get_model("openai", "gpt-4o") is None
        assert registry.providers() == ()
        assert registry.find_models_with_capability("vision") == []
        assert registry.find_best_model_for_use_case("chat") is None
        assert registry.find_provider_for_model("gpt-4o") is None
        assert registry.stamped(lambda catalog: catalog.model_count) is None
        assert registry.staleness() is None
        assert registry.is_stale(timedelta(days=365))

    def test_lookups_and_selection(self, make_registry):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.refresh_sync()

        assert registry.get_provider("anthropic").api_version == "2023-06-01"
        assert registry.get_model("openai", "gpt-4o").max_tokens == 128000
        assert [p.id for p in registry.providers()] == ["openai", "anthropic"]
        assert registry.find_models_with_capability("reasoning") == [
            ("openai", "o3-mini"),
            ("anthropic", "claude-sonnet-4"),
        ]
        assert registry.find_best_model_for_use_case("vision") == ("anthropic", "claude-sonnet-4")
        assert registry.find_provider_for_model("gpt-5") == "openai"
        assert registry.find_provider_for_cloud_service("claude") == "anthropic"
        assert registry.get_capability_summary()["vision"] == [
            ("openai", "gpt-4o"),
            ("anthropic", "claude-sonnet-4"),
        ]

    def test_staleness(self, make_registry, clock):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.refresh_sync()

        assert registry.staleness() == timedelta(hours=1)
        assert registry.staleness(FIXED_TIME + timedelta(hours=3)) == timedelta(hours=3)
        assert registry.is_stale(timedelta(minutes=30))
        assert not registry.is_stale(7200)

    def test_stamped_pairs_result_with_snapshot_time(self, make_registry):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.refresh_sync()

        stamped = registry.stamped(lambda catalog: catalog.get_provider("openai").name)

        assert stamped == Stamped(value="Openai", fetched_at=FIXED_TIME)


class TestConfigurationChecks:
    def test_configured_only_selection(self, make_registry):
        registry = make_registry(
            FakeFetcher(sample_catalog()),
            environment=EnvironmentLookup({"OPENAI_API_KEY": "sk-test"}),
        )
        registry.refresh_sync()

        assert registry.find_best_model_for_use_case("code") == ("anthropic", "claude-sonnet-4")
        assert registry.find_best_model_for_use_case("code", configured_only=True) == (
            "openai",
            "o3-mini",
        )
        assert registry.is_provider_configured("openai")
        assert not registry.is_provider_configured("anthropic")
        assert not registry.is_provider_configured("missing")

    def test_check_provider_configuration(self, make_registry):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.refresh_sync()

        assert registry.check_provider_configuration("anthropic") == [
            "Required environment variable 'ANTHROPIC_API_KEY' is not set"
        ]
        assert registry.check_provider_configuration("missing") == [
            "Provider 'missing' not found"
        ]

    def test_connection_info(self, make_registry):
        registry = make_registry(FakeFetcher(sample_catalog()))
        registry.refresh_sync()

        info = registry.connection_info("openai")
        assert info.base_url == "https://api.openai.com/v1"
        assert info.required_env_vars == ("OPENAI_API_KEY",)
        assert registry.connection_info("missing") is None
