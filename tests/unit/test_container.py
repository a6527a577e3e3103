"""
Tests for the dependency container wiring.
"""

from pathlib import Path

import pytest

from cleanread.cache import MemoryCache
from cleanread.config import CacheConfig, Config, ExtractionDefaults, FetcherConfig, ReaderConfig
from cleanread.container import DependencyContainer, LazyInstance
from cleanread.crawler.http_client import HttpClient
from cleanread.extractor import ExtractionManager


def _config(**kwargs) -> Config:
    defaults = {
        "reader": ReaderConfig(enabled=False),
        "cache": CacheConfig(backend="memory", max_size=10),
        "extraction": ExtractionDefaults(min_content_length=10, max_concurrency=2),
    }
    defaults.update(kwargs)
    return Config(**defaults)


@pytest.mark.unit
class TestLazyInstance:
    @pytest.mark.asyncio
    async def test_created_once(self):
        created = []

        def factory():
            created.append(object())
            return created[-1]

        lazy = LazyInstance(factory)
        assert lazy.initialized is False
        first = await lazy.get()
        second = await lazy.get()

        assert first is second
        assert len(created) == 1
        assert lazy.initialized is True

    @pytest.mark.asyncio
    async def test_awaitable_factory_and_cleanup(self):
        class Resource:
            closed = False

            async def close(self):
                self.closed = True

        async def factory():
            return Resource()

        lazy = LazyInstance(factory)
        resource = await lazy.get()
        await lazy.cleanup()

        assert resource.closed is True
        assert lazy.initialized is False


@pytest.mark.unit
class TestDependencyContainer:
    @pytest.mark.asyncio
    async def test_wires_manager_without_reader(self):
        async with DependencyContainer(config=_config()).lifecycle() as container:
            manager = await container.get_manager()

            assert isinstance(manager, ExtractionManager)
            assert [e.name for e in manager.extractors] == ["structural", "live-document"]
            assert isinstance(await container.get_cache(), MemoryCache)
            assert isinstance(await container.get_http_client(), HttpClient)
            assert manager is await container.get_manager()

    @pytest.mark.asyncio
    async def test_reader_registered_first_when_enabled(self):
        config = _config(reader=ReaderConfig(enabled=True), fetcher=FetcherConfig(enabled=False))
        async with DependencyContainer(config=config).lifecycle() as container:
            manager = await container.get_manager()
            assert [e.name for e in manager.extractors] == ["remote-reader", "structural", "live-document"]

    @pytest.mark.asyncio
    async def test_cache_backend_none(self):
        async with DependencyContainer(config=_config(cache=CacheConfig(backend="none"))).lifecycle() as container:
            assert await container.get_cache() is None
            manager = await container.get_manager()
            assert await manager.cache_size() == 0

    @pytest.mark.asyncio
    async def test_default_options_from_config(self):
        async with DependencyContainer(config=_config()).lifecycle() as container:
            options = container.default_options(cache_enabled=False)

        assert options.min_content_length == 10
        assert options.max_concurrency == 2
        assert options.cache_enabled is False

    def test_default_options_need_config(self):
        with pytest.raises(RuntimeError):
            DependencyContainer().default_options()

    @pytest.mark.asyncio
    async def test_health_and_shutdown(self):
        container = DependencyContainer(config=_config())
        await container.initialize()
        await container.get_manager()

        status = container.get_health_status()
        assert status["is_running"] is True
        assert status["config_loaded"] is True
        assert set(status["initialized"]) == {"http_client", "cache", "manager"}

        http_client = await container.get_http_client()
        await container.shutdown()

        assert container.is_running is False
        assert container.get_health_status()["initialized"] == []
        assert http_client.session is None

        # Second shutdown is a no-op
        await container.shutdown()

    @pytest.mark.asyncio
    async def test_loads_config_from_yaml(self, tmp_path: Path):
        path = tmp_path / "cleanread.yaml"
        path.write_text("cache:\n  backend: none\nreader:\n  enabled: false\n")

        async with DependencyContainer(config_path=path).lifecycle() as container:
            assert container.config.cache.backend == "none"
            assert container.get_health_status()["config_path"] == str(path)
