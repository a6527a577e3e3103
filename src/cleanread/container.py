"""
Dependency injection container for cleanread.

Wires configuration, the HTTP client, the result cache and the extraction
manager. The container is owned by its caller; nothing here is a process-wide
singleton.
"""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Generic, Optional, TypeVar
from uuid import uuid4

import structlog

from cleanread.config import Config

if TYPE_CHECKING:
    from cleanread.crawler.http_client import HttpClient
    from cleanread.extractor.manager import ExtractionManager
    from cleanread.protocols import CacheStrategy, ExtractionOptions

T = TypeVar("T")


class LazyInstance(Generic[T]):
    """Lazy-loaded instance with lifecycle management."""

    def __init__(self, factory: Callable[..., T], *args: Any, **kwargs: Any) -> None:
        self._factory = factory
        self._args = args
        self._kwargs = kwargs
        self._instance: Optional[T] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def get(self) -> T:
        """Get or create the instance."""
        if not self._initialized:
            instance = self._factory(*self._args, **self._kwargs)
            if inspect.isawaitable(instance):
                instance = await instance
            self._instance = instance
            if hasattr(self._instance, "initialize") and callable(getattr(self._instance, "initialize", None)):
                await self._instance.initialize()  # type: ignore
            self._initialized = True
        return self._instance  # type: ignore[return-value]

    async def cleanup(self) -> None:
        """Clean up the instance."""
        if self._instance is not None:
            for method in ("aclose", "close"):
                closer = getattr(self._instance, method, None)
                if callable(closer):
                    await closer()
                    break
        self._instance = None
        self._initialized = False


class DependencyContainer:
    """
    Builds and owns the long-lived extraction components.
    Provides lazy initialization and ordered shutdown.
    """

    def __init__(self, config: Optional[Config] = None, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.logger = structlog.get_logger(self.__class__.__name__)

        # Lazy-loaded instances
        self._instances: Dict[str, LazyInstance[Any]] = {}
        self._instances_lock = asyncio.Lock()

        self.container_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless one was given) and prepare lazy instances."""
        if self.config is None:
            self.load_config()
        self._create_instances()
        self.is_running = True

        self.logger.info(
            "Dependency container initialized",
            container_id=self.container_id,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    def load_config(self) -> None:
        """Load configuration from the YAML file when one exists, else from the environment."""
        if self.config_path and self.config_path.exists():
            self.config = Config.from_yaml(self.config_path)
        else:
            self.config = Config()

    def _create_instances(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating instances")

        from cleanread.cache import create_cache
        from cleanread.crawler.http_client import HttpClient

        config = self.config
        self._instances = {
            "http_client": LazyInstance(HttpClient, config.reader, config.fetcher),
            "cache": LazyInstance(create_cache, config.cache),
            "manager": LazyInstance(self._build_manager),
        }

    async def _build_manager(self) -> ExtractionManager:
        from cleanread.extractor import (
            ExtractionManager,
            LiveDocumentExtractor,
            RemoteReaderExtractor,
            StructuralExtractor,
        )

        assert self.config is not None
        http_client = await self._instances["http_client"].get()
        cache = await self._instances["cache"].get()

        extractors: list = []
        if self.config.reader.enabled:
            extractors.append(RemoteReaderExtractor(http_client))
        extractors.append(StructuralExtractor(fetcher=http_client if self.config.fetcher.enabled else None))
        extractors.append(LiveDocumentExtractor())

        return ExtractionManager(
            extractors,
            cache=cache,
            max_concurrency=self.config.extraction.max_concurrency,
        )

    async def get_http_client(self) -> HttpClient:
        """Get the HTTP client instance."""
        async with self._instances_lock:
            return await self._instances["http_client"].get()

    async def get_cache(self) -> Optional[CacheStrategy]:
        """Get the configured cache, or ``None`` when caching is disabled."""
        async with self._instances_lock:
            return await self._instances["cache"].get()

    async def get_manager(self) -> ExtractionManager:
        """Get the extraction manager instance."""
        async with self._instances_lock:
            return await self._instances["manager"].get()

    def default_options(self, **overrides: Any) -> ExtractionOptions:
        """``ExtractionOptions`` built from the configured defaults."""
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before building options")
        return self.config.extraction.to_options(**overrides)

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Flush the manager, then close the cache and the HTTP session."""
        if not self.is_running:
            return

        self.logger.info("Shutting down dependency container", container_id=self.container_id)

        # Manager first so pending cache writes land before the cache closes
        for name in ("manager", "cache", "http_client"):
            instance = self._instances.get(name)
            if instance is None:
                continue
            try:
                await instance.cleanup()
            except Exception as e:
                self.logger.error("Error cleaning up instance", instance=name, error=str(e))

        self.is_running = False
        self.logger.info("Dependency container shutdown complete")

    def get_health_status(self) -> Dict[str, Any]:
        """Get status of all managed components."""
        return {
            "container_id": self.container_id,
            "is_running": self.is_running,
            "config_loaded": self.config is not None,
            "initialized": [name for name, instance in self._instances.items() if instance.initialized],
            "config_path": str(self.config_path) if self.config_path else None,
        }

