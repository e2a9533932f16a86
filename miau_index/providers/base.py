"""Catalog provider interface, shared provider plumbing and the registry."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

from ..cache import Cache, MemoryCache
from ..errors import NotFoundError
from ..http import HttpClient
from ..models import Anime, DataSource, Episode

logger = logging.getLogger(__name__)

SEASONAL_TTL = 6 * 3600


class AnimeProvider(ABC):
    """A catalog the index can fetch anime metadata from.

    Point lookups return None when the catalog has no such anime; network
    exhaustion propagates as ProviderError or RateLimitError.
    """

    source: DataSource
    name: str

    def get_source(self) -> DataSource:
        return self.source

    @abstractmethod
    async def fetch_anime_by_id(self, external_id: str) -> Anime | None: ...

    @abstractmethod
    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]: ...

    @abstractmethod
    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]: ...

    async def fetch_episodes(self, anime_id: str, external_id: str) -> list[Episode]:
        """Episodes are optional; catalogs without episode data return nothing."""
        return []

    @abstractmethod
    async def is_available(self) -> bool: ...

    async def close(self) -> None:
        pass


class HttpProvider(AnimeProvider):
    """Provider backed by an HttpClient with a per-provider result cache."""

    def __init__(self, http: HttpClient, cache: Cache | None = None) -> None:
        self.http = http
        self.cache = cache if cache is not None else MemoryCache()

    def _cache_key(self, *parts: Any) -> str:
        return ":".join([self.name, *(str(part) for part in parts)])

    async def _cached_anime(
        self,
        key: str,
        factory: Callable[[], Awaitable[Anime | None]],
        ttl: float | None = None,
    ) -> Anime | None:
        return await self.cache.get_or_set(key, factory, ttl, value_type=Anime)

    async def _cached_list(
        self,
        key: str,
        factory: Callable[[], Awaitable[list[Anime]]],
        ttl: float | None = None,
    ) -> list[Anime]:
        return await self.cache.get_or_set(key, factory, ttl, value_type=list[Anime])

    async def _lookup(self, factory: Callable[[], Awaitable[Any]]) -> Any | None:
        """Run a point lookup, turning NotFoundError into None."""
        try:
            return await factory()
        except NotFoundError:
            logger.debug(f"{self.name}: resource not found")
            return None

    async def close(self) -> None:
        await self.http.close()


class ProviderRegistry:
    """Providers keyed by source, iterated in registration order.

    Registering a provider for a source that already has one replaces it
    while keeping the original position.
    """

    def __init__(self) -> None:
        self._providers: dict[DataSource, AnimeProvider] = {}

    def register(self, provider: AnimeProvider) -> None:
        source = provider.get_source()
        if source in self._providers:
            logger.info(
                f"Replacing {self._providers[source].name} with {provider.name} for {source.value}"
            )
        self._providers[source] = provider

    def get(self, source: DataSource) -> AnimeProvider | None:
        return self._providers.get(source)

    def sources(self) -> list[DataSource]:
        return list(self._providers)

    def __iter__(self) -> Iterator[AnimeProvider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, source: DataSource) -> bool:
        return source in self._providers

    async def close(self) -> None:
        for provider in self:
            await provider.close()
