"""MiauIndex: one entry point over providers, repositories and torrent indexing."""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field

from .cache import Cache, NullCache, create_cache
from .config import Settings
from .errors import ConfigurationError, NotFoundError
from .models import (
    Anime,
    AnimeSeason,
    DataSource,
    Episode,
    ExternalId,
    Torrent,
    TorrentQuality,
    TorrentSearchFilter,
    TorrentStats,
    UnificationOptions,
)
from .providers import (
    AniListProvider,
    AnimeProvider,
    JikanProvider,
    KitsuProvider,
    MyAnimeListProvider,
    ProviderRegistry,
)
from .ratelimit import RateLimiter
from .repositories import (
    AnimeRepository,
    EpisodeRepository,
    InMemoryAnimeRepository,
    InMemoryEpisodeRepository,
    InMemorySeasonRepository,
    InMemoryTorrentRepository,
    SeasonRepository,
    TorrentRepository,
)
from .seasons import organize_into_seasons
from .torrents import IndexerMetrics, TorrentIndexer, TorrentIndexerOptions, TorrentSearcher
from .unification import AnimeUnificationService
from .validation import validate_anime

logger = logging.getLogger(__name__)

# Published request ceilings of the public catalogs
PROVIDER_RATE_LIMITS = {
    "anilist": 30,
    "jikan": 55,
}

OPEN_SOURCES = (DataSource.ANILIST, DataSource.KITSU)


@dataclass
class AnimeWithEpisodes:
    anime: Anime
    episodes: list[Episode] = field(default_factory=list)
    seasons: list[AnimeSeason] = field(default_factory=list)


@dataclass
class IndexStats:
    total_anime: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
    sources: dict[DataSource, int] = field(default_factory=dict)


def seasonal_dedup_key(anime: Anime) -> str:
    title = anime.title.romaji or anime.title.english or anime.title.native
    return title.lower() if title else anime.id


def deduplicate_anime(animes: list[Anime]) -> list[Anime]:
    """Keep the first anime per lower-cased title."""
    seen: dict[str, Anime] = {}
    for anime in animes:
        seen.setdefault(seasonal_dedup_key(anime), anime)
    return list(seen.values())


class MiauIndex:
    """
    Unified anime index.

    Usage:
        async with MiauIndex(Settings.from_env()) as index:
            anime = await index.fetch_anime([ExternalId(DataSource.ANILIST, "154587")])
    """

    def __init__(
        self,
        settings: Settings | None = None,
        providers: list[AnimeProvider] | None = None,
        anime_repository: AnimeRepository | None = None,
        episode_repository: EpisodeRepository | None = None,
        season_repository: SeasonRepository | None = None,
        torrent_repository: TorrentRepository | None = None,
        torrent_searcher: TorrentSearcher | None = None,
        unification_options: UnificationOptions | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.repository = anime_repository or InMemoryAnimeRepository()
        self.episode_repository = episode_repository or InMemoryEpisodeRepository()
        self.season_repository = season_repository or InMemorySeasonRepository()

        self.registry = ProviderRegistry()
        if providers is None:
            providers = self._build_providers()
        for provider in providers:
            self.registry.register(provider)

        self.unification_service = AnimeUnificationService(self.repository, self.registry)
        self.unification_options = unification_options or UnificationOptions(
            preferred_sources=self._preferred_sources()
        )

        self.torrent_repository: TorrentRepository | None = None
        self.torrent_indexer: TorrentIndexer | None = None
        if self.settings.enable_nyaa:
            self.torrent_repository = torrent_repository or InMemoryTorrentRepository()
            self.torrent_indexer = TorrentIndexer(
                self.torrent_repository,
                TorrentIndexerOptions(
                    min_seeders=self.settings.nyaa_min_seeders,
                    trusted_only=self.settings.nyaa_trusted_only,
                    preferred_quality=self.settings.nyaa_preferred_quality,
                    enable_cache=self.settings.cache_enabled,
                    cache_ttl=self.settings.cache_ttl,
                    timeout=self.settings.indexer_timeout,
                    max_retries=self.settings.max_retries,
                ),
                episode_repository=self.episode_repository,
                season_repository=self.season_repository,
                searcher=torrent_searcher,
            )

        sources = ", ".join(source.value for source in self.registry.sources())
        logger.info(f"MiauIndex initialized with providers: {sources}")
        if self.torrent_indexer is not None:
            logger.info("Nyaa torrent extension enabled")

    def _build_cache(self) -> Cache:
        if not self.settings.cache_enabled:
            return NullCache()
        return create_cache(self.settings.cache_dir, self.settings.cache_ttl)

    def _rate_limiter(self, name: str) -> RateLimiter:
        rpm = self.settings.requests_per_minute
        return RateLimiter.per_minute(min(rpm, PROVIDER_RATE_LIMITS.get(name, rpm)))

    def _build_providers(self) -> list[AnimeProvider]:
        """Open catalogs first; the official MyAnimeList API last, when a client id is set."""
        enabled = self.settings.enabled_providers
        cache = self._build_cache()
        common = {
            "timeout": self.settings.provider_timeout,
            "max_retries": self.settings.max_retries,
        }

        providers: list[AnimeProvider] = []
        if "anilist" in enabled:
            providers.append(
                AniListProvider(cache=cache, rate_limiter=self._rate_limiter("anilist"), **common)
            )
        if "kitsu" in enabled:
            providers.append(
                KitsuProvider(cache=cache, rate_limiter=self._rate_limiter("kitsu"), **common)
            )
        if "jikan" in enabled:
            providers.append(
                JikanProvider(cache=cache, rate_limiter=self._rate_limiter("jikan"), **common)
            )
        if "myanimelist" in enabled:
            if self.settings.mal_client_id:
                providers.append(
                    MyAnimeListProvider(
                        self.settings.mal_client_id,
                        cache=cache,
                        rate_limiter=self._rate_limiter("myanimelist"),
                        **common,
                    )
                )
            else:
                logger.warning("MyAnimeList provider skipped (no MAL_CLIENT_ID configured)")
        return providers

    def _preferred_sources(self) -> list[DataSource]:
        registered = self.registry.sources()
        if self.settings.prefer_open_sources:
            preferred = [source for source in registered if source in OPEN_SOURCES]
        else:
            preferred = [source for source in registered if source not in OPEN_SOURCES]
        return preferred or UnificationOptions().preferred_sources

    # Catalog

    async def fetch_anime(
        self, external_ids: list[ExternalId], options: UnificationOptions | None = None
    ) -> Anime:
        """
        Fetch an anime from several sources and unify it into one record.

        Raises:
            NotFoundError: If no source returned data
        """
        logger.info(f"Fetching anime from {len(external_ids)} sources")
        anime = await self.unification_service.fetch_and_unify(
            external_ids, options or self.unification_options
        )
        logger.info(f"Fetched and unified anime: {anime.title.display()}")
        return anime

    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]:
        logger.info(f'Searching for anime: "{query}" (limit: {limit})')
        results = await self.unification_service.search_and_unify(query, limit)
        logger.info(f"Found {len(results)} unique results")
        return results

    async def _seasonal_from(self, provider: AnimeProvider, year: int, season: str) -> list[Anime]:
        try:
            return await provider.get_seasonal_anime(year, season)
        except Exception as e:
            logger.warning(f"Seasonal fetch failed for {provider.get_source().value}: {e}")
            return []

    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]:
        """Seasonal lineup from every provider, deduplicated by title."""
        logger.info(f"Fetching seasonal anime: {season} {year}")
        results = await asyncio.gather(
            *(self._seasonal_from(provider, year, season) for provider in self.registry)
        )
        unique = deduplicate_anime([anime for batch in results for anime in batch])
        logger.info(f"Found {len(unique)} unique seasonal anime")
        return unique

    async def search_local(self, query: str, limit: int = 10) -> list[Anime]:
        results = await self.repository.search_by_title(query, limit)
        logger.info(f'Found {len(results)} local results for "{query}"')
        return results

    async def get_by_id(self, anime_id: str) -> Anime | None:
        return await self.repository.find_by_id(anime_id)

    async def save_anime(self, anime: Anime) -> Anime:
        """Store a caller-supplied record after checking it against the anime schema."""
        return await self.repository.save(validate_anime(anime))

    async def get_all_local(self, page: int = 1, limit: int = 100) -> list[Anime]:
        return await self.repository.find_all(page, limit)

    async def clear_local(self) -> None:
        total = await self.repository.count()
        for anime in await self.repository.find_all(1, max(total, 1)):
            await self.repository.delete(anime.id)
        logger.info("Local repository cleared")

    async def check_providers(self) -> dict[DataSource, bool]:
        """Check every provider. A check that raises counts as unavailable."""
        health = {}
        for provider in self.registry:
            try:
                health[provider.get_source()] = await provider.is_available()
            except Exception as e:
                logger.warning(f"Health check failed for {provider.get_source().value}: {e}")
                health[provider.get_source()] = False
        return health

    async def get_stats(self) -> IndexStats:
        total = await self.repository.count()
        animes = await self.repository.find_all(1, max(total, 1))

        by_type = Counter(anime.type.value for anime in animes)
        by_status = Counter(anime.status.value for anime in animes)
        sources = Counter(ext.source for anime in animes for ext in anime.external_ids)

        return IndexStats(
            total_anime=len(animes),
            by_type=dict(by_type),
            by_status=dict(by_status),
            sources=dict(sources),
        )

    # Episodes and seasons

    async def get_episodes(self, anime: Anime) -> list[Episode]:
        """
        Fetch the episode list of an anime and store it.

        Providers are tried in registry order; the first one the anime has
        an external id for that returns episodes wins.
        """
        for provider in self.registry:
            external_id = anime.external_id_for(provider.get_source())
            if not external_id:
                continue
            try:
                episodes = await provider.fetch_episodes(anime.id, external_id)
            except Exception as e:
                logger.warning(f"Episode fetch failed for {provider.get_source().value}: {e}")
                continue
            if episodes:
                logger.info(
                    f"Fetched {len(episodes)} episodes for {anime.title.display()} "
                    f"from {provider.get_source().value}"
                )
                return await self.episode_repository.save_many(episodes)

        logger.warning(f"No episodes found for {anime.title.display()}")
        return []

    async def organize_into_seasons(
        self, anime_id: str, episodes: list[Episode]
    ) -> list[AnimeSeason]:
        ordered = sorted(episodes, key=lambda episode: episode.number)
        return await organize_into_seasons(anime_id, ordered, self.season_repository)

    async def get_anime_with_episodes(self, anime_id: str) -> AnimeWithEpisodes:
        """
        Load an anime with its episodes and seasons.

        Episodes are fetched from providers when none are stored yet. A run
        longer than one cour is split into seasons; shorter runs form a
        single season.

        Raises:
            NotFoundError: If the anime is not in the repository
        """
        anime = await self.repository.find_by_id(anime_id)
        if anime is None:
            raise NotFoundError("Anime", anime_id)

        episodes = await self.episode_repository.find_by_anime_id(anime_id)
        if not episodes:
            episodes = sorted(await self.get_episodes(anime), key=lambda episode: episode.number)

        seasons = await self.season_repository.find_by_anime_id(anime_id)
        if not seasons and episodes:
            seasons = await self.organize_into_seasons(anime_id, episodes)

        return AnimeWithEpisodes(anime=anime, episodes=episodes, seasons=seasons)

    # Torrent extension

    def is_nyaa_enabled(self) -> bool:
        return self.torrent_indexer is not None

    def _indexer(self) -> TorrentIndexer:
        if self.torrent_indexer is None:
            raise ConfigurationError(
                "nyaa", "torrent extension is not enabled (set MIAU_ENABLE_NYAA=true)"
            )
        return self.torrent_indexer

    async def index_torrents(self, anime: Anime) -> list[Torrent]:
        return await self._indexer().index_anime(anime)

    async def index_episode_torrents(self, anime: Anime, episode_number: int) -> list[Torrent]:
        return await self._indexer().index_episode(anime, episode_number)

    async def search_torrents(
        self, anime: Anime, filters: TorrentSearchFilter | None = None
    ) -> list[Torrent]:
        return await self._indexer().search_torrents(anime, filters)

    async def get_best_torrent(
        self,
        anime: Anime,
        episode_number: int,
        preferred_quality: TorrentQuality | None = None,
    ) -> Torrent | None:
        return await self._indexer().get_best_torrent(anime, episode_number, preferred_quality)

    async def get_best_quality_for_episode(
        self, anime_id: str, episode_number: int
    ) -> TorrentQuality | None:
        return await self._indexer().get_best_quality_for_episode(anime_id, episode_number)

    async def get_torrent_stats(self, anime_id: str) -> TorrentStats:
        return await self._indexer().get_torrent_stats(anime_id)

    async def refresh_torrent(self, torrent_id: str) -> Torrent | None:
        return await self._indexer().refresh_torrent(torrent_id)

    async def refresh_all_torrents(self, anime_id: str) -> int:
        return await self._indexer().refresh_all_torrents(anime_id)

    async def get_torrents_by_quality(self, anime_id: str, quality: TorrentQuality) -> list[Torrent]:
        return await self._indexer().get_torrents_by_quality(anime_id, quality)

    def get_nyaa_metrics(self) -> IndexerMetrics:
        return self._indexer().get_metrics()

    def clear_nyaa_cache(self) -> None:
        self._indexer().clear_cache()

    async def close(self) -> None:
        await self.registry.close()
        if self.torrent_indexer is not None:
            await self.torrent_indexer.close()

    async def __aenter__(self) -> "MiauIndex":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
