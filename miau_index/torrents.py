"""Torrent indexing for anime: search nyaa.si, map, deduplicate and query."""

import dataclasses
import logging
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .cache import MemoryCache
from .dedup import deduplicate_torrents
from .errors import ProviderError, ValidationError
from .mapper import map_raw_torrent
from .models import (
    Anime,
    RawTorrent,
    Torrent,
    TorrentQuality,
    TorrentSearchFilter,
    TorrentStats,
)
from .repositories import EpisodeRepository, SeasonRepository, TorrentRepository
from .scraper import DEFAULT_CATEGORY, NyaaClient
from .utils import is_valid_episode_number, sanitize_search_query
from .validation import validate_search_filter

logger = logging.getLogger(__name__)

# Highest first
QUALITY_PRIORITY = [
    TorrentQuality.UHD_4K,
    TorrentQuality.FULL_HD_1080P,
    TorrentQuality.HD_720P,
    TorrentQuality.SD_480P,
]


class TorrentSearcher(Protocol):
    async def search(
        self,
        query: str,
        category: str = DEFAULT_CATEGORY,
        filter_type: str = "no-filter",
        sort_by: str = "seeders",
        order: str = "desc",
        page: int = 1,
    ) -> list[RawTorrent]: ...


@dataclass
class TorrentIndexerOptions:
    auto_index: bool = True
    min_seeders: int = 1
    trusted_only: bool = False
    max_results: int = 100
    preferred_quality: TorrentQuality = TorrentQuality.FULL_HD_1080P
    enable_cache: bool = True
    cache_ttl: float = 3600.0
    timeout: float = 30.0
    max_retries: int = 3


@dataclass
class IndexerMetrics:
    total_searches: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    total_torrents_indexed: int = 0
    failed_searches: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Percentage of searches answered from the cache."""
        if not self.total_searches:
            return 0.0
        return self.cache_hits / self.total_searches * 100


def build_search_queries(anime: Anime) -> list[str]:
    """Romaji title, then English if different, then native if not already present."""
    queries = []
    if anime.title.romaji:
        queries.append(anime.title.romaji)
    if anime.title.english and anime.title.english != anime.title.romaji:
        queries.append(anime.title.english)
    if anime.title.native and anime.title.native not in queries:
        queries.append(anime.title.native)
    return queries


def build_episode_query(anime: Anime, episode_number: int) -> str:
    title = anime.title.romaji or anime.title.english or ""
    return f"{title} {episode_number:02d}"


class TorrentIndexer:
    """Indexes nyaa.si torrents for anime and answers queries over them."""

    def __init__(
        self,
        torrent_repository: TorrentRepository,
        options: TorrentIndexerOptions | None = None,
        episode_repository: EpisodeRepository | None = None,
        season_repository: SeasonRepository | None = None,
        searcher: TorrentSearcher | None = None,
    ) -> None:
        self.options = options or TorrentIndexerOptions()
        self.torrent_repository = torrent_repository
        self.episode_repository = episode_repository
        self.season_repository = season_repository
        self.searcher = searcher or NyaaClient(
            timeout=self.options.timeout, max_retries=self.options.max_retries
        )
        self.search_cache = (
            MemoryCache(default_ttl=self.options.cache_ttl) if self.options.enable_cache else None
        )
        self.metrics = IndexerMetrics()

    async def _search(self, query: str, use_cache: bool = True) -> list[RawTorrent]:
        """Search the indexer, going through the result cache."""
        self.metrics.total_searches += 1

        if self.search_cache is not None and use_cache:
            cached = self.search_cache.get(query)
            if cached is not None:
                self.metrics.cache_hits += 1
                return cached
            self.metrics.cache_misses += 1

        filter_type = "trusted-only" if self.options.trusted_only else "no-filter"
        try:
            results = await self.searcher.search(
                query,
                category=DEFAULT_CATEGORY,
                filter_type=filter_type,
                sort_by="seeders",
                order="desc",
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError("Nyaa", f"Search failed for '{query}': {e}") from e

        results = results[: self.options.max_results]
        if self.search_cache is not None:
            self.search_cache.set(query, results)
        return results

    def _accepts(self, raw: RawTorrent) -> bool:
        if raw.seeders < self.options.min_seeders:
            return False
        if self.options.trusted_only and not raw.is_trusted:
            return False
        return True

    async def _map_results(
        self, results: list[RawTorrent], anime: Anime, episode_number: int | None = None
    ) -> list[Torrent]:
        torrents = []
        for raw in results:
            if not self._accepts(raw):
                continue
            try:
                torrent = await map_raw_torrent(
                    raw,
                    anime,
                    episode_number=episode_number,
                    episode_repository=self.episode_repository,
                    season_repository=self.season_repository,
                )
            except Exception as e:
                logger.warning(f"Failed to map torrent '{raw.title}': {e}")
                continue
            torrents.append(torrent)
        return torrents

    async def _store(self, torrents: list[Torrent]) -> None:
        if self.options.auto_index and torrents:
            await self.torrent_repository.save_many(torrents)
            self.metrics.total_torrents_indexed += len(torrents)

    async def index_anime(self, anime: Anime) -> list[Torrent]:
        """
        Search every title variant of an anime and index the results.

        Queries run one after another; results are pooled before
        deduplication.

        Raises:
            ProviderError: If the indexer failed
        """
        start = time.perf_counter()
        logger.info(f"Indexing torrents for {anime.title.display()}")

        candidates: list[Torrent] = []
        try:
            for query in build_search_queries(anime):
                sanitized = sanitize_search_query(query)
                if not sanitized:
                    continue
                logger.debug(f"Searching Nyaa with query: {sanitized}")
                results = await self._search(sanitized)
                candidates.extend(await self._map_results(results, anime))
        except Exception as e:
            self.metrics.failed_searches += 1
            logger.error(f"Error indexing torrents for {anime.id}: {e}")
            raise ProviderError("Nyaa", f"Failed to index anime: {e}") from e

        torrents = deduplicate_torrents(candidates)
        await self._store(torrents)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"Indexed {len(torrents)} torrents for anime {anime.id} ({elapsed:.0f}ms)")
        return torrents

    async def index_episode(self, anime: Anime, episode_number: int) -> list[Torrent]:
        """
        Search and index torrents for one episode.

        Raises:
            ValidationError: If the episode number is out of range
            ProviderError: If the indexer failed
        """
        if not is_valid_episode_number(episode_number):
            raise ValidationError(
                f"Invalid episode number: {episode_number}", field="episode_number"
            )

        start = time.perf_counter()
        logger.info(f"Indexing torrents for episode {episode_number} of {anime.title.display()}")

        try:
            query = sanitize_search_query(build_episode_query(anime, episode_number))
            results = await self._search(query)
            candidates = await self._map_results(results, anime, episode_number)
        except Exception as e:
            self.metrics.failed_searches += 1
            logger.error(f"Error indexing episode {episode_number} of {anime.id}: {e}")
            raise ProviderError("Nyaa", f"Failed to index episode: {e}") from e

        torrents = deduplicate_torrents(candidates)
        await self._store(torrents)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            f"Indexed {len(torrents)} torrents for episode {episode_number} ({elapsed:.0f}ms)"
        )
        return torrents

    async def search_torrents(
        self, anime: Anime, filters: TorrentSearchFilter | None = None
    ) -> list[Torrent]:
        """Stored torrents of an anime matching the filters, most seeded first.

        Raises:
            ValidationError: If the filter breaks the filter schema
        """
        filters = validate_search_filter(filters or TorrentSearchFilter())
        if filters.anime_id is None:
            filters = dataclasses.replace(filters, anime_id=anime.id)
        return await self.torrent_repository.find_by_filters(filters)

    async def get_best_torrent(
        self,
        anime: Anime,
        episode_number: int,
        preferred_quality: TorrentQuality | None = None,
    ) -> Torrent | None:
        """
        Best stored torrent for an episode.

        Returns the most seeded torrent in the preferred quality, or the most
        seeded torrent overall when that quality is not available.
        """
        torrents = await self.torrent_repository.find_by_filters(
            TorrentSearchFilter(
                anime_id=anime.id,
                episode_number=episode_number,
                min_seeders=self.options.min_seeders,
                trusted_only=self.options.trusted_only,
            )
        )
        if not torrents:
            return None

        quality = preferred_quality or self.options.preferred_quality
        for torrent in torrents:
            if torrent.metadata.quality == quality:
                return torrent
        return torrents[0]

    async def get_best_quality_for_episode(
        self, anime_id: str, episode_number: int
    ) -> TorrentQuality | None:
        torrents = await self.torrent_repository.find_by_filters(
            TorrentSearchFilter(anime_id=anime_id, episode_number=episode_number)
        )
        if not torrents:
            return None

        available = {torrent.metadata.quality for torrent in torrents}
        for quality in QUALITY_PRIORITY:
            if quality in available:
                return quality
        return torrents[0].metadata.quality

    async def get_torrents_by_quality(
        self, anime_id: str, quality: TorrentQuality
    ) -> list[Torrent]:
        return await self.torrent_repository.find_by_filters(
            TorrentSearchFilter(anime_id=anime_id, quality=quality)
        )

    async def get_torrent_stats(self, anime_id: str) -> TorrentStats:
        torrents = await self.torrent_repository.find_by_anime_id(anime_id)
        if not torrents:
            return TorrentStats()

        by_quality = Counter(t.metadata.quality for t in torrents)
        # A multi-language torrent counts once per language
        by_language = Counter(lang for t in torrents for lang in t.metadata.audio_languages)
        by_release_type = Counter(t.metadata.release_type for t in torrents)

        return TorrentStats(
            total_torrents=len(torrents),
            by_quality=dict(by_quality),
            by_language=dict(by_language),
            by_release_type=dict(by_release_type),
            average_seeders=sum(t.seeders for t in torrents) / len(torrents),
            total_size=sum(t.size_bytes for t in torrents),
        )

    async def refresh_torrent(self, torrent_id: str) -> Torrent | None:
        """
        Update the swarm counts of a stored torrent from the indexer.

        Returns None for an unknown id. Indexer failures are logged and the
        stored torrent is returned unchanged.
        """
        torrent = await self.torrent_repository.find_by_id(torrent_id)
        if torrent is None:
            return None

        try:
            results = await self._search(torrent.nyaa_id, use_cache=False)
        except ProviderError as e:
            logger.error(f"Error refreshing torrent {torrent_id}: {e}")
            return torrent

        if not results:
            return torrent

        match = next((raw for raw in results if raw.id == torrent.nyaa_id), results[0])
        torrent.seeders = match.seeders
        torrent.leechers = match.leechers
        torrent.downloads = match.downloads
        torrent.last_checked = datetime.now()
        return await self.torrent_repository.save(torrent)

    async def refresh_all_torrents(self, anime_id: str) -> int:
        """Refresh every stored torrent of an anime; returns how many were refreshed."""
        torrents = await self.torrent_repository.find_by_anime_id(anime_id)
        if not torrents:
            logger.warning(f"No torrents found for anime: {anime_id}")
            return 0

        logger.info(f"Refreshing {len(torrents)} torrents for anime: {anime_id}")
        refreshed = 0
        for torrent in torrents:
            if await self.refresh_torrent(torrent.id) is not None:
                refreshed += 1

        logger.info(f"Refreshed {refreshed}/{len(torrents)} torrents")
        return refreshed

    def get_metrics(self) -> IndexerMetrics:
        return dataclasses.replace(self.metrics)

    def clear_cache(self) -> None:
        if self.search_cache is not None:
            self.search_cache.clear()
            logger.info("Search cache cleared")

    async def close(self) -> None:
        close = getattr(self.searcher, "close", None)
        if close is not None:
            await close()
