"""Merge per-source anime records into one canonical record."""

import asyncio
import copy
import logging
from collections import defaultdict
from datetime import datetime
from typing import TypeVar

from .errors import NotFoundError
from .models import Anime, DataSource, ExternalId, Title, UnificationOptions
from .providers.base import AnimeProvider, ProviderRegistry
from .repositories import AnimeRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def select_best_value(
    values: list[T | None], preferred_sources: list[DataSource] | None = None
) -> T | None:
    """
    Pick one value for a scalar field.

    Values are given in source order. The first defined value wins;
    preferred_sources is accepted but does not reorder candidates.
    """
    defined = [value for value in values if value is not None]
    return defined[0] if defined else None


def select_synopsis(synopses: list[str | None]) -> str | None:
    """Longest non-empty synopsis; ties go to the earliest source."""
    candidates = [synopsis for synopsis in synopses if synopsis]
    if not candidates:
        return None
    return max(candidates, key=len)


def merge_array_fields(arrays: list[list[str]]) -> list[str]:
    """Union of all arrays, deduplicated (case-sensitive) and sorted."""
    return sorted({item for array in arrays for item in array if item})


def unify_anime(sources: list[Anime], options: UnificationOptions | None = None) -> Anime:
    """
    Merge source-specific records of one anime.

    Args:
        sources: One record per contributing source, in source order
        options: Merge options (defaults when omitted)

    Returns:
        A new canonical Anime. The inputs are not modified.

    Raises:
        NotFoundError: If sources is empty
    """
    if not sources:
        raise NotFoundError("Anime", "no data from any source")

    options = options or UnificationOptions()
    preferred = options.preferred_sources
    base = sources[0]
    unified = copy.deepcopy(base)

    unified.title = Title(
        romaji=select_best_value([s.title.romaji for s in sources], preferred),
        english=select_best_value([s.title.english for s in sources], preferred),
        native=select_best_value([s.title.native for s in sources], preferred),
        synonyms=(
            merge_array_fields([s.title.synonyms for s in sources])
            if options.merge_arrays
            else list(base.title.synonyms)
        ),
    )
    unified.episodes = select_best_value([s.episodes for s in sources], preferred)
    unified.duration = select_best_value([s.duration for s in sources], preferred)
    unified.season = select_best_value([s.season for s in sources], preferred)
    unified.year = select_best_value([s.year for s in sources], preferred)
    unified.background = select_best_value([s.background for s in sources], preferred)
    unified.synopsis = select_synopsis([s.synopsis for s in sources])

    # Ratings keep their origin and are never averaged
    unified.ratings = [copy.copy(rating) for s in sources for rating in s.ratings]

    if options.merge_arrays:
        unified.genres = merge_array_fields([s.genres for s in sources])
        unified.themes = merge_array_fields([s.themes for s in sources])
        unified.studios = merge_array_fields([s.studios for s in sources])
        unified.producers = merge_array_fields([s.producers for s in sources])
        unified.licensors = merge_array_fields([s.licensors for s in sources])

    unified.external_ids = [
        ExternalId(source=ext.source, id=ext.id) for s in sources for ext in s.external_ids
    ]

    now = datetime.now()
    unified.last_synced_at = now
    unified.updated_at = now
    return unified


def search_group_key(anime: Anime) -> str:
    """Exact-match grouping key for search results."""
    return anime.title.romaji or anime.title.english or anime.id


class AnimeUnificationService:
    """Fetches anime from registered providers and unifies the results."""

    def __init__(self, repository: AnimeRepository, registry: ProviderRegistry | None = None) -> None:
        self.repository = repository
        self.registry = registry if registry is not None else ProviderRegistry()

    def register_provider(self, provider: AnimeProvider) -> None:
        self.registry.register(provider)

    async def fetch_and_unify(
        self, external_ids: list[ExternalId], options: UnificationOptions | None = None
    ) -> Anime:
        """
        Fetch one anime from each listed source, unify and persist it.

        Sources without a registered provider are skipped and failing
        sources are logged and left out.

        Raises:
            NotFoundError: If no source returned data
        """
        records = []
        for external_id in external_ids:
            provider = self.registry.get(external_id.source)
            if provider is None:
                logger.warning(f"No provider registered for {external_id.source.value}")
                continue
            try:
                anime = await provider.fetch_anime_by_id(external_id.id)
            except Exception as e:
                logger.warning(f"Failed to fetch from {external_id.source.value}: {e}")
                continue
            if anime is not None:
                records.append(anime)

        if not records:
            ids = ", ".join(f"{ext.source.value}:{ext.id}" for ext in external_ids)
            raise NotFoundError("Anime", ids or "no data from any source")

        unified = unify_anime(records, options)

        # Refreshing a known anime keeps its identity
        for ext in unified.external_ids:
            existing = await self.repository.find_by_external_id(ext.source, ext.id)
            if existing is not None:
                unified.id = existing.id
                unified.created_at = existing.created_at
                break

        return await self.repository.save(unified)

    async def _search_provider(self, provider: AnimeProvider, query: str, limit: int) -> list[Anime]:
        try:
            return await provider.search_anime(query, limit)
        except Exception as e:
            logger.warning(f"Search failed for {provider.get_source().value}: {e}")
            return []

    async def search_and_unify(self, query: str, limit: int = 10) -> list[Anime]:
        """Search every provider concurrently and unify results sharing a title.

        Results are not persisted.
        """
        providers = list(self.registry)
        results = await asyncio.gather(
            *(self._search_provider(provider, query, limit) for provider in providers)
        )

        groups: dict[str, list[Anime]] = defaultdict(list)
        for provider_results in results:
            for anime in provider_results:
                groups[search_group_key(anime)].append(anime)

        unified = [
            unify_anime(group, UnificationOptions(merge_arrays=True)) for group in groups.values()
        ]
        return unified[:limit]
