"""Kitsu provider (JSON:API, no key required)."""

from typing import Any

from ..cache import Cache
from ..http import HttpClient
from ..models import (
    Anime,
    AnimeStatus,
    AnimeType,
    DataSource,
    DateRange,
    Episode,
    ExternalId,
    Images,
    Rating,
    Title,
)
from ..ratelimit import RateLimiter
from ..utils import generate_id, parse_date
from .base import SEASONAL_TTL, HttpProvider

KITSU_URL = "https://kitsu.io/api/edge"

SUBTYPE_MAP = {
    "tv": AnimeType.TV,
    "movie": AnimeType.MOVIE,
    "ova": AnimeType.OVA,
    "ona": AnimeType.ONA,
    "special": AnimeType.SPECIAL,
    "music": AnimeType.MUSIC,
}

STATUS_MAP = {
    "finished": AnimeStatus.FINISHED,
    "current": AnimeStatus.AIRING,
    "upcoming": AnimeStatus.NOT_YET_AIRED,
    "unreleased": AnimeStatus.NOT_YET_AIRED,
    "tba": AnimeStatus.NOT_YET_AIRED,
}

EPISODE_PAGE_SIZE = 20
MAX_EPISODE_PAGES = 50


def _images(image: dict[str, Any] | None) -> Images:
    image = image or {}
    return Images(
        small=image.get("small"),
        medium=image.get("medium"),
        large=image.get("large"),
        original=image.get("original"),
    )


def map_anime(data: dict[str, Any]) -> Anime:
    """Map a Kitsu anime resource to an Anime."""
    attributes = data.get("attributes") or {}
    titles = attributes.get("titles") or {}
    average = attributes.get("averageRating")

    ratings = []
    if average:
        ratings.append(
            Rating(
                source=DataSource.KITSU,
                score=float(average) / 10,
                votes=attributes.get("userCount"),
                rank=attributes.get("ratingRank"),
                popularity=attributes.get("popularityRank"),
            )
        )

    return Anime(
        id=generate_id(),
        title=Title(
            romaji=titles.get("en_jp"),
            english=titles.get("en") or attributes.get("canonicalTitle"),
            native=titles.get("ja_jp"),
            synonyms=attributes.get("abbreviatedTitles") or [],
        ),
        type=SUBTYPE_MAP.get((attributes.get("subtype") or "").lower(), AnimeType.TV),
        status=STATUS_MAP.get((attributes.get("status") or "").lower(), AnimeStatus.NOT_YET_AIRED),
        episodes=attributes.get("episodeCount"),
        duration=attributes.get("episodeLength"),
        synopsis=attributes.get("synopsis") or attributes.get("description"),
        images=_images(attributes.get("posterImage")),
        aired=DateRange(
            start=parse_date(attributes.get("startDate")),
            end=parse_date(attributes.get("endDate")),
        ),
        ratings=ratings,
        external_ids=[ExternalId(source=DataSource.KITSU, id=str(data["id"]))],
    )


def map_episode(data: dict[str, Any], anime_id: str) -> Episode:
    attributes = data.get("attributes") or {}
    titles = attributes.get("titles") or {}
    thumbnail = attributes.get("thumbnail")
    return Episode(
        id=generate_id(),
        anime_id=anime_id,
        number=attributes["number"],
        title=attributes.get("canonicalTitle") or titles.get("en_us") or titles.get("en"),
        title_japanese=titles.get("ja_jp"),
        title_romaji=titles.get("en_jp"),
        synopsis=attributes.get("synopsis") or attributes.get("description"),
        duration=attributes.get("length"),
        images=_images(thumbnail) if thumbnail else None,
        aired=parse_date(attributes.get("airdate")),
        external_ids=[ExternalId(source=DataSource.KITSU, id=str(data["id"]))],
    )


class KitsuProvider(HttpProvider):
    source = DataSource.KITSU
    name = "kitsu"

    def __init__(
        self,
        cache: Cache | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        http = HttpClient(
            "KITSU",
            base_url=KITSU_URL,
            timeout=timeout,
            headers={"Accept": "application/vnd.api+json"},
            max_retries=max_retries,
            rate_limiter=rate_limiter or RateLimiter.per_minute(60),
        )
        super().__init__(http, cache)

    async def fetch_anime_by_id(self, external_id: str) -> Anime | None:
        async def fetch():
            body = await self.http.get_json(f"/anime/{external_id}")
            data = body.get("data")
            return map_anime(data) if isinstance(data, dict) else None

        return await self._cached_anime(
            self._cache_key("anime", external_id), lambda: self._lookup(fetch)
        )

    async def _list(self, params: dict[str, Any]) -> list[Anime]:
        body = await self.http.get_json("/anime", params=params)
        data = body.get("data")
        return [map_anime(item) for item in data] if isinstance(data, list) else []

    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]:
        params = {"filter[text]": query, "page[limit]": limit, "page[offset]": 0}
        return await self._cached_list(
            self._cache_key("search", query, limit), lambda: self._list(params)
        )

    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]:
        params = {
            "filter[seasonYear]": year,
            "filter[season]": season.lower(),
            "page[limit]": 20,
            "sort": "-userCount",
        }
        return await self._cached_list(
            self._cache_key("seasonal", year, season.lower()),
            lambda: self._list(params),
            SEASONAL_TTL,
        )

    async def fetch_episodes(self, anime_id: str, external_id: str) -> list[Episode]:
        episodes: list[Episode] = []
        for page in range(MAX_EPISODE_PAGES):
            params = {"page[limit]": EPISODE_PAGE_SIZE, "page[offset]": page * EPISODE_PAGE_SIZE}
            body = await self._lookup(
                lambda: self.http.get_json(f"/anime/{external_id}/episodes", params=params)
            )
            if not body:
                break

            data = body.get("data") or []
            episodes.extend(
                map_episode(item, anime_id)
                for item in data
                if (item.get("attributes") or {}).get("number")
            )
            if len(data) < EPISODE_PAGE_SIZE or not (body.get("links") or {}).get("next"):
                break

        return sorted(episodes, key=lambda ep: ep.number)

    async def is_available(self) -> bool:
        try:
            await self.http.get_json("/anime", params={"page[limit]": 1})
            return True
        except Exception:
            return False
