"""Jikan provider, an unofficial read-only MyAnimeList mirror."""

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
    Season,
    Title,
)
from ..ratelimit import RateLimiter
from ..utils import generate_id, parse_date
from .base import SEASONAL_TTL, HttpProvider

JIKAN_URL = "https://api.jikan.moe/v4"

# Jikan itself caches upstream pages for a day
JIKAN_TTL = 24 * 3600

# Safety cap on episode pagination
MAX_EPISODE_PAGES = 50

TYPE_MAP = {
    "TV": AnimeType.TV,
    "OVA": AnimeType.OVA,
    "ONA": AnimeType.ONA,
    "Movie": AnimeType.MOVIE,
    "Special": AnimeType.SPECIAL,
    "TV Special": AnimeType.SPECIAL,
    "Music": AnimeType.MUSIC,
}

STATUS_MAP = {
    "Currently Airing": AnimeStatus.AIRING,
    "Finished Airing": AnimeStatus.FINISHED,
    "Not yet aired": AnimeStatus.NOT_YET_AIRED,
}


def _names(items: list[dict[str, Any]] | None) -> list[str]:
    return [item["name"] for item in items or [] if item.get("name")]


def map_anime(data: dict[str, Any]) -> Anime:
    """Map a Jikan anime object to an Anime."""
    jpg = (data.get("images") or {}).get("jpg") or {}
    aired = data.get("aired") or {}
    season = (data.get("season") or "").upper()

    return Anime(
        id=generate_id(),
        title=Title(
            romaji=data.get("title"),
            english=data.get("title_english"),
            native=data.get("title_japanese"),
            synonyms=data.get("title_synonyms") or [],
        ),
        type=TYPE_MAP.get(data.get("type") or "", AnimeType.TV),
        status=STATUS_MAP.get(data.get("status") or "", AnimeStatus.FINISHED),
        episodes=data.get("episodes"),
        season=Season(season) if season in Season.__members__ else None,
        year=data.get("year"),
        synopsis=data.get("synopsis"),
        background=data.get("background"),
        images=Images(
            small=jpg.get("small_image_url"),
            medium=jpg.get("image_url"),
            large=jpg.get("large_image_url"),
            original=jpg.get("large_image_url"),
        ),
        aired=DateRange(start=parse_date(aired.get("from")), end=parse_date(aired.get("to"))),
        ratings=[
            Rating(
                source=DataSource.MYANIMELIST,
                score=data.get("score"),
                votes=data.get("scored_by"),
                rank=data.get("rank"),
                popularity=data.get("popularity"),
            )
        ],
        genres=_names(data.get("genres")),
        themes=_names(data.get("themes")),
        demographics=_names(data.get("demographics")),
        studios=_names(data.get("studios")),
        producers=_names(data.get("producers")),
        licensors=_names(data.get("licensors")),
        external_ids=[ExternalId(source=DataSource.MYANIMELIST, id=str(data["mal_id"]))],
    )


def map_episode(data: dict[str, Any], anime_id: str) -> Episode:
    return Episode(
        id=generate_id(),
        anime_id=anime_id,
        number=data["mal_id"],
        title=data.get("title"),
        title_japanese=data.get("title_japanese"),
        title_romaji=data.get("title_romanji"),
        aired=parse_date(data.get("aired")),
        filler=bool(data.get("filler")),
        recap=bool(data.get("recap")),
        external_ids=[ExternalId(source=DataSource.MYANIMELIST, id=str(data["mal_id"]))],
    )


class JikanProvider(HttpProvider):
    source = DataSource.MYANIMELIST
    name = "jikan"

    def __init__(
        self,
        cache: Cache | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        http = HttpClient(
            "JIKAN",
            base_url=JIKAN_URL,
            timeout=timeout,
            max_retries=max_retries,
            backoff=2.0,
            # Stay under the public 60 requests/minute limit
            rate_limiter=rate_limiter or RateLimiter.per_minute(55),
        )
        super().__init__(http, cache)

    async def fetch_anime_by_id(self, external_id: str) -> Anime | None:
        async def fetch():
            body = await self.http.get_json(f"/anime/{external_id}")
            data = body.get("data")
            return map_anime(data) if data else None

        return await self._cached_anime(
            self._cache_key("anime", external_id), lambda: self._lookup(fetch), JIKAN_TTL
        )

    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]:
        async def fetch():
            params = {"q": query, "limit": limit, "order_by": "popularity", "sort": "asc"}
            body = await self.http.get_json("/anime", params=params)
            return [map_anime(item) for item in body.get("data") or []]

        return await self._cached_list(self._cache_key("search", query, limit), fetch, JIKAN_TTL)

    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]:
        async def fetch():
            body = await self.http.get_json(f"/seasons/{year}/{season.lower()}")
            return [map_anime(item) for item in body.get("data") or []]

        return await self._cached_list(
            self._cache_key("seasonal", year, season.lower()), fetch, SEASONAL_TTL
        )

    async def fetch_episodes(self, anime_id: str, external_id: str) -> list[Episode]:
        """Walk the paginated episode list, including filler and recap flags."""
        episodes: list[Episode] = []
        page = 1
        while page <= MAX_EPISODE_PAGES:
            body = await self._lookup(
                lambda: self.http.get_json(f"/anime/{external_id}/episodes", params={"page": page})
            )
            data = (body or {}).get("data") or []
            if not data:
                break

            episodes.extend(map_episode(item, anime_id) for item in data)

            if not (body.get("pagination") or {}).get("has_next_page"):
                break
            page += 1

        return episodes

    async def is_available(self) -> bool:
        try:
            await self.http.get_json("/anime/1")
            return True
        except Exception:
            return False
