"""Official MyAnimeList API v2 provider (requires a client id)."""

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

MAL_URL = "https://api.myanimelist.net/v2"

DETAIL_FIELDS = ",".join(
    [
        "id",
        "title",
        "main_picture",
        "alternative_titles",
        "start_date",
        "end_date",
        "synopsis",
        "background",
        "mean",
        "rank",
        "popularity",
        "num_scoring_users",
        "media_type",
        "status",
        "genres",
        "num_episodes",
        "start_season",
        "average_episode_duration",
        "studios",
    ]
)
LIST_FIELDS = "id,title,main_picture,alternative_titles,start_date,media_type,status,mean,num_episodes"

MEDIA_TYPE_MAP = {
    "tv": AnimeType.TV,
    "ova": AnimeType.OVA,
    "movie": AnimeType.MOVIE,
    "special": AnimeType.SPECIAL,
    "ona": AnimeType.ONA,
    "music": AnimeType.MUSIC,
}

STATUS_MAP = {
    "finished_airing": AnimeStatus.FINISHED,
    "currently_airing": AnimeStatus.AIRING,
    "not_yet_aired": AnimeStatus.NOT_YET_AIRED,
}


def map_anime(data: dict[str, Any]) -> Anime:
    """Map a MAL anime node to an Anime."""
    picture = data.get("main_picture") or {}
    alternative = data.get("alternative_titles") or {}
    start_season = data.get("start_season") or {}
    season = (start_season.get("season") or "").upper()
    duration = data.get("average_episode_duration")

    ratings = []
    if data.get("mean"):
        ratings.append(
            Rating(
                source=DataSource.MYANIMELIST,
                score=data["mean"],
                votes=data.get("num_scoring_users"),
                rank=data.get("rank"),
                popularity=data.get("popularity"),
            )
        )

    return Anime(
        id=generate_id(),
        title=Title(
            romaji=data.get("title"),
            english=alternative.get("en") or None,
            native=alternative.get("ja") or None,
            synonyms=alternative.get("synonyms") or [],
        ),
        type=MEDIA_TYPE_MAP.get((data.get("media_type") or "").lower(), AnimeType.TV),
        status=STATUS_MAP.get((data.get("status") or "").lower(), AnimeStatus.NOT_YET_AIRED),
        episodes=data.get("num_episodes") or None,
        # MAL reports seconds per episode
        duration=duration // 60 if duration else None,
        season=Season(season) if season in Season.__members__ else None,
        year=start_season.get("year"),
        synopsis=data.get("synopsis"),
        background=data.get("background"),
        images=Images(
            small=picture.get("medium"),
            medium=picture.get("medium"),
            large=picture.get("large"),
            original=picture.get("large"),
        ),
        aired=DateRange(
            start=parse_date(data.get("start_date")),
            end=parse_date(data.get("end_date")),
        ),
        ratings=ratings,
        genres=[genre["name"] for genre in data.get("genres") or []],
        studios=[studio["name"] for studio in data.get("studios") or []],
        external_ids=[ExternalId(source=DataSource.MYANIMELIST, id=str(data["id"]))],
    )


class MyAnimeListProvider(HttpProvider):
    source = DataSource.MYANIMELIST
    name = "myanimelist"

    def __init__(
        self,
        client_id: str,
        cache: Cache | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        http = HttpClient(
            "MYANIMELIST",
            base_url=MAL_URL,
            timeout=timeout,
            headers={"X-MAL-CLIENT-ID": client_id},
            max_retries=max_retries,
            rate_limiter=rate_limiter or RateLimiter.per_minute(30),
        )
        super().__init__(http, cache)

    async def fetch_anime_by_id(self, external_id: str) -> Anime | None:
        async def fetch():
            data = await self.http.get_json(f"/anime/{external_id}", params={"fields": DETAIL_FIELDS})
            return map_anime(data)

        return await self._cached_anime(
            self._cache_key("anime", external_id), lambda: self._lookup(fetch)
        )

    async def _list(self, url: str, params: dict[str, Any]) -> list[Anime]:
        body = await self.http.get_json(url, params={**params, "fields": LIST_FIELDS})
        return [map_anime(item["node"]) for item in body.get("data") or []]

    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]:
        return await self._cached_list(
            self._cache_key("search", query, limit),
            lambda: self._list("/anime", {"q": query, "limit": limit}),
        )

    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]:
        return await self._cached_list(
            self._cache_key("seasonal", year, season.lower()),
            lambda: self._list(f"/anime/season/{year}/{season.lower()}", {"limit": 100}),
            SEASONAL_TTL,
        )

    async def fetch_episodes(self, anime_id: str, external_id: str) -> list[Episode]:
        """MAL only exposes an episode count, so episodes carry numbers and duration."""

        async def fetch():
            return await self.http.get_json(
                f"/anime/{external_id}",
                params={"fields": "num_episodes,average_episode_duration"},
            )

        data = await self._lookup(fetch)
        if not data:
            return []

        duration = data.get("average_episode_duration")
        return [
            Episode(
                id=generate_id(),
                anime_id=anime_id,
                number=number,
                duration=duration // 60 if duration else None,
                external_ids=[
                    ExternalId(source=DataSource.MYANIMELIST, id=f"{external_id}-{number}")
                ],
            )
            for number in range(1, (data.get("num_episodes") or 0) + 1)
        ]

    async def is_available(self) -> bool:
        try:
            await self.http.get_json("/anime/1", params={"fields": "id"})
            return True
        except Exception:
            return False
