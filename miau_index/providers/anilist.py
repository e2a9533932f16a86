"""AniList provider (GraphQL API, no key required)."""

from datetime import datetime
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
from ..utils import generate_id
from .base import SEASONAL_TTL, HttpProvider

ANILIST_URL = "https://graphql.anilist.co"

# Tags ranked at least this high are treated as themes
THEME_TAG_MIN_RANK = 70

FORMAT_MAP = {
    "TV": AnimeType.TV,
    "TV_SHORT": AnimeType.TV,
    "MOVIE": AnimeType.MOVIE,
    "SPECIAL": AnimeType.SPECIAL,
    "OVA": AnimeType.OVA,
    "ONA": AnimeType.ONA,
    "MUSIC": AnimeType.MUSIC,
}

STATUS_MAP = {
    "FINISHED": AnimeStatus.FINISHED,
    "RELEASING": AnimeStatus.AIRING,
    "NOT_YET_RELEASED": AnimeStatus.NOT_YET_AIRED,
    "CANCELLED": AnimeStatus.CANCELLED,
    "HIATUS": AnimeStatus.AIRING,
}

MEDIA_FIELDS = """
    id
    title { romaji english native }
    synonyms
    format
    status
    description(asHtml: false)
    season
    seasonYear
    startDate { year month day }
    endDate { year month day }
    episodes
    duration
    coverImage { extraLarge large medium }
    genres
    tags { name rank }
    averageScore
    popularity
    favourites
    studios(isMain: true) { nodes { name } }
"""

MEDIA_QUERY = f"""
query ($id: Int) {{
  Media(id: $id, type: ANIME) {{ {MEDIA_FIELDS} }}
}}
"""

SEARCH_QUERY = f"""
query ($search: String, $perPage: Int) {{
  Page(page: 1, perPage: $perPage) {{
    media(search: $search, type: ANIME) {{ {MEDIA_FIELDS} }}
  }}
}}
"""

SEASONAL_QUERY = f"""
query ($season: MediaSeason, $year: Int, $perPage: Int) {{
  Page(page: 1, perPage: $perPage) {{
    media(season: $season, seasonYear: $year, type: ANIME, sort: POPULARITY_DESC) {{
      {MEDIA_FIELDS}
    }}
  }}
}}
"""

EPISODES_QUERY = """
query ($id: Int) {
  Media(id: $id, type: ANIME) {
    id
    episodes
    duration
    streamingEpisodes { title thumbnail }
    airingSchedule { nodes { episode airingAt } }
  }
}
"""

HEALTH_QUERY = "{ Media(id: 1, type: ANIME) { id } }"


def parse_fuzzy_date(value: dict[str, Any] | None) -> datetime | None:
    """Convert an AniList {year, month, day} date; missing parts default to 1."""
    if not value or not value.get("year"):
        return None
    return datetime(value["year"], value.get("month") or 1, value.get("day") or 1)


def map_media(data: dict[str, Any]) -> Anime:
    """Map an AniList Media object to an Anime."""
    title = data.get("title") or {}
    cover = data.get("coverImage") or {}
    score = data.get("averageScore")
    season = data.get("season")

    ratings = []
    if score:
        ratings.append(
            Rating(
                source=DataSource.ANILIST,
                score=score / 10,
                votes=data.get("favourites"),
                popularity=data.get("popularity"),
            )
        )

    return Anime(
        id=generate_id(),
        title=Title(
            romaji=title.get("romaji"),
            english=title.get("english"),
            native=title.get("native"),
            synonyms=data.get("synonyms") or [],
        ),
        type=FORMAT_MAP.get(data.get("format") or "", AnimeType.TV),
        status=STATUS_MAP.get(data.get("status") or "", AnimeStatus.NOT_YET_AIRED),
        episodes=data.get("episodes"),
        duration=data.get("duration"),
        season=Season(season) if season in Season.__members__ else None,
        year=data.get("seasonYear"),
        synopsis=data.get("description"),
        images=Images(
            small=cover.get("medium"),
            medium=cover.get("large"),
            large=cover.get("extraLarge") or cover.get("large"),
            original=cover.get("extraLarge") or cover.get("large"),
        ),
        aired=DateRange(
            start=parse_fuzzy_date(data.get("startDate")),
            end=parse_fuzzy_date(data.get("endDate")),
        ),
        ratings=ratings,
        genres=data.get("genres") or [],
        themes=[
            tag["name"]
            for tag in data.get("tags") or []
            if (tag.get("rank") or 0) >= THEME_TAG_MIN_RANK
        ],
        studios=[node["name"] for node in (data.get("studios") or {}).get("nodes") or []],
        external_ids=[ExternalId(source=DataSource.ANILIST, id=str(data["id"]))],
    )


class AniListProvider(HttpProvider):
    source = DataSource.ANILIST
    name = "anilist"

    def __init__(
        self,
        cache: Cache | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        http = HttpClient(
            "ANILIST",
            timeout=timeout,
            max_retries=max_retries,
            rate_limiter=rate_limiter or RateLimiter.per_minute(30),
        )
        super().__init__(http, cache)

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.http.graphql(ANILIST_URL, query, variables)

    async def fetch_anime_by_id(self, external_id: str) -> Anime | None:
        async def fetch():
            data = await self._query(MEDIA_QUERY, {"id": int(external_id)})
            media = data.get("Media")
            return map_media(media) if media else None

        return await self._cached_anime(
            self._cache_key("anime", external_id), lambda: self._lookup(fetch)
        )

    async def search_anime(self, query: str, limit: int = 10) -> list[Anime]:
        async def fetch():
            data = await self._query(SEARCH_QUERY, {"search": query, "perPage": limit})
            return [map_media(item) for item in (data.get("Page") or {}).get("media") or []]

        return await self._cached_list(self._cache_key("search", query, limit), fetch)

    async def get_seasonal_anime(self, year: int, season: str) -> list[Anime]:
        async def fetch():
            variables = {"season": season.upper(), "year": year, "perPage": 50}
            data = await self._query(SEASONAL_QUERY, variables)
            return [map_media(item) for item in (data.get("Page") or {}).get("media") or []]

        return await self._cached_list(
            self._cache_key("seasonal", year, season.lower()), fetch, SEASONAL_TTL
        )

    async def fetch_episodes(self, anime_id: str, external_id: str) -> list[Episode]:
        """Build the episode list from the episode count, airing schedule and streaming titles."""

        async def fetch():
            data = await self._query(EPISODES_QUERY, {"id": int(external_id)})
            media = data.get("Media") or {}
            airing = {
                node["episode"]: datetime.fromtimestamp(node["airingAt"])
                for node in (media.get("airingSchedule") or {}).get("nodes") or []
                if node.get("episode") and node.get("airingAt")
            }
            streaming = media.get("streamingEpisodes") or []

            episodes = []
            for number in range(1, (media.get("episodes") or 0) + 1):
                stream = streaming[number - 1] if number <= len(streaming) else {}
                episodes.append(
                    Episode(
                        id=generate_id(),
                        anime_id=anime_id,
                        number=number,
                        title=stream.get("title"),
                        duration=media.get("duration"),
                        images=Images(medium=stream["thumbnail"]) if stream.get("thumbnail") else None,
                        aired=airing.get(number),
                        external_ids=[
                            ExternalId(source=DataSource.ANILIST, id=f"{external_id}-{number}")
                        ],
                    )
                )
            return episodes

        episodes = await self._lookup(fetch)
        return episodes or []

    async def is_available(self) -> bool:
        try:
            await self._query(HEALTH_QUERY)
            return True
        except Exception:
            return False
