"""Repository interfaces and in-memory implementations.

The in-memory stores never await in the middle of a mutation, so they are
safe to share between tasks of a single event loop.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import Anime, AnimeSeason, DataSource, Episode, Torrent, TorrentSearchFilter


class AnimeRepository(ABC):
    @abstractmethod
    async def find_by_id(self, anime_id: str) -> Anime | None: ...

    @abstractmethod
    async def find_by_external_id(self, source: DataSource, external_id: str) -> Anime | None: ...

    @abstractmethod
    async def search_by_title(self, text: str, limit: int = 10) -> list[Anime]: ...

    @abstractmethod
    async def save(self, anime: Anime) -> Anime: ...

    @abstractmethod
    async def save_many(self, animes: list[Anime]) -> list[Anime]: ...

    @abstractmethod
    async def delete(self, anime_id: str) -> bool: ...

    @abstractmethod
    async def find_all(self, page: int = 1, limit: int = 100) -> list[Anime]: ...

    @abstractmethod
    async def count(self) -> int: ...


class EpisodeRepository(ABC):
    @abstractmethod
    async def find_by_id(self, episode_id: str) -> Episode | None: ...

    @abstractmethod
    async def find_by_anime_id(self, anime_id: str) -> list[Episode]: ...

    @abstractmethod
    async def find_by_number(self, anime_id: str, number: int) -> Episode | None: ...

    @abstractmethod
    async def save(self, episode: Episode) -> Episode: ...

    @abstractmethod
    async def save_many(self, episodes: list[Episode]) -> list[Episode]: ...

    @abstractmethod
    async def delete(self, episode_id: str) -> bool: ...

    @abstractmethod
    async def count(self, anime_id: str | None = None) -> int: ...


class SeasonRepository(ABC):
    @abstractmethod
    async def find_by_id(self, season_id: str) -> AnimeSeason | None: ...

    @abstractmethod
    async def find_by_anime_id(self, anime_id: str) -> list[AnimeSeason]: ...

    @abstractmethod
    async def find_by_season_number(
        self, anime_id: str, season_number: int
    ) -> AnimeSeason | None: ...

    @abstractmethod
    async def save(self, season: AnimeSeason) -> AnimeSeason: ...

    @abstractmethod
    async def save_many(self, seasons: list[AnimeSeason]) -> list[AnimeSeason]: ...

    @abstractmethod
    async def delete(self, season_id: str) -> bool: ...

    @abstractmethod
    async def count(self, anime_id: str | None = None) -> int: ...


class TorrentRepository(ABC):
    @abstractmethod
    async def find_by_id(self, torrent_id: str) -> Torrent | None: ...

    @abstractmethod
    async def find_by_anime_id(self, anime_id: str) -> list[Torrent]: ...

    @abstractmethod
    async def find_by_episode_id(self, episode_id: str) -> list[Torrent]: ...

    @abstractmethod
    async def find_by_filters(self, filters: TorrentSearchFilter) -> list[Torrent]:
        """Return matching torrents sorted by seeders, highest first."""

    @abstractmethod
    async def save(self, torrent: Torrent) -> Torrent: ...

    @abstractmethod
    async def save_many(self, torrents: list[Torrent]) -> list[Torrent]: ...

    @abstractmethod
    async def delete(self, torrent_id: str) -> bool: ...

    @abstractmethod
    async def delete_by_anime_id(self, anime_id: str) -> int: ...

    @abstractmethod
    async def find_all(self) -> list[Torrent]: ...

    @abstractmethod
    async def count(self) -> int: ...


class InMemoryAnimeRepository(AnimeRepository):
    def __init__(self) -> None:
        self._animes: dict[str, Anime] = {}

    async def find_by_id(self, anime_id: str) -> Anime | None:
        return self._animes.get(anime_id)

    async def find_by_external_id(self, source: DataSource, external_id: str) -> Anime | None:
        for anime in self._animes.values():
            if any(ext.source == source and ext.id == external_id for ext in anime.external_ids):
                return anime
        return None

    async def search_by_title(self, text: str, limit: int = 10) -> list[Anime]:
        """Case-insensitive substring search over every title variant."""
        term = text.lower()
        results = []
        for anime in self._animes.values():
            candidates = [anime.title.romaji, anime.title.english, anime.title.native]
            candidates.extend(anime.title.synonyms)
            if any(candidate and term in candidate.lower() for candidate in candidates):
                results.append(anime)
                if len(results) >= limit:
                    break
        return results

    async def save(self, anime: Anime) -> Anime:
        anime.updated_at = datetime.now()
        self._animes[anime.id] = anime
        return anime

    async def save_many(self, animes: list[Anime]) -> list[Anime]:
        return [await self.save(anime) for anime in animes]

    async def delete(self, anime_id: str) -> bool:
        return self._animes.pop(anime_id, None) is not None

    async def find_all(self, page: int = 1, limit: int = 100) -> list[Anime]:
        """Return one page of anime; pages are numbered from 1."""
        start = max(page - 1, 0) * limit
        return list(self._animes.values())[start : start + limit]

    async def count(self) -> int:
        return len(self._animes)


class InMemoryEpisodeRepository(EpisodeRepository):
    def __init__(self) -> None:
        self._episodes: dict[str, Episode] = {}

    async def find_by_id(self, episode_id: str) -> Episode | None:
        return self._episodes.get(episode_id)

    async def find_by_anime_id(self, anime_id: str) -> list[Episode]:
        episodes = [ep for ep in self._episodes.values() if ep.anime_id == anime_id]
        return sorted(episodes, key=lambda ep: ep.number)

    async def find_by_number(self, anime_id: str, number: int) -> Episode | None:
        for episode in self._episodes.values():
            if episode.anime_id == anime_id and episode.number == number:
                return episode
        return None

    async def save(self, episode: Episode) -> Episode:
        episode.updated_at = datetime.now()
        self._episodes[episode.id] = episode
        return episode

    async def save_many(self, episodes: list[Episode]) -> list[Episode]:
        return [await self.save(episode) for episode in episodes]

    async def delete(self, episode_id: str) -> bool:
        return self._episodes.pop(episode_id, None) is not None

    async def count(self, anime_id: str | None = None) -> int:
        if anime_id is None:
            return len(self._episodes)
        return sum(1 for ep in self._episodes.values() if ep.anime_id == anime_id)


class InMemorySeasonRepository(SeasonRepository):
    def __init__(self) -> None:
        self._seasons: dict[str, AnimeSeason] = {}

    async def find_by_id(self, season_id: str) -> AnimeSeason | None:
        return self._seasons.get(season_id)

    async def find_by_anime_id(self, anime_id: str) -> list[AnimeSeason]:
        seasons = [s for s in self._seasons.values() if s.anime_id == anime_id]
        return sorted(seasons, key=lambda s: s.season_number)

    async def find_by_season_number(self, anime_id: str, season_number: int) -> AnimeSeason | None:
        for season in self._seasons.values():
            if season.anime_id == anime_id and season.season_number == season_number:
                return season
        return None

    async def save(self, season: AnimeSeason) -> AnimeSeason:
        season.updated_at = datetime.now()
        self._seasons[season.id] = season
        return season

    async def save_many(self, seasons: list[AnimeSeason]) -> list[AnimeSeason]:
        return [await self.save(season) for season in seasons]

    async def delete(self, season_id: str) -> bool:
        return self._seasons.pop(season_id, None) is not None

    async def count(self, anime_id: str | None = None) -> int:
        if anime_id is None:
            return len(self._seasons)
        return sum(1 for s in self._seasons.values() if s.anime_id == anime_id)


class InMemoryTorrentRepository(TorrentRepository):
    def __init__(self) -> None:
        self._torrents: dict[str, Torrent] = {}

    async def find_by_id(self, torrent_id: str) -> Torrent | None:
        return self._torrents.get(torrent_id)

    async def find_by_anime_id(self, anime_id: str) -> list[Torrent]:
        return [t for t in self._torrents.values() if t.anime_id == anime_id]

    async def find_by_episode_id(self, episode_id: str) -> list[Torrent]:
        return [t for t in self._torrents.values() if episode_id in t.episode_ids]

    async def find_by_filters(self, filters: TorrentSearchFilter) -> list[Torrent]:
        results = [t for t in self._torrents.values() if filters.matches(t)]
        return sorted(results, key=lambda t: t.seeders, reverse=True)

    async def save(self, torrent: Torrent) -> Torrent:
        torrent.updated_at = datetime.now()
        self._torrents[torrent.id] = torrent
        return torrent

    async def save_many(self, torrents: list[Torrent]) -> list[Torrent]:
        return [await self.save(torrent) for torrent in torrents]

    async def delete(self, torrent_id: str) -> bool:
        return self._torrents.pop(torrent_id, None) is not None

    async def delete_by_anime_id(self, anime_id: str) -> int:
        doomed = [t.id for t in self._torrents.values() if t.anime_id == anime_id]
        for torrent_id in doomed:
            del self._torrents[torrent_id]
        return len(doomed)

    async def find_all(self) -> list[Torrent]:
        return list(self._torrents.values())

    async def count(self) -> int:
        return len(self._torrents)
