"""Shared pytest fixtures for miau-index tests."""

import asyncio
import os
from datetime import datetime

import pytest

from miau_index.models import (
    Anime,
    AnimeStatus,
    AnimeType,
    DataSource,
    Episode,
    ExternalId,
    Rating,
    RawTorrent,
    Title,
    Torrent,
    TorrentMetadata,
    TorrentQuality,
)
from miau_index.providers.base import AnimeProvider
from miau_index.repositories import (
    InMemoryAnimeRepository,
    InMemoryEpisodeRepository,
    InMemorySeasonRepository,
    InMemoryTorrentRepository,
)


# ============================================================================
# Factory Fixtures - Create test data on demand
# ============================================================================


@pytest.fixture
def anime_factory():
    """Factory for creating test Anime objects."""

    def _create(
        id: str = "anime-1",
        romaji: str | None = "Sousou no Frieren",
        english: str | None = "Frieren: Beyond Journey's End",
        native: str | None = "葬送のフリーレン",
        source: DataSource = DataSource.ANILIST,
        external_id: str = "154587",
        **fields,
    ) -> Anime:
        fields.setdefault("type", AnimeType.TV)
        fields.setdefault("status", AnimeStatus.FINISHED)
        return Anime(
            id=id,
            title=Title(romaji=romaji, english=english, native=native),
            external_ids=[ExternalId(source=source, id=external_id)],
            **fields,
        )

    return _create


@pytest.fixture
def rating_factory():
    def _create(source: DataSource = DataSource.ANILIST, score: float = 9.1) -> Rating:
        return Rating(source=source, score=score, votes=1000)

    return _create


@pytest.fixture
def episode_factory():
    """Factory for creating a run of numbered episodes."""

    def _create(anime_id: str = "anime-1", count: int = 12, start: int = 1) -> list[Episode]:
        return [
            Episode(
                id=f"{anime_id}-ep-{number}",
                anime_id=anime_id,
                number=number,
                title=f"Episode {number}",
                aired=datetime(2024, 1, 1 + (number - 1) % 28),
            )
            for number in range(start, start + count)
        ]

    return _create


@pytest.fixture
def raw_torrent_factory():
    """Factory for creating RawTorrent search results."""

    def _create(
        id: str = "1234567",
        title: str = "[SubsPlease] Sousou no Frieren - 05 (1080p) [ABCDEF12].mkv",
        info_hash: str = "a" * 40,
        size: str = "1.4 GiB",
        seeders: int = 150,
        leechers: int = 20,
        downloads: int = 1000,
        date: str = "2024-01-15 12:00",
        is_trusted: bool = True,
        is_remake: bool = False,
    ) -> RawTorrent:
        return RawTorrent(
            id=id,
            title=title,
            category="Anime - English-translated",
            magnet_link=f"magnet:?xt=urn:btih:{info_hash}&dn=test",
            size=size,
            seeders=seeders,
            leechers=leechers,
            downloads=downloads,
            date=date,
            torrent_link=f"https://nyaa.si/download/{id}.torrent",
            is_trusted=is_trusted,
            is_remake=is_remake,
        )

    return _create


@pytest.fixture
def torrent_factory():
    """Factory for creating indexed Torrent objects with customizable fields."""

    def _create(
        id: str = "torrent-1",
        nyaa_id: str = "1234567",
        title: str = "[SubsPlease] Sousou no Frieren - 05 (1080p) [ABCDEF12].mkv",
        info_hash: str = "a" * 40,
        seeders: int = 100,
        anime_id: str | None = "anime-1",
        episode_number: int | None = 5,
        quality: TorrentQuality = TorrentQuality.FULL_HD_1080P,
        trusted: bool = True,
        **fields,
    ) -> Torrent:
        return Torrent(
            id=id,
            nyaa_id=nyaa_id,
            title=title,
            magnet_link=f"magnet:?xt=urn:btih:{info_hash}",
            info_hash=info_hash,
            size="1.4 GiB",
            size_bytes=1503238554,
            seeders=seeders,
            leechers=10,
            downloads=500,
            metadata=TorrentMetadata(quality=quality),
            anime_id=anime_id,
            episode_number=episode_number,
            trusted=trusted,
            **fields,
        )

    return _create


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def anime_repository():
    return InMemoryAnimeRepository()


@pytest.fixture
def episode_repository():
    return InMemoryEpisodeRepository()


@pytest.fixture
def season_repository():
    return InMemorySeasonRepository()


@pytest.fixture
def torrent_repository():
    return InMemoryTorrentRepository()


# ============================================================================
# Fake Collaborators
# ============================================================================


class FakeProvider(AnimeProvider):
    """In-process provider returning canned data."""

    def __init__(
        self,
        source: DataSource,
        animes: dict[str, Anime] | None = None,
        search_results: list[Anime] | None = None,
        seasonal: list[Anime] | None = None,
        episodes: list[Episode] | None = None,
        available: bool = True,
        error: Exception | None = None,
        delay: float = 0,
    ):
        self.source = source
        self.name = source.value.lower()
        self.animes = animes or {}
        self.search_results = search_results or []
        self.seasonal = seasonal or []
        self.episodes = episodes or []
        self.available = available
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def fetch_anime_by_id(self, external_id):
        self.calls.append(("fetch", external_id))
        self._maybe_fail()
        return self.animes.get(external_id)

    async def search_anime(self, query, limit=10):
        self.calls.append(("search", query, limit))
        await asyncio.sleep(self.delay)
        self._maybe_fail()
        return self.search_results[:limit]

    async def get_seasonal_anime(self, year, season):
        self.calls.append(("seasonal", year, season))
        self._maybe_fail()
        return self.seasonal

    async def fetch_episodes(self, anime_id, external_id):
        self.calls.append(("episodes", anime_id, external_id))
        self._maybe_fail()
        return self.episodes

    async def is_available(self):
        self._maybe_fail()
        return self.available


class FakeSearcher:
    """Torrent searcher returning canned results per query."""

    def __init__(self, results=None, error: Exception | None = None):
        self.results = results or {}
        self.error = error
        self.queries: list[str] = []
        self.filters: list[str] = []

    async def search(self, query, category="1_2", filter_type="no-filter",
                     sort_by="seeders", order="desc", page=1):
        self.queries.append(query)
        self.filters.append(filter_type)
        if self.error is not None:
            raise self.error
        if callable(self.results):
            return self.results(query)
        return list(self.results.get(query, []))


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def fake_searcher():
    return FakeSearcher


# ============================================================================
# HTML Mock Data - Realistic nyaa.si HTML fixtures
# ============================================================================


@pytest.fixture
def sample_search_page_html():
    """Sample nyaa.si search results page HTML."""
    return """
    <!DOCTYPE html>
    <html>
    <body>
        <table class="torrent-list">
            <tbody>
                <tr class="success">
                    <td><a href="/?c=1_2" title="Anime - English-translated">Anime</a></td>
                    <td>
                        <a href="/view/1234567#comments" class="comments">3</a>
                        <a href="/view/1234567" title="[SubsPlease] Sousou no Frieren - 01 (1080p) [ABCDEF12].mkv">
                            [SubsPlease] Sousou no Frieren - 01 (1080p) [ABCDEF12].mkv
                        </a>
                    </td>
                    <td>
                        <a href="/download/1234567.torrent">Torrent</a>
                        <a href="magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567&amp;dn=frieren">Magnet</a>
                    </td>
                    <td>1.4 GiB</td>
                    <td data-timestamp="1705320000">2024-01-15 12:00</td>
                    <td>150</td>
                    <td>20</td>
                    <td>1000</td>
                </tr>
                <tr class="danger">
                    <td><a href="/?c=1_2" title="Anime - English-translated">Anime</a></td>
                    <td>
                        <a href="/view/1234568" title="[Erai-raws] Sousou no Frieren - 02 [720p][Multiple Subtitle].mkv">
                            [Erai-raws] Sousou no Frieren - 02 [720p][Multiple Subtitle].mkv
                        </a>
                    </td>
                    <td>
                        <a href="magnet:?xt=urn:btih:fedcba9876543210fedcba9876543210fedcba98">Magnet</a>
                    </td>
                    <td>700.5 MiB</td>
                    <td>2024-01-16 12:00</td>
                    <td>12</td>
                    <td>3</td>
                    <td>80</td>
                </tr>
                <tr class="default">
                    <td><a href="/?c=1_2" title="Anime - English-translated">Anime</a></td>
                    <td>Broken row</td>
                </tr>
            </tbody>
        </table>
    </body>
    </html>
    """


@pytest.fixture
def empty_search_page_html():
    """Empty search results page (no torrents found)."""
    return """
    <!DOCTYPE html>
    <html>
    <body>
        <p>No results found.</p>
    </body>
    </html>
    """


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without any MIAU_* or MAL_* variables and outside any .env file."""
    for name in list(os.environ):
        if name.startswith("MIAU_") or name.startswith("MAL_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
