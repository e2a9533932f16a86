"""Unit tests for miau_index.models."""

from miau_index.models import (
    Anime,
    DataSource,
    EpisodeRange,
    ExternalId,
    Title,
    TorrentLanguage,
    TorrentQuality,
    TorrentReleaseType,
    TorrentSearchFilter,
    UnificationOptions,
)


class TestTitle:
    def test_display_prefers_romaji(self):
        assert Title(romaji="Sousou no Frieren", english="Frieren").display() == "Sousou no Frieren"

    def test_display_falls_back(self):
        assert Title(english="Frieren").display() == "Frieren"
        assert Title(native="葬送のフリーレン").display() == "葬送のフリーレン"
        assert Title().display() == "Unknown"


class TestAnime:
    def test_defaults(self):
        anime = Anime(id="1")

        assert anime.genres == []
        assert anime.ratings == []
        assert anime.external_ids == []

    def test_lists_are_not_shared(self):
        first, second = Anime(id="1"), Anime(id="2")
        first.genres.append("Drama")
        assert second.genres == []

    def test_external_id_for(self):
        anime = Anime(
            id="1",
            external_ids=[
                ExternalId(DataSource.ANILIST, "154587"),
                ExternalId(DataSource.MYANIMELIST, "52991"),
            ],
        )

        assert anime.external_id_for(DataSource.MYANIMELIST) == "52991"
        assert anime.external_id_for(DataSource.KITSU) is None


class TestEpisodeRange:
    def test_contains(self):
        episode_range = EpisodeRange(1, 12)

        assert 1 in episode_range
        assert 12 in episode_range
        assert 13 not in episode_range

    def test_str(self):
        assert str(EpisodeRange(1, 28)) == "1-28"


class TestTorrent:
    def test_download_url_fallback(self, torrent_factory):
        torrent = torrent_factory(nyaa_id="999")
        assert torrent.download_url == "https://nyaa.si/download/999.torrent"

    def test_covers_single_episode(self, torrent_factory):
        torrent = torrent_factory(episode_number=5)

        assert torrent.covers_episode(5)
        assert not torrent.covers_episode(6)

    def test_covers_batch(self, torrent_factory):
        torrent = torrent_factory(episode_number=None, episode_range=EpisodeRange(1, 12))

        assert torrent.covers_episode(7)
        assert not torrent.covers_episode(13)

    def test_default_metadata_languages(self, torrent_factory):
        metadata = torrent_factory().metadata

        assert metadata.audio_languages == [TorrentLanguage.JAPANESE]
        assert metadata.subtitle_languages == [TorrentLanguage.ENGLISH]


class TestTorrentSearchFilter:
    def test_empty_filter_matches_everything(self, torrent_factory):
        assert TorrentSearchFilter().matches(torrent_factory())

    def test_anime_and_quality(self, torrent_factory):
        torrent = torrent_factory(anime_id="a", quality=TorrentQuality.HD_720P)

        assert TorrentSearchFilter(anime_id="a", quality=TorrentQuality.HD_720P).matches(torrent)
        assert not TorrentSearchFilter(anime_id="b").matches(torrent)
        assert not TorrentSearchFilter(quality=TorrentQuality.FULL_HD_1080P).matches(torrent)

    def test_episode_number_matches_batches(self, torrent_factory):
        batch = torrent_factory(episode_number=None, episode_range=EpisodeRange(1, 12))

        assert TorrentSearchFilter(episode_number=3).matches(batch)
        assert not TorrentSearchFilter(episode_number=20).matches(batch)

    def test_seeders_and_trust(self, torrent_factory):
        torrent = torrent_factory(seeders=5, trusted=False)

        assert not TorrentSearchFilter(min_seeders=10).matches(torrent)
        assert not TorrentSearchFilter(trusted_only=True).matches(torrent)
        assert TorrentSearchFilter(min_seeders=5).matches(torrent)

    def test_languages_and_release_type(self, torrent_factory):
        torrent = torrent_factory()

        assert TorrentSearchFilter(audio_language=TorrentLanguage.JAPANESE).matches(torrent)
        assert not TorrentSearchFilter(subtitle_language=TorrentLanguage.FRENCH).matches(torrent)
        assert TorrentSearchFilter(release_type=TorrentReleaseType.EPISODE).matches(torrent)


class TestUnificationOptions:
    def test_defaults(self):
        options = UnificationOptions()

        assert options.preferred_sources == [
            DataSource.ANILIST,
            DataSource.KITSU,
            DataSource.MYANIMELIST,
        ]
        assert options.merge_arrays is True
        assert options.min_sources_for_consensus == 1
