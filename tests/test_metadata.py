"""Unit tests for miau_index.metadata release-title extraction."""

import pytest

from miau_index.metadata import (
    extract_audio_languages,
    extract_codec,
    extract_episode_number,
    extract_episode_range,
    extract_metadata,
    extract_quality,
    extract_release_group,
    extract_release_type,
    extract_season_number,
    extract_subtitle_languages,
)
from miau_index.models import (
    EpisodeRange,
    TorrentCodec,
    TorrentLanguage,
    TorrentQuality,
    TorrentReleaseType,
)


class TestExtractQuality:
    """Tests for quality detection."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("[SubsPlease] Frieren - 01 (1080p) [ABC].mkv", TorrentQuality.FULL_HD_1080P),
            ("[SubsPlease] Frieren - 01 (720p) [ABC].mkv", TorrentQuality.HD_720P),
            ("[Group] Frieren - 01 [480p]", TorrentQuality.SD_480P),
            ("[Group] Frieren - 01 [2160p]", TorrentQuality.UHD_4K),
            ("[Group] Frieren - 01 4K HDR", TorrentQuality.UHD_4K),
            ("[Ohys-Raws] Frieren - 01 RAW", TorrentQuality.RAW),
            ("Frieren - 01", TorrentQuality.UNKNOWN),
        ],
    )
    def test_quality_markers(self, title, expected):
        assert extract_quality(title) == expected

    def test_highest_resolution_wins(self):
        """A title mentioning several resolutions reports the highest."""
        assert extract_quality("Frieren 1080p + 720p") == TorrentQuality.FULL_HD_1080P

    def test_case_insensitive(self):
        assert extract_quality("Frieren 1080P") == TorrentQuality.FULL_HD_1080P


class TestExtractCodec:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Frieren - 01 [HEVC]", TorrentCodec.HEVC),
            ("Frieren - 01 H.265", TorrentCodec.HEVC),
            ("Frieren - 01 x264", TorrentCodec.H264),
            ("Frieren - 01 AV1", TorrentCodec.AV1),
            ("Frieren - 01 VP9", TorrentCodec.VP9),
            ("Frieren - 01 XviD", TorrentCodec.XVID),
            ("Frieren - 01", TorrentCodec.UNKNOWN),
        ],
    )
    def test_codec_markers(self, title, expected):
        assert extract_codec(title) == expected


class TestExtractReleaseType:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Frieren (01-28) [Batch]", TorrentReleaseType.BATCH),
            ("Frieren Complete Series", TorrentReleaseType.BATCH),
            ("Frieren Season 2", TorrentReleaseType.SEASON),
            ("Frieren Movie", TorrentReleaseType.MOVIE),
            ("Frieren OVA", TorrentReleaseType.OVA),
            ("Frieren Special", TorrentReleaseType.SPECIAL),
            ("Frieren - 01", TorrentReleaseType.EPISODE),
        ],
    )
    def test_release_type_markers(self, title, expected):
        assert extract_release_type(title) == expected


class TestExtractAudioLanguages:
    def test_defaults_to_japanese(self):
        assert extract_audio_languages("Frieren - 01") == [TorrentLanguage.JAPANESE]

    def test_dual_audio(self):
        assert extract_audio_languages("Frieren [Dual Audio]") == [
            TorrentLanguage.JAPANESE,
            TorrentLanguage.ENGLISH,
        ]

    def test_english_dub(self):
        assert extract_audio_languages("Frieren (English Dub)") == [TorrentLanguage.ENGLISH]


class TestExtractSubtitleLanguages:
    def test_defaults_to_english(self):
        assert extract_subtitle_languages("Frieren - 01") == [TorrentLanguage.ENGLISH]

    def test_multi_sub(self):
        assert extract_subtitle_languages("Frieren [Multiple Subtitle]") == [
            TorrentLanguage.MULTI
        ]

    def test_several_languages(self):
        languages = extract_subtitle_languages("Frieren [Spanish][French]")
        assert TorrentLanguage.SPANISH in languages
        assert TorrentLanguage.FRENCH in languages


class TestExtractReleaseGroup:
    def test_trailing_bracket(self):
        assert extract_release_group("Frieren - 01 [SubsPlease]") == "SubsPlease"

    def test_leading_bracket_only(self):
        """Only a bracket at the very end counts."""
        assert extract_release_group("[SubsPlease] Frieren - 01.mkv") is None

    def test_trailing_tag_is_read_as_group(self):
        """A trailing technical tag is taken literally."""
        assert extract_release_group("[Group] Frieren - 01 [HEVC]") == "HEVC"


class TestExtractEpisodeNumber:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("[SubsPlease] Sousou no Frieren - 05 (1080p) [ABC].mkv", 5),
            ("Frieren E12 1080p", 12),
            ("Frieren Episode 7", 7),
            ("Frieren 03 [1080p]", 3),
        ],
    )
    def test_episode_patterns(self, title, expected):
        assert extract_episode_number(title) == expected

    def test_no_episode(self):
        assert extract_episode_number("Frieren Movie") is None


class TestExtractEpisodeRange:
    def test_batch_range(self):
        assert extract_episode_range("[Group] Frieren (01-28) [1080p]") == EpisodeRange(1, 28)

    def test_inverted_range_returned_as_written(self):
        assert extract_episode_range("Frieren 12-01") == EpisodeRange(12, 1)

    def test_no_range(self):
        assert extract_episode_range("Frieren - 05 [1080p]") is None


class TestExtractSeasonNumber:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Frieren S02E05 1080p", 2),
            ("Frieren Season 3", 3),
            ("Frieren S2 1080p", 2),
        ],
    )
    def test_season_patterns(self, title, expected):
        assert extract_season_number(title) == expected

    def test_no_season(self):
        assert extract_season_number("Frieren - 05") is None


class TestExtractMetadata:
    def test_full_title(self):
        metadata = extract_metadata("[Judas] Frieren (01-28) [Batch][1080p][HEVC][Dual Audio]")

        assert metadata.quality == TorrentQuality.FULL_HD_1080P
        assert metadata.codec == TorrentCodec.HEVC
        assert metadata.release_type == TorrentReleaseType.BATCH
        assert metadata.is_batch is True
        assert metadata.is_dual is True
        assert metadata.release_group == "Dual Audio"
        assert metadata.audio_languages == [TorrentLanguage.JAPANESE, TorrentLanguage.ENGLISH]

    def test_title_ending_after_last_bracket(self):
        title = "[SubsPlease] One Piece - 1000 [1080p][Dual Audio][HEVC])"

        metadata = extract_metadata(title)

        assert metadata.quality == TorrentQuality.FULL_HD_1080P
        assert metadata.codec == TorrentCodec.HEVC
        assert {TorrentLanguage.JAPANESE, TorrentLanguage.ENGLISH} <= set(metadata.audio_languages)
        assert metadata.is_dual is True
        # The closing parenthesis means no bracket sits at the very end
        assert metadata.release_group is None

    def test_same_title_same_metadata(self):
        title = "[SubsPlease] One Piece - 1000 [1080p][Dual Audio][HEVC]"
        assert extract_metadata(title) == extract_metadata(title)
        assert extract_metadata(title).release_group == "HEVC"

    def test_never_fails_on_empty_title(self):
        metadata = extract_metadata("")

        assert metadata.quality == TorrentQuality.UNKNOWN
        assert metadata.release_group is None
        assert metadata.audio_languages == [TorrentLanguage.JAPANESE]
        assert metadata.subtitle_languages == [TorrentLanguage.ENGLISH]

    def test_hard_subs(self):
        assert extract_metadata("Frieren - 01 [Hardsub]").has_hard_subs is True
