"""Metadata extraction from free-text torrent release titles.

Every extractor is a pure function over the raw title. Keyword tables are
checked in order against the lower-cased title and the first hit wins, so
tables list the most specific (or highest-resolution) markers first.
"""

import re

from .models import (
    EpisodeRange,
    TorrentCodec,
    TorrentLanguage,
    TorrentMetadata,
    TorrentQuality,
    TorrentReleaseType,
)

QUALITY_MARKERS: list[tuple[tuple[str, ...], TorrentQuality]] = [
    (("2160p", "4k"), TorrentQuality.UHD_4K),
    (("1080p",), TorrentQuality.FULL_HD_1080P),
    (("720p",), TorrentQuality.HD_720P),
    (("480p",), TorrentQuality.SD_480P),
    (("raw",), TorrentQuality.RAW),
]

CODEC_MARKERS: list[tuple[tuple[str, ...], TorrentCodec]] = [
    (("hevc", "h.265"), TorrentCodec.HEVC),
    (("h.264", "x264"), TorrentCodec.H264),
    (("av1",), TorrentCodec.AV1),
    (("vp9",), TorrentCodec.VP9),
    (("xvid",), TorrentCodec.XVID),
]

RELEASE_TYPE_MARKERS: list[tuple[tuple[str, ...], TorrentReleaseType]] = [
    (("batch", "complete"), TorrentReleaseType.BATCH),
    (("season",), TorrentReleaseType.SEASON),
    (("movie",), TorrentReleaseType.MOVIE),
    (("ova",), TorrentReleaseType.OVA),
    (("special",), TorrentReleaseType.SPECIAL),
]

MULTI_AUDIO_MARKERS = ("dual audio", "multi audio")
JAPANESE_AUDIO_MARKERS = ("japanese", "jpn", "jap")
ENGLISH_AUDIO_MARKERS = ("english", "eng", "dub")

# Subtitle language keywords, matched independently of each other
SUBTITLE_LANGUAGES: dict[TorrentLanguage, tuple[str, ...]] = {
    TorrentLanguage.ENGLISH: ("eng", "english"),
    TorrentLanguage.PORTUGUESE_BR: ("pt-br", "portuguese"),
    TorrentLanguage.SPANISH: ("esp", "spanish"),
    TorrentLanguage.FRENCH: ("fre", "french"),
    TorrentLanguage.GERMAN: ("ger", "german"),
    TorrentLanguage.ITALIAN: ("ita", "italian"),
    TorrentLanguage.RUSSIAN: ("rus", "russian"),
    TorrentLanguage.CHINESE: ("chi", "chinese"),
    TorrentLanguage.KOREAN: ("kor", "korean"),
}

# Release group: [GroupName] as the very last thing in the title
RELEASE_GROUP_PATTERN = re.compile(r"\[([^\]]+)\]$")

# Episode: E01, Episode 1, " - 01 ", "01 ["
EPISODE_PATTERNS = [
    re.compile(r"[Ee](\d{2,3})"),
    re.compile(r"Episode\s*(\d{1,3})", re.IGNORECASE),
    re.compile(r"\s-\s(\d{2,3})\s"),
    re.compile(r"\s(\d{2,3})\s*\["),
]

# Episode range: 01-12, E01-E12
EPISODE_RANGE_PATTERNS = [
    re.compile(r"(\d{2,3})\s*-\s*(\d{2,3})"),
    re.compile(r"[Ee](\d{2,3})\s*-\s*[Ee]?(\d{2,3})"),
]

# Season: S01E05, Season 2, S2
SEASON_PATTERNS = [
    re.compile(r"[Ss](\d{1,2})[Ee]\d{1,3}"),
    re.compile(r"Season\s*(\d{1,2})", re.IGNORECASE),
    re.compile(r"[Ss](\d{1,2})\b"),
]


def _first_marker(title: str, table: list[tuple[tuple[str, ...], object]], default):
    """Return the value of the first table row whose markers appear in the title."""
    title_lower = title.lower()
    for markers, value in table:
        if any(marker in title_lower for marker in markers):
            return value
    return default


def _first_match(patterns: list[re.Pattern], text: str) -> re.Match | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match
    return None


def extract_quality(title: str) -> TorrentQuality:
    """Extract video quality, preferring the highest resolution mentioned."""
    return _first_marker(title, QUALITY_MARKERS, TorrentQuality.UNKNOWN)


def extract_codec(title: str) -> TorrentCodec:
    return _first_marker(title, CODEC_MARKERS, TorrentCodec.UNKNOWN)


def extract_release_type(title: str) -> TorrentReleaseType:
    return _first_marker(title, RELEASE_TYPE_MARKERS, TorrentReleaseType.EPISODE)


def extract_audio_languages(title: str) -> list[TorrentLanguage]:
    """Extract audio languages; Japanese is assumed when nothing is marked."""
    title_lower = title.lower()

    if any(marker in title_lower for marker in MULTI_AUDIO_MARKERS):
        return [TorrentLanguage.JAPANESE, TorrentLanguage.ENGLISH]

    languages = []
    if any(marker in title_lower for marker in JAPANESE_AUDIO_MARKERS):
        languages.append(TorrentLanguage.JAPANESE)
    if any(marker in title_lower for marker in ENGLISH_AUDIO_MARKERS):
        languages.append(TorrentLanguage.ENGLISH)

    return languages or [TorrentLanguage.JAPANESE]


def extract_subtitle_languages(title: str) -> list[TorrentLanguage]:
    """Extract subtitle languages; English is assumed when nothing is marked."""
    title_lower = title.lower()

    # "sub" also covers "subtitle"
    if "multi" in title_lower and "sub" in title_lower:
        return [TorrentLanguage.MULTI]

    languages = [
        language
        for language, keywords in SUBTITLE_LANGUAGES.items()
        if any(keyword in title_lower for keyword in keywords)
    ]
    return languages or [TorrentLanguage.ENGLISH]


def extract_release_group(title: str) -> str | None:
    """Extract the release group from a trailing [bracket] token.

    Any trailing bracket counts, so a title ending in a tag such as
    "[HEVC]" yields "HEVC".
    """
    match = RELEASE_GROUP_PATTERN.search(title)
    return match.group(1) if match else None


def extract_episode_number(title: str) -> int | None:
    """Extract a single episode number from the title."""
    match = _first_match(EPISODE_PATTERNS, title)
    return int(match.group(1)) if match else None


def extract_episode_range(title: str) -> EpisodeRange | None:
    """Extract a batch episode range.

    The range is returned as written; callers must check start <= end.
    """
    match = _first_match(EPISODE_RANGE_PATTERNS, title)
    if not match:
        return None
    return EpisodeRange(start=int(match.group(1)), end=int(match.group(2)))


def extract_season_number(title: str) -> int | None:
    match = _first_match(SEASON_PATTERNS, title)
    return int(match.group(1)) if match else None


def extract_metadata(title: str) -> TorrentMetadata:
    """Extract all metadata from a release title. Never fails."""
    title_lower = title.lower()

    return TorrentMetadata(
        quality=extract_quality(title),
        codec=extract_codec(title),
        audio_languages=extract_audio_languages(title),
        subtitle_languages=extract_subtitle_languages(title),
        release_type=extract_release_type(title),
        release_group=extract_release_group(title),
        is_dual="dual audio" in title_lower,
        is_multi_sub="multi" in title_lower and "sub" in title_lower,
        is_batch="batch" in title_lower,
        has_hard_subs="hardsub" in title_lower,
    )
