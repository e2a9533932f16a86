"""Data models for the anime index."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DataSource(str, Enum):
    """External catalog an anime record came from."""

    MYANIMELIST = "MYANIMELIST"
    ANILIST = "ANILIST"
    KITSU = "KITSU"
    ANIDB = "ANIDB"
    TMDB = "TMDB"


class AnimeType(str, Enum):
    TV = "TV"
    MOVIE = "MOVIE"
    OVA = "OVA"
    ONA = "ONA"
    SPECIAL = "SPECIAL"
    MUSIC = "MUSIC"


class AnimeStatus(str, Enum):
    AIRING = "AIRING"
    FINISHED = "FINISHED"
    NOT_YET_AIRED = "NOT_YET_AIRED"
    CANCELLED = "CANCELLED"


class Season(str, Enum):
    WINTER = "WINTER"
    SPRING = "SPRING"
    SUMMER = "SUMMER"
    FALL = "FALL"


class TorrentQuality(str, Enum):
    SD_480P = "480p"
    HD_720P = "720p"
    FULL_HD_1080P = "1080p"
    UHD_2160P = "2160p"
    UHD_4K = "4K"
    RAW = "RAW"
    UNKNOWN = "UNKNOWN"


class TorrentCodec(str, Enum):
    H264 = "H.264"
    H265 = "H.265"
    HEVC = "HEVC"
    AV1 = "AV1"
    VP9 = "VP9"
    XVID = "XviD"
    UNKNOWN = "UNKNOWN"


class TorrentLanguage(str, Enum):
    JAPANESE = "ja"
    ENGLISH = "en"
    PORTUGUESE_BR = "pt-BR"
    SPANISH = "es"
    FRENCH = "fr"
    GERMAN = "de"
    ITALIAN = "it"
    RUSSIAN = "ru"
    CHINESE = "zh"
    KOREAN = "ko"
    MULTI = "multi"
    UNKNOWN = "unknown"


class TorrentReleaseType(str, Enum):
    EPISODE = "EPISODE"
    BATCH = "BATCH"
    SEASON = "SEASON"
    COMPLETE = "COMPLETE"
    MOVIE = "MOVIE"
    OVA = "OVA"
    SPECIAL = "SPECIAL"


@dataclass
class ExternalId:
    """Identifier of an anime (or episode) in one external catalog."""

    source: DataSource
    id: str


@dataclass
class Title:
    romaji: str | None = None
    english: str | None = None
    native: str | None = None
    synonyms: list[str] = field(default_factory=list)

    def display(self) -> str:
        """Best human-readable title."""
        return self.romaji or self.english or self.native or "Unknown"


@dataclass
class Images:
    small: str | None = None
    medium: str | None = None
    large: str | None = None
    original: str | None = None


@dataclass
class DateRange:
    start: datetime | None = None
    end: datetime | None = None


@dataclass
class Rating:
    """Score from a single source, normalized to a 0-10 scale."""

    source: DataSource
    score: float | None = None
    votes: int | None = None
    rank: int | None = None
    popularity: int | None = None


@dataclass
class Anime:
    """Anime record, either source-specific or unified across sources."""

    id: str
    title: Title = field(default_factory=Title)
    type: AnimeType = AnimeType.TV
    status: AnimeStatus = AnimeStatus.NOT_YET_AIRED
    episodes: int | None = None
    duration: int | None = None
    season: Season | None = None
    year: int | None = None
    synopsis: str | None = None
    background: str | None = None
    images: Images = field(default_factory=Images)
    aired: DateRange = field(default_factory=DateRange)
    ratings: list[Rating] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    themes: list[str] = field(default_factory=list)
    demographics: list[str] = field(default_factory=list)
    studios: list[str] = field(default_factory=list)
    producers: list[str] = field(default_factory=list)
    licensors: list[str] = field(default_factory=list)
    external_ids: list[ExternalId] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    last_synced_at: datetime = field(default_factory=datetime.now)

    def external_id_for(self, source: DataSource) -> str | None:
        """Return the first external id this anime carries for a source."""
        for external_id in self.external_ids:
            if external_id.source == source:
                return external_id.id
        return None

    def __str__(self) -> str:
        return f"{self.title.display()} ({self.type.value}, {self.status.value})"


@dataclass
class Episode:
    id: str
    anime_id: str
    number: int
    title: str | None = None
    title_japanese: str | None = None
    title_romaji: str | None = None
    synopsis: str | None = None
    duration: int | None = None
    images: Images | None = None
    aired: datetime | None = None
    filler: bool = False
    recap: bool = False
    external_ids: list[ExternalId] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class AnimeSeason:
    """A season (cour) of an anime, grouping a contiguous run of episodes."""

    id: str
    anime_id: str
    season_number: int
    title: str | None = None
    episode_count: int | None = None
    episodes: list[Episode] = field(default_factory=list)
    aired: DateRange = field(default_factory=DateRange)
    external_ids: list[ExternalId] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class TorrentMetadata:
    """Attributes extracted from a release title."""

    quality: TorrentQuality = TorrentQuality.UNKNOWN
    codec: TorrentCodec = TorrentCodec.UNKNOWN
    audio_languages: list[TorrentLanguage] = field(
        default_factory=lambda: [TorrentLanguage.JAPANESE]
    )
    subtitle_languages: list[TorrentLanguage] = field(
        default_factory=lambda: [TorrentLanguage.ENGLISH]
    )
    release_type: TorrentReleaseType = TorrentReleaseType.EPISODE
    release_group: str | None = None
    is_dual: bool = False
    is_multi_sub: bool = False
    is_batch: bool = False
    has_hard_subs: bool = False


@dataclass(frozen=True)
class EpisodeRange:
    """Inclusive episode span of a batch release."""

    start: int
    end: int

    def __contains__(self, number: int) -> bool:
        return self.start <= number <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass
class RawTorrent:
    """A single search result row as reported by the indexer."""

    id: str
    title: str
    category: str
    magnet_link: str
    size: str
    seeders: int
    leechers: int
    downloads: int
    date: str
    torrent_link: str | None = None
    is_trusted: bool = False
    is_remake: bool = False


@dataclass
class Torrent:
    """Indexed torrent linked to an anime and optionally to episodes/seasons."""

    id: str
    nyaa_id: str
    title: str
    magnet_link: str
    info_hash: str
    size: str
    size_bytes: int
    seeders: int
    leechers: int
    downloads: int
    metadata: TorrentMetadata = field(default_factory=TorrentMetadata)
    category: str = ""
    torrent_link: str | None = None
    published_at: datetime | None = None
    last_checked: datetime | None = None
    anime_id: str | None = None
    episode_ids: list[str] = field(default_factory=list)
    season_id: str | None = None
    episode_number: int | None = None
    episode_range: EpisodeRange | None = None
    trusted: bool = False
    remake: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def download_url(self) -> str:
        """Direct .torrent file download URL."""
        return self.torrent_link or f"https://nyaa.si/download/{self.nyaa_id}.torrent"

    def covers_episode(self, number: int) -> bool:
        """True if this torrent is the given episode or a batch containing it."""
        if self.episode_number == number:
            return True
        return self.episode_range is not None and number in self.episode_range

    def __str__(self) -> str:
        return f"{self.title} [{self.size}] S:{self.seeders} L:{self.leechers}"


@dataclass
class TorrentSearchFilter:
    """Criteria for querying stored torrents. Unset fields match everything."""

    anime_id: str | None = None
    episode_id: str | None = None
    season_id: str | None = None
    episode_number: int | None = None
    quality: TorrentQuality | None = None
    audio_language: TorrentLanguage | None = None
    subtitle_language: TorrentLanguage | None = None
    release_type: TorrentReleaseType | None = None
    min_seeders: int | None = None
    trusted_only: bool = False

    def matches(self, torrent: Torrent) -> bool:
        if self.anime_id is not None and torrent.anime_id != self.anime_id:
            return False
        if self.episode_id is not None and self.episode_id not in torrent.episode_ids:
            return False
        if self.season_id is not None and torrent.season_id != self.season_id:
            return False
        if self.episode_number is not None and not torrent.covers_episode(self.episode_number):
            return False
        if self.quality is not None and torrent.metadata.quality != self.quality:
            return False
        if (
            self.audio_language is not None
            and self.audio_language not in torrent.metadata.audio_languages
        ):
            return False
        if (
            self.subtitle_language is not None
            and self.subtitle_language not in torrent.metadata.subtitle_languages
        ):
            return False
        if self.release_type is not None and torrent.metadata.release_type != self.release_type:
            return False
        if self.min_seeders is not None and torrent.seeders < self.min_seeders:
            return False
        if self.trusted_only and not torrent.trusted:
            return False
        return True


@dataclass
class TorrentStats:
    """Aggregated view over the torrents of one anime."""

    total_torrents: int = 0
    by_quality: dict[TorrentQuality, int] = field(default_factory=dict)
    by_language: dict[TorrentLanguage, int] = field(default_factory=dict)
    by_release_type: dict[TorrentReleaseType, int] = field(default_factory=dict)
    average_seeders: float = 0.0
    total_size: int = 0


@dataclass
class UnificationOptions:
    """How per-source records are merged into one canonical anime.

    preferred_sources is kept as configuration; scalar fields currently take
    the first defined value in the order sources are supplied.
    """

    preferred_sources: list[DataSource] = field(
        default_factory=lambda: [
            DataSource.ANILIST,
            DataSource.KITSU,
            DataSource.MYANIMELIST,
        ]
    )
    min_sources_for_consensus: int = 1
    merge_arrays: bool = True
