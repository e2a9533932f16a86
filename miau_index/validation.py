"""Schema validation for anime, torrent and search-filter records.

The schemas mirror the dataclasses in models.py and add the constraints a
dataclass cannot express: value ranges, info-hash and magnet formats, and
identifier shapes. Every validator accepts either the dataclass itself or a
plain mapping (for example decoded JSON) and returns the dataclass.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from .errors import ValidationError
from .models import (
    Anime,
    AnimeStatus,
    AnimeType,
    DataSource,
    Season,
    Torrent,
    TorrentCodec,
    TorrentLanguage,
    TorrentQuality,
    TorrentReleaseType,
    TorrentSearchFilter,
)

NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveInt = Annotated[int, Field(gt=0)]
Score = Annotated[float, Field(ge=0, le=10)]
Year = Annotated[int, Field(ge=1900, le=2100)]
Url = Annotated[str, Field(pattern=r"^https?://")]
InfoHash = Annotated[str, Field(pattern=r"^[a-fA-F0-9]{40}$")]
MagnetLink = Annotated[str, Field(pattern=r"^magnet:")]


class _Schema(BaseModel):
    # Dataclass instances are read attribute by attribute
    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Anime
# ============================================================================


class ExternalIdSchema(_Schema):
    source: DataSource
    id: str


class TitleSchema(_Schema):
    romaji: str | None = None
    english: str | None = None
    native: str | None = None
    synonyms: list[str] = Field(default_factory=list)


class ImagesSchema(_Schema):
    small: Url | None = None
    medium: Url | None = None
    large: Url | None = None
    original: Url | None = None


class DateRangeSchema(_Schema):
    start: datetime | None = None
    end: datetime | None = None


class RatingSchema(_Schema):
    source: DataSource
    score: Score | None = None
    votes: NonNegativeInt | None = None
    rank: PositiveInt | None = None
    popularity: NonNegativeInt | None = None


class AnimeSchema(_Schema):
    id: str = Field(min_length=1)
    title: TitleSchema
    type: AnimeType
    status: AnimeStatus
    episodes: PositiveInt | None = None
    duration: PositiveInt | None = None
    season: Season | None = None
    year: Year | None = None
    synopsis: str | None = None
    background: str | None = None
    images: ImagesSchema = Field(default_factory=ImagesSchema)
    aired: DateRangeSchema = Field(default_factory=DateRangeSchema)
    ratings: list[RatingSchema] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    demographics: list[str] = Field(default_factory=list)
    studios: list[str] = Field(default_factory=list)
    producers: list[str] = Field(default_factory=list)
    licensors: list[str] = Field(default_factory=list)
    external_ids: list[ExternalIdSchema] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ============================================================================
# Torrents
# ============================================================================


class EpisodeRangeSchema(_Schema):
    start: PositiveInt
    end: PositiveInt


class TorrentMetadataSchema(_Schema):
    quality: TorrentQuality = TorrentQuality.UNKNOWN
    codec: TorrentCodec = TorrentCodec.UNKNOWN
    audio_languages: list[TorrentLanguage] = Field(default_factory=list)
    subtitle_languages: list[TorrentLanguage] = Field(default_factory=list)
    release_type: TorrentReleaseType = TorrentReleaseType.EPISODE
    release_group: str | None = None
    is_dual: bool = False
    is_multi_sub: bool = False
    is_batch: bool = False
    has_hard_subs: bool = False


class TorrentSchema(_Schema):
    id: UUID
    nyaa_id: str
    title: str = Field(min_length=1)
    magnet_link: MagnetLink
    info_hash: InfoHash
    size: str
    size_bytes: NonNegativeInt
    seeders: NonNegativeInt
    leechers: NonNegativeInt
    downloads: NonNegativeInt
    metadata: TorrentMetadataSchema = Field(default_factory=TorrentMetadataSchema)
    category: str = ""
    torrent_link: Url | None = None
    published_at: datetime | None = None
    last_checked: datetime | None = None
    anime_id: str | None = None
    episode_ids: list[str] = Field(default_factory=list)
    season_id: str | None = None
    episode_number: PositiveInt | None = None
    episode_range: EpisodeRangeSchema | None = None
    trusted: bool = False
    remake: bool = False


class TorrentSearchFilterSchema(_Schema):
    anime_id: str | None = None
    episode_id: str | None = None
    season_id: str | None = None
    episode_number: PositiveInt | None = None
    quality: TorrentQuality | None = None
    audio_language: TorrentLanguage | None = None
    subtitle_language: TorrentLanguage | None = None
    release_type: TorrentReleaseType | None = None
    min_seeders: NonNegativeInt | None = None
    trusted_only: bool = False


_ADAPTERS = {
    Anime: TypeAdapter(Anime),
    Torrent: TypeAdapter(Torrent),
    TorrentSearchFilter: TypeAdapter(TorrentSearchFilter),
}


def _to_validation_error(error: SchemaValidationError, resource: str) -> ValidationError:
    """Report the first failing field in our own error type."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return ValidationError(f"{resource}: {first['msg']}", field=field)


def _validate(schema: type[_Schema], model_type: type, data: Any, resource: str) -> Any:
    try:
        schema.model_validate(data)
        if isinstance(data, model_type):
            return data
        return _ADAPTERS[model_type].validate_python(data)
    except SchemaValidationError as e:
        raise _to_validation_error(e, resource) from e


def validate_anime(data: Anime | Mapping[str, Any]) -> Anime:
    """
    Check an anime record against the anime schema.

    Args:
        data: An Anime, or a mapping with the same field names

    Returns:
        The Anime (the same object when an Anime was passed)

    Raises:
        ValidationError: Naming the first offending field, e.g. "ratings.0.score"
    """
    return _validate(AnimeSchema, Anime, data, "Anime")


def validate_torrent(data: Torrent | Mapping[str, Any]) -> Torrent:
    """Check a torrent record: UUID id, magnet link, 40-hex info hash, counts >= 0."""
    return _validate(TorrentSchema, Torrent, data, "Torrent")


def validate_search_filter(
    data: TorrentSearchFilter | Mapping[str, Any],
) -> TorrentSearchFilter:
    """Check a torrent search filter, including its enum-valued fields."""
    return _validate(TorrentSearchFilterSchema, TorrentSearchFilter, data, "TorrentSearchFilter")


def is_valid_anime(data: Any) -> bool:
    try:
        validate_anime(data)
    except ValidationError:
        return False
    return True


def is_valid_torrent(data: Any) -> bool:
    try:
        validate_torrent(data)
    except ValidationError:
        return False
    return True
