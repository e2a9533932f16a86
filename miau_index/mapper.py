"""Map raw indexer results onto Torrent records linked to an anime."""

import logging
from datetime import datetime

from .metadata import (
    extract_episode_number,
    extract_episode_range,
    extract_metadata,
    extract_season_number,
)
from .models import Anime, AnimeSeason, Episode, EpisodeRange, RawTorrent, Torrent
from .repositories import EpisodeRepository, SeasonRepository
from .utils import (
    extract_info_hash,
    generate_id,
    is_valid_episode_number,
    is_valid_episode_range,
    parse_published_date,
    parse_size_to_bytes,
)
from .validation import validate_torrent

logger = logging.getLogger(__name__)


def resolve_episode_range(title: str) -> EpisodeRange | None:
    """Extract a batch range from the title, dropping inverted or oversized ones."""
    episode_range = extract_episode_range(title)
    if episode_range is None:
        return None
    if not is_valid_episode_range(episode_range.start, episode_range.end):
        logger.warning(f"Ignoring invalid episode range {episode_range} in '{title}'")
        return None
    return episode_range


async def _find_or_create_season(
    anime_id: str, season_number: int, repository: SeasonRepository
) -> AnimeSeason:
    season = await repository.find_by_season_number(anime_id, season_number)
    if season is None:
        season = await repository.save(
            AnimeSeason(
                id=generate_id(),
                anime_id=anime_id,
                season_number=season_number,
                title=f"Season {season_number}",
            )
        )
    return season


async def _find_or_create_episode(
    anime_id: str, number: int, repository: EpisodeRepository
) -> Episode:
    episode = await repository.find_by_number(anime_id, number)
    if episode is None:
        episode = await repository.save(
            Episode(id=generate_id(), anime_id=anime_id, number=number, title=f"Episode {number}")
        )
    return episode


async def map_raw_torrent(
    raw: RawTorrent,
    anime: Anime,
    episode_number: int | None = None,
    episode_repository: EpisodeRepository | None = None,
    season_repository: SeasonRepository | None = None,
) -> Torrent:
    """
    Build a Torrent from one indexer result.

    Args:
        raw: Search result row from the indexer
        anime: Anime the torrent belongs to
        episode_number: Explicit episode number for episode-scoped searches;
            wins over anything parsed from the title
        episode_repository: When given, the episode is looked up or created
        season_repository: When given, the season is looked up or created

    Returns:
        A new Torrent. A torrent is either a single episode (episode_number
        set) or a batch (episode_range set), never both.

    Raises:
        ValidationError: If the result breaks the torrent schema, e.g. a
            magnet link without a 40-hex info hash
    """
    episode_range = None
    if episode_number is None:
        episode_range = resolve_episode_range(raw.title)
        if episode_range is None:
            episode_number = extract_episode_number(raw.title)
            if episode_number is not None and not is_valid_episode_number(episode_number):
                logger.debug(f"Ignoring episode number {episode_number} in '{raw.title}'")
                episode_number = None

    torrent = Torrent(
        id=generate_id(),
        nyaa_id=raw.id,
        title=raw.title,
        magnet_link=raw.magnet_link,
        info_hash=extract_info_hash(raw.magnet_link),
        size=raw.size,
        size_bytes=parse_size_to_bytes(raw.size),
        seeders=raw.seeders,
        leechers=raw.leechers,
        downloads=raw.downloads,
        metadata=extract_metadata(raw.title),
        category=raw.category,
        torrent_link=raw.torrent_link,
        published_at=parse_published_date(raw.date),
        last_checked=datetime.now(),
        anime_id=anime.id,
        episode_number=episode_number,
        episode_range=episode_range,
        trusted=raw.is_trusted,
        remake=raw.is_remake,
    )
    validate_torrent(torrent)

    season_number = extract_season_number(raw.title)
    if season_number is not None and season_repository is not None:
        try:
            season = await _find_or_create_season(anime.id, season_number, season_repository)
            torrent.season_id = season.id
        except Exception as e:
            logger.warning(f"Failed to link season {season_number} for '{raw.title}': {e}")

    if episode_number is not None and episode_repository is not None:
        try:
            episode = await _find_or_create_episode(anime.id, episode_number, episode_repository)
            torrent.episode_ids.append(episode.id)
        except Exception as e:
            logger.warning(f"Failed to link episode {episode_number} for '{raw.title}': {e}")

    return torrent
