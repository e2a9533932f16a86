"""Split a flat episode list into seasons."""

import logging

from .models import AnimeSeason, DateRange, Episode
from .repositories import SeasonRepository
from .utils import generate_id

logger = logging.getLogger(__name__)

# Typical cour length, used when no authoritative season boundaries exist
EPISODES_PER_SEASON = 13


def partition_episodes(
    episodes: list[Episode], episodes_per_season: int = EPISODES_PER_SEASON
) -> list[list[Episode]]:
    """Chunk episodes into consecutive runs of at most episodes_per_season."""
    return [
        episodes[start : start + episodes_per_season]
        for start in range(0, len(episodes), episodes_per_season)
    ]


async def organize_into_seasons(
    anime_id: str,
    episodes: list[Episode],
    season_repository: SeasonRepository,
    episodes_per_season: int = EPISODES_PER_SEASON,
) -> list[AnimeSeason]:
    """
    Create and persist one season per chunk of episodes.

    Args:
        anime_id: Owning anime
        episodes: Episodes already sorted by number
        season_repository: Where the new seasons are saved
        episodes_per_season: Maximum episodes in one season

    Returns:
        The saved seasons, numbered from 1
    """
    seasons = []
    for number, chunk in enumerate(partition_episodes(episodes, episodes_per_season), 1):
        seasons.append(
            AnimeSeason(
                id=generate_id(),
                anime_id=anime_id,
                season_number=number,
                title=f"Season {number}",
                episode_count=len(chunk),
                episodes=chunk,
                aired=DateRange(start=chunk[0].aired, end=chunk[-1].aired),
            )
        )

    saved = await season_repository.save_many(seasons)
    logger.info(f"Organized {len(episodes)} episodes into {len(saved)} seasons for {anime_id}")
    return saved
