"""Torrent deduplication across overlapping search results."""

from .models import Torrent
from .utils import normalize_title


def dedup_key(torrent: Torrent) -> str:
    """Identity of the underlying release: info hash, else normalized title."""
    return torrent.info_hash or normalize_title(torrent.title)


def deduplicate_torrents(torrents: list[Torrent]) -> list[Torrent]:
    """
    Collapse torrents that describe the same release.

    For colliding keys the candidate with more seeders survives; on a tie the
    first one seen is kept.

    Args:
        torrents: Candidates, possibly from several overlapping queries

    Returns:
        Unique torrents sorted by seeders, highest first
    """
    unique: dict[str, Torrent] = {}
    for torrent in torrents:
        key = dedup_key(torrent)
        existing = unique.get(key)
        if existing is None or torrent.seeders > existing.seeders:
            unique[key] = torrent

    return sorted(unique.values(), key=lambda t: t.seeders, reverse=True)
