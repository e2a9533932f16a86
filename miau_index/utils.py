"""Shared utilities for the anime index."""

import re
import uuid
from datetime import date, datetime

from rich.console import Console

# Shared console instance for all modules
console = Console()

MAX_QUERY_LENGTH = 200
MAX_EPISODE_NUMBER = 10000
MAX_EPISODE_SPAN = 1000

# Binary multipliers; nyaa.si reports sizes as KiB/MiB/GiB
SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "KiB": 1024,
    "MiB": 1024**2,
    "GiB": 1024**3,
    "TiB": 1024**4,
}

SIZE_PATTERN = re.compile(r"^([\d.]+)\s*([A-Za-z]+)$")
INFO_HASH_PATTERN = re.compile(r"btih:([a-fA-F0-9]{40})", re.IGNORECASE)
UNSAFE_QUERY_CHARS = re.compile(r"[<>'\"]")
NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")

PUBLISHED_DATE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


def generate_id() -> str:
    """Generate a new internal identifier."""
    return str(uuid.uuid4())


def parse_int_safe(text: str) -> int:
    """Parse an integer from text, returning 0 if invalid."""
    text = text.strip()
    return int(text) if text.isdigit() else 0


def sanitize_search_query(query: str) -> str:
    """Make a free-text query safe to send to the torrent indexer.

    Removes the characters ``<>'"``, collapses whitespace runs to a single
    space, trims the ends and caps the length.
    """
    query = UNSAFE_QUERY_CHARS.sub("", query)
    query = re.sub(r"\s+", " ", query).strip()
    return query[:MAX_QUERY_LENGTH].rstrip()


def parse_size_to_bytes(size: str) -> int:
    """Convert a human-readable size like "1.4 GiB" to bytes (0 if unparseable)."""
    match = SIZE_PATTERN.match(size.strip())
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return round(value * SIZE_UNITS.get(match.group(2), 1))


def format_size(size_bytes: int) -> str:
    """Format a byte count the way nyaa.si displays sizes, e.g. "1.4 GiB"."""
    value = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TiB"


def extract_info_hash(magnet_link: str) -> str:
    """Extract the lower-cased 40-char BitTorrent info hash from a magnet link."""
    match = INFO_HASH_PATTERN.search(magnet_link)
    return match.group(1).lower() if match else ""


def normalize_title(title: str) -> str:
    """Lower-case a title and collapse non-alphanumeric runs to single spaces."""
    return NON_ALPHANUMERIC.sub(" ", title.lower()).strip()


def is_valid_episode_number(number: int) -> bool:
    """Episode numbers are positive integers no larger than 10000."""
    if isinstance(number, bool) or not isinstance(number, int):
        return False
    return 0 < number <= MAX_EPISODE_NUMBER


def is_valid_episode_range(start: int, end: int) -> bool:
    """Check both ends are valid episode numbers, ordered, and span at most 1000."""
    return (
        is_valid_episode_number(start)
        and is_valid_episode_number(end)
        and start <= end
        and end - start <= MAX_EPISODE_SPAN
    )


def parse_date(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime string (including a trailing "Z").

    Returns:
        Parsed datetime, or None if the string is empty/invalid.
    """
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        return None
    return datetime(parsed.year, parsed.month, parsed.day)


def parse_published_date(value: str) -> datetime | None:
    """Parse the publish date shown by the indexer ("2024-01-15 12:00")."""
    value = value.strip()
    if value.isdigit():
        return datetime.fromtimestamp(int(value))
    for fmt in PUBLISHED_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return parse_date(value)
