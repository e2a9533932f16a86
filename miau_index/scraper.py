"""Nyaa.si search client."""

import logging
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from .http import HttpClient
from .models import RawTorrent
from .ratelimit import RateLimiter
from .utils import parse_int_safe

logger = logging.getLogger(__name__)

BASE_URL = "https://nyaa.si"

# Category codes for nyaa.si
CATEGORIES = {
    "all": "0_0",
    "anime": "1_0",
    "anime_amv": "1_1",
    "anime_english": "1_2",
    "anime_non_english": "1_3",
    "anime_raw": "1_4",
}

DEFAULT_CATEGORY = CATEGORIES["anime_english"]

# Filter codes
FILTERS = {
    "no-filter": "0",
    "no-remakes": "1",
    "trusted-only": "2",
}

SORT_FIELDS = ("comments", "size", "id", "seeders", "leechers", "downloads")


def build_search_url(
    query: str,
    category: str = DEFAULT_CATEGORY,
    filter_type: str = "no-filter",
    sort_by: str = "seeders",
    order: str = "desc",
    page: int = 1,
) -> str:
    """Build a search URL for nyaa.si.

    category accepts either a code ("1_2") or a name from CATEGORIES.
    """
    params = {
        "f": FILTERS.get(filter_type, "0"),
        "c": CATEGORIES.get(category, category),
        "q": query,
        "s": sort_by if sort_by in SORT_FIELDS else "seeders",
        "o": "asc" if order == "asc" else "desc",
        "p": page,
    }
    return f"{BASE_URL}/?{urlencode(params)}"


def _extract_category(cols: list) -> str:
    """Extract category from the first column."""
    category_link = cols[0].find("a")
    return category_link.get("title", "") if category_link else ""


def _extract_name_and_id(cols: list) -> tuple[str, str] | None:
    """Extract torrent name and ID from the second column."""
    for link in cols[1].find_all("a"):
        href = link.get("href", "")
        if href.startswith("/view/") and "comments" not in href:
            name = link.get("title") or link.get_text(strip=True)
            return name.strip(), href.split("/")[-1]
    return None


def _extract_links(cols: list) -> tuple[str, str | None]:
    """Extract magnet and torrent download links from the third column."""
    links_col = cols[2]

    magnet_link = links_col.find("a", href=lambda x: x and x.startswith("magnet:"))
    magnet = magnet_link.get("href", "") if magnet_link else ""

    torrent_download = links_col.find("a", href=lambda x: x and x.endswith(".torrent"))
    torrent_url = f"{BASE_URL}{torrent_download.get('href', '')}" if torrent_download else None

    return magnet, torrent_url


def parse_torrent_row(row) -> RawTorrent | None:
    """Parse a single torrent row from the search results table."""
    cols = row.find_all("td")
    if len(cols) < 8:
        return None

    name_data = _extract_name_and_id(cols)
    if not name_data:
        return None
    name, torrent_id = name_data

    magnet, torrent_url = _extract_links(cols)
    row_classes = row.get("class") or []

    return RawTorrent(
        id=torrent_id,
        title=name,
        category=_extract_category(cols),
        magnet_link=magnet,
        torrent_link=torrent_url,
        size=cols[3].get_text(strip=True),
        date=cols[4].get("data-timestamp") or cols[4].get_text(strip=True),
        seeders=parse_int_safe(cols[5].get_text(strip=True)),
        leechers=parse_int_safe(cols[6].get_text(strip=True)),
        downloads=parse_int_safe(cols[7].get_text(strip=True)),
        is_trusted="success" in row_classes,
        is_remake="danger" in row_classes,
    )


def parse_search_results(html: str) -> list[RawTorrent]:
    """Parse every result row of a search page. Malformed rows are skipped."""
    soup = BeautifulSoup(html, "lxml")

    table = soup.find("table", class_="torrent-list")
    if not table:
        return []

    tbody = table.find("tbody")
    if not tbody:
        return []

    torrents = []
    for row in tbody.find_all("tr"):
        try:
            torrent = parse_torrent_row(row)
        except (AttributeError, IndexError, TypeError) as e:
            logger.warning(f"Failed to parse row: {e}")
            continue
        if torrent:
            torrents.append(torrent)
    return torrents


class NyaaClient:
    """Async client for the nyaa.si search page.

    Usage:
        async with NyaaClient() as nyaa:
            torrents = await nyaa.search("Frieren 1080p")
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff: float = 1.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.http = HttpClient(
            "Nyaa",
            timeout=timeout,
            headers={"Accept": "text/html"},
            max_retries=max_retries,
            backoff=backoff,
            rate_limiter=rate_limiter,
        )

    async def search(
        self,
        query: str,
        category: str = DEFAULT_CATEGORY,
        filter_type: str = "no-filter",
        sort_by: str = "seeders",
        order: str = "desc",
        page: int = 1,
    ) -> list[RawTorrent]:
        """
        Search nyaa.si.

        Args:
            query: Search query
            category: Category code or name
            filter_type: no-filter, no-remakes or trusted-only
            sort_by: Sort column
            order: asc or desc
            page: Result page, starting at 1

        Returns:
            Torrents in the order nyaa.si lists them

        Raises:
            ProviderError: If the page could not be fetched
        """
        url = build_search_url(query, category, filter_type, sort_by, order, page)
        html = await self.http.get_text(url)
        torrents = parse_search_results(html)
        logger.debug(f"Nyaa returned {len(torrents)} torrents for '{query}'")
        return torrents

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "NyaaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
