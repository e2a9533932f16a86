"""CLI interface for the anime index using Typer."""

import asyncio
import dataclasses
import logging

import typer
from rich import box
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import Settings
from .errors import MiauIndexError, ValidationError
from .index import MiauIndex
from .models import Anime, DataSource, ExternalId, Torrent, TorrentQuality, TorrentStats
from .scraper import CATEGORIES
from .utils import console, format_size

app = typer.Typer(
    name="miau-index",
    help="Search and unify anime metadata across catalogs and index torrents from nyaa.si",
    add_completion=False,
)

SOURCE_ALIASES = {
    "anilist": DataSource.ANILIST,
    "kitsu": DataSource.KITSU,
    "mal": DataSource.MYANIMELIST,
    "myanimelist": DataSource.MYANIMELIST,
    "jikan": DataSource.MYANIMELIST,
}


def setup_logging(level: str, verbose: bool = False) -> None:
    """Route log records through Rich on the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def create_index(settings: Settings) -> MiauIndex:
    return MiauIndex(settings)


def parse_external_id(value: str) -> ExternalId:
    """Parse SOURCE:ID, e.g. anilist:154587 or mal:52991."""
    source, sep, external_id = value.partition(":")
    if not sep or not external_id:
        raise typer.BadParameter(f"expected SOURCE:ID, got '{value}'")
    data_source = SOURCE_ALIASES.get(source.lower())
    if data_source is None:
        raise typer.BadParameter(f"unknown source '{source}'")
    return ExternalId(source=data_source, id=external_id)


def parse_quality(value: str | None) -> TorrentQuality | None:
    if value is None:
        return None
    for quality in TorrentQuality:
        if quality.value.lower() == value.lower():
            return quality
    raise typer.BadParameter(f"unknown quality '{value}'")


def display_banner():
    """Display the application banner."""
    banner = """
    MIAU INDEX
    Unified anime metadata from AniList, Kitsu & MyAnimeList
    """
    console.print(Panel(banner, style="bold blue", box=box.DOUBLE))


def display_anime_table(animes: list[Anime], title: str = "Anime") -> None:
    table = Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold magenta")

    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="cyan", min_width=30)
    table.add_column("Type", style="white", width=8)
    table.add_column("Status", style="yellow", width=14)
    table.add_column("Eps", style="green", width=5)
    table.add_column("Year", style="white", width=6)
    table.add_column("Score", style="magenta", width=8)
    table.add_column("Sources", style="blue")

    for i, anime in enumerate(animes, 1):
        scores = [rating.score for rating in anime.ratings if rating.score is not None]
        name = anime.title.display()
        table.add_row(
            str(i),
            escape(name[:50] + "..." if len(name) > 50 else name),
            anime.type.value,
            anime.status.value,
            str(anime.episodes) if anime.episodes is not None else "?",
            str(anime.year) if anime.year else "",
            f"{max(scores):.2f}" if scores else "-",
            ", ".join(f"{ext.source.value}:{ext.id}" for ext in anime.external_ids),
        )

    console.print(table)


def display_anime_details(anime: Anime) -> None:
    console.print(f"\n[bold cyan]{anime.title.display()}[/bold cyan]")
    if anime.title.english and anime.title.english != anime.title.display():
        console.print(f"[dim]{anime.title.english}[/dim]")
    if anime.title.native:
        console.print(f"[dim]{anime.title.native}[/dim]")

    console.print(f"\n[cyan]Type:[/cyan] {anime.type.value}  [cyan]Status:[/cyan] {anime.status.value}")
    if anime.episodes is not None:
        console.print(f"[cyan]Episodes:[/cyan] {anime.episodes}")
    if anime.season and anime.year:
        console.print(f"[cyan]Season:[/cyan] {anime.season.value.capitalize()} {anime.year}")
    if anime.genres:
        console.print(f"[cyan]Genres:[/cyan] {', '.join(anime.genres)}")
    if anime.studios:
        console.print(f"[cyan]Studios:[/cyan] {', '.join(anime.studios)}")
    for rating in anime.ratings:
        if rating.score is not None:
            console.print(f"[cyan]{rating.source.value} score:[/cyan] {rating.score:.2f}")
    if anime.synopsis:
        console.print(f"\n{anime.synopsis}")


def display_torrents_table(torrents: list[Torrent]) -> None:
    table = Table(title="Torrents", box=box.SIMPLE, show_header=True, header_style="bold")

    table.add_column("#", style="dim", width=4)
    table.add_column("Name", style="white", min_width=50)
    table.add_column("Ep", style="cyan", width=7)
    table.add_column("Quality", style="yellow", width=8)
    table.add_column("Size", style="cyan", width=12)
    table.add_column("S", style="green", width=6)
    table.add_column("L", style="red", width=6)

    for i, torrent in enumerate(torrents, 1):
        if torrent.episode_range is not None:
            episode = str(torrent.episode_range)
        elif torrent.episode_number is not None:
            episode = str(torrent.episode_number)
        else:
            episode = "-"
        name_display = torrent.title[:60] + "..." if len(torrent.title) > 60 else torrent.title
        table.add_row(
            str(i),
            escape(name_display),
            episode,
            torrent.metadata.quality.value,
            torrent.size,
            str(torrent.seeders),
            str(torrent.leechers),
        )

    console.print(table)


def display_torrent_stats(stats: TorrentStats) -> None:
    console.print(f"\n[bold]Total torrents:[/bold] {stats.total_torrents}")
    console.print(f"[bold]Average seeders:[/bold] {stats.average_seeders:.1f}")
    console.print(f"[bold]Total size:[/bold] {format_size(stats.total_size)}")
    if stats.by_quality:
        qualities = ", ".join(f"{q.value}: {n}" for q, n in stats.by_quality.items())
        console.print(f"[bold]By quality:[/bold] {qualities}")


def _run(coro):
    """Run a coroutine, turning index errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except MiauIndexError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Unified anime index."""
    try:
        settings = Settings.from_env()
    except ValidationError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(2)
    setup_logging(settings.log_level, verbose)
    ctx.obj = settings


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Title to search for"),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum number of results"),
):
    """Search every catalog and show unified results."""

    async def run() -> list[Anime]:
        async with create_index(ctx.obj) as index:
            return await index.search_anime(query, limit)

    console.print(f"\n[bold]Searching for:[/bold] {query}")
    results = _run(run())
    if not results:
        console.print("[red]No anime found. Try a different search term.[/red]")
        raise typer.Exit(1)
    display_anime_table(results, title=f"Results for '{query}'")


@app.command()
def fetch(
    ctx: typer.Context,
    ids: list[str] = typer.Argument(..., help="External ids as SOURCE:ID (anilist, kitsu, mal)"),
):
    """Fetch one anime from several catalogs and unify it."""
    external_ids = [parse_external_id(value) for value in ids]

    async def run() -> Anime:
        async with create_index(ctx.obj) as index:
            return await index.fetch_anime(external_ids)

    anime = _run(run())
    display_anime_details(anime)


@app.command()
def seasonal(
    ctx: typer.Context,
    year: int = typer.Argument(..., help="Year, e.g. 2024"),
    season: str = typer.Argument(..., help="winter, spring, summer or fall"),
):
    """List the anime of one season."""
    if season.lower() not in ("winter", "spring", "summer", "fall"):
        raise typer.BadParameter(f"unknown season '{season}'", param_hint="SEASON")

    async def run() -> list[Anime]:
        async with create_index(ctx.obj) as index:
            return await index.get_seasonal_anime(year, season.lower())

    results = _run(run())
    if not results:
        console.print("[yellow]No seasonal anime found.[/yellow]")
        raise typer.Exit(0)
    display_anime_table(results, title=f"{season.capitalize()} {year}")


@app.command()
def torrents(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Anime title to index torrents for"),
    episode: int | None = typer.Option(None, "--episode", "-e", help="Index a single episode"),
    quality: str | None = typer.Option(None, "--quality", "-q", help="Only show this quality"),
):
    """
    Index nyaa.si torrents for an anime.

    This command will:
    1. Search the catalogs and unify the best match
    2. Search nyaa.si for every title variant (or one episode)
    3. Show the indexed torrents and their statistics
    """
    wanted_quality = parse_quality(quality)
    settings = dataclasses.replace(ctx.obj, enable_nyaa=True)
    display_banner()

    async def run() -> tuple[Anime | None, list[Torrent], TorrentStats | None]:
        async with create_index(settings) as index:
            console.print("\n[bold]Step 1: Looking up anime...[/bold]")
            matches = await index.search_anime(query, 1)
            if not matches:
                return None, [], None
            anime = await index.fetch_anime(matches[0].external_ids)
            console.print(f"[green]Found:[/green] {anime.title.display()}")

            console.print("\n[bold]Step 2: Indexing torrents...[/bold]")
            if episode is not None:
                found = await index.index_episode_torrents(anime, episode)
            else:
                found = await index.index_torrents(anime)
            if wanted_quality is not None:
                found = [t for t in found if t.metadata.quality == wanted_quality]
            return anime, found, await index.get_torrent_stats(anime.id)

    anime, found, stats = _run(run())
    if anime is None:
        console.print("[red]No anime found. Try a different search term.[/red]")
        raise typer.Exit(1)
    if not found:
        console.print("[yellow]No torrents found.[/yellow]")
        raise typer.Exit(0)

    console.print("\n[bold]Step 3: Results[/bold]")
    display_torrents_table(found)
    display_torrent_stats(stats)


@app.command()
def providers(ctx: typer.Context):
    """Check which catalogs are reachable."""

    async def run() -> dict[DataSource, bool]:
        async with create_index(ctx.obj) as index:
            return await index.check_providers()

    health = _run(run())
    table = Table(title="Providers", box=box.ROUNDED)
    table.add_column("Source", style="cyan")
    table.add_column("Status")

    for source, available in health.items():
        table.add_row(source.value, "[green]up[/green]" if available else "[red]down[/red]")

    console.print(table)


@app.command()
def version():
    """Show the version number."""
    console.print(f"miau-index version {__version__}")


@app.command()
def categories():
    """List available nyaa.si categories."""
    table = Table(title="Available Categories", box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Code", style="dim")

    for name, code in CATEGORIES.items():
        table.add_row(name, code)

    console.print(table)


if __name__ == "__main__":
    app()
