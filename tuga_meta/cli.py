"""Command-line interface for artwork resolution and listing enrichment."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, Awaitable, TypeVar

import click

from .common.errors import FetchError
from .common.types import ListingPage, MovieMeta
from .config import LOG_LEVELS, Settings
from .runtime import open_runtime

T = TypeVar("T")

LOGGER = logging.getLogger("tuga_meta.cli")


async def _supervise(awaitable: Awaitable[T]) -> T:
    """Await *awaitable*, turning ``SIGTERM`` into cancellation of this task."""

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    installed = False
    if task is not None:
        try:
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
            installed = True
        except (NotImplementedError, RuntimeError):
            LOGGER.debug("SIGTERM handler unavailable; relying on default handling.")
    try:
        return await awaitable
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGTERM)


def _run(awaitable: Awaitable[T]) -> T:
    try:
        return asyncio.run(_supervise(awaitable))
    except asyncio.CancelledError as exc:
        raise click.Abort() from exc


async def _resolve_posters(settings: Settings, titles: list[str]) -> list[str | None]:
    async with open_runtime(settings) as runtime:
        return await runtime.resolver.best_art_batch(titles)


async def _enrich_item(settings: Settings, listing: ListingPage) -> MovieMeta:
    async with open_runtime(settings) as runtime:
        return await runtime.enricher.enrich_item(listing)


@click.group()
@click.option(
    "--tmdb-api-key",
    envvar="TMDB_API_KEY",
    show_envvar=True,
    required=False,
    help="TMDb API key; TMDb artwork is skipped when unset",
)
@click.option(
    "--imdb-max-rps",
    envvar="IMDB_MAX_RPS",
    show_envvar=True,
    type=click.IntRange(min=0),
    default=None,
    help="Maximum IMDb requests per second (0 disables limiting) [default: 10]",
)
@click.option(
    "--poster-concurrency",
    envvar="POSTER_CONCURRENCY",
    show_envvar=True,
    type=click.IntRange(min=1),
    default=None,
    help="Number of titles resolved concurrently [default: 8]",
)
@click.option(
    "--cache-file",
    envvar="CACHE_FILE",
    show_envvar=True,
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the persistent poster cache [default: cache-posters.json]",
)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    show_envvar=True,
    type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
    default="info",
    show_default=True,
    help="Logging level for console output",
)
@click.pass_context
def main(
    ctx: click.Context,
    tmdb_api_key: str | None,
    imdb_max_rps: int | None,
    poster_concurrency: int | None,
    cache_file: Path | None,
    log_level: str,
) -> None:
    """Resolve artwork and metadata for scraped movie listings."""

    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO))

    overrides: dict[str, Any] = {"log_level": log_level.lower()}
    if tmdb_api_key is not None:
        overrides["tmdb_api_key"] = tmdb_api_key.strip() or None
    if imdb_max_rps is not None:
        overrides["imdb_max_rps"] = imdb_max_rps
    if poster_concurrency is not None:
        overrides["poster_concurrency"] = poster_concurrency
    if cache_file is not None:
        overrides["cache_file"] = cache_file
    ctx.obj = Settings().model_copy(update=overrides)


@main.command()
@click.argument("titles", nargs=-1)
@click.option(
    "--input",
    "input_file",
    type=click.File("r", encoding="utf-8"),
    required=False,
    help="File with one title per line",
)
@click.pass_obj
def posters(settings: Settings, titles: tuple[str, ...], input_file: Any) -> None:
    """Print the best poster URL for each TITLE as a JSON object."""

    all_titles = [title for title in titles if title.strip()]
    if input_file is not None:
        all_titles.extend(line.strip() for line in input_file if line.strip())
    if not all_titles:
        raise click.UsageError("Provide at least one title or an --input file.")

    results = _run(_resolve_posters(settings, all_titles))
    click.echo(json.dumps(dict(zip(all_titles, results)), indent=2, ensure_ascii=False))


@main.command()
@click.option("--title", required=True, help="Listing title used for artwork lookup")
@click.option("--page-url", required=True, help="Listing detail page URL")
@click.pass_obj
def meta(settings: Settings, title: str, page_url: str) -> None:
    """Print enriched metadata for a single listing page as JSON."""

    listing = ListingPage(title=title, page_url=page_url)
    try:
        result = _run(_enrich_item(settings, listing))
    except FetchError as exc:
        raise click.ClickException(f"Failed to fetch {page_url}: {exc}") from exc
    click.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
