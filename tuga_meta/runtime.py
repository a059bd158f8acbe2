"""Lifecycle management for the HTTP client, cache, rate gate and resolver."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from .cache import JsonCacheFile, ResolutionCache
from .config import Settings
from .enrichment import CatalogEnricher
from .fetch import FetchClient
from .resolver import ArtResolver
from .sources import ArtSource, IMDbArtSource, TMDbArtSource
from .throttle import RateGate

LOGGER = logging.getLogger("tuga_meta.runtime")


@dataclass(slots=True)
class Runtime:
    """Components sharing one cache, one rate gate and one HTTP client."""

    settings: Settings
    fetcher: FetchClient
    cache: ResolutionCache
    gate: RateGate
    resolver: ArtResolver
    enricher: CatalogEnricher


def build_sources(
    settings: Settings,
    fetcher: FetchClient,
    gate: RateGate,
    cache: ResolutionCache,
) -> list[ArtSource]:
    """Return the art sources in priority order: TMDb first, IMDb as fallback."""

    return [
        TMDbArtSource(fetcher, settings.tmdb_api_key, language=settings.tmdb_language),
        IMDbArtSource(fetcher, gate, cache),
    ]


@asynccontextmanager
async def open_runtime(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[Runtime]:
    """Load the cache, wire the pipeline and flush the cache on exit."""

    settings = settings or Settings()
    cache = ResolutionCache.load(
        JsonCacheFile(settings.cache_file), flush_delay=settings.cache_flush_delay
    )
    gate = RateGate(max_per_window=settings.imdb_max_rps)
    async with FetchClient(http_client, timeout=settings.http_timeout) as fetcher:
        sources = build_sources(settings, fetcher, gate, cache)
        resolver = ArtResolver(
            cache, sources, concurrency=settings.poster_concurrency
        )
        LOGGER.info(
            "Art sources: %s (IMDb rate limit %s/s, concurrency %d)",
            ", ".join(source.name for source in sources if source.enabled),
            settings.imdb_max_rps or "unlimited",
            settings.poster_concurrency,
        )
        runtime = Runtime(
            settings=settings,
            fetcher=fetcher,
            cache=cache,
            gate=gate,
            resolver=resolver,
            enricher=CatalogEnricher(fetcher, resolver),
        )
        try:
            yield runtime
        finally:
            await cache.shutdown(settings.shutdown_grace)


__all__ = ["Runtime", "build_sources", "open_runtime"]
