"""Cache-first artwork resolution across an ordered list of sources."""

from __future__ import annotations

import logging
from typing import Sequence

from .cache import CacheNamespace, ResolutionCache
from .common.text import lower_key
from .common.types import ArtResult, SourceMiss
from .common.validation import require_positive
from .concurrency import map_limit
from .sources.base import ArtSource

LOGGER = logging.getLogger("tuga_meta.resolver")

DEFAULT_CONCURRENCY = 8


class ArtResolver:
    """Resolve the best poster for titles, preferring earlier sources.

    The source order is fixed at construction.  Every outcome, including
    "nothing found", is written to the ``POSTER`` cache namespace, and cached
    entries are served without touching the network.
    """

    def __init__(
        self,
        cache: ResolutionCache,
        sources: Sequence[ArtSource],
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._cache = cache
        self._sources = tuple(sources)
        self._concurrency = require_positive(concurrency, name="concurrency")

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    @property
    def sources(self) -> tuple[ArtSource, ...]:
        return self._sources

    async def lookup(self, title: str) -> ArtResult | None:
        """Query enabled sources in order and return the first result with art."""

        for source in self._sources:
            if not source.enabled:
                continue
            try:
                outcome = await source.resolve(title)
            except Exception:
                LOGGER.exception("Art source %s raised for %r", source.name, title)
                continue
            if isinstance(outcome, SourceMiss):
                LOGGER.debug(
                    "Art source %s missed %r: %s", outcome.source, title, outcome.reason
                )
                continue
            if outcome.primary:
                LOGGER.debug("Art source %s resolved %r", source.name, title)
                return outcome
        return None

    async def best_art(self, title: str) -> str | None:
        """Return the best image URL for *title*, or ``None`` when none exists."""

        key = lower_key(title)
        cached = self._cache.get(CacheNamespace.POSTER, key)
        if cached.hit:
            return cached.value

        art = await self.lookup(title)
        chosen = art.primary if art is not None else None
        self._cache.put(CacheNamespace.POSTER, key, chosen)
        return chosen

    async def best_art_batch(self, titles: Sequence[str]) -> list[str | None]:
        """Resolve many titles with bounded concurrency, keeping input order."""

        results = await map_limit(titles, self._concurrency, self.best_art)
        LOGGER.info(
            "Resolved art for %d/%d titles",
            sum(1 for url in results if url),
            len(results),
        )
        return results


__all__ = ["ArtResolver", "DEFAULT_CONCURRENCY"]
