"""TMDb search-backed artwork source."""

from __future__ import annotations

import logging
from typing import Optional

from ..common.errors import FetchError
from ..common.text import collapse_whitespace
from ..common.types import (
    ArtOutcome,
    ArtResult,
    SourceMiss,
    TMDBSearchResponse,
    TMDBSearchResult,
)
from ..fetch import FetchClient
from .base import parse_payload

LOGGER = logging.getLogger("tuga_meta.sources.tmdb")

TMDB_SEARCH_URL = "https://api.themoviedb.org/3/search/movie"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"
POSTER_SIZE = "w500"
BACKDROP_SIZE = "original"
DEFAULT_LANGUAGE = "pt-PT"


def tmdb_image_url(path: Optional[str], size: str = BACKDROP_SIZE) -> Optional[str]:
    """Compose a full TMDb image URL for *path* at the *size* tier."""

    if not path:
        return None
    return f"{TMDB_IMAGE_BASE}/{size}{path}"


class TMDbArtSource:
    """Query TMDb in the configured language first, then without a language."""

    name = "tmdb"

    def __init__(
        self,
        fetcher: FetchClient,
        api_key: str | None,
        *,
        language: str | None = DEFAULT_LANGUAGE,
    ) -> None:
        self._fetcher = fetcher
        self._api_key = (api_key or "").strip()
        self._language = language or None

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def search(self, query: str) -> TMDBSearchResult | None:
        """Return the first search result for *query*, or ``None``."""

        params = {"api_key": self._api_key, "query": query}
        attempts = [params]
        if self._language:
            attempts.insert(0, {**params, "language": self._language})
        for attempt in attempts:
            data = await self._fetcher.fetch_json(TMDB_SEARCH_URL, params=attempt)
            response = parse_payload(TMDBSearchResponse, data, TMDB_SEARCH_URL)
            if response.results:
                return response.results[0]
        return None

    async def resolve(self, title: str) -> ArtOutcome:
        if not self.enabled:
            return SourceMiss(self.name, "no API key configured")
        query = collapse_whitespace(title)
        if not query:
            return SourceMiss(self.name, "empty title")
        try:
            hit = await self.search(query)
        except FetchError as exc:
            LOGGER.debug("TMDb search failed for %r: %s", query, exc)
            return SourceMiss(self.name, str(exc))
        if hit is None:
            return SourceMiss(self.name, "no results")
        LOGGER.debug("TMDb matched %r to %s %r", query, hit.id, hit.title)

        poster = tmdb_image_url(hit.poster_path, POSTER_SIZE)
        backdrop = tmdb_image_url(hit.backdrop_path, BACKDROP_SIZE) or tmdb_image_url(
            hit.poster_path, BACKDROP_SIZE
        )
        if not poster and not backdrop:
            return SourceMiss(self.name, "first result has no artwork")
        return ArtResult(poster=poster, backdrop=backdrop)


__all__ = ["TMDbArtSource", "tmdb_image_url"]
