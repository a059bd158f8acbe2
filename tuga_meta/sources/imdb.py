"""IMDb artwork source: suggestion endpoint first, then find + title page."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

from ..cache import CacheNamespace, ResolutionCache
from ..common.errors import FetchError
from ..common.text import collapse_whitespace, lower_key, normalize_query
from ..common.types import (
    ArtOutcome,
    ArtResult,
    IMDbSuggestion,
    IMDbSuggestionResponse,
    SourceMiss,
)
from ..fetch import FetchClient
from ..page import extract_og_metadata, parse_html
from ..throttle import IMDB_HOST_CLASS, RateGate
from .base import parse_payload

LOGGER = logging.getLogger("tuga_meta.sources.imdb")

IMDB_BASE_URL = "https://www.imdb.com"
IMDB_REFERER = f"{IMDB_BASE_URL}/"
SUGGESTION_URL = "https://v2.sg.media-imdb.com/suggestion/{first}/{query}.json"

_SIZE_SUFFIX_RE = re.compile(r"(_V1_)[^./]+(\.jpg|\.png)$", re.IGNORECASE)
_TITLE_PATH_RE = re.compile(r"/title/tt\d+")


def upscale_image(url: str) -> str:
    """Drop the size segment of an IMDb image URL (``_V1_UX182_.jpg`` -> ``_V1_.jpg``)."""

    return _SIZE_SUFFIX_RE.sub(r"\1\2", url)


def suggestion_url(query: str) -> str:
    return SUGGESTION_URL.format(
        first=quote(query[0].lower(), safe=""), query=quote(query, safe="")
    )


class IMDbArtSource:
    """Resolve artwork from IMDb, gating every request through the rate gate.

    Stage A asks the suggestion endpoint and upscales the thumbnail it
    returns.  When that yields no image, stage B resolves the title page URL
    (memoised in the ``RESOLVE`` cache namespace) and reads its Open Graph
    tags.
    """

    name = "imdb"

    def __init__(
        self,
        fetcher: FetchClient,
        gate: RateGate,
        cache: ResolutionCache,
    ) -> None:
        self._fetcher = fetcher
        self._gate = gate
        self._cache = cache

    @property
    def enabled(self) -> bool:
        return True

    async def suggest(self, title: str) -> IMDbSuggestion | None:
        """Return the best suggestion for *title*, preferring title (``tt``) ids."""

        query = normalize_query(title)
        if not query:
            return None
        url = suggestion_url(query)
        await self._gate.acquire(IMDB_HOST_CLASS)
        data = await self._fetcher.fetch_json(url)
        suggestions = parse_payload(IMDbSuggestionResponse, data, url).d
        best = next(
            (s for s in suggestions if s.id and s.id.startswith("tt")),
            suggestions[0] if suggestions else None,
        )
        if best is not None:
            LOGGER.debug(
                "IMDb suggestion for %r: %s %r (%s)", query, best.id, best.l, best.y
            )
        return best

    async def find_title_url(self, title: str) -> str | None:
        """Return the canonical title page URL for *title*, caching the answer.

        Failed lookups are cached as ``None`` as well.
        """

        key = lower_key(title)
        cached = self._cache.get(CacheNamespace.RESOLVE, key)
        if cached.hit:
            return cached.value

        query = collapse_whitespace(title)
        if not query:
            self._cache.put(CacheNamespace.RESOLVE, key, None)
            return None

        search_url = f"{IMDB_BASE_URL}/find/?q={quote(query, safe='')}&s=tt"
        await self._gate.acquire(IMDB_HOST_CLASS)
        try:
            html = await self._fetcher.fetch_text(search_url, IMDB_REFERER)
        except FetchError as exc:
            LOGGER.debug("IMDb find failed for %r: %s", query, exc)
            self._cache.put(CacheNamespace.RESOLVE, key, None)
            return None

        title_url: str | None = None
        anchor = parse_html(html).select_one('a[href*="/title/tt"]')
        href = anchor.get("href") if anchor is not None else None
        if isinstance(href, str):
            match = _TITLE_PATH_RE.search(href)
            if match:
                title_url = f"{IMDB_BASE_URL}{match.group(0)}/"
        self._cache.put(CacheNamespace.RESOLVE, key, title_url)
        return title_url

    async def title_details(self, url: str) -> ArtResult:
        """Read the Open Graph image and description of an IMDb title page."""

        await self._gate.acquire(IMDB_HOST_CLASS)
        html = await self._fetcher.fetch_text(url, IMDB_REFERER)
        image, description = extract_og_metadata(parse_html(html))
        return ArtResult(poster=image, backdrop=image, description=description)

    async def resolve(self, title: str) -> ArtOutcome:
        try:
            suggestion = await self.suggest(title)
        except FetchError as exc:
            LOGGER.debug("IMDb suggestion lookup failed for %r: %s", title, exc)
            suggestion = None
        if suggestion is not None and suggestion.i is not None and suggestion.i.imageUrl:
            image = upscale_image(suggestion.i.imageUrl)
            return ArtResult(poster=image, backdrop=image)

        url = await self.find_title_url(title)
        if not url:
            return SourceMiss(self.name, "no title page found")
        try:
            details = await self.title_details(url)
        except FetchError as exc:
            LOGGER.debug("IMDb title page fetch failed for %s: %s", url, exc)
            return SourceMiss(self.name, str(exc))
        if not details.primary:
            return SourceMiss(self.name, "title page declares no og:image")
        return details


__all__ = ["IMDbArtSource", "suggestion_url", "upscale_image"]
