"""Catalog and per-item enrichment built on the art resolver."""

from __future__ import annotations

import logging
from typing import Sequence
from urllib.parse import urlsplit

from .cache import CacheNamespace
from .common.text import lower_key
from .common.types import ID_PREFIX, CatalogEntry, ListingPage, MovieMeta, PlayerLink
from .fetch import FetchClient
from .page import extract_player_links, extract_site_poster, extract_synopsis, parse_html
from .resolver import ArtResolver

LOGGER = logging.getLogger("tuga_meta.enrichment")

CATALOG_PAGE_SIZE = 60


def slug_from_url(page_url: str) -> str:
    """Return the last path segment of *page_url* (``/filmes/foo/`` -> ``foo``)."""

    segments = [segment for segment in urlsplit(page_url).path.split("/") if segment]
    return segments[-1] if segments else ""


class CatalogEnricher:
    """Upgrade scraped listings with resolved artwork, synopsis and player links."""

    def __init__(self, fetcher: FetchClient, resolver: ArtResolver) -> None:
        self._fetcher = fetcher
        self._resolver = resolver

    async def enrich_catalog(self, entries: Sequence[CatalogEntry]) -> list[CatalogEntry]:
        """Return de-duplicated entries (at most one page) with upgraded posters."""

        seen: set[str] = set()
        page: list[CatalogEntry] = []
        for entry in entries:
            if not entry.title.strip() or entry.id in seen:
                continue
            seen.add(entry.id)
            page.append(entry)
            if len(page) >= CATALOG_PAGE_SIZE:
                break

        posters = await self._resolver.best_art_batch([entry.title for entry in page])
        enriched = [
            entry.model_copy(update={"poster": best}) if best else entry
            for entry, best in zip(page, posters)
        ]
        LOGGER.info("CATALOG enriched %d item(s)", len(enriched))
        return enriched

    async def enrich_item(self, listing: ListingPage) -> MovieMeta:
        """Build the full metadata record for one listing page.

        Fetch failures for the listing page itself propagate; artwork failures
        only fall back to the poster the site declares.
        """

        soup = parse_html(await self._fetcher.fetch_text(listing.page_url))
        description = extract_synopsis(soup)
        site_poster = extract_site_poster(soup)
        links = extract_player_links(soup, listing.page_url)
        LOGGER.info("FOUND %d player link(s) on %s", len(links), listing.page_url)

        poster = background = site_poster
        art = await self._resolver.lookup(listing.title)
        if art is not None:
            poster = art.poster or poster
            background = art.backdrop or background
            description = description or art.description
            self._resolver.cache.put(
                CacheNamespace.POSTER, lower_key(listing.title), art.primary
            )

        return MovieMeta(
            id=f"{ID_PREFIX}{slug_from_url(listing.page_url)}",
            name=listing.title,
            poster=poster,
            background=background,
            description=description,
            streams=[PlayerLink(external_url=url) for url in links],
        )


__all__ = ["CATALOG_PAGE_SIZE", "CatalogEnricher", "slug_from_url"]
