"""Best-effort extraction of synopsis, player links and artwork from HTML pages."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from .common.text import collapse_whitespace, ellipsize

__all__ = [
    "EXCLUDED_PLAYER_HOSTS",
    "extract_og_metadata",
    "extract_player_links",
    "extract_site_poster",
    "extract_synopsis",
    "parse_html",
]

EXCLUDED_PLAYER_HOSTS = frozenset({"www.youtube.com", "youtube.com", "youtu.be"})
SYNOPSIS_LIMIT = 500
_SYNOPSIS_HEADING_RE = re.compile(r"sinopse", re.IGNORECASE)
_MAX_SIBLING_HOPS = 8
_MIN_PARAGRAPH_LENGTH = 80


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    if isinstance(content, str) and content.strip():
        return content.strip()
    return None


def _first_paragraph_text(node: Tag, selector: str) -> str:
    paragraph = node.select_one(selector)
    return paragraph.get_text().strip() if paragraph is not None else ""


def extract_synopsis(soup: BeautifulSoup) -> Optional[str]:
    """Return the localized synopsis of a listing page.

    The canonical location is the first ``<p>`` inside the first ``<div>``
    following an ``<h2>`` mentioning "Sinopse".  Pages that deviate fall back
    to the longest-looking ``.entry-content`` paragraph and finally to the
    description meta tags.
    """

    heading = next(
        (
            h2
            for h2 in soup.find_all("h2")
            if _SYNOPSIS_HEADING_RE.search(h2.get_text().strip())
        ),
        None,
    )
    if heading is not None:
        for hops, node in enumerate(heading.find_next_siblings()):
            if hops >= _MAX_SIBLING_HOPS:
                break
            if node.name == "div":
                text = _first_paragraph_text(node, "p")
                if text:
                    return ellipsize(text, SYNOPSIS_LIMIT)
            if node.name == "p":
                text = node.get_text().strip()
                if text:
                    return ellipsize(text, SYNOPSIS_LIMIT)
            text = _first_paragraph_text(node, "div p")
            if text:
                return ellipsize(text, SYNOPSIS_LIMIT)

    paragraphs = [p.get_text().strip() for p in soup.select(".entry-content p")]
    good = next((text for text in paragraphs if len(text) > _MIN_PARAGRAPH_LENGTH), None)
    if good is None and paragraphs:
        good = paragraphs[0]
    if good:
        return ellipsize(good, SYNOPSIS_LIMIT)

    description = _meta_content(soup, name="description") or _meta_content(
        soup, property="og:description"
    )
    return ellipsize(description, SYNOPSIS_LIMIT) if description else None


def extract_player_links(soup: BeautifulSoup, page_url: str) -> list[str]:
    """Return external player URLs embedded in the page, YouTube excluded."""

    candidates: list[str] = []
    for iframe in soup.find_all("iframe"):
        src = iframe.get("src") or iframe.get("data-src")
        if src:
            candidates.append(src)
    for element in soup.select("[data-src]"):
        candidates.append(element.get("data-src"))

    links: list[str] = []
    seen: set[str] = set()
    for raw in candidates:
        if not isinstance(raw, str) or not raw.strip():
            continue
        url = urljoin(page_url, raw.strip())
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            continue
        if parts.netloc.lower() in EXCLUDED_PLAYER_HOSTS:
            continue
        if url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links


def extract_site_poster(soup: BeautifulSoup) -> Optional[str]:
    """Return the poster the listing site itself declares for the page."""

    og_image = _meta_content(soup, property="og:image")
    if og_image:
        return og_image
    image = soup.select_one("img.wp-post-image")
    if image is not None:
        src = image.get("src")
        if isinstance(src, str) and src.strip():
            return src.strip()
    return None


def extract_og_metadata(soup: BeautifulSoup) -> tuple[Optional[str], Optional[str]]:
    """Return the ``og:image`` and ``og:description`` declared by a page."""

    image = _meta_content(soup, property="og:image")
    description = _meta_content(soup, property="og:description")
    if description:
        description = collapse_whitespace(description)
    return image, description
