"""Text normalization helpers shared by the art sources and page extraction."""

from __future__ import annotations

import re
import unicodedata

__all__ = ["collapse_whitespace", "ellipsize", "lower_key", "normalize_query"]

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s-]")


def collapse_whitespace(text: str | None) -> str:
    """Return *text* with runs of whitespace folded into single spaces."""

    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def lower_key(title: str | None) -> str:
    """Return the cache key for *title*: trimmed and lowercased."""

    return (title or "").strip().lower()


def normalize_query(title: str | None) -> str:
    """Strip diacritics and punctuation so *title* is safe for suggestion lookups."""

    if not title:
        return ""
    decomposed = unicodedata.normalize("NFKD", title)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return collapse_whitespace(_PUNCTUATION_RE.sub(" ", without_marks))


def ellipsize(text: str | None, limit: int = 500) -> str | None:
    """Collapse whitespace and truncate to *limit* characters with an ellipsis."""

    if not text:
        return text
    collapsed = collapse_whitespace(text)
    if len(collapsed) > limit:
        return collapsed[: limit - 1].rstrip() + "…"
    return collapsed
