"""Pluggable artwork lookup strategies.

Each source resolves a title to an :class:`~tuga_meta.common.types.ArtResult`
or a :class:`~tuga_meta.common.types.SourceMiss`.  Network and parsing
failures are converted into misses at the source boundary so the resolver
can simply walk its ordered source list.
"""

from __future__ import annotations

from .base import ArtSource, parse_payload
from .imdb import IMDbArtSource
from .tmdb import TMDbArtSource

__all__ = ["ArtSource", "IMDbArtSource", "TMDbArtSource", "parse_payload"]
