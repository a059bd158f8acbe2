"""Type definitions for upstream payloads and enrichment results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, TypeAlias

from pydantic import BaseModel, Field

ID_PREFIX = "tuga:"


class TMDBSearchResult(BaseModel):
    """Subset of a TMDb ``/search/movie`` result."""

    id: Optional[int] = None
    title: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None


class TMDBSearchResponse(BaseModel):
    results: List[TMDBSearchResult] = Field(default_factory=list)


class IMDbSuggestionImage(BaseModel):
    imageUrl: Optional[str] = None


class IMDbSuggestion(BaseModel):
    """One entry of the IMDb suggestion endpoint (``d`` array)."""

    id: Optional[str] = None
    l: Optional[str] = None  # noqa: E741 - upstream field name
    y: Optional[int] = None
    i: Optional[IMDbSuggestionImage] = None


class IMDbSuggestionResponse(BaseModel):
    d: List[IMDbSuggestion] = Field(default_factory=list)


class ArtResult(BaseModel):
    """Artwork produced by a single art source."""

    poster: Optional[str] = None
    backdrop: Optional[str] = None
    description: Optional[str] = None

    @property
    def primary(self) -> Optional[str]:
        """Best single image: the poster, else the backdrop."""

        return self.poster or self.backdrop


@dataclass(frozen=True, slots=True)
class SourceMiss:
    """Signal that a source produced no usable image for a title."""

    source: str
    reason: str


ArtOutcome: TypeAlias = ArtResult | SourceMiss


class CatalogEntry(BaseModel):
    """A scraped catalog listing whose poster may be upgraded."""

    title: str
    slug: str
    poster: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{ID_PREFIX}{self.slug}"


class ListingPage(BaseModel):
    """A single listing to enrich from its detail page."""

    title: str
    page_url: str


class PlayerLink(BaseModel):
    external_url: str
    title: str = "Open Player"


class MovieMeta(BaseModel):
    """Normalized metadata for one movie listing."""

    id: str
    type: Literal["movie"] = "movie"
    name: str
    poster: Optional[str] = None
    background: Optional[str] = None
    description: Optional[str] = None
    streams: List[PlayerLink] = Field(default_factory=list)


__all__ = [
    "ID_PREFIX",
    "TMDBSearchResult",
    "TMDBSearchResponse",
    "IMDbSuggestionImage",
    "IMDbSuggestion",
    "IMDbSuggestionResponse",
    "ArtResult",
    "SourceMiss",
    "ArtOutcome",
    "CatalogEntry",
    "ListingPage",
    "PlayerLink",
    "MovieMeta",
]
