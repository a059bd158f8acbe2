"""Shared utilities for the enrichment pipeline."""

from __future__ import annotations

from .errors import (
    CacheIOError,
    FetchError,
    FetchTimeoutError,
    ParseError,
    RemoteError,
    TugaMetaError,
)
from .text import lower_key
from .validation import require_positive

__all__ = [
    "CacheIOError",
    "FetchError",
    "FetchTimeoutError",
    "ParseError",
    "RemoteError",
    "TugaMetaError",
    "lower_key",
    "require_positive",
]
