"""Exception hierarchy for network, parsing and cache persistence failures."""

from __future__ import annotations


class TugaMetaError(Exception):
    """Base class for errors raised by :mod:`tuga_meta`."""


class FetchError(TugaMetaError):
    """Raised when an outbound HTTP call cannot produce a usable body."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class FetchTimeoutError(FetchError, TimeoutError):
    """The request deadline elapsed before the response body was read."""


class RemoteError(FetchError):
    """The upstream answered with a non-success status or failed in transit.

    ``status`` is ``None`` for transport failures (DNS, connection reset).
    """

    def __init__(self, url: str, status: int | None, message: str | None = None) -> None:
        if message is None:
            message = f"HTTP {status}" if status is not None else "transport error"
        super().__init__(f"{message} for {url}", url=url)
        self.status = status


class ParseError(FetchError, ValueError):
    """A response body could not be decoded into the expected structure."""


class CacheIOError(TugaMetaError, OSError):
    """The persisted cache file could not be read or written."""


__all__ = [
    "TugaMetaError",
    "FetchError",
    "FetchTimeoutError",
    "RemoteError",
    "ParseError",
    "CacheIOError",
]
