"""Timeout-bounded HTTP retrieval with fixed identity headers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .common.errors import FetchTimeoutError, ParseError, RemoteError

LOGGER = logging.getLogger("tuga_meta.fetch")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124 Safari/537.36"
)
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
JSON_ACCEPT = "application/json,*/*"
DEFAULT_TIMEOUT = 15.0


class FetchClient:
    """Thin wrapper over :class:`httpx.AsyncClient` used by every art source.

    Each call runs under a hard deadline covering connect, headers and body;
    when it elapses the in-flight request is cancelled and
    :class:`FetchTimeoutError` is raised.  No retries are attempted here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = float(timeout)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True, timeout=self._timeout
        )

    @property
    def timeout(self) -> float:
        return self._timeout

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""

        if self._owns_client:
            await self._client.aclose()

    async def fetch_text(
        self,
        url: str,
        referer: str | None = None,
        accept: str = HTML_ACCEPT,
    ) -> str:
        """Return the decoded body of *url*."""

        headers = {"user-agent": USER_AGENT, "accept": accept}
        if referer:
            headers["referer"] = referer
        response = await self._get(url, headers=headers)
        LOGGER.info("FETCH OK %s (%d bytes)", url, len(response.content))
        return response.text

    async def fetch_json(
        self, url: str, params: Mapping[str, str] | None = None
    ) -> Any:
        """Return the parsed JSON body of *url*."""

        headers = {"user-agent": USER_AGENT, "accept": JSON_ACCEPT}
        response = await self._get(url, headers=headers, params=params)
        try:
            data = response.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON returned by {url}", url=url) from exc
        LOGGER.info("FETCH OK %s (%d bytes)", url, len(response.content))
        return data

    async def _get(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.get(
                    url,
                    headers=dict(headers),
                    params=dict(params) if params else None,
                    follow_redirects=True,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            LOGGER.warning("FETCH TIMEOUT %s after %gs", url, self._timeout)
            raise FetchTimeoutError(
                f"Timed out after {self._timeout:g}s fetching {url}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning("FETCH FAIL %s (%s: %s)", url, type(exc).__name__, exc)
            raise RemoteError(url, None, f"{type(exc).__name__}: {exc}") from exc
        if not response.is_success:
            LOGGER.info("FETCH HTTP %d %s", response.status_code, url)
            raise RemoteError(url, response.status_code)
        return response


__all__ = [
    "DEFAULT_TIMEOUT",
    "FetchClient",
    "HTML_ACCEPT",
    "JSON_ACCEPT",
    "USER_AGENT",
]
