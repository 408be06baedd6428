"""
HTTP Fetcher
-------------
The crawler's only window onto the network. One GET per call, a hard
timeout per request and no retries: a slow or broken server costs at most
one timeout and the URL is dropped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

from intentspace.errors import FetchFailure

DEFAULT_TIMEOUT = 10.0
_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status: int
    content_type: str
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_html(self) -> bool:
        ct = self.content_type.lower()
        return any(t in ct for t in _HTML_TYPES)


class Fetcher:
    """
    Async wrapper around httpx.AsyncClient.

    Usage:
        async with Fetcher(timeout=10) as fetcher:
            response = await fetcher.fetch("https://example.com/")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "IntentSpace/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> "Fetcher":
        return cls(
            timeout=float(config.get("timeout_seconds", DEFAULT_TIMEOUT)),
            user_agent=config.get("user_agent", "IntentSpace/1.0"),
            transport=transport,
        )

    async def __aenter__(self) -> "Fetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResponse:
        """GET `url`. Raises FetchFailure on timeout, network or URL errors."""
        if self._client is None:
            raise RuntimeError("Fetcher used outside of 'async with'")
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchFailure(url, f"timed out after {self.timeout}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchFailure(url, f"{exc.__class__.__name__}: {exc}") from exc

        logger.debug(f"[Fetcher] {resp.status_code} {url}")
        return FetchResponse(
            url=str(resp.url),
            status=resp.status_code,
            content_type=resp.headers.get("content-type", ""),
            body=resp.text,
        )
