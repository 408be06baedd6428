"""
Breadth-First Site Crawler
---------------------------
Walks a site from a seed URL with a FIFO frontier:

    (seed, 0) -> fetch -> extract -> keep? -> enqueue links at depth + 1

A page is kept when the fetch returned 2xx HTML whose extracted text has at
least `min_text_chars` characters and whose content hash has not been seen in
this crawl. Links are followed only from kept pages, only while
depth < max_depth, only over http(s), and, with same_domain_only, only on the
seed's hostname. URLs are compared with their fragment removed and each is
fetched at most once.

Every per-URL failure is logged and skipped - it never ends the crawl.

With concurrency > 1 the next N frontier URLs are fetched together but their
results are still processed in queue order, so the kept pages are the same as
in a one-at-a-time walk.
"""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse

from loguru import logger

from intentspace.crawling.extractor import ContentExtractor
from intentspace.crawling.fetcher import Fetcher, FetchResponse
from intentspace.errors import FetchFailure, NoPagesFetched
from intentspace.schemas import CrawledPage

MIN_TEXT_CHARS = 200
_ALLOWED_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Strip the #fragment - the dedup key for visited URLs."""
    return urldefrag(url)[0]


def resolve_link(
    href: str,
    base_url: str,
    seed_host: Optional[str],
    same_domain_only: bool,
) -> Optional[str]:
    """Resolve `href` against `base_url`; None when it must not be followed."""
    try:
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
        host = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in _ALLOWED_SCHEMES or not host:
        return None
    if same_domain_only and host != seed_host:
        return None
    return normalize_url(absolute)


class Crawler:
    """
    Usage:
        async with Fetcher() as fetcher:
            pages = await Crawler(fetcher).crawl(url, max_pages=30, max_depth=3)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        extractor: Optional[ContentExtractor] = None,
        min_text_chars: int = MIN_TEXT_CHARS,
        concurrency: int = 1,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor or ContentExtractor()
        self.min_text_chars = min_text_chars
        self.concurrency = max(1, concurrency)
        self.fetch_errors: int = 0

    @classmethod
    def from_config(cls, config: dict, fetcher: Fetcher) -> "Crawler":
        return cls(
            fetcher,
            min_text_chars=config.get("min_text_chars", MIN_TEXT_CHARS),
            concurrency=config.get("concurrency", 1),
        )

    async def crawl(
        self,
        seed_url: str,
        max_pages: int = 30,
        max_depth: int = 3,
        same_domain_only: bool = True,
    ) -> list[CrawledPage]:
        """
        Returns kept pages in visit order.

        Raises:
            NoPagesFetched: the frontier ran dry without a single kept page.
        """
        seed = normalize_url(seed_url)
        seed_host = urlparse(seed).hostname
        queue: deque[tuple[str, int]] = deque([(seed, 0)])
        visited: set[str] = set()
        seen_hashes: set[str] = set()
        pages: list[CrawledPage] = []

        logger.info(
            f"[Crawler] Starting at {seed} | max_pages={max_pages} "
            f"max_depth={max_depth} same_domain_only={same_domain_only}"
        )

        while queue and len(pages) < max_pages:
            batch: list[tuple[str, int]] = []
            while queue and len(batch) < self.concurrency:
                url, depth = queue.popleft()
                if url in visited or depth > max_depth:
                    continue
                visited.add(url)
                batch.append((url, depth))
            if not batch:
                continue

            responses = await asyncio.gather(*(self._fetch(url) for url, _ in batch))

            for (url, depth), response in zip(batch, responses):
                if len(pages) >= max_pages:
                    break
                page = self._to_page(url, depth, response)
                if page is None:
                    continue
                if page.content_hash in seen_hashes:
                    logger.debug(f"[Crawler] Duplicate content, skipped: {url}")
                    continue
                seen_hashes.add(page.content_hash)
                pages.append(page)
                logger.info(f"[Crawler] [{len(pages)}/{max_pages}] depth={depth} {url}")

                if depth < max_depth:
                    for link in self._links(page, seed_host, same_domain_only):
                        if link not in visited:
                            queue.append((link, depth + 1))

        logger.info(
            f"[Crawler] Done | kept={len(pages)} visited={len(visited)} "
            f"fetch_errors={self.fetch_errors}"
        )
        if not pages:
            raise NoPagesFetched()
        return pages

    # --- Internals ------------------------------------------------------------

    async def _fetch(self, url: str) -> Optional[FetchResponse]:
        try:
            return await self.fetcher.fetch(url)
        except FetchFailure as exc:
            self.fetch_errors += 1
            logger.warning(f"[Crawler] Fetch failed: {exc}")
            return None

    def _to_page(self, url: str, depth: int, response: Optional[FetchResponse]) -> Optional[CrawledPage]:
        if response is None:
            return None
        if not response.ok:
            logger.debug(f"[Crawler] HTTP {response.status}, skipped: {url}")
            return None
        if not response.is_html:
            logger.debug(f"[Crawler] Not HTML ({response.content_type or 'no content-type'}): {url}")
            return None

        content = self.extractor.extract(response.body, url)
        if len(content.text) < self.min_text_chars:
            logger.debug(f"[Crawler] Thin page ({len(content.text)} chars), skipped: {url}")
            return None

        return CrawledPage(
            url=url,
            depth=depth,
            html=response.body,
            title=content.title,
            text=content.text,
            links=list(content.links),
        )

    @staticmethod
    def _links(page: CrawledPage, seed_host: Optional[str], same_domain_only: bool) -> list[str]:
        found: list[str] = []
        for href in page.links:
            link = resolve_link(href, page.url, seed_host, same_domain_only)
            if link is not None and link not in found:
                found.append(link)
        return found
