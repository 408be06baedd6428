"""Shared fixtures: a fake website served through httpx.MockTransport and a seeded store."""
from __future__ import annotations

from typing import Union

import httpx
import pytest

from intentspace.schemas import AnalysisParams, Edge, Evidence, Intent
from intentspace.storage.json_store import JsonGraphStore

TIMEOUT = "timeout"

PageEntry = Union[str, tuple[int, str, str]]


def html_page(title: str, body: str, links: tuple[str, ...] = ()) -> str:
    anchors = " ".join(f'<a href="{href}">link</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<nav>{anchors}</nav>"
        f"<main><p>{body}</p></main>"
        f"</body></html>"
    )


def words(prefix: str, n: int, start: int = 0) -> str:
    """n distinct tokens: prefix0 prefix1 ... - no two windows share a direction."""
    return " ".join(f"{prefix}{i}" for i in range(start, start + n))


class FakeSite:
    """
    Maps absolute URLs to responses.

    A plain string is served as 200 text/html; a (status, content_type, body)
    tuple is served as given; TIMEOUT raises httpx.ReadTimeout. Anything
    else is a 404.
    """

    def __init__(self, pages: dict[str, PageEntry]) -> None:
        self.pages = pages
        self.requested: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        entry = self.pages.get(url)
        if entry is None:
            return httpx.Response(404, headers={"content-type": "text/html"}, content=b"not found")
        if entry == TIMEOUT:
            raise httpx.ReadTimeout("timed out", request=request)
        if isinstance(entry, str):
            status, content_type, body = 200, "text/html; charset=utf-8", entry
        else:
            status, content_type, body = entry
        return httpx.Response(status, headers={"content-type": content_type}, content=body.encode("utf-8"))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def store(tmp_path) -> JsonGraphStore:
    return JsonGraphStore(tmp_path / "graphs")


@pytest.fixture
def ready_graph(store):
    """A committed analysis with three intents, one edge and evidence."""
    analysis = store.create_analysis("https://site.test/", AnalysisParams())
    intents = [
        Intent(
            analysis_id=analysis.id,
            title="Solar & Panels & Energy",
            summary="Solar panels turn sunlight into electricity.",
            keywords=["solar", "panels", "energy", "sunlight", "roof"],
            size=4,
            source_urls=["https://site.test/solar"],
        ),
        Intent(
            analysis_id=analysis.id,
            title="Pricing & Plans & Billing",
            summary="Monthly plans are billed per seat.",
            keywords=["pricing", "plans", "billing", "seat", "monthly"],
            size=3,
            source_urls=["https://site.test/pricing"],
        ),
        Intent(
            analysis_id=analysis.id,
            title="Support & Contact & Tickets",
            summary="Open a ticket to reach the support team.",
            keywords=["support", "contact", "tickets", "team", "help"],
            size=2,
            source_urls=["https://site.test/support"],
        ),
    ]
    edges = [
        Edge(
            analysis_id=analysis.id,
            source_intent_id=intents[0].id,
            target_intent_id=intents[1].id,
            weight=0.42,
        )
    ]
    evidence = [
        Evidence(
            intent_id=intent.id,
            page_id=f"page-{n}",
            url=url,
            page_title=f"Page {n}",
            snippet=f"Snippet {n} for {intent.title}",
        )
        for n, intent in enumerate(intents)
        for url in intent.source_urls
    ]
    # Four snippets for the first intent - search must cap at three
    evidence += [
        Evidence(
            intent_id=intents[0].id,
            page_id=f"extra-{n}",
            url=f"https://site.test/solar/{n}",
            page_title=f"Extra {n}",
            snippet="More solar text",
        )
        for n in range(3)
    ]
    store.insert_intents(analysis.id, intents)
    store.insert_edges(analysis.id, edges)
    store.insert_evidence(analysis.id, evidence)
    analysis = store.mark_ready(analysis.id, pages_crawled=3, chunks_count=9, intents_count=3)
    return analysis, intents
