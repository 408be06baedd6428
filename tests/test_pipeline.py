from __future__ import annotations

import asyncio

import pytest

from intentspace.config import load_config
from intentspace.errors import InputError, NoPagesFetched, ProcessingFailure
from intentspace.graph.builder import GraphBuilder
from intentspace.pipeline import AnalysisPipeline, validate_url
from intentspace.schemas import AnalysisParams, AnalysisStatus

from conftest import FakeSite, html_page, words

ROOT = "https://site.test/"


def _site() -> FakeSite:
    return FakeSite({
        ROOT: html_page("Home", words("alpha", 60), ("/b", "/c")),
        "https://site.test/b": html_page("Beta", words("beta", 600), ("/d",)),
        "https://site.test/c": html_page("Gamma", words("gamma", 600)),
        "https://site.test/d": html_page("Delta", words("delta", 600)),
    })


def _config(**clustering) -> dict:
    cfg = load_config(None)
    cfg["clustering"].update({"seed": 7, **clustering})
    return cfg


def _run(pipeline: AnalysisPipeline, url: str = ROOT, **params):
    return asyncio.run(pipeline.run(url, AnalysisParams(**params)))


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://site.test/", "https://site.test/"),
        ("  http://site.test/a  ", "http://site.test/a"),
        ("site.test", "https://site.test"),
    ],
)
def test_validate_url(raw, expected):
    assert validate_url(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "ftp://site.test/", "https://"])
def test_validate_url_rejects(raw):
    with pytest.raises(InputError):
        validate_url(raw)


def test_end_to_end_builds_a_graph(store):
    site = _site()
    pipeline = AnalysisPipeline(_config(min_k=2), store, transport=site.transport)
    result = _run(pipeline, max_pages=3, max_depth=1)

    assert result.status == AnalysisStatus.READY
    assert result.pages_crawled == 3
    # Home fits one window; Beta and Gamma need two each
    assert result.chunks == 5
    assert result.intents >= 1
    assert "https://site.test/d" not in site.requested

    analysis = store.get_analysis(result.graph_id)
    assert (analysis.pages_crawled, analysis.chunks_count, analysis.intents_count) == (3, 5, result.intents)

    chunks = store.get_chunks(result.graph_id)
    assert all(0 < len(c.embedding) <= 100 for c in chunks)

    intents = store.get_intents(result.graph_id)
    assert len(intents) == result.intents
    assert all(i.size >= 2 for i in intents)
    assert sum(i.size for i in intents) <= result.chunks

    ids = {i.id for i in intents}
    for edge in store.get_edges(result.graph_id):
        assert edge.source_intent_id in ids and edge.target_intent_id in ids
        assert edge.weight > 0.1

    page_urls = {p.url for p in store.get_pages(result.graph_id)}
    for ev in store.get_evidence(result.graph_id):
        assert ev.url in page_urls
        assert ev.intent_id in ids


def test_every_chunk_alone_gives_no_intents(store):
    # default min_k of 6 caps at the five chunks, so each chunk is its own cluster
    pipeline = AnalysisPipeline(_config(), store, transport=_site().transport)
    result = _run(pipeline, max_pages=3, max_depth=1)

    assert result.status == AnalysisStatus.READY
    assert result.intents == 0
    assert store.get_intents(result.graph_id) == []
    assert store.get_edges(result.graph_id) == []


def test_ready_analysis_is_reused(store):
    site = _site()
    pipeline = AnalysisPipeline(_config(min_k=2), store, transport=site.transport)

    first = _run(pipeline, max_pages=3, max_depth=1)
    fetched = len(site.requested)
    second = _run(pipeline, max_pages=3, max_depth=1)

    assert second.graph_id == first.graph_id
    assert len(site.requested) == fetched

    forced = _run(pipeline, max_pages=3, max_depth=1, force_recompute=True)
    assert forced.graph_id != first.graph_id
    assert len(store.list_analyses()) == 2


def test_different_crawl_bounds_run_a_new_crawl(store):
    site = FakeSite({
        ROOT: html_page("Home", words("alpha", 60), ("/b",)),
        "https://site.test/b": html_page("Beta", words("beta", 80)),
    })
    pipeline = AnalysisPipeline(_config(), store, transport=site.transport)

    shallow = _run(pipeline, max_pages=1, max_depth=0)
    deeper = _run(pipeline, max_pages=5, max_depth=2)

    assert deeper.graph_id != shallow.graph_id
    assert (shallow.pages_crawled, deeper.pages_crawled) == (1, 2)

    again = _run(pipeline, max_pages=5, max_depth=2)
    assert again.graph_id == deeper.graph_id


def test_nothing_fetched_is_recorded(store):
    pipeline = AnalysisPipeline(_config(), store, transport=FakeSite({}).transport)

    with pytest.raises(NoPagesFetched):
        _run(pipeline)

    (analysis,) = store.list_analyses()
    assert analysis.status == AnalysisStatus.ERROR
    assert "No pages could be fetched" in analysis.error_message
    assert store.get_pages(analysis.id) == []


def test_unexpected_failure_is_recorded(store, monkeypatch):
    def boom(self, intents, centroids):
        raise RuntimeError("graph exploded")

    monkeypatch.setattr(GraphBuilder, "build", boom)
    pipeline = AnalysisPipeline(_config(min_k=2), store, transport=_site().transport)

    with pytest.raises(ProcessingFailure) as info:
        _run(pipeline, max_pages=3, max_depth=1)
    assert info.value.message == "graph exploded"

    (analysis,) = store.list_analyses()
    assert analysis.status == AnalysisStatus.ERROR
    assert analysis.error_message == "graph exploded"
    assert store.get_pages(analysis.id) == []
    assert store.get_intents(analysis.id) == []


def test_invalid_url_records_nothing(store):
    pipeline = AnalysisPipeline(_config(), store, transport=_site().transport)
    with pytest.raises(InputError):
        _run(pipeline, url="ftp://site.test/")
    assert store.list_analyses() == []


def test_default_params_follow_config(store):
    cfg = _config()
    cfg["crawl"]["max_pages"] = 12
    params = AnalysisPipeline(cfg, store).default_params()
    assert (params.max_pages, params.max_depth, params.same_domain_only) == (12, 3, True)
