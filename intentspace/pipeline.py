"""
Analysis Pipeline
------------------
Runs one website analysis end to end:

    seed URL
        |
        v
    Crawler (BFS, depth/domain bounded, content-hash dedup)
        |
        v
    WordWindowChunker (500-word windows, 50-word overlap)
        |
        v
    TermFrequencyEmbedder (per-analysis vocabulary, cap 5000)
        |
        v
    kmeans + IntentBuilder (k = clamp(6, 40, sqrt(N / 2)))
        |
        v
    GraphBuilder (top-4 cosine neighbours, > 0.1)
        |
        v
    build_evidence -> GraphStore.mark_ready (atomic publish)

Any failure after the analysis record exists is written to it as
status=error before the exception leaves run().
"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Optional
from urllib.parse import urlparse

import httpx
import numpy as np
from loguru import logger

from intentspace.chunking.chunker import WordWindowChunker
from intentspace.clustering.intents import IntentBuilder
from intentspace.clustering.kmeans import choose_k, kmeans
from intentspace.config import DEFAULT_CONFIG
from intentspace.crawling.crawler import Crawler
from intentspace.crawling.fetcher import Fetcher
from intentspace.embedding.embedder import INDEX_VOCABULARY_SIZE, TermFrequencyEmbedder, Vocabulary
from intentspace.errors import InputError, IntentSpaceError, ProcessingFailure
from intentspace.graph.builder import GraphBuilder
from intentspace.graph.evidence import build_evidence
from intentspace.schemas import AnalysisParams, AnalysisResult, CrawledPage, Page
from intentspace.storage.base import GraphStore

TOTAL_STEPS = 6


def validate_url(url: Optional[str]) -> str:
    """Return a normalised absolute http(s) URL or raise InputError."""
    if not url or not url.strip():
        raise InputError("URL is required")
    url = url.strip()
    if "://" not in url:
        url = "https://" + url
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError as exc:
        raise InputError(f"Invalid URL: {url}") from exc
    if parsed.scheme not in ("http", "https") or not host:
        raise InputError(f"Invalid URL: {url}")
    return url


class AnalysisPipeline:
    """
    Usage:
        pipeline = AnalysisPipeline(config, JsonGraphStore("data/graphs"))
        result = await pipeline.run("https://example.com")
    """

    def __init__(
        self,
        config: dict,
        store: GraphStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.transport = transport
        self.crawl_cfg: dict = config.get("crawl", DEFAULT_CONFIG["crawl"])
        self.clustering_cfg: dict = config.get("clustering", DEFAULT_CONFIG["clustering"])
        self.storage_cfg: dict = config.get("storage", DEFAULT_CONFIG["storage"])

    def default_params(self) -> AnalysisParams:
        return AnalysisParams(
            max_pages=self.crawl_cfg.get("max_pages", 30),
            max_depth=self.crawl_cfg.get("max_depth", 3),
            same_domain_only=self.crawl_cfg.get("same_domain_only", True),
        )

    async def run(self, url: Optional[str], params: Optional[AnalysisParams] = None) -> AnalysisResult:
        """
        Raises:
            InputError: invalid URL - nothing is recorded.
            NoPagesFetched: the crawl kept no page - recorded as status=error.
            ProcessingFailure: any other failure - recorded as status=error,
                carrying the underlying exception's message.
        """
        url = validate_url(url)
        params = params or self.default_params()

        if not params.force_recompute:
            cached = self.store.find_ready_analysis(url, params)
            if cached is not None:
                logger.info(f"[Pipeline] Reusing analysis {cached.id} for {url}")
                return AnalysisResult.from_analysis(cached)

        analysis = self.store.create_analysis(url, params)
        logger.info("=" * 60)
        logger.info(f"[Pipeline] Analysis {analysis.id} | {url}")
        logger.info("=" * 60)

        try:
            logger.info(f"[Pipeline] Step 1 / {TOTAL_STEPS} - Crawling")
            async with Fetcher.from_config(self.crawl_cfg, transport=self.transport) as fetcher:
                crawler = Crawler.from_config(self.crawl_cfg, fetcher)
                crawled = await crawler.crawl(
                    url,
                    max_pages=params.max_pages,
                    max_depth=params.max_depth,
                    same_domain_only=params.same_domain_only,
                )

            # CPU-bound stages run off the event loop
            loop = asyncio.get_running_loop()
            pages_n, chunks_n, intents_n = await loop.run_in_executor(
                None, partial(self._build_graph, analysis.id, crawled)
            )
            analysis = self.store.mark_ready(analysis.id, pages_n, chunks_n, intents_n)

        except asyncio.CancelledError:
            self.store.mark_error(analysis.id, "Analysis cancelled")
            raise
        except IntentSpaceError as exc:
            self.store.mark_error(analysis.id, exc.message)
            raise
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.exception(f"[Pipeline] Processing error: {message}")
            self.store.mark_error(analysis.id, message)
            raise ProcessingFailure(message) from exc

        logger.info(
            f"[Pipeline] Complete | pages={pages_n} chunks={chunks_n} intents={intents_n}"
        )
        return AnalysisResult.from_analysis(analysis)

    # --- Stages ---------------------------------------------------------------

    def _build_graph(self, analysis_id: str, crawled: list[CrawledPage]) -> tuple[int, int, int]:
        """Steps 2-6. Stages every entity in the store and returns the counts."""
        stored_dims = self.storage_cfg.get("embedding_dims", 100)

        # -- Step 2: Pages + chunks ----------------------------------------------
        logger.info(f"[Pipeline] Step 2 / {TOTAL_STEPS} - Chunking {len(crawled)} page(s)")
        pages = [
            Page(analysis_id=analysis_id, url=c.url, title=c.title, extracted_text=c.text)
            for c in crawled
        ]
        self.store.insert_pages(analysis_id, pages)

        chunker = WordWindowChunker.from_config(self.config.get("chunking", {}))
        chunks = chunker.chunk_pages(pages)

        # -- Step 3: Embed ---------------------------------------------------------
        max_vocab = self.config.get("embedding", {}).get("max_vocabulary", INDEX_VOCABULARY_SIZE)
        vocabulary = Vocabulary.build((c.text for c in chunks), max_vocab)
        logger.info(
            f"[Pipeline] Step 3 / {TOTAL_STEPS} - Embedding {len(chunks)} chunk(s) "
            f"| vocabulary={len(vocabulary)}"
        )
        embeddings = TermFrequencyEmbedder(vocabulary).embed_batch([c.text for c in chunks])
        chunks = [
            c.model_copy(update={"embedding": vec[:stored_dims].tolist()})
            for c, vec in zip(chunks, embeddings)
        ]
        self.store.insert_chunks(analysis_id, chunks)

        # -- Step 4: Cluster -------------------------------------------------------
        rng = np.random.default_rng(self.clustering_cfg.get("seed"))
        k = choose_k(
            len(chunks),
            self.clustering_cfg.get("min_k", 6),
            self.clustering_cfg.get("max_k", 40),
        )
        logger.info(f"[Pipeline] Step 4 / {TOTAL_STEPS} - Clustering into {k} group(s)")
        result = kmeans(embeddings, k, self.clustering_cfg.get("max_iter", 20), rng=rng)

        builder = IntentBuilder.from_config(
            analysis_id, self.clustering_cfg, stored_dims=stored_dims, rng=rng
        )
        page_urls = {p.id: p.url for p in pages}
        built = builder.build(chunks, embeddings, result.assignments, page_urls)
        intents = [b.intent for b in built]
        self.store.insert_intents(analysis_id, intents)

        # -- Step 5: Edges ---------------------------------------------------------
        logger.info(f"[Pipeline] Step 5 / {TOTAL_STEPS} - Linking {len(intents)} intent(s)")
        centroids = (
            np.vstack([b.centroid for b in built])
            if built
            else np.empty((0, embeddings.shape[1]))
        )
        edges = GraphBuilder.from_config(self.config.get("graph", {})).build(intents, centroids)
        self.store.insert_edges(analysis_id, edges)

        # -- Step 6: Evidence ------------------------------------------------------
        logger.info(f"[Pipeline] Step 6 / {TOTAL_STEPS} - Collecting evidence")
        evidence_cfg = self.config.get("evidence", {})
        evidence = build_evidence(
            intents,
            pages,
            pages_per_intent=evidence_cfg.get("pages_per_intent", 3),
            snippet_chars=evidence_cfg.get("snippet_chars", 200),
        )
        self.store.insert_evidence(analysis_id, evidence)

        return len(pages), len(chunks), len(intents)
