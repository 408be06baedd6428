"""
IntentSpace - Web API Server
-----------------------------
FastAPI server exposing the analysis pipeline and the graph / search reads.

Endpoints:
  GET  /api/health                           -> store status
  POST /api/analyze                          -> crawl + cluster a site
  GET  /api/graph/{graph_id}                 -> analysis, nodes and edges
  GET  /api/graph/{graph_id}/nodes/{node_id} -> one intent with evidence
  POST /api/search                           -> ranked intents for a query

Every failure is answered with {"error": "..."} and a 4xx/5xx status.

Run from the project root:
    uvicorn app.server:app --reload --port 8000

INTENTSPACE_CONFIG selects the config file (default config/config.yaml).
"""
from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from datetime import datetime
from functools import partial
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from intentspace.config import load_config
from intentspace.errors import IntentSpaceError
from intentspace.pipeline import AnalysisPipeline
from intentspace.schemas import (
    AnalysisParams,
    AnalysisResult,
    AnalysisStatus,
    Edge,
    Evidence,
    Position,
    SearchHit,
)
from intentspace.search.engine import SearchEngine
from intentspace.storage.json_store import JsonGraphStore
from intentspace.utils.logger import configure_logging

load_dotenv()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------

_store: Optional[JsonGraphStore] = None
_pipeline: Optional[AnalysisPipeline] = None
_search: Optional[SearchEngine] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store, pipeline and search engine once at startup."""
    global _store, _pipeline, _search
    cfg = load_config(os.getenv("INTENTSPACE_CONFIG", "config/config.yaml"))
    configure_logging(cfg.get("logging", {}))

    _store = JsonGraphStore.from_config(cfg.get("storage", {}))
    _pipeline = AnalysisPipeline(cfg, _store)
    _search = SearchEngine.from_config(cfg.get("search", {}), _store)
    logger.info(f"[Server] Ready | graphs_dir={_store.root_dir}")
    yield
    _store = _pipeline = _search = None
    logger.info("[Server] Services unloaded.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="IntentSpace API",
    description="Website intent graphs: crawl, cluster, link and search",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntentSpaceError)
async def _intentspace_error(request: Request, exc: IntentSpaceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid request')}" if field else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[API] Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    url: str
    max_pages: int = Field(default=30, ge=1, le=500)
    max_depth: int = Field(default=3, ge=0, le=10)
    same_domain_only: bool = True
    force_recompute: bool = False


class SearchRequest(BaseModel):
    graph_id: str
    query: str = ""
    top_k: int = Field(default=5, ge=1, le=50)


class NodeModel(BaseModel):
    id: str
    title: str
    summary: str
    keywords: list[str]
    size: int
    source_urls: list[str]
    position: Position
    color_group: str


class GraphResponse(BaseModel):
    graph_id: str
    created_at: datetime
    source_url: str
    status: AnalysisStatus
    pages_crawled: int
    chunks_count: int
    intents_count: int
    nodes: list[NodeModel]
    edges: list[Edge]


class NodeDetailResponse(BaseModel):
    node_id: str
    title: str
    summary: str
    keywords: list[str]
    size: int
    source_urls: list[str]
    evidence: list[Evidence]


class SearchResponse(BaseModel):
    results: list[SearchHit]


def _services() -> tuple[JsonGraphStore, AnalysisPipeline, SearchEngine]:
    if _store is None or _pipeline is None or _search is None:
        raise HTTPException(status_code=503, detail="Services not ready")
    return _store, _pipeline, _search


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    store, _, _ = _services()
    return {"status": "ok", "graphs": len(store.list_analyses())}


@app.post("/api/analyze", response_model=AnalysisResult)
async def analyze(request: AnalyzeRequest):
    """
    Run the full pipeline for one seed URL and return the graph id and counts.

    The request stays open until the analysis is ready or has failed.
    """
    _, pipeline, _ = _services()
    logger.info(f"[API] Analyze | {request.url} | max_pages={request.max_pages} max_depth={request.max_depth}")
    params = AnalysisParams(
        max_pages=request.max_pages,
        max_depth=request.max_depth,
        same_domain_only=request.same_domain_only,
        force_recompute=request.force_recompute,
    )
    return await pipeline.run(request.url, params)


@app.get("/api/graph/{graph_id}", response_model=GraphResponse)
async def get_graph(graph_id: str):
    store, _, _ = _services()
    loop = asyncio.get_running_loop()
    analysis = await loop.run_in_executor(None, store.get_analysis, graph_id)
    intents = await loop.run_in_executor(None, store.get_intents, graph_id)
    edges = await loop.run_in_executor(None, store.get_edges, graph_id)

    return GraphResponse(
        graph_id=analysis.id,
        created_at=analysis.created_at,
        source_url=analysis.source_url,
        status=analysis.status,
        pages_crawled=analysis.pages_crawled,
        chunks_count=analysis.chunks_count,
        intents_count=analysis.intents_count,
        nodes=[NodeModel(**i.model_dump(exclude={"analysis_id", "centroid_embedding"})) for i in intents],
        edges=edges,
    )


@app.get("/api/graph/{graph_id}/nodes/{node_id}", response_model=NodeDetailResponse)
async def get_node(graph_id: str, node_id: str):
    store, _, _ = _services()
    loop = asyncio.get_running_loop()
    intent = await loop.run_in_executor(None, store.get_intent, graph_id, node_id)
    evidence = await loop.run_in_executor(
        None, partial(store.get_evidence, graph_id, intent_id=node_id)
    )
    return NodeDetailResponse(
        node_id=intent.id,
        title=intent.title,
        summary=intent.summary,
        keywords=intent.keywords,
        size=intent.size,
        source_urls=intent.source_urls,
        evidence=evidence,
    )


@app.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest):
    """Blocking search runs in the default thread-pool executor."""
    _, _, engine = _services()
    logger.info(f"[API] Search | graph={request.graph_id} query={request.query[:80]!r}")
    loop = asyncio.get_running_loop()
    hits = await loop.run_in_executor(
        None, partial(engine.search, request.graph_id, request.query, request.top_k)
    )
    return SearchResponse(results=hits)
