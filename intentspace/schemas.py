"""
Core Pydantic schemas for the IntentSpace analysis pipeline.

Every stage (crawl, chunk, cluster, graph, search) exchanges these models so
each intent can be traced back to the chunks and pages it was derived from.
"""
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


def _new_id() -> str:
    return str(uuid.uuid4())


# --- Enumerations ------------------------------------------------------------

class AnalysisStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    READY = "ready"
    ERROR = "error"


class EdgeReason(str, Enum):
    SEMANTIC_SIMILARITY = "semantic_similarity"
    SHARED_PAGES = "shared_pages"       # declared, never produced by GraphBuilder


# Palette cycled over intents in creation order
COLOR_GROUPS = ("cyan", "purple", "blue", "teal", "pink", "gold", "green")


# --- Analysis -----------------------------------------------------------------

class AnalysisParams(BaseModel):
    max_pages: int = Field(default=30, ge=1)
    max_depth: int = Field(default=3, ge=0)
    same_domain_only: bool = True
    force_recompute: bool = False

    def crawl_bounds(self) -> tuple[int, int, bool]:
        """The settings that shape a crawl's result."""
        return self.max_pages, self.max_depth, self.same_domain_only


class Analysis(BaseModel):
    """
    Aggregate root for one crawl-and-cluster run.

    Status moves running -> ready | error exactly once; the counts are only
    meaningful once the status is READY.
    """

    id: str = Field(default_factory=_new_id)
    source_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: AnalysisStatus = AnalysisStatus.RUNNING
    params: AnalysisParams = Field(default_factory=AnalysisParams)
    pages_crawled: int = 0
    chunks_count: int = 0
    intents_count: int = 0
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (AnalysisStatus.READY, AnalysisStatus.ERROR)


# --- Pipeline entities --------------------------------------------------------

class CrawledPage(BaseModel):
    """A page as fetched by the crawler, before it is stored."""

    url: str
    depth: int
    html: str
    title: str
    text: str
    links: list[str] = Field(default_factory=list)   # raw anchor hrefs

    @computed_field
    @property
    def content_hash(self) -> str:
        """SHA-256 of the extracted text - used for exact-duplicate detection."""
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()


class Page(BaseModel):
    id: str = Field(default_factory=_new_id)
    analysis_id: str
    url: str
    title: str
    extracted_text: str

    @computed_field
    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.extracted_text.encode("utf-8")).hexdigest()


class Chunk(BaseModel):
    """A word window of a Page - the atomic unit that gets embedded."""

    id: str = Field(default_factory=_new_id)
    analysis_id: str
    page_id: str                         # Parent Page.id
    chunk_index: int                     # Position within the page
    text: str
    embedding: list[float] = Field(default_factory=list)


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Intent(BaseModel):
    """A cluster of related chunks, presented as one node of the graph."""

    id: str = Field(default_factory=_new_id)
    analysis_id: str
    title: str
    summary: str
    keywords: list[str] = Field(default_factory=list)
    centroid_embedding: list[float] = Field(default_factory=list)
    size: int                            # Number of member chunks
    source_urls: list[str] = Field(default_factory=list)
    position: Position = Field(default_factory=Position)
    color_group: str = COLOR_GROUPS[0]

    @property
    def search_text(self) -> str:
        """Text the search engine embeds for this intent."""
        return f"{self.title} {self.summary} {' '.join(self.keywords)}"


class Edge(BaseModel):
    id: str = Field(default_factory=_new_id)
    analysis_id: str
    source_intent_id: str
    target_intent_id: str
    weight: float
    reason: EdgeReason = EdgeReason.SEMANTIC_SIMILARITY


class Evidence(BaseModel):
    id: str = Field(default_factory=_new_id)
    intent_id: str
    page_id: str
    url: str
    page_title: str
    snippet: str


# --- Results ------------------------------------------------------------------

class AnalysisResult(BaseModel):
    """Response of an analysis request."""

    graph_id: str
    pages_crawled: int
    chunks: int
    intents: int
    status: AnalysisStatus

    @classmethod
    def from_analysis(cls, analysis: Analysis) -> "AnalysisResult":
        return cls(
            graph_id=analysis.id,
            pages_crawled=analysis.pages_crawled,
            chunks=analysis.chunks_count,
            intents=analysis.intents_count,
            status=analysis.status,
        )


class EvidenceSnippet(BaseModel):
    url: str
    page_title: str
    snippet: str


class SearchHit(BaseModel):
    node_id: str
    score: float
    title: str
    summary: str
    keywords: list[str] = Field(default_factory=list)
    evidence: list[EvidenceSnippet] = Field(default_factory=list)
