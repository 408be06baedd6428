"""Abstract storage contract for analyses and their graph entities."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from intentspace.errors import LookupFailure
from intentspace.schemas import (
    Analysis,
    AnalysisParams,
    AnalysisStatus,
    Chunk,
    Edge,
    Evidence,
    Intent,
    Page,
)


class GraphStore(ABC):
    """
    Every store partitions data by analysis id and guarantees that the
    entities of one analysis become visible to readers all at once.

    Writers call insert_*() while the analysis is running; nothing written
    that way is readable until mark_ready() commits it. mark_error() throws
    the staged entities away. Readers only ever see committed graphs.
    """

    # --- Analysis lifecycle ---------------------------------------------------

    @abstractmethod
    def create_analysis(self, source_url: str, params: AnalysisParams) -> Analysis:
        """Register a new analysis with status RUNNING."""
        ...

    @abstractmethod
    def mark_ready(
        self,
        analysis_id: str,
        pages_crawled: int,
        chunks_count: int,
        intents_count: int,
    ) -> Analysis:
        """Publish the staged entities, then flip the status to READY."""
        ...

    @abstractmethod
    def mark_error(self, analysis_id: str, message: str) -> Analysis:
        """Discard staged entities and flip the status to ERROR."""
        ...

    # --- Staged writes --------------------------------------------------------

    @abstractmethod
    def insert_pages(self, analysis_id: str, pages: list[Page]) -> None: ...

    @abstractmethod
    def insert_chunks(self, analysis_id: str, chunks: list[Chunk]) -> None: ...

    @abstractmethod
    def insert_intents(self, analysis_id: str, intents: list[Intent]) -> None: ...

    @abstractmethod
    def insert_edges(self, analysis_id: str, edges: list[Edge]) -> None: ...

    @abstractmethod
    def insert_evidence(self, analysis_id: str, evidence: list[Evidence]) -> None: ...

    # --- Reads (committed data only) ------------------------------------------

    @abstractmethod
    def get_analysis(self, analysis_id: str) -> Analysis:
        """Raises LookupFailure for an unknown id."""
        ...

    @abstractmethod
    def list_analyses(self) -> list[Analysis]: ...

    @abstractmethod
    def get_pages(self, analysis_id: str) -> list[Page]: ...

    @abstractmethod
    def get_chunks(self, analysis_id: str) -> list[Chunk]: ...

    @abstractmethod
    def get_intents(self, analysis_id: str) -> list[Intent]: ...

    @abstractmethod
    def get_edges(self, analysis_id: str) -> list[Edge]: ...

    @abstractmethod
    def get_evidence(self, analysis_id: str, intent_id: Optional[str] = None) -> list[Evidence]: ...

    # --- Derived lookups ------------------------------------------------------

    def get_intent(self, analysis_id: str, intent_id: str) -> Intent:
        for intent in self.get_intents(analysis_id):
            if intent.id == intent_id:
                return intent
        raise LookupFailure(f"Intent not found: {intent_id}")

    def find_ready_analysis(self, source_url: str, params: AnalysisParams) -> Optional[Analysis]:
        """
        Most recent READY analysis of `source_url` crawled with the same
        bounds as `params`, if any. force_recompute is not part of the match.
        """
        wanted = params.crawl_bounds()
        ready = [
            a for a in self.list_analyses()
            if a.source_url == source_url
            and a.status == AnalysisStatus.READY
            and a.params.crawl_bounds() == wanted
        ]
        return max(ready, key=lambda a: a.created_at) if ready else None
