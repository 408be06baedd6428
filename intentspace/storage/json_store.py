"""
JSON File Graph Store
----------------------
One directory per analysis under `root_dir`:

    data/graphs/<analysis_id>/
        analysis.json           status record, replaced atomically
        staging/                insert_*() targets while the run is going
            pages.json  chunks.json  intents.json  edges.json  evidence.json
        graph/                  committed copy of staging/, read by everyone

mark_ready() renames staging/ to graph/ in one os.replace and only then
rewrites analysis.json, so a reader that sees status "ready" always finds the
complete graph, and a reader that gets in earlier finds no graph at all.
"""
from __future__ import annotations

import os
import re
import shutil
import threading
from pathlib import Path
from typing import Optional, TypeVar

from loguru import logger
from pydantic import BaseModel

from intentspace.errors import LookupFailure, ProcessingFailure
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
from intentspace.storage.base import GraphStore
from intentspace.utils.helpers import ensure_dirs, load_json, save_json

GRAPHS_DIR = Path("data/graphs")
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")

M = TypeVar("M", bound=BaseModel)


class JsonGraphStore(GraphStore):
    def __init__(self, root_dir: str | Path = GRAPHS_DIR) -> None:
        self.root_dir = Path(root_dir)
        ensure_dirs(self.root_dir)
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "JsonGraphStore":
        return cls(config.get("graphs_dir", GRAPHS_DIR))

    # --- Paths ----------------------------------------------------------------

    def _analysis_dir(self, analysis_id: str) -> Path:
        if not _SAFE_ID.match(analysis_id or ""):
            raise LookupFailure(f"Analysis not found: {analysis_id!r}")
        return self.root_dir / analysis_id

    def _staging_dir(self, analysis_id: str) -> Path:
        return self._analysis_dir(analysis_id) / "staging"

    def _graph_dir(self, analysis_id: str) -> Path:
        return self._analysis_dir(analysis_id) / "graph"

    # --- Analysis lifecycle ---------------------------------------------------

    def create_analysis(self, source_url: str, params: AnalysisParams) -> Analysis:
        analysis = Analysis(source_url=source_url, params=params)
        ensure_dirs(self._staging_dir(analysis.id))
        self._write_analysis(analysis)
        logger.info(f"[Store] Analysis {analysis.id} created for {source_url}")
        return analysis

    def mark_ready(
        self,
        analysis_id: str,
        pages_crawled: int,
        chunks_count: int,
        intents_count: int,
    ) -> Analysis:
        with self._lock:
            analysis = self._running(analysis_id)
            staging = self._staging_dir(analysis_id)
            ensure_dirs(staging)
            os.replace(staging, self._graph_dir(analysis_id))

            analysis.status = AnalysisStatus.READY
            analysis.pages_crawled = pages_crawled
            analysis.chunks_count = chunks_count
            analysis.intents_count = intents_count
            self._write_analysis(analysis)

        logger.info(
            f"[Store] Analysis {analysis_id} ready | pages={pages_crawled} "
            f"chunks={chunks_count} intents={intents_count}"
        )
        return analysis

    def mark_error(self, analysis_id: str, message: str) -> Analysis:
        with self._lock:
            analysis = self._running(analysis_id)
            shutil.rmtree(self._staging_dir(analysis_id), ignore_errors=True)
            analysis.status = AnalysisStatus.ERROR
            analysis.error_message = message
            self._write_analysis(analysis)

        logger.warning(f"[Store] Analysis {analysis_id} failed: {message}")
        return analysis

    def _running(self, analysis_id: str) -> Analysis:
        analysis = self.get_analysis(analysis_id)
        if analysis.is_terminal:
            raise ProcessingFailure(
                f"Analysis {analysis_id} is already {analysis.status.value}"
            )
        return analysis

    def _write_analysis(self, analysis: Analysis) -> None:
        save_json(analysis.model_dump(mode="json"), self._analysis_dir(analysis.id) / "analysis.json")

    # --- Staged writes --------------------------------------------------------

    def insert_pages(self, analysis_id: str, pages: list[Page]) -> None:
        self._stage(analysis_id, "pages", pages)

    def insert_chunks(self, analysis_id: str, chunks: list[Chunk]) -> None:
        self._stage(analysis_id, "chunks", chunks)

    def insert_intents(self, analysis_id: str, intents: list[Intent]) -> None:
        self._stage(analysis_id, "intents", intents)

    def insert_edges(self, analysis_id: str, edges: list[Edge]) -> None:
        self._stage(analysis_id, "edges", edges)

    def insert_evidence(self, analysis_id: str, evidence: list[Evidence]) -> None:
        self._stage(analysis_id, "evidence", evidence)

    def _stage(self, analysis_id: str, name: str, records: list[BaseModel]) -> None:
        path = self._staging_dir(analysis_id) / f"{name}.json"
        existing = load_json(path, default=[])
        existing.extend(r.model_dump(mode="json") for r in records)
        save_json(existing, path)
        logger.debug(f"[Store] Staged {len(records)} {name} -> {path}")

    # --- Reads ----------------------------------------------------------------

    def get_analysis(self, analysis_id: str) -> Analysis:
        path = self._analysis_dir(analysis_id) / "analysis.json"
        if not path.exists():
            raise LookupFailure(f"Analysis not found: {analysis_id}")
        return Analysis.model_validate(load_json(path))

    def list_analyses(self) -> list[Analysis]:
        analyses = []
        for path in sorted(self.root_dir.glob("*/analysis.json")):
            try:
                analyses.append(Analysis.model_validate(load_json(path)))
            except Exception as exc:
                logger.warning(f"[Store] Skipping {path}: {exc}")
        return sorted(analyses, key=lambda a: a.created_at)

    def get_pages(self, analysis_id: str) -> list[Page]:
        return self._read(analysis_id, "pages", Page)

    def get_chunks(self, analysis_id: str) -> list[Chunk]:
        return self._read(analysis_id, "chunks", Chunk)

    def get_intents(self, analysis_id: str) -> list[Intent]:
        return self._read(analysis_id, "intents", Intent)

    def get_edges(self, analysis_id: str) -> list[Edge]:
        return self._read(analysis_id, "edges", Edge)

    def get_evidence(self, analysis_id: str, intent_id: Optional[str] = None) -> list[Evidence]:
        evidence = self._read(analysis_id, "evidence", Evidence)
        if intent_id is not None:
            evidence = [e for e in evidence if e.intent_id == intent_id]
        return evidence

    def _read(self, analysis_id: str, name: str, model: type[M]) -> list[M]:
        if self.get_analysis(analysis_id).status != AnalysisStatus.READY:
            return []
        path = self._graph_dir(analysis_id) / f"{name}.json"
        return [model.model_validate(raw) for raw in load_json(path, default=[])]
