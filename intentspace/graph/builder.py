"""
Intent Graph Builder
---------------------
Links each intent to its most similar peers by centroid cosine similarity.

For intent i the other intents are ranked by similarity and the top
min(max_neighbours, N - 1) become candidates. A candidate j turns into an
edge only when i < j and the similarity exceeds `min_similarity`.

The i < j rule is one-sided on purpose: if j ranks i among its top
neighbours but i does not rank j, the pair gets no edge. Each unordered pair
appears at most once, with the lower-indexed intent as source.
"""
from __future__ import annotations

import numpy as np
from loguru import logger

from intentspace.embedding.embedder import cosine_matrix
from intentspace.schemas import Edge, EdgeReason, Intent

MAX_NEIGHBOURS = 4
MIN_SIMILARITY = 0.1


class GraphBuilder:
    def __init__(
        self,
        max_neighbours: int = MAX_NEIGHBOURS,
        min_similarity: float = MIN_SIMILARITY,
    ) -> None:
        self.max_neighbours = max_neighbours
        self.min_similarity = min_similarity

    @classmethod
    def from_config(cls, config: dict) -> "GraphBuilder":
        return cls(
            max_neighbours=config.get("max_neighbours", MAX_NEIGHBOURS),
            min_similarity=config.get("min_similarity", MIN_SIMILARITY),
        )

    def candidate_pairs(self, centroids: np.ndarray) -> list[tuple[int, int, float]]:
        """(i, j, similarity) for every edge the rules above allow."""
        n = len(centroids)
        if n < 2:
            return []

        sims = cosine_matrix(centroids, centroids)
        top_n = min(self.max_neighbours, n - 1)
        pairs: list[tuple[int, int, float]] = []

        for i in range(n):
            others = [(j, float(sims[i, j])) for j in range(n) if j != i]
            others.sort(key=lambda pair: pair[1], reverse=True)
            for j, sim in others[:top_n]:
                if i < j and sim > self.min_similarity:
                    pairs.append((i, j, sim))
        return pairs

    def build(self, intents: list[Intent], centroids: np.ndarray) -> list[Edge]:
        """
        Args:
            intents: Intents in the same order as `centroids`.
            centroids: (N, D) full-dimension centroid vectors.
        """
        if len(intents) != len(centroids):
            raise ValueError(
                f"Mismatch: {len(intents)} intents vs {len(centroids)} centroids"
            )

        edges = [
            Edge(
                analysis_id=intents[i].analysis_id,
                source_intent_id=intents[i].id,
                target_intent_id=intents[j].id,
                weight=sim,
                reason=EdgeReason.SEMANTIC_SIMILARITY,
            )
            for i, j, sim in self.candidate_pairs(centroids)
        ]
        logger.info(f"[GraphBuilder] {len(intents)} intent(s) -> {len(edges)} edge(s)")
        return edges
