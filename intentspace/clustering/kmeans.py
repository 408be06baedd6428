"""
Cosine k-means
---------------
Plain Lloyd iterations with cosine similarity as the affinity:

  1. Seed k centroids with k distinct rows drawn without replacement.
  2. Assign each row to its most similar centroid (lowest index wins ties),
     then move every centroid to the mean of its members. A centroid with
     no members keeps its previous position.
  3. Stop when an assignment repeats the previous one, or after max_iter.

Randomness only enters through the numpy Generator passed in, so a fixed
seed (or explicit initial centroids) gives a reproducible partition.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from intentspace.embedding.embedder import cosine_matrix

MIN_K = 6
MAX_K = 40
MAX_ITER = 20


@dataclass
class KMeansResult:
    assignments: np.ndarray     # (N,) cluster index per row
    centroids: np.ndarray       # (k, D)
    iterations: int
    converged: bool

    @property
    def k(self) -> int:
        return len(self.centroids)


def choose_k(n_points: int, min_k: int = MIN_K, max_k: int = MAX_K) -> int:
    """clamp(min_k, max_k, floor(sqrt(N / 2))), never more than N."""
    if n_points <= 0:
        return 0
    k = max(min_k, min(max_k, math.floor(math.sqrt(n_points / 2))))
    return min(k, n_points)


def assign(embeddings: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the most cosine-similar centroid for every row."""
    sims = cosine_matrix(embeddings, centroids)
    return np.argmax(sims, axis=1)


def kmeans(
    embeddings: np.ndarray,
    k: int,
    max_iter: int = MAX_ITER,
    rng: Optional[np.random.Generator] = None,
    initial_centroids: Optional[np.ndarray] = None,
) -> KMeansResult:
    """
    Partition the rows of `embeddings` into at most k clusters.

    Args:
        embeddings: (N, D) matrix.
        k: Target cluster count; capped at N.
        max_iter: Upper bound on assignment rounds.
        rng: Source of the initial sample. Ignored when initial_centroids
            is given.
        initial_centroids: Explicit (k, D) starting centroids.
    """
    n = len(embeddings)
    if initial_centroids is not None:
        centroids = np.array(initial_centroids, dtype=np.float64, copy=True)
    else:
        k = min(k, n)
        if n == 0 or k <= 0:
            dims = embeddings.shape[1] if embeddings.ndim == 2 else 0
            return KMeansResult(
                assignments=np.empty(0, dtype=np.int64),
                centroids=np.empty((0, dims)),
                iterations=0,
                converged=True,
            )
        rng = rng if rng is not None else np.random.default_rng()
        seeds = rng.choice(n, size=k, replace=False)
        centroids = np.array(embeddings[seeds], dtype=np.float64, copy=True)

    assignments: Optional[np.ndarray] = None
    converged = False
    iterations = 0

    for iterations in range(1, max_iter + 1):
        new_assignments = assign(embeddings, centroids)
        if assignments is not None and np.array_equal(new_assignments, assignments):
            converged = True
            break
        assignments = new_assignments

        for c in range(len(centroids)):
            members = embeddings[assignments == c]
            if len(members):
                centroids[c] = members.mean(axis=0)

    if assignments is None:
        assignments = np.zeros(n, dtype=np.int64)

    logger.debug(
        f"[KMeans] N={n} k={len(centroids)} | {iterations} iteration(s) | "
        f"{'converged' if converged else 'hit max_iter'}"
    )
    return KMeansResult(
        assignments=assignments,
        centroids=centroids,
        iterations=iterations,
        converged=converged,
    )
