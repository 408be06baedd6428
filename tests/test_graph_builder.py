from __future__ import annotations

import numpy as np
import pytest

from intentspace.graph.builder import GraphBuilder
from intentspace.schemas import EdgeReason, Intent


def _intents(n: int) -> list[Intent]:
    return [Intent(analysis_id="a1", title=f"I{i}", summary="", size=2) for i in range(n)]


def test_edge_rules_on_random_centroids():
    centroids = np.random.default_rng(9).random((12, 8))
    intents = _intents(12)
    edges = GraphBuilder().build(intents, centroids)
    index = {intent.id: i for i, intent in enumerate(intents)}

    pairs = [(index[e.source_intent_id], index[e.target_intent_id]) for e in edges]
    assert len(pairs) == len(set(pairs))
    assert all(src < dst for src, dst in pairs)
    assert all(e.weight > 0.1 for e in edges)
    assert all(e.reason == EdgeReason.SEMANTIC_SIMILARITY for e in edges)
    assert len(edges) <= 4 * len(intents)


def test_lower_index_must_pick_the_pair():
    centroids = np.array([[1.0, 0.0], [0.9, 0.1], [1.0, -0.5]])
    # node 2's best match is node 0, but node 0 prefers node 1
    pairs = GraphBuilder(max_neighbours=1).candidate_pairs(centroids)

    assert [(i, j) for i, j, _ in pairs] == [(0, 1)]


def test_weight_is_cosine_similarity():
    centroids = np.array([[1.0, 0.0], [1.0, 1.0]])
    edges = GraphBuilder().build(_intents(2), centroids)

    assert len(edges) == 1
    assert edges[0].weight == pytest.approx(1 / np.sqrt(2))


def test_dissimilar_intents_stay_unlinked():
    assert GraphBuilder().build(_intents(3), np.eye(3)) == []


def test_threshold_filters_weak_pairs():
    # cos ~ 0.1
    a = np.array([1.0, 0.0])
    b = np.array([0.1, np.sqrt(1 - 0.01)])
    assert GraphBuilder(min_similarity=0.11).candidate_pairs(np.vstack([a, b])) == []
    assert len(GraphBuilder(min_similarity=0.09).candidate_pairs(np.vstack([a, b]))) == 1


@pytest.mark.parametrize("n", [0, 1])
def test_too_few_intents(n):
    assert GraphBuilder().build(_intents(n), np.ones((n, 3))) == []


def test_length_mismatch():
    with pytest.raises(ValueError):
        GraphBuilder().build(_intents(2), np.ones((3, 3)))
