from __future__ import annotations

import math

import numpy as np
import pytest

from intentspace.clustering.kmeans import choose_k, kmeans


def _reference_kmeans(points, centroids, max_iter):
    """Straight-line Lloyd loop over plain lists, for comparison."""

    def cos(a, b):
        na = math.sqrt(sum(x * x for x in a))
        nb = math.sqrt(sum(x * x for x in b))
        if na == 0 or nb == 0:
            return 0.0
        return sum(x * y for x, y in zip(a, b)) / (na * nb)

    centroids = [list(c) for c in centroids]
    previous = None
    for _ in range(max_iter):
        labels = []
        for p in points:
            sims = [cos(p, c) for c in centroids]
            labels.append(sims.index(max(sims)))
        if labels == previous:
            break
        previous = labels
        for c in range(len(centroids)):
            members = [p for p, label in zip(points, labels) if label == c]
            if members:
                centroids[c] = [sum(col) / len(members) for col in zip(*members)]
    return previous


@pytest.mark.parametrize(
    "n,expected",
    [(0, 0), (1, 1), (4, 4), (20, 6), (100, 7), (200, 10), (10_000, 40)],
)
def test_choose_k(n, expected):
    assert choose_k(n) == expected


def test_separated_groups_are_found():
    points = np.array(
        [[1.0, 0.1, 0.0], [0.9, 0.0, 0.1], [1.0, 0.0, 0.0],
         [0.0, 1.0, 0.1], [0.1, 0.9, 0.0], [0.0, 0.0, 1.0]]
    )
    result = kmeans(points, 2, initial_centroids=points[[0, 3]])

    assert result.converged
    assert list(result.assignments[:3]) == [0, 0, 0]
    assert list(result.assignments[3:5]) == [1, 1]


def test_matches_reference_on_fixed_start():
    rng = np.random.default_rng(11)
    points = rng.random((40, 6))
    start = points[[0, 7, 19, 33]]

    result = kmeans(points, 4, max_iter=20, initial_centroids=start)
    expected = _reference_kmeans(points.tolist(), start.tolist(), 20)

    assert result.assignments.tolist() == expected


def test_same_seed_same_partition():
    points = np.random.default_rng(3).random((30, 5))
    first = kmeans(points, 5, rng=np.random.default_rng(42))
    second = kmeans(points, 5, rng=np.random.default_rng(42))

    assert np.array_equal(first.assignments, second.assignments)
    assert np.allclose(first.centroids, second.centroids)


def test_every_row_gets_exactly_one_cluster():
    points = np.random.default_rng(5).random((25, 4))
    result = kmeans(points, 6, rng=np.random.default_rng(0))

    assert result.assignments.shape == (25,)
    assert result.k == 6
    assert set(result.assignments.tolist()) <= set(range(6))


def test_empty_cluster_keeps_its_centroid():
    points = np.array([[1.0, 0.0], [0.9, 0.1], [0.8, 0.2]])
    far = np.array([-1.0, -1.0])
    result = kmeans(points, 2, initial_centroids=np.vstack([points[0], far]))

    assert result.assignments.tolist() == [0, 0, 0]
    assert np.allclose(result.centroids[1], far)


def test_k_is_capped_at_row_count():
    points = np.eye(3)
    result = kmeans(points, 10, rng=np.random.default_rng(0))
    assert result.k == 3
    assert sorted(result.assignments.tolist()) == [0, 1, 2]


def test_no_rows():
    result = kmeans(np.empty((0, 4)), 6)
    assert result.k == 0
    assert result.assignments.shape == (0,)
