"""
Term-Frequency Embedder
------------------------
Turns text into fixed-dimension vectors over a bounded vocabulary.

  - Vocabulary: lowercase whitespace tokens longer than 2 characters, indexed
    in first-seen order until the cap is reached (5000 when indexing a site,
    1000 when re-embedding intents at search time).
  - Vector: raw term counts at each word's index, L2-normalised so cosine
    similarity == inner product. Texts with no vocabulary word stay zero.

The vocabulary is an explicit value built per analysis (or per search call)
and handed to the embedder, so concurrent runs never share a table.

This is a bag-of-words model: two texts are only "similar" when they share
vocabulary.
"""
from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

import numpy as np
from loguru import logger

MIN_WORD_LENGTH = 3
INDEX_VOCABULARY_SIZE = 5000
QUERY_VOCABULARY_SIZE = 1000


def tokenize(text: str) -> list[str]:
    """Lowercase whitespace tokens with more than two characters."""
    return [w for w in text.lower().split() if len(w) >= MIN_WORD_LENGTH]


class Vocabulary:
    """Immutable word -> dimension index table."""

    def __init__(self, index: Mapping[str, int]) -> None:
        self._index = dict(index)

    @classmethod
    def build(cls, texts: Iterable[str], max_size: int = INDEX_VOCABULARY_SIZE) -> "Vocabulary":
        index: dict[str, int] = {}
        for text in texts:
            for word in tokenize(text):
                if len(index) >= max_size:
                    return cls(index)
                if word not in index:
                    index[word] = len(index)
        return cls(index)

    def get(self, word: str) -> int | None:
        return self._index.get(word)

    def words(self) -> list[str]:
        return sorted(self._index, key=self._index.__getitem__)

    def __contains__(self, word: object) -> bool:
        return word in self._index

    def __len__(self) -> int:
        return len(self._index)


class TermFrequencyEmbedder:
    """
    Embeds texts against one Vocabulary.

    Usage:
        vocab = Vocabulary.build(texts)
        matrix = TermFrequencyEmbedder(vocab).embed_batch(texts)
    """

    def __init__(self, vocabulary: Vocabulary) -> None:
        self.vocabulary = vocabulary

    @property
    def dimensions(self) -> int:
        return len(self.vocabulary)

    def embed(self, text: str) -> np.ndarray:
        """Return a (dimensions,) float64 unit vector, or zeros."""
        vec = np.zeros(self.dimensions, dtype=np.float64)
        for word, count in Counter(tokenize(text)).items():
            idx = self.vocabulary.get(word)
            if idx is not None:
                vec[idx] = count

        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec

    def embed_batch(self, texts: list[str]) -> np.ndarray:
        """Embed many texts and return an (N, dimensions) matrix."""
        if not texts:
            return np.empty((0, self.dimensions), dtype=np.float64)
        matrix = np.vstack([self.embed(t) for t in texts])
        logger.debug(f"[Embedder] {len(texts)} texts -> {matrix.shape[1]} dims")
        return matrix


# --- Similarity ---------------------------------------------------------------

def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between a and b; 0 when either vector is zero."""
    if a.shape != b.shape:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def cosine_matrix(rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """
    Pairwise cosine similarities between the rows of two matrices.

    Returns shape (len(rows), len(cols)); pairs involving a zero vector are 0.
    """
    row_norms = np.linalg.norm(rows, axis=1, keepdims=True)
    col_norms = np.linalg.norm(cols, axis=1, keepdims=True)
    row_unit = rows / np.where(row_norms == 0, 1, row_norms)
    col_unit = cols / np.where(col_norms == 0, 1, col_norms)
    return row_unit @ col_unit.T
