"""
Intent Builder
---------------
Turns a k-means partition of chunk embeddings into Intent nodes.

For every cluster with at least `min_cluster_size` members:

  - centroid        : mean of the member vectors
  - representatives : up to 8 members closest (cosine) to the centroid
  - keywords        : top 5 TF-IDF terms over the representative texts
  - summary         : 2 extractive sentences ranked by keyword density
  - title           : top 3 keywords, capitalised, joined with " & "
  - source_urls     : distinct page URLs of the representatives

Smaller clusters are dropped and their chunks belong to no intent.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from intentspace.embedding.embedder import cosine_matrix
from intentspace.schemas import COLOR_GROUPS, Chunk, Intent, Position

MIN_CLUSTER_SIZE = 2
REPRESENTATIVES = 8
KEYWORDS = 5
SUMMARY_SENTENCES = 2
SUMMARY_KEYWORDS = 10

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


# --- Text statistics ----------------------------------------------------------

def _keyword_tokens(text: str) -> list[str]:
    return [w for w in text.lower().split() if len(w) > 3 and not w.isdigit()]


def extract_keywords(texts: list[str], top_k: int = KEYWORDS) -> list[str]:
    """
    Rank words by df * ln(n_texts / df) over `texts`.

    df is the number of texts containing the word; repeats inside one text do
    not count. Ties keep first-seen order. A word present in every text
    scores 0.
    """
    if not texts:
        return []
    df: Counter[str] = Counter()
    for text in texts:
        # dict.fromkeys dedups while keeping first-seen order for ties
        df.update(list(dict.fromkeys(_keyword_tokens(text))))

    n = len(texts)
    scored = [(word, count * math.log(n / count)) for word, count in df.items()]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return [word for word, _ in scored[:top_k]]


def split_sentences(text: str) -> list[str]:
    """Runs of text closed by . ! or ? - an unterminated tail is dropped."""
    return [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]


def summarize(texts: list[str], max_sentences: int = SUMMARY_SENTENCES) -> str:
    """
    Extractive summary: the sentences densest in the top-10 keywords.

    With max_sentences or fewer sentences overall, all of them are returned.
    Output follows score order, not reading order.
    """
    sentences = split_sentences(" ".join(texts))
    if len(sentences) <= max_sentences:
        return " ".join(sentences)

    keywords = set(extract_keywords(texts, SUMMARY_KEYWORDS))
    scored = []
    for sentence in sentences:
        words = sentence.lower().split()
        hits = sum(1 for w in words if w in keywords)
        scored.append((sentence, hits / len(words)))
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return " ".join(s for s, _ in scored[:max_sentences])


def make_title(keywords: list[str]) -> str:
    return " & ".join(w[:1].upper() + w[1:] for w in keywords[:3])


def random_position(rng: np.random.Generator) -> Position:
    """Random point in a shell of radius 3-8, flattened on the y axis."""
    angle1 = rng.random() * math.pi * 2
    angle2 = rng.random() * math.pi - math.pi / 2
    radius = 3 + rng.random() * 5
    return Position(
        x=math.cos(angle1) * math.cos(angle2) * radius,
        y=math.sin(angle2) * radius * 0.7,
        z=math.sin(angle1) * math.cos(angle2) * radius,
    )


# --- Builder ------------------------------------------------------------------

@dataclass
class BuiltIntent:
    """An Intent plus the full-dimension centroid used by the graph builder."""

    intent: Intent
    centroid: np.ndarray
    member_indices: list[int]


class IntentBuilder:
    """
    Usage:
        builder = IntentBuilder(analysis_id, rng=np.random.default_rng(7))
        built = builder.build(chunks, embeddings, result.assignments, page_urls)
    """

    def __init__(
        self,
        analysis_id: str,
        min_cluster_size: int = MIN_CLUSTER_SIZE,
        representatives: int = REPRESENTATIVES,
        keywords: int = KEYWORDS,
        summary_sentences: int = SUMMARY_SENTENCES,
        stored_dims: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.analysis_id = analysis_id
        self.min_cluster_size = min_cluster_size
        self.representatives = representatives
        self.keywords = keywords
        self.summary_sentences = summary_sentences
        self.stored_dims = stored_dims
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_config(
        cls,
        analysis_id: str,
        config: dict,
        stored_dims: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> "IntentBuilder":
        return cls(
            analysis_id,
            min_cluster_size=config.get("min_cluster_size", MIN_CLUSTER_SIZE),
            representatives=config.get("representatives", REPRESENTATIVES),
            keywords=config.get("keywords", KEYWORDS),
            summary_sentences=config.get("summary_sentences", SUMMARY_SENTENCES),
            stored_dims=stored_dims,
            rng=rng,
        )

    def build(
        self,
        chunks: list[Chunk],
        embeddings: np.ndarray,
        assignments: np.ndarray,
        page_urls: dict[str, str],
    ) -> list[BuiltIntent]:
        """
        Args:
            chunks: Chunks in the same row order as `embeddings`.
            embeddings: (N, D) chunk vectors.
            assignments: (N,) cluster index per chunk.
            page_urls: Page.id -> Page.url.

        Returns:
            One BuiltIntent per surviving cluster, in order of the cluster's
            first appearance in `assignments`.
        """
        clusters: dict[int, list[int]] = {}
        for idx, label in enumerate(assignments):
            clusters.setdefault(int(label), []).append(idx)

        built: list[BuiltIntent] = []
        dropped = 0
        for members in clusters.values():
            if len(members) < self.min_cluster_size:
                dropped += 1
                continue
            built.append(self._build_one(chunks, embeddings, members, page_urls, len(built)))

        logger.info(
            f"[IntentBuilder] {len(clusters)} cluster(s) -> {len(built)} intent(s) "
            f"| {dropped} dropped below size {self.min_cluster_size}"
        )
        return built

    def _build_one(
        self,
        chunks: list[Chunk],
        embeddings: np.ndarray,
        members: list[int],
        page_urls: dict[str, str],
        ordinal: int,
    ) -> BuiltIntent:
        centroid = embeddings[members].mean(axis=0)

        sims = cosine_matrix(embeddings[members], centroid.reshape(1, -1))[:, 0]
        ranked = sorted(zip(members, sims), key=lambda pair: pair[1], reverse=True)
        reps = [chunks[idx] for idx, _ in ranked[: self.representatives]]
        rep_texts = [c.text for c in reps]

        keywords = extract_keywords(rep_texts, self.keywords)
        source_urls = list(dict.fromkeys(page_urls[c.page_id] for c in reps))

        stored = centroid if self.stored_dims is None else centroid[: self.stored_dims]
        intent = Intent(
            analysis_id=self.analysis_id,
            title=make_title(keywords),
            summary=summarize(rep_texts, self.summary_sentences),
            keywords=keywords,
            centroid_embedding=stored.tolist(),
            size=len(members),
            source_urls=source_urls,
            position=random_position(self.rng),
            color_group=COLOR_GROUPS[ordinal % len(COLOR_GROUPS)],
        )
        return BuiltIntent(intent=intent, centroid=centroid, member_indices=list(members))
