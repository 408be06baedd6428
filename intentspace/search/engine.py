"""
Intent Search Engine
---------------------
Ranks one analysis's intents against a free-text query.

    score = min(1, cos(query, intent_text) + 0.1 * exact_keyword_matches)

intent_text is "{title} {summary} {keywords}". Query and intents are embedded
against a vocabulary (cap 1000) built from the intent texts of this call
only, so concurrent searches never share state. An exact keyword match is an
intent keyword equal (case-insensitively) to a whole query word.

Results with score <= 0.1 are dropped; the rest come back best first, each
with up to 3 evidence snippets.
"""
from __future__ import annotations

from loguru import logger

from intentspace.embedding.embedder import (
    QUERY_VOCABULARY_SIZE,
    TermFrequencyEmbedder,
    Vocabulary,
    cosine_similarity,
)
from intentspace.errors import InputError
from intentspace.schemas import Evidence, EvidenceSnippet, Intent, SearchHit
from intentspace.storage.base import GraphStore

TOP_K = 5
MIN_SCORE = 0.1
KEYWORD_BOOST = 0.1
EVIDENCE_PER_RESULT = 3


class SearchEngine:
    """
    Stateless per query - call search() as many times as you like, from as
    many threads as you like.
    """

    def __init__(
        self,
        store: GraphStore,
        max_vocabulary: int = QUERY_VOCABULARY_SIZE,
        top_k: int = TOP_K,
        min_score: float = MIN_SCORE,
        keyword_boost: float = KEYWORD_BOOST,
        evidence_per_result: int = EVIDENCE_PER_RESULT,
    ) -> None:
        self.store = store
        self.max_vocabulary = max_vocabulary
        self.top_k = top_k
        self.min_score = min_score
        self.keyword_boost = keyword_boost
        self.evidence_per_result = evidence_per_result

    @classmethod
    def from_config(cls, config: dict, store: GraphStore) -> "SearchEngine":
        return cls(
            store,
            max_vocabulary=config.get("max_vocabulary", QUERY_VOCABULARY_SIZE),
            top_k=config.get("top_k", TOP_K),
            min_score=config.get("min_score", MIN_SCORE),
            keyword_boost=config.get("keyword_boost", KEYWORD_BOOST),
            evidence_per_result=config.get("evidence_per_result", EVIDENCE_PER_RESULT),
        )

    def search(self, graph_id: str, query: str, top_k: int | None = None) -> list[SearchHit]:
        """
        Raises:
            InputError: missing graph id or a non-positive top_k.
            LookupFailure: unknown graph id.
        """
        if not graph_id:
            raise InputError("graph_id is required")
        top_k = self.top_k if top_k is None else top_k
        if top_k <= 0:
            raise InputError(f"top_k must be positive, got {top_k}")

        # Unknown ids fail before the empty-query shortcut
        self.store.get_analysis(graph_id)
        if not query or not query.strip():
            return []

        logger.debug(f"[Search] graph={graph_id} query={query[:80]!r}")
        intents = self.store.get_intents(graph_id)
        ranked = self.rank(intents, query)[:top_k]

        evidence = self.store.get_evidence(graph_id)
        hits = [
            SearchHit(
                node_id=intent.id,
                score=score,
                title=intent.title,
                summary=intent.summary,
                keywords=intent.keywords,
                evidence=self._snippets(evidence, intent.id),
            )
            for intent, score in ranked
        ]
        logger.info(
            f"[Search] {len(hits)} result(s) for {query[:60]!r}"
            + (f" (top score: {hits[0].score:.3f})" if hits else "")
        )
        return hits

    def rank(self, intents: list[Intent], query: str) -> list[tuple[Intent, float]]:
        """Score every intent; returns those above min_score, best first."""
        if not intents or not query.strip():
            return []

        texts = [intent.search_text for intent in intents]
        embedder = TermFrequencyEmbedder(Vocabulary.build(texts, self.max_vocabulary))
        query_vec = embedder.embed(query)
        query_words = set(query.lower().split())

        scored: list[tuple[Intent, float]] = []
        for intent, text in zip(intents, texts):
            sim = cosine_similarity(query_vec, embedder.embed(text))
            matches = sum(1 for k in intent.keywords if k.lower() in query_words)
            scored.append((intent, min(1.0, sim + self.keyword_boost * matches)))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [(intent, score) for intent, score in scored if score > self.min_score]

    def _snippets(self, evidence: list[Evidence], intent_id: str) -> list[EvidenceSnippet]:
        own = [e for e in evidence if e.intent_id == intent_id][: self.evidence_per_result]
        return [EvidenceSnippet(url=e.url, page_title=e.page_title, snippet=e.snippet) for e in own]
