"""Ensemble retrieval combining vector and BM25 rankings.

Uses Reciprocal Rank Fusion (RRF) to merge the two ranked lists, which
is robust to the very different score scales of cosine similarity and
BM25.
"""

from __future__ import annotations

from src.agentic.embeddings import EmbeddingProvider
from src.agentic.models import SearchResult
from src.agentic.result import Err, Ok, Result
from src.retrieval.base import RetrievalStrategy
from src.retrieval.keyword import KeywordStrategy
from src.retrieval.store import VectorStore
from src.retrieval.vector import VectorStrategy


class EnsembleStrategy(RetrievalStrategy):
    """Fuses vector and keyword results with weighted RRF."""

    name = "ensemble"

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        keyword: KeywordStrategy,
        vector_weight: float = 0.7,
        keyword_weight: float = 0.3,
        rrf_k: int = 60,
    ) -> None:
        super().__init__(store, embeddings)
        self._vector = VectorStrategy(store, embeddings)
        self._keyword = keyword
        self._vector_weight = vector_weight
        self._keyword_weight = keyword_weight
        self._rrf_k = rrf_k

    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        candidate_k = top_k * 3

        vector_result = self._vector.search(topic_id, query, candidate_k)
        if vector_result.is_err():
            return Err(f"Vector retrieval failed: {vector_result.unwrap_err()}")

        keyword_result = self._keyword.search(topic_id, query, candidate_k)
        if keyword_result.is_err():
            return Err(f"Keyword retrieval failed: {keyword_result.unwrap_err()}")

        fused = reciprocal_rank_fusion(
            [vector_result.unwrap(), keyword_result.unwrap()],
            [self._vector_weight, self._keyword_weight],
            k=self._rrf_k,
        )
        return Ok(fused[:top_k])


def reciprocal_rank_fusion(
    rankings: list[list[SearchResult]],
    weights: list[float],
    k: int = 60,
) -> list[SearchResult]:
    """Merge ranked lists by chunk id.

    RRF score = sum(weight / (k + rank)) across lists, normalised so the
    best fused result scores 1.0.
    """
    scores: dict[str, float] = {}
    first_seen: dict[str, SearchResult] = {}

    for ranking, weight in zip(rankings, weights, strict=True):
        for rank, result in enumerate(ranking):
            chunk_id = result.chunk.id
            scores[chunk_id] = scores.get(chunk_id, 0.0) + weight / (k + rank + 1)
            first_seen.setdefault(chunk_id, result)

    ordered = sorted(scores, key=lambda c: scores[c], reverse=True)
    max_score = scores[ordered[0]] if ordered else 1.0

    return [
        first_seen[chunk_id].with_similarity(
            min(1.0, scores[chunk_id] / max_score) if max_score > 0 else 0.0
        )
        for chunk_id in ordered
    ]
