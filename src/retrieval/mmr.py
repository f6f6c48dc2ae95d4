"""Maximal Marginal Relevance retrieval.

Greedy selection that trades relevance to the query against similarity
to results already picked, so near-duplicate chunks do not crowd out
the rest of the topic.
"""

from __future__ import annotations

from src.agentic.embeddings import DimensionMismatchError, EmbeddingProvider
from src.agentic.models import SearchResult
from src.agentic.result import Err, Ok, Result
from src.retrieval.base import RetrievalStrategy
from src.retrieval.store import VectorStore


class MMRStrategy(RetrievalStrategy):
    """Selects ``top_k`` of ``3*top_k`` vector candidates by MMR score."""

    name = "mmr"

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        lambda_: float = 0.5,
        pool_factor: int = 3,
    ) -> None:
        super().__init__(store, embeddings)
        self._lambda = lambda_
        self._pool_factor = pool_factor

    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        candidates = self._vector_candidates(topic_id, query, top_k * self._pool_factor)
        if candidates.is_err():
            return candidates

        try:
            return Ok(self.select(candidates.unwrap(), top_k))
        except DimensionMismatchError as e:
            return Err(f"MMR selection failed for topic {topic_id}: {e}")

    def select(self, candidates: list[SearchResult], top_k: int) -> list[SearchResult]:
        """Greedy MMR over ``candidates`` (assumed sorted by relevance)."""
        if not candidates or top_k <= 0:
            return []

        remaining = list(candidates)
        selected = [remaining.pop(0)]

        while len(selected) < top_k and remaining:
            best_index = 0
            best_score = float("-inf")

            for i, candidate in enumerate(remaining):
                max_similarity = 0.0
                for chosen in selected:
                    max_similarity = max(
                        max_similarity,
                        self._embeddings.cosine_similarity(
                            candidate.chunk.embedding, chosen.chunk.embedding
                        ),
                    )

                score = self._lambda * candidate.similarity - (1 - self._lambda) * max_similarity
                if score > best_score:
                    best_score = score
                    best_index = i

            selected.append(remaining.pop(best_index))

        return selected
