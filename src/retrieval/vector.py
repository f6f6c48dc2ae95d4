"""Pure vector retrieval.

Embeds the query and returns the store's cosine-similarity ranking
unchanged.
"""

from __future__ import annotations

from src.agentic.models import SearchResult
from src.agentic.result import Result
from src.retrieval.base import RetrievalStrategy


class VectorStrategy(RetrievalStrategy):
    """Retrieves chunks using embedding-based similarity search."""

    name = "vector"

    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        return self._vector_candidates(topic_id, query, top_k)
