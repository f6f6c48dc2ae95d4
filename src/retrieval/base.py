"""Common contract for retrieval strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.agentic.embeddings import EmbeddingProvider
from src.agentic.models import SearchResult
from src.agentic.result import Err, Result
from src.retrieval.store import VectorStore


class RetrievalStrategy(ABC):
    """Maps (topic, query, top_k) to a ranked list of search results."""

    name: str = "base"

    def __init__(self, store: VectorStore, embeddings: EmbeddingProvider) -> None:
        self._store = store
        self._embeddings = embeddings

    @abstractmethod
    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        """Return at most ``top_k`` results, best first."""
        ...

    def _vector_candidates(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        """Embed the query and run a plain similarity search."""
        embed_result = self._embeddings.embed_query(query)
        if embed_result.is_err():
            return Err(f"Query embedding failed: {embed_result.unwrap_err()}")
        return self._store.search(topic_id, embed_result.unwrap(), top_k)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
