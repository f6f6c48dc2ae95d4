"""Topic-scoped vector store and the retrieval strategies built on it."""

from __future__ import annotations

from src.agentic.config import RAGConfig, RetrievalMethod
from src.agentic.embeddings import EmbeddingProvider
from src.retrieval.base import RetrievalStrategy
from src.retrieval.ensemble import EnsembleStrategy
from src.retrieval.hybrid import HybridStrategy
from src.retrieval.keyword import KeywordStrategy
from src.retrieval.mmr import MMRStrategy
from src.retrieval.store import VectorStore
from src.retrieval.vector import VectorStrategy


def create_strategies(
    store: VectorStore, embeddings: EmbeddingProvider, config: RAGConfig
) -> dict[str, RetrievalStrategy]:
    """All retrieval strategies keyed by name, weighted from ``config``."""
    keyword = KeywordStrategy(store, embeddings)
    strategies: list[RetrievalStrategy] = [
        VectorStrategy(store, embeddings),
        HybridStrategy(
            store,
            embeddings,
            vector_weight=config.vector_weight,
            keyword_weight=config.keyword_weight,
        ),
        MMRStrategy(store, embeddings, lambda_=config.mmr_lambda),
        keyword,
        EnsembleStrategy(
            store,
            embeddings,
            keyword,
            vector_weight=config.vector_weight,
            keyword_weight=config.keyword_weight,
            rrf_k=config.rrf_k,
        ),
    ]
    return {s.name: s for s in strategies}


__all__ = [
    "RetrievalMethod",
    "RetrievalStrategy",
    "VectorStore",
    "VectorStrategy",
    "HybridStrategy",
    "MMRStrategy",
    "KeywordStrategy",
    "EnsembleStrategy",
    "create_strategies",
]
