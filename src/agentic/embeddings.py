"""Embedding providers and the cosine similarity they are compared with.

Supports:
- Mock embeddings (demo/testing - deterministic, no API keys)
- OpenAI embeddings via langchain-openai
- Local sentence-transformers models
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from src.agentic.config import EmbeddingBackend, RAGConfig, RunMode
from src.agentic.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class DimensionMismatchError(ValueError):
    """Two vectors that must be compared have different lengths."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Raises DimensionMismatchError if the lengths differ. A zero vector
    has similarity 0 with everything.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


class EmbeddingProvider(ABC):
    """Abstract embedding provider interface."""

    @abstractmethod
    def embed_texts(self, texts: list[str]) -> Result[list[list[float]], str]:
        """Generate embeddings for a list of texts."""
        ...

    @abstractmethod
    def embed_query(self, query: str) -> Result[list[float], str]:
        """Generate embedding for a single query."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the embedding dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name recorded alongside stored embeddings."""
        ...

    def cosine_similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic mock embeddings for testing and demos.

    Texts sharing words get correlated vectors, so similarity ranking
    behaves plausibly without a model.
    """

    def __init__(self, dimensions: int = 384) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return f"mock-{self._dimensions}"

    def embed_texts(self, texts: list[str]) -> Result[list[list[float]], str]:
        try:
            return Ok([self._generate_embedding(text) for text in texts])
        except Exception as e:
            return Err(f"Mock embedding failed: {e}")

    def embed_query(self, query: str) -> Result[list[float], str]:
        try:
            return Ok(self._generate_embedding(query))
        except Exception as e:
            return Err(f"Mock query embedding failed: {e}")

    def _generate_embedding(self, text: str) -> list[float]:
        # Word vectors dominate the text-level noise so shared vocabulary
        # shows up as similarity.
        text_hash = hashlib.sha256(text.encode()).hexdigest()
        rng = np.random.RandomState(int(text_hash[:8], 16))
        base = rng.randn(self._dimensions).astype(np.float64) * 0.2

        for word in set(text.lower().split()):
            word_seed = int(hashlib.md5(word.strip(".,;:!?").encode()).hexdigest()[:8], 16)
            word_rng = np.random.RandomState(word_seed)
            base += word_rng.randn(self._dimensions).astype(np.float64)

        norm = np.linalg.norm(base)
        if norm > 0:
            base = base / norm
        return base.tolist()


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI API embedding provider via langchain-openai."""

    def __init__(self, config: RAGConfig) -> None:
        self._config = config
        self._model: Optional[object] = None

    @property
    def dimensions(self) -> int:
        return self._config.embedding_dimensions

    @property
    def model_name(self) -> str:
        return self._config.embedding_model

    def _client(self):  # type: ignore[no-untyped-def]
        if self._model is None:
            from langchain_openai import OpenAIEmbeddings

            self._model = OpenAIEmbeddings(
                model=self._config.embedding_model,
                openai_api_key=self._config.openai_api_key,
            )
        return self._model

    def embed_texts(self, texts: list[str]) -> Result[list[list[float]], str]:
        try:
            return Ok(self._client().embed_documents(texts))
        except ImportError:
            return Err("langchain-openai not installed")
        except Exception as e:
            return Err(f"OpenAI embedding failed: {e}")

    def embed_query(self, query: str) -> Result[list[float], str]:
        try:
            return Ok(self._client().embed_query(query))
        except ImportError:
            return Err("langchain-openai not installed")
        except Exception as e:
            return Err(f"OpenAI query embedding failed: {e}")


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Local sentence-transformers model, loaded on first use.

    Embeddings are mean-pooled and L2-normalised by the model.
    """

    def __init__(self, model_name: str, dimensions: int, batch_size: int = 10) -> None:
        self._model_name = model_name
        self._dimensions = dimensions
        self._batch_size = batch_size
        self._model: object = None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model_name

    def _load_model(self):  # type: ignore[no-untyped-def]
        if self._model is None:
            from sentence_transformers import SentenceTransformer  # type: ignore[import-untyped]

            logger.info("Loading embedding model %s", self._model_name)
            self._model = SentenceTransformer(self._model_name)
        return self._model

    def embed_texts(self, texts: list[str]) -> Result[list[list[float]], str]:
        if not texts:
            return Ok([])
        try:
            vectors = self._load_model().encode(
                texts, batch_size=self._batch_size, normalize_embeddings=True
            )
            return Ok(vectors.tolist())
        except ImportError:
            return Err("sentence-transformers not installed")
        except Exception as e:
            return Err(f"Failed to generate batch embeddings: {e}")

    def embed_query(self, query: str) -> Result[list[float], str]:
        try:
            vector = self._load_model().encode(query, normalize_embeddings=True)
            return Ok(vector.tolist())
        except ImportError:
            return Err("sentence-transformers not installed")
        except Exception as e:
            return Err(f"Failed to generate embedding: {e}")


def create_embedding_provider(config: RAGConfig) -> EmbeddingProvider:
    """Factory function to create the appropriate embedding provider."""
    if config.mode == RunMode.MOCK:
        return MockEmbeddingProvider(dimensions=config.embedding_dimensions)
    if config.embedding_backend == EmbeddingBackend.OPENAI:
        return OpenAIEmbeddingProvider(config)
    return SentenceTransformerEmbeddingProvider(
        config.embedding_model, config.embedding_dimensions
    )
