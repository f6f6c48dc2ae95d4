"""Tests for embedding providers and cosine similarity."""

import numpy as np
import pytest
from hypothesis import given, strategies as st

from src.agentic.config import EmbeddingBackend, MockConfig, RunMode
from src.agentic.embeddings import (
    DimensionMismatchError,
    MockEmbeddingProvider,
    OpenAIEmbeddingProvider,
    SentenceTransformerEmbeddingProvider,
    cosine_similarity,
    create_embedding_provider,
)

components = st.integers(min_value=-100, max_value=100).map(float)
vectors = st.lists(components, min_size=1, max_size=16)


class TestCosineSimilarity:
    def test_orthogonal(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_identical(self) -> None:
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)

    def test_opposite(self) -> None:
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_zero_vector(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch(self) -> None:
        with pytest.raises(DimensionMismatchError) as excinfo:
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
        assert excinfo.value.expected == 2
        assert excinfo.value.actual == 3

    @given(vectors)
    def test_self_similarity(self, v: list[float]) -> None:
        sim = cosine_similarity(v, v)
        if np.linalg.norm(v) == 0:
            assert sim == 0.0
        else:
            assert sim == pytest.approx(1.0)

    @given(st.integers(min_value=1, max_value=16).flatmap(
        lambda n: st.tuples(
            st.lists(components, min_size=n, max_size=n),
            st.lists(components, min_size=n, max_size=n),
        )
    ))
    def test_symmetric_and_bounded(self, pair: tuple[list[float], list[float]]) -> None:
        a, b = pair
        sim = cosine_similarity(a, b)
        assert sim == cosine_similarity(b, a)
        assert -1.0 <= sim <= 1.0


class TestMockEmbeddingProvider:
    def test_embed_texts(self) -> None:
        provider = MockEmbeddingProvider(dimensions=128)
        embeddings = provider.embed_texts(["hello world", "test document"]).unwrap()
        assert len(embeddings) == 2
        assert len(embeddings[0]) == 128

    def test_model_name(self) -> None:
        assert MockEmbeddingProvider(dimensions=64).model_name == "mock-64"

    def test_deterministic(self) -> None:
        provider = MockEmbeddingProvider(dimensions=128)
        assert provider.embed_query("hello world").unwrap() == provider.embed_query(
            "hello world"
        ).unwrap()

    def test_similar_texts_similar_embeddings(self) -> None:
        provider = MockEmbeddingProvider(dimensions=128)
        e1 = provider.embed_query("machine learning algorithms").unwrap()
        e2 = provider.embed_query("machine learning models").unwrap()
        e3 = provider.embed_query("cooking recipes pasta").unwrap()
        assert provider.cosine_similarity(e1, e2) > provider.cosine_similarity(e1, e3)

    def test_unit_vectors(self) -> None:
        embedding = MockEmbeddingProvider(dimensions=128).embed_query("test").unwrap()
        assert np.linalg.norm(embedding) == pytest.approx(1.0)


class TestCreateEmbeddingProvider:
    def test_mock_mode(self) -> None:
        provider = create_embedding_provider(MockConfig.with_overrides(embedding_dimensions=32))
        assert isinstance(provider, MockEmbeddingProvider)
        assert provider.dimensions == 32

    def test_openai_backend(self) -> None:
        config = MockConfig.with_overrides(
            mode=RunMode.PRODUCTION,
            embedding_backend=EmbeddingBackend.OPENAI,
            embedding_model="text-embedding-3-small",
            embedding_dimensions=1536,
        )
        provider = create_embedding_provider(config)
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model_name == "text-embedding-3-small"

    def test_sentence_transformers_backend_is_lazy(self) -> None:
        config = MockConfig.with_overrides(mode=RunMode.HYBRID)
        provider = create_embedding_provider(config)
        assert isinstance(provider, SentenceTransformerEmbeddingProvider)
        assert provider.model_name == "sentence-transformers/all-MiniLM-L6-v2"
        assert provider.embed_texts([]).unwrap() == []
