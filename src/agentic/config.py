"""Configuration management for the agentic retrieval pipeline.

Supports three modes:
- Production: Real embeddings and a real chat model for LLM planning/evaluation
- Mock: Deterministic hash-based embeddings, no chat model, no API keys
- Hybrid: Real embeddings, heuristic planning/evaluation only
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class RunMode(str, Enum):
    """Pipeline execution mode."""

    PRODUCTION = "production"
    MOCK = "mock"
    HYBRID = "hybrid"


class EmbeddingBackend(str, Enum):
    """Where real (non-mock) embeddings come from."""

    OPENAI = "openai"
    SENTENCE_TRANSFORMERS = "sentence_transformers"


class RetrievalMethod(str, Enum):
    """Registered retrieval strategy names."""

    VECTOR = "vector"
    HYBRID = "hybrid"
    MMR = "mmr"
    KEYWORD = "keyword"
    ENSEMBLE = "ensemble"


class AgenticConfig(BaseModel):
    """Per-query options for the agentic retrieval loop."""

    max_iterations: int = Field(default=3, ge=0, description="Hard cap on retrievals")
    confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Confidence at which retrieval stops"
    )
    enable_query_decomposition: bool = Field(
        default=True, description="Split complex queries into sub-queries"
    )
    enable_iterative_refinement: bool = Field(
        default=True, description="Issue follow-up queries for identified gaps"
    )
    retrieval_strategy: RetrievalMethod = Field(
        default=RetrievalMethod.HYBRID, description="Strategy used for every retrieval"
    )
    use_llm: bool = Field(
        default=False, description="Use the LLM planner/evaluator when available"
    )
    final_result_limit: int = Field(
        default=10, ge=1, description="Number of results returned to the caller"
    )


class RAGConfig(BaseSettings):
    """Main configuration.

    All settings can be overridden via environment variables with the RAG_ prefix.
    Nested agentic options use a double underscore.
    Example: RAG_MODE=production, RAG_AGENTIC__MAX_ITERATIONS=5
    """

    model_config = {"env_prefix": "RAG_", "env_nested_delimiter": "__"}

    # Core mode
    mode: RunMode = Field(default=RunMode.MOCK, description="Pipeline execution mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # LLM settings
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    llm_model: str = Field(default="gpt-4o-mini", description="Chat model name")
    llm_temperature: float = Field(default=0.1, description="Chat model temperature")
    llm_max_tokens: int = Field(default=1024, description="Max tokens for chat replies")

    # Embedding settings
    embedding_backend: EmbeddingBackend = Field(
        default=EmbeddingBackend.SENTENCE_TRANSFORMERS,
        description="Embedding backend outside mock mode",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2", description="Embedding model name"
    )
    embedding_dimensions: int = Field(default=384, description="Embedding vector dimensions")

    # Storage settings
    storage_dir: Optional[str] = Field(
        default=".rag_data", description="Directory for topic files; None keeps memory only"
    )

    # Retrieval settings
    top_k: int = Field(default=5, description="Results for simple queries")
    vector_weight: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Weight for vector similarity in hybrid mode"
    )
    keyword_weight: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Weight for keyword score in hybrid mode"
    )
    mmr_lambda: float = Field(
        default=0.5, ge=0.0, le=1.0, description="MMR relevance/diversity balance"
    )
    rrf_k: int = Field(default=60, ge=1, description="Reciprocal rank fusion constant")

    agentic: AgenticConfig = Field(default_factory=AgenticConfig)

    @model_validator(mode="after")
    def _check_hybrid_weights(self) -> RAGConfig:
        # Hybrid scores stay in [0, 1] only for a convex blend
        if not math.isclose(self.vector_weight + self.keyword_weight, 1.0):
            raise ValueError(
                f"vector_weight + keyword_weight must equal 1.0, "
                f"got {self.vector_weight} + {self.keyword_weight}"
            )
        return self


class MockConfig:
    """Configuration presets for mock/demo mode.

    Returns deterministic behaviour without requiring any API keys.
    Useful for testing, demos, and CI/CD pipelines.
    """

    @staticmethod
    def default() -> RAGConfig:
        """Create a default in-memory mock configuration."""
        return RAGConfig(mode=RunMode.MOCK, storage_dir=None)

    @staticmethod
    def with_overrides(**kwargs: object) -> RAGConfig:
        """Create mock config with specific overrides."""
        defaults: dict[str, object] = {"mode": RunMode.MOCK, "storage_dir": None}
        defaults.update(kwargs)
        return RAGConfig(**defaults)  # type: ignore[arg-type]


def configure_logging(config: RAGConfig) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
