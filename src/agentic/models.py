"""Domain models for topic-scoped agentic retrieval.

Defines the records stored per topic (topics, documents, chunks), the
ephemeral objects produced while answering a query (search results,
plans, evaluations, trace steps) and the typed context payloads that
cross into the planner and evaluator.
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

FileType = Literal["pdf", "markdown", "html"]
PlanStrategy = Literal["sequential", "parallel"]

DEFAULT_SUB_QUERY_TOP_K = 5


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


class Complexity(str, Enum):
    """Query complexity label assigned by a planner."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


# --- Stored records ---


@dataclass(frozen=True, slots=True)
class ChunkMetadata:
    """Positional and structural information about a chunk."""

    document_name: str
    chunk_index: int
    start_position: int = 0
    end_position: int = 0
    heading_path: Optional[tuple[str, ...]] = None
    heading_level: Optional[int] = None
    section_title: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.heading_path is not None:
            data["heading_path"] = list(self.heading_path)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkMetadata:
        heading_path = data.get("heading_path")
        return cls(
            document_name=str(data["document_name"]),
            chunk_index=int(data["chunk_index"]),
            start_position=int(data.get("start_position", 0)),
            end_position=int(data.get("end_position", 0)),
            heading_path=tuple(heading_path) if heading_path is not None else None,
            heading_level=data.get("heading_level"),
            section_title=data.get("section_title"),
        )


@dataclass(frozen=True, slots=True)
class Chunk:
    """A span of a source document with its precomputed embedding."""

    document_id: str
    topic_id: str
    text: str
    embedding: list[float]
    metadata: ChunkMetadata
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("Chunk text cannot be empty")
        if not self.embedding:
            raise ValueError("Chunk embedding cannot be empty")

    @property
    def dimensions(self) -> int:
        return len(self.embedding)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "topic_id": self.topic_id,
            "text": self.text,
            "embedding": list(self.embedding),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chunk:
        return cls(
            id=str(data["id"]),
            document_id=str(data["document_id"]),
            topic_id=str(data["topic_id"]),
            text=str(data["text"]),
            embedding=[float(x) for x in data["embedding"]],
            metadata=ChunkMetadata.from_dict(data["metadata"]),
        )


@dataclass(frozen=True, slots=True)
class Document:
    """A source document registered under a topic."""

    topic_id: str
    name: str
    file_path: str
    file_type: FileType
    chunk_count: int
    id: str = field(default_factory=new_id)
    added_at: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Document name cannot be empty")
        if self.file_type not in ("pdf", "markdown", "html"):
            raise ValueError(f"Unsupported file type: {self.file_type}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        return cls(**data)


@dataclass(frozen=True, slots=True)
class Topic:
    """A named, isolated collection of documents and chunks."""

    name: str
    description: Optional[str] = None
    document_count: int = 0
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Topic name cannot be empty")
        if self.document_count < 0:
            raise ValueError("Topic document_count cannot be negative")

    def with_document_delta(self, delta: int) -> Topic:
        return replace(
            self,
            document_count=max(0, self.document_count + delta),
            updated_at=now_ms(),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Topic:
        return cls(**data)


# --- Query-time objects ---


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A chunk matched by a search, with its score for that search."""

    chunk: Chunk
    similarity: float
    document_name: str

    def __post_init__(self) -> None:
        if math.isnan(self.similarity):
            raise ValueError("Similarity cannot be NaN")

    def with_similarity(self, similarity: float) -> SearchResult:
        return SearchResult(
            chunk=self.chunk, similarity=similarity, document_name=self.document_name
        )


@dataclass(frozen=True, slots=True)
class SubQuery:
    """One decomposed unit of an original query.

    ``dependencies`` lists indices of earlier sub-queries. They are
    recorded for the trace only; execution always follows list order.
    """

    query: str
    reasoning: str
    top_k: int = DEFAULT_SUB_QUERY_TOP_K
    dependencies: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class QueryPlan:
    original_query: str
    sub_queries: tuple[SubQuery, ...]
    strategy: PlanStrategy
    complexity: Complexity

    def __post_init__(self) -> None:
        if not self.sub_queries:
            raise ValueError("QueryPlan requires at least one sub-query")


@dataclass(frozen=True, slots=True)
class FollowUpQuery:
    query: str
    reasoning: str


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Evaluator verdict on a (query, results) pair."""

    confidence: float
    is_complete: bool
    gaps: tuple[str, ...] = ()
    reasoning: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Confidence must be between 0 and 1, got {self.confidence}"
            )


@dataclass(frozen=True, slots=True)
class AgenticSearchStep:
    step_number: int
    query: str
    strategy: str
    results_count: int
    confidence: float
    reasoning: str

    def summary(self, with_confidence: bool = False) -> str:
        text = f"Step {self.step_number}: {self.query} ({self.results_count} results"
        if with_confidence:
            text += f", confidence: {self.confidence}"
        return text + ")"


@dataclass(frozen=True, slots=True)
class AgenticSearchResult:
    """The final output of one agentic query."""

    final_results: list[SearchResult]
    steps: list[AgenticSearchStep]
    total_iterations: int
    query_plan: QueryPlan
    confidence: float


# --- Context payloads ---


@dataclass(frozen=True, slots=True)
class QueryContext:
    """Topic information the caller can hand to the planner."""

    topic_name: Optional[str] = None
    topic_description: Optional[str] = None
    document_count: Optional[int] = None
    recent_queries: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """What the evaluator knows about the session so far."""

    topic_name: Optional[str] = None
    previous_steps: tuple[str, ...] = ()
