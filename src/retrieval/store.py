"""Topic-scoped vector store with cosine similarity search.

Each topic owns a disjoint set of chunks. A topic's chunks and their
embedding matrix are held in an immutable ``TopicSnapshot`` that is
built on first use and reused until a mutation on that topic replaces
it, so repeated queries never re-read storage and concurrent readers
never observe a half-applied mutation.

On disk (when ``storage_dir`` is set) the store keeps:
- ``topics.json``: topic summaries plus the last-known embedding model
- ``topic-<id>.json``: the topic, its documents, its chunks (with
  embeddings), the embedding model used and a last-updated timestamp
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field, replace
from itertools import count
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from src.agentic.embeddings import DimensionMismatchError
from src.agentic.models import (
    Chunk,
    Document,
    FileType,
    SearchResult,
    Topic,
    new_id,
    now_ms,
)
from src.agentic.result import Err, Ok, Result

logger = logging.getLogger(__name__)

TOPICS_INDEX_FILENAME = "topics.json"

_snapshot_versions = count(1)


@dataclass(frozen=True, slots=True, eq=False)
class TopicSnapshot:
    """Immutable view of one topic's chunks, ready for vector math."""

    topic_id: str
    chunks: tuple[Chunk, ...]
    matrix: np.ndarray
    norms: np.ndarray
    version: int = field(default_factory=lambda: next(_snapshot_versions))

    @classmethod
    def build(cls, topic_id: str, chunks: tuple[Chunk, ...]) -> TopicSnapshot:
        if not chunks:
            empty = np.zeros((0, 0), dtype=np.float64)
            return cls(topic_id=topic_id, chunks=(), matrix=empty, norms=np.zeros(0))

        dims = chunks[0].dimensions
        for chunk in chunks:
            if chunk.dimensions != dims:
                raise DimensionMismatchError(dims, chunk.dimensions)

        matrix = np.asarray([c.embedding for c in chunks], dtype=np.float64)
        return cls(
            topic_id=topic_id,
            chunks=chunks,
            matrix=matrix,
            norms=np.linalg.norm(matrix, axis=1),
        )

    @property
    def dimensions(self) -> Optional[int]:
        return self.matrix.shape[1] if self.chunks else None

    def similarities(self, query_embedding: list[float]) -> np.ndarray:
        """Cosine similarity of every chunk to the query, clipped to [-1, 1]."""
        dims = self.dimensions
        if dims is not None and len(query_embedding) != dims:
            raise DimensionMismatchError(dims, len(query_embedding))

        query = np.asarray(query_embedding, dtype=np.float64)
        denom = self.norms * np.linalg.norm(query)
        sims = np.divide(
            self.matrix @ query,
            denom,
            out=np.zeros(len(self.chunks), dtype=np.float64),
            where=denom > 0,
        )
        return np.clip(sims, -1.0, 1.0)


@dataclass(frozen=True, slots=True)
class StoreStats:
    topic_count: int
    document_count: int
    chunk_count: int
    model_name: str
    last_updated: int


@dataclass(frozen=True, slots=True)
class _TopicRecord:
    """Everything persisted for one topic. Replaced, never mutated."""

    topic: Topic
    documents: dict[str, Document]
    chunks: dict[str, Chunk]
    model_name: str
    last_updated: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic.to_dict(),
            "documents": {k: d.to_dict() for k, d in self.documents.items()},
            "chunks": {k: c.to_dict() for k, c in self.chunks.items()},
            "model_name": self.model_name,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> _TopicRecord:
        return cls(
            topic=Topic.from_dict(data["topic"]),
            documents={k: Document.from_dict(d) for k, d in data.get("documents", {}).items()},
            chunks={k: Chunk.from_dict(c) for k, c in data.get("chunks", {}).items()},
            model_name=str(data.get("model_name", "unknown")),
            last_updated=int(data.get("last_updated", 0)),
        )


class VectorStore:
    """Per-topic chunk storage and similarity search.

    Args:
        model_name: Embedding model currently in use. New topics are
            stamped with it and adding chunks to a topic indexed with a
            different model is refused.
        storage_dir: Directory for the JSON files. ``None`` keeps all
            data in memory for the lifetime of the store.
    """

    def __init__(
        self,
        model_name: str,
        storage_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self._model_name = model_name
        self._storage_dir = Path(storage_dir) if storage_dir is not None else None

        self._lock = threading.Lock()
        self._topic_locks: dict[str, threading.Lock] = {}
        self._topics: dict[str, Topic] = {}
        self._index_model_name = model_name
        self._records: dict[str, _TopicRecord] = {}
        self._snapshots: dict[str, TopicSnapshot] = {}

        self._load_index()

    @property
    def model_name(self) -> str:
        return self._model_name

    # --- Topics ---

    def create_topic(self, name: str, description: Optional[str] = None) -> Result[Topic, str]:
        """Create an empty topic. Names are unique, case-insensitively."""
        try:
            topic = Topic(name=name.strip(), description=description)
        except ValueError as e:
            return Err(str(e))

        with self._lock:
            if any(t.name.lower() == topic.name.lower() for t in self._topics.values()):
                return Err(f'Topic "{topic.name}" already exists')

            record = _TopicRecord(
                topic=topic,
                documents={},
                chunks={},
                model_name=self._model_name,
                last_updated=now_ms(),
            )
            try:
                self._write_record(record)
                self._topics[topic.id] = topic
                self._records[topic.id] = record
                self._save_index()
            except OSError as e:
                self._topics.pop(topic.id, None)
                self._records.pop(topic.id, None)
                return Err(f"Failed to save topic {topic.name!r}: {e}")

        logger.info("Created topic %s (%s)", topic.name, topic.id)
        return Ok(topic)

    def get_topics(self) -> list[Topic]:
        with self._lock:
            return list(self._topics.values())

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        with self._lock:
            return self._topics.get(topic_id)

    def get_topic_by_name(self, name: str) -> Optional[Topic]:
        wanted = name.strip().lower()
        with self._lock:
            return next(
                (t for t in self._topics.values() if t.name.lower() == wanted), None
            )

    def delete_topic(self, topic_id: str) -> Result[None, str]:
        """Delete a topic together with all its documents and chunks."""
        with self._topic_lock(topic_id):
            with self._lock:
                if topic_id not in self._topics:
                    return Err(f"Topic not found: {topic_id}")
                del self._topics[topic_id]
                self._records.pop(topic_id, None)
                self._snapshots.pop(topic_id, None)
                # Holders of the lock keep their reference; later callers see no topic
                self._topic_locks.pop(topic_id, None)
                try:
                    self._save_index()
                    if self._storage_dir is not None:
                        _topic_file(self._storage_dir, topic_id).unlink(missing_ok=True)
                except OSError as e:
                    return Err(f"Failed to delete topic {topic_id}: {e}")

        logger.info("Deleted topic %s", topic_id)
        return Ok(None)

    # --- Documents ---

    def add_document(
        self,
        topic_id: str,
        name: str,
        file_path: str,
        file_type: FileType,
        chunks: list[Chunk],
    ) -> Result[Document, str]:
        """Register a document and its embedded chunks under a topic.

        All chunks must belong to the topic, share one document id and
        have the topic's embedding dimension.
        """
        with self._topic_lock(topic_id):
            record_result = self._get_record(topic_id)
            if record_result.is_err():
                return record_result  # type: ignore[return-value]
            record = record_result.unwrap()

            mismatch = self._model_mismatch(record)
            if mismatch is not None:
                logger.warning("Embedding model mismatch for topic %s", topic_id)
                return Err(mismatch)

            validation = self._validate_new_chunks(record, chunks)
            if validation.is_err():
                return validation  # type: ignore[return-value]

            try:
                document = Document(
                    id=validation.unwrap(),
                    topic_id=topic_id,
                    name=name,
                    file_path=file_path,
                    file_type=file_type,
                    chunk_count=len(chunks),
                )
            except ValueError as e:
                return Err(str(e))
            if document.id in record.documents:
                return Err(f"Document already exists in topic: {document.id}")

            new_chunks = dict(record.chunks)
            new_chunks.update((c.id, c) for c in chunks)
            updated = replace(
                record,
                topic=record.topic.with_document_delta(1),
                documents={**record.documents, document.id: document},
                chunks=new_chunks,
                model_name=record.model_name if record.chunks else self._model_name,
                last_updated=now_ms(),
            )
            commit = self._commit(updated)
            if commit.is_err():
                return commit  # type: ignore[return-value]

        logger.info(
            "Added document %s with %d chunks to topic %s", name, len(chunks), topic_id
        )
        return Ok(document)

    def delete_document(self, topic_id: str, document_id: str) -> Result[int, str]:
        """Remove a document and its chunks. Returns the number of chunks removed."""
        with self._topic_lock(topic_id):
            record_result = self._get_record(topic_id)
            if record_result.is_err():
                return record_result  # type: ignore[return-value]
            record = record_result.unwrap()

            if document_id not in record.documents:
                return Err(f"Document not found in topic {topic_id}: {document_id}")

            remaining = {
                cid: c for cid, c in record.chunks.items() if c.document_id != document_id
            }
            removed = len(record.chunks) - len(remaining)
            documents = dict(record.documents)
            del documents[document_id]

            updated = replace(
                record,
                topic=record.topic.with_document_delta(-1),
                documents=documents,
                chunks=remaining,
                last_updated=now_ms(),
            )
            commit = self._commit(updated)
            if commit.is_err():
                return commit  # type: ignore[return-value]

        logger.info("Deleted document %s (%d chunks) from topic %s", document_id, removed, topic_id)
        return Ok(removed)

    def get_documents(self, topic_id: str) -> Result[list[Document], str]:
        with self._topic_lock(topic_id):
            return self._get_record(topic_id).map(lambda r: list(r.documents.values()))

    # --- Search ---

    def snapshot(self, topic_id: str) -> Result[TopicSnapshot, str]:
        """Return the cached snapshot for a topic, loading it if needed."""
        cached = self._snapshots.get(topic_id)
        if cached is not None:
            return Ok(cached)

        with self._topic_lock(topic_id):
            cached = self._snapshots.get(topic_id)
            if cached is not None:
                return Ok(cached)

            record_result = self._get_record(topic_id)
            if record_result.is_err():
                return record_result  # type: ignore[return-value]

            try:
                snapshot = TopicSnapshot.build(
                    topic_id, tuple(record_result.unwrap().chunks.values())
                )
            except DimensionMismatchError as e:
                return Err(f"Topic {topic_id} has inconsistent embeddings: {e}")

            self._snapshots[topic_id] = snapshot
            logger.debug("Cached %d chunks for topic %s", len(snapshot.chunks), topic_id)
            return Ok(snapshot)

    def get_chunks(self, topic_id: str) -> Result[tuple[Chunk, ...], str]:
        return self.snapshot(topic_id).map(lambda s: s.chunks)

    def search(
        self, topic_id: str, query_embedding: list[float], top_k: int
    ) -> Result[list[SearchResult], str]:
        """Return up to ``top_k`` chunks of a topic, most similar first.

        Ties keep the order in which chunks were stored.
        """
        snapshot_result = self.snapshot(topic_id)
        if snapshot_result.is_err():
            return snapshot_result  # type: ignore[return-value]
        snapshot = snapshot_result.unwrap()

        if not snapshot.chunks or top_k <= 0:
            return Ok([])

        try:
            sims = snapshot.similarities(query_embedding)
        except DimensionMismatchError as e:
            return Err(f"Vector search failed for topic {topic_id}: {e}")

        order = np.argsort(-sims, kind="stable")[:top_k]
        return Ok(
            [
                SearchResult(
                    chunk=snapshot.chunks[i],
                    similarity=float(sims[i]),
                    document_name=snapshot.chunks[i].metadata.document_name,
                )
                for i in order
            ]
        )

    def invalidate(self, topic_id: Optional[str] = None) -> None:
        """Drop cached snapshots (and loaded records) so the next read reloads."""
        with self._lock:
            if topic_id is None:
                self._snapshots.clear()
                if self._storage_dir is not None:
                    self._records.clear()
            else:
                self._snapshots.pop(topic_id, None)
                if self._storage_dir is not None:
                    self._records.pop(topic_id, None)

    # --- Models and stats ---

    def check_model_compatibility(self, topic_id: str) -> Result[Optional[str], str]:
        """Return a description of a model mismatch, or None if compatible."""
        with self._topic_lock(topic_id):
            return self._get_record(topic_id).map(self._model_mismatch)

    def get_stats(self) -> StoreStats:
        topic_ids = [t.id for t in self.get_topics()]
        documents = 0
        chunks = 0
        last_updated = 0
        for topic_id in topic_ids:
            with self._topic_lock(topic_id):
                record_result = self._get_record(topic_id)
            if record_result.is_ok():
                record = record_result.unwrap()
                documents += len(record.documents)
                chunks += len(record.chunks)
                last_updated = max(last_updated, record.last_updated)
        return StoreStats(
            topic_count=len(topic_ids),
            document_count=documents,
            chunk_count=chunks,
            model_name=self._index_model_name,
            last_updated=last_updated,
        )

    def clear(self) -> Result[None, str]:
        """Delete every topic."""
        for topic in self.get_topics():
            result = self.delete_topic(topic.id)
            if result.is_err():
                return result
        with self._lock:
            self._index_model_name = self._model_name
            try:
                self._save_index()
            except OSError as e:
                return Err(f"Clear failed: {e}")
        return Ok(None)

    # --- Internals ---

    def _topic_lock(self, topic_id: str) -> threading.Lock:
        with self._lock:
            lock = self._topic_locks.get(topic_id)
            if lock is None:
                lock = self._topic_locks[topic_id] = threading.Lock()
            return lock

    def _model_mismatch(self, record: _TopicRecord) -> Optional[str]:
        if not record.chunks or record.model_name == self._model_name:
            return None
        return (
            f'Topic "{record.topic.name}" was indexed with embedding model '
            f'"{record.model_name}", but the current model is "{self._model_name}". '
            f'Switch back to "{record.model_name}" or recreate the topic with the new model.'
        )

    def _validate_new_chunks(
        self, record: _TopicRecord, chunks: list[Chunk]
    ) -> Result[str, str]:
        """Check chunks against the topic; returns the shared document id."""
        topic_id = record.topic.id
        document_ids = {c.document_id for c in chunks}
        if len(document_ids) > 1:
            return Err(f"Chunks belong to several documents: {sorted(document_ids)}")

        existing_dims = next(iter(record.chunks.values())).dimensions if record.chunks else None
        for chunk in chunks:
            if chunk.topic_id != topic_id:
                return Err(f"Chunk {chunk.id} belongs to topic {chunk.topic_id}, not {topic_id}")
            if chunk.id in record.chunks:
                return Err(f"Chunk already stored: {chunk.id}")
            if existing_dims is None:
                existing_dims = chunk.dimensions
            elif chunk.dimensions != existing_dims:
                return Err(str(DimensionMismatchError(existing_dims, chunk.dimensions)))

        return Ok(document_ids.pop() if document_ids else new_id())

    def _get_record(self, topic_id: str) -> Result[_TopicRecord, str]:
        """Load a topic record; caller holds the topic lock."""
        with self._lock:
            topic = self._topics.get(topic_id)
            record = self._records.get(topic_id)
        if topic is None:
            return Err(f"Topic not found: {topic_id}")
        if record is not None:
            return Ok(record)

        try:
            record = self._read_record(topic)
        except (OSError, ValueError, KeyError, TypeError) as e:
            return Err(f"Failed to load topic {topic_id}: {e}")

        with self._lock:
            self._records[topic_id] = record
        return Ok(record)

    def _commit(self, record: _TopicRecord) -> Result[None, str]:
        """Persist a new record and swap it in; caller holds the topic lock."""
        topic_id = record.topic.id
        try:
            self._write_record(record)
        except OSError as e:
            return Err(f"Failed to save topic {topic_id}: {e}")

        with self._lock:
            if topic_id not in self._topics:
                return Err(f"Topic not found: {topic_id}")
            self._records[topic_id] = record
            self._topics[topic_id] = record.topic
            self._snapshots.pop(topic_id, None)
            try:
                self._save_index()
            except OSError as e:
                return Err(f"Failed to save topics index: {e}")
        return Ok(None)

    def _read_record(self, topic: Topic) -> _TopicRecord:
        if self._storage_dir is not None:
            path = _topic_file(self._storage_dir, topic.id)
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    return _TopicRecord.from_dict(json.load(f))

        logger.debug("No stored chunks for topic %s", topic.id)
        return _TopicRecord(
            topic=topic,
            documents={},
            chunks={},
            model_name=self._index_model_name,
            last_updated=topic.updated_at,
        )

    def _write_record(self, record: _TopicRecord) -> None:
        if self._storage_dir is None:
            return
        _atomic_write_json(_topic_file(self._storage_dir, record.topic.id), record.to_dict())

    def _load_index(self) -> None:
        if self._storage_dir is None:
            return
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        index_path = self._storage_dir / TOPICS_INDEX_FILENAME
        if not index_path.exists():
            logger.info("Topics index not found, creating new one at %s", index_path)
            self._save_index()
            return

        with open(index_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._topics = {k: Topic.from_dict(t) for k, t in data.get("topics", {}).items()}
        self._index_model_name = str(data.get("model_name") or self._model_name)
        logger.info("Topics index loaded with %d topics", len(self._topics))

        if self._index_model_name != self._model_name:
            logger.warning(
                "Store was last used with embedding model %s, current model is %s",
                self._index_model_name,
                self._model_name,
            )

    def _save_index(self) -> None:
        if self._storage_dir is None:
            return
        _atomic_write_json(
            self._storage_dir / TOPICS_INDEX_FILENAME,
            {
                "topics": {k: t.to_dict() for k, t in self._topics.items()},
                "model_name": self._index_model_name,
                "last_updated": now_ms(),
            },
        )


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f)
    os.replace(tmp, path)


def _topic_file(storage_dir: Path, topic_id: str) -> Path:
    return storage_dir / f"topic-{topic_id}.json"
