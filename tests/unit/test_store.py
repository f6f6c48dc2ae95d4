"""Tests for the topic-scoped vector store."""

import json
import threading
from pathlib import Path

import pytest

from src.agentic.models import Chunk, ChunkMetadata, new_id
from src.retrieval.store import VectorStore


def make_chunks(
    topic_id: str,
    embeddings: list[list[float]],
    document_id: str | None = None,
    document_name: str = "guide.md",
) -> list[Chunk]:
    document_id = document_id or new_id()
    return [
        Chunk(
            document_id=document_id,
            topic_id=topic_id,
            text=f"chunk {i} of {document_name}",
            embedding=embedding,
            metadata=ChunkMetadata(document_name=document_name, chunk_index=i),
        )
        for i, embedding in enumerate(embeddings)
    ]


def store_with_topic(**kwargs: object) -> tuple[VectorStore, str]:
    store = VectorStore(model_name="test-model", **kwargs)  # type: ignore[arg-type]
    topic = store.create_topic("Rust").unwrap()
    return store, topic.id


class TestTopics:
    def test_create_and_get(self) -> None:
        store = VectorStore(model_name="test-model")
        topic = store.create_topic("Rust", "Systems language notes").unwrap()
        assert store.get_topic(topic.id) == topic
        assert store.get_topic_by_name("rust") == topic
        assert [t.id for t in store.get_topics()] == [topic.id]

    def test_duplicate_name_case_insensitive(self) -> None:
        store = VectorStore(model_name="test-model")
        store.create_topic("Rust").unwrap()
        result = store.create_topic("RUST")
        assert result.is_err()
        assert "already exists" in result.unwrap_err()

    def test_blank_name(self) -> None:
        assert VectorStore(model_name="test-model").create_topic("  ").is_err()

    def test_delete_topic(self) -> None:
        store, topic_id = store_with_topic()
        assert store.delete_topic(topic_id).is_ok()
        assert store.get_topic(topic_id) is None
        assert store.delete_topic(topic_id).is_err()

    def test_delete_topic_releases_its_lock(self) -> None:
        store, topic_id = store_with_topic()
        store.search(topic_id, [1.0, 0.0], 1).unwrap()
        assert topic_id in store._topic_locks

        store.delete_topic(topic_id).unwrap()
        assert topic_id not in store._topic_locks


class TestDocuments:
    def test_add_document_updates_count(self) -> None:
        store, topic_id = store_with_topic()
        chunks = make_chunks(topic_id, [[1.0, 0.0], [0.0, 1.0]])
        document = store.add_document(topic_id, "guide.md", "/docs/guide.md", "markdown", chunks)

        assert document.unwrap().chunk_count == 2
        assert document.unwrap().id == chunks[0].document_id
        assert store.get_topic(topic_id).document_count == 1  # type: ignore[union-attr]
        assert len(store.get_chunks(topic_id).unwrap()) == 2

    def test_unknown_topic(self) -> None:
        store = VectorStore(model_name="test-model")
        result = store.add_document("missing", "a.md", "/a.md", "markdown", [])
        assert result.is_err()
        assert "Topic not found" in result.unwrap_err()

    def test_rejects_chunks_from_other_topic(self) -> None:
        store, topic_id = store_with_topic()
        chunks = make_chunks("other-topic", [[1.0, 0.0]])
        result = store.add_document(topic_id, "a.md", "/a.md", "markdown", chunks)
        assert result.is_err()

    def test_rejects_mixed_dimensions(self) -> None:
        store, topic_id = store_with_topic()
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        result = store.add_document(
            topic_id, "b.md", "/b.md", "markdown", make_chunks(topic_id, [[1.0, 0.0, 0.0]])
        )
        assert result.is_err()
        assert "dimension mismatch" in result.unwrap_err()

    def test_delete_document(self) -> None:
        store, topic_id = store_with_topic()
        keep = make_chunks(topic_id, [[1.0, 0.0]], document_name="keep.md")
        drop = make_chunks(topic_id, [[0.0, 1.0], [0.5, 0.5]], document_name="drop.md")
        store.add_document(topic_id, "keep.md", "/keep.md", "markdown", keep).unwrap()
        document = store.add_document(topic_id, "drop.md", "/drop.md", "markdown", drop).unwrap()

        assert store.delete_document(topic_id, document.id).unwrap() == 2
        remaining = store.get_chunks(topic_id).unwrap()
        assert [c.id for c in remaining] == [keep[0].id]
        assert store.get_topic(topic_id).document_count == 1  # type: ignore[union-attr]

    def test_model_mismatch_refused(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()

        reopened = VectorStore(model_name="other-model", storage_dir=tmp_path)
        assert reopened.check_model_compatibility(topic_id).unwrap() is not None
        result = reopened.add_document(
            topic_id, "b.md", "/b.md", "markdown", make_chunks(topic_id, [[0.0, 1.0]])
        )
        assert result.is_err()
        assert "test-model" in result.unwrap_err()

    def test_empty_topic_accepts_any_model(self) -> None:
        store, topic_id = store_with_topic()
        assert store.check_model_compatibility(topic_id).unwrap() is None


class TestSearch:
    def test_orders_by_similarity(self) -> None:
        store, topic_id = store_with_topic()
        chunks = make_chunks(topic_id, [[0.0, 1.0], [1.0, 0.0]])
        store.add_document(topic_id, "a.md", "/a.md", "markdown", chunks).unwrap()

        results = store.search(topic_id, [1.0, 0.0], 2).unwrap()
        assert [r.chunk.id for r in results] == [chunks[1].id, chunks[0].id]
        assert [r.similarity for r in results] == pytest.approx([1.0, 0.0])
        assert results[0].document_name == "guide.md"

    def test_ties_keep_insertion_order(self) -> None:
        store, topic_id = store_with_topic()
        chunks = make_chunks(topic_id, [[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
        store.add_document(topic_id, "a.md", "/a.md", "markdown", chunks).unwrap()

        results = store.search(topic_id, [1.0, 0.0], 3).unwrap()
        assert [r.chunk.id for r in results] == [c.id for c in chunks]

    def test_top_k_bounds(self) -> None:
        store, topic_id = store_with_topic()
        chunks = make_chunks(topic_id, [[1.0, 0.0], [0.0, 1.0]])
        store.add_document(topic_id, "a.md", "/a.md", "markdown", chunks).unwrap()

        assert len(store.search(topic_id, [1.0, 0.0], 1).unwrap()) == 1
        assert len(store.search(topic_id, [1.0, 0.0], 10).unwrap()) == 2
        assert store.search(topic_id, [1.0, 0.0], 0).unwrap() == []

    def test_empty_topic(self) -> None:
        store, topic_id = store_with_topic()
        assert store.search(topic_id, [1.0, 0.0], 5).unwrap() == []

    def test_unknown_topic(self) -> None:
        store = VectorStore(model_name="test-model")
        assert store.search("missing", [1.0], 5).is_err()

    def test_dimension_mismatch(self) -> None:
        store, topic_id = store_with_topic()
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        result = store.search(topic_id, [1.0, 0.0, 0.0], 5)
        assert result.is_err()
        assert "expected 2, got 3" in result.unwrap_err()

    def test_zero_query_vector(self) -> None:
        store, topic_id = store_with_topic()
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        results = store.search(topic_id, [0.0, 0.0], 5).unwrap()
        assert results[0].similarity == 0.0

    def test_snapshot_replaced_after_mutation(self) -> None:
        store, topic_id = store_with_topic()
        before = store.snapshot(topic_id).unwrap()
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        after = store.snapshot(topic_id).unwrap()

        assert before.chunks == ()
        assert len(after.chunks) == 1
        assert after.version != before.version

    def test_concurrent_adds_are_serialized(self) -> None:
        store, topic_id = store_with_topic()

        def add(i: int) -> None:
            chunks = make_chunks(topic_id, [[1.0, float(i)]], document_name=f"doc-{i}.md")
            store.add_document(topic_id, f"doc-{i}.md", f"/doc-{i}.md", "markdown", chunks).unwrap()

        threads = [threading.Thread(target=add, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get_chunks(topic_id).unwrap()) == 8
        assert store.get_topic(topic_id).document_count == 8  # type: ignore[union-attr]


class TestPersistence:
    def test_files_written(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()

        index = json.loads((tmp_path / "topics.json").read_text())
        assert topic_id in index["topics"]
        assert index["model_name"] == "test-model"

        topic_file = json.loads((tmp_path / f"topic-{topic_id}.json").read_text())
        assert set(topic_file) == {"topic", "documents", "chunks", "model_name", "last_updated"}
        assert len(topic_file["chunks"]) == 1

    def test_reload_from_disk(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        chunks = make_chunks(topic_id, [[0.0, 1.0], [1.0, 0.0]])
        store.add_document(topic_id, "a.md", "/a.md", "markdown", chunks).unwrap()

        reopened = VectorStore(model_name="test-model", storage_dir=tmp_path)
        assert reopened.get_topic(topic_id).document_count == 1  # type: ignore[union-attr]
        results = reopened.search(topic_id, [1.0, 0.0], 1).unwrap()
        assert results[0].chunk.id == chunks[1].id

    def test_delete_topic_removes_file(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        store.delete_topic(topic_id).unwrap()
        assert not (tmp_path / f"topic-{topic_id}.json").exists()

    def test_missing_topic_file_loads_empty(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0]])
        ).unwrap()
        (tmp_path / f"topic-{topic_id}.json").unlink()

        reopened = VectorStore(model_name="test-model", storage_dir=tmp_path)
        assert reopened.get_chunks(topic_id).unwrap() == ()
        assert reopened.get_documents(topic_id).unwrap() == []

    def test_stats_and_clear(self, tmp_path: Path) -> None:
        store, topic_id = store_with_topic(storage_dir=tmp_path)
        store.add_document(
            topic_id, "a.md", "/a.md", "markdown", make_chunks(topic_id, [[1.0, 0.0], [0.0, 1.0]])
        ).unwrap()

        stats = store.get_stats()
        assert (stats.topic_count, stats.document_count, stats.chunk_count) == (1, 1, 2)

        store.clear().unwrap()
        assert store.get_topics() == []
        assert store.get_stats().chunk_count == 0
