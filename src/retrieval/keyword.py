"""Keyword-based retrieval using BM25 ranking.

Complements vector search by catching exact keyword matches
that embedding models might miss (e.g., acronyms, proper nouns).
Needs every chunk of the topic in memory, which the store's topic
snapshot already provides.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Optional

from rank_bm25 import BM25Okapi

from src.agentic.embeddings import EmbeddingProvider
from src.agentic.models import SearchResult
from src.agentic.result import Err, Ok, Result
from src.retrieval.base import RetrievalStrategy
from src.retrieval.store import TopicSnapshot, VectorStore

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    return _TOKEN.findall(text.lower())


class KeywordStrategy(RetrievalStrategy):
    """Ranks a topic's chunks by BM25 score, normalized to [0, 1]."""

    name = "keyword"

    def __init__(self, store: VectorStore, embeddings: EmbeddingProvider) -> None:
        super().__init__(store, embeddings)
        self._lock = threading.Lock()
        self._indexes: dict[str, tuple[int, Optional[BM25Okapi]]] = {}

    def _index_for(self, snapshot: TopicSnapshot) -> Optional[BM25Okapi]:
        """BM25 index for the snapshot, rebuilt when the topic changes.

        None when no chunk has a single token; BM25 needs a non-zero
        average document length.
        """
        with self._lock:
            cached = self._indexes.get(snapshot.topic_id)
            if cached is not None and cached[0] == snapshot.version:
                return cached[1]

            corpus = [tokenize(c.text) for c in snapshot.chunks]
            bm25 = BM25Okapi(corpus) if any(corpus) else None
            self._indexes[snapshot.topic_id] = (snapshot.version, bm25)
            for stale in [t for t in self._indexes if self._store.get_topic(t) is None]:
                del self._indexes[stale]
            logger.debug(
                "Built BM25 index over %d chunks for topic %s",
                len(snapshot.chunks),
                snapshot.topic_id,
            )
            return bm25

    def forget(self, topic_id: str) -> None:
        """Drop the cached index of a topic."""
        with self._lock:
            self._indexes.pop(topic_id, None)

    @property
    def indexed_topics(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._indexes)

    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        snapshot_result = self._store.snapshot(topic_id)
        if snapshot_result.is_err():
            self.forget(topic_id)
            return snapshot_result  # type: ignore[return-value]
        snapshot = snapshot_result.unwrap()

        query_tokens = tokenize(query)
        if not snapshot.chunks or not query_tokens or top_k <= 0:
            return Ok([])

        try:
            bm25 = self._index_for(snapshot)
            if bm25 is None:
                return Ok([])
            scores = bm25.get_scores(query_tokens)
        except Exception as e:
            return Err(f"BM25 retrieval failed for topic {topic_id}: {e}")

        max_score = float(max(scores))
        if max_score <= 0.0:
            return Ok([])

        top_indices = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)[:top_k]
        return Ok(
            [
                SearchResult(
                    chunk=snapshot.chunks[i],
                    similarity=float(scores[i]) / max_score,
                    document_name=snapshot.chunks[i].metadata.document_name,
                )
                for i in top_indices
                if scores[i] > 0.0
            ]
        )
