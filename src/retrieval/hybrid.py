"""Hybrid retrieval blending vector similarity with keyword matching.

Over-fetches vector candidates, scores each candidate's text against the
query's keywords and re-ranks by a weighted blend of the two:
- Vector: understands meaning, handles paraphrasing
- Keyword: rewards exact terms, acronyms and proper nouns
"""

from __future__ import annotations

import math
import re

from src.agentic.embeddings import EmbeddingProvider
from src.agentic.models import SearchResult
from src.agentic.result import Ok, Result
from src.retrieval.base import RetrievalStrategy
from src.retrieval.store import VectorStore

STOP_WORDS = frozenset(
    {
        "what", "when", "where", "who", "why", "how",
        "is", "are", "was", "were", "do", "does", "did",
        "the", "a", "an", "and", "or", "but",
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "about",
        "as", "into", "through", "during", "before", "after", "above", "below",
        "between", "under", "again", "further", "then", "once",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(query: str) -> list[str]:
    """Unique lowercase query terms longer than two characters, minus stop words."""
    words = _PUNCTUATION.sub(" ", query.lower()).split()
    keywords = (w for w in words if len(w) > 2 and w not in STOP_WORDS)
    return list(dict.fromkeys(keywords))


def keyword_score(text: str, keywords: list[str]) -> float:
    """Score in [0, 1] for how strongly ``text`` matches ``keywords``.

    Each whole-word occurrence counts ``ln(len(keyword) + 1)``, so longer
    keywords matter more; the total is log-damped against ten hits per
    keyword.
    """
    if not keywords:
        return 0.0

    text_lower = text.lower()
    match_weight = 0.0
    total_weight = 0.0
    for keyword in keywords:
        hits = len(re.findall(rf"\b{re.escape(keyword)}\b", text_lower))
        if hits:
            weight = math.log(len(keyword) + 1)
            match_weight += hits * weight
            total_weight += weight

    if total_weight == 0.0:
        return 0.0
    return min(1.0, math.log(match_weight + 1) / math.log(len(keywords) * 10 + 1))


class HybridStrategy(RetrievalStrategy):
    """Re-ranks vector candidates by ``vector_weight*sim + keyword_weight*kw``."""

    name = "hybrid"

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        vector_weight: float = 0.7,
        keyword_weight: float = 0.3,
    ) -> None:
        super().__init__(store, embeddings)
        if not math.isclose(vector_weight + keyword_weight, 1.0):
            raise ValueError(
                f"Hybrid weights must sum to 1.0, got {vector_weight} + {keyword_weight}"
            )
        self._vector_weight = vector_weight
        self._keyword_weight = keyword_weight

    def blend(self, vector_similarity: float, keyword: float) -> float:
        return self._vector_weight * vector_similarity + self._keyword_weight * keyword

    def search(
        self, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        candidates = self._vector_candidates(topic_id, query, top_k * 2)
        if candidates.is_err():
            return candidates

        keywords = extract_keywords(query)
        blended = [
            result.with_similarity(
                self.blend(result.similarity, keyword_score(result.chunk.text, keywords))
            )
            for result in candidates.unwrap()
        ]
        blended.sort(key=lambda r: r.similarity, reverse=True)
        return Ok(blended[:top_k])
