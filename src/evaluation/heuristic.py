"""Heuristic result evaluator.

Confidence is a weighted mix of three signals:
- similarity: mean similarity of the top five results
- diversity: how many distinct documents and sections the results span
- coverage: share of the query's key terms found in the result texts

Gaps come from a table of question shapes (examples, processes,
explanations, pros/cons, comparisons) checked against the result texts.
"""

from __future__ import annotations

import re
from typing import Optional

from src.agentic.models import Evaluation, EvaluationContext, SearchResult
from src.agentic.result import Ok, Result
from src.evaluation.base import NO_RESULTS, ResultEvaluator, round_confidence

SIMILARITY_WEIGHT = 0.5
DIVERSITY_WEIGHT = 0.2
COVERAGE_WEIGHT = 0.3
TOP_RESULTS = 5

STOP_WORDS = frozenset(
    {
        "what", "when", "where", "who", "why", "how",
        "is", "are", "was", "were", "do", "does", "did",
        "the", "a", "an", "and", "or", "but",
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "about",
    }
)

_TERM_PUNCTUATION = re.compile(r"[?!.,;:]")

# (pattern the query matches, gap name, evidence the results must contain)
GAP_PATTERNS = (
    (
        re.compile(r"\b(example|examples|instance|instances)\b"),
        "specific examples",
        re.compile(r"\b(example|instance|such as|for example|e\.g\.)\b", re.IGNORECASE),
    ),
    (
        re.compile(r"\b(how|process|step|steps|procedure)\b"),
        "step-by-step process",
        re.compile(r"\b(first|second|third|step|then|next|finally)\b", re.IGNORECASE),
    ),
    (
        re.compile(r"\b(why|reason|cause|because)\b"),
        "explanatory reasoning",
        re.compile(r"\b(because|reason|cause|due to|therefore)\b", re.IGNORECASE),
    ),
    (
        re.compile(r"\b(benefit|advantage|pro|cons|disadvantage)\b"),
        "benefits or drawbacks",
        re.compile(
            r"\b(benefit|advantage|pro|cons|disadvantage|drawback|limitation)\b",
            re.IGNORECASE,
        ),
    ),
    (
        re.compile(r"\b(compare|difference|versus|vs|contrast)\b"),
        "comparative information",
        re.compile(
            r"\b(compare|difference|versus|vs|contrast|similar|different|unlike)\b",
            re.IGNORECASE,
        ),
    ),
)


def extract_key_terms(query: str) -> list[str]:
    words = _TERM_PUNCTUATION.sub("", query.lower()).split()
    return list(dict.fromkeys(w for w in words if len(w) > 3 and w not in STOP_WORDS))


def similarity_score(results: list[SearchResult]) -> float:
    if not results:
        return 0.0
    top = results[:TOP_RESULTS]
    return max(0.0, min(1.0, sum(r.similarity for r in top) / len(top)))


def diversity_score(results: list[SearchResult]) -> float:
    if len(results) <= 1:
        return 0.5

    window = min(len(results), TOP_RESULTS)
    documents = len({r.document_name for r in results}) / window
    sections = len({r.chunk.metadata.section_title or "unknown" for r in results}) / window
    return (documents + sections) / 2


def coverage_score(query: str, results: list[SearchResult]) -> float:
    terms = extract_key_terms(query)
    if not terms:
        return 0.5
    texts = [r.chunk.text.lower() for r in results]
    covered = sum(1 for term in terms if any(term in text for text in texts))
    return covered / len(terms)


def identify_gaps(query: str, results: list[SearchResult]) -> list[str]:
    query_lower = query.lower()
    gaps = [
        gap
        for asks, gap, evidence in GAP_PATTERNS
        if asks.search(query_lower) and not any(evidence.search(r.chunk.text) for r in results)
    ]

    terms = extract_key_terms(query)
    texts = [r.chunk.text.lower() for r in results]
    missing = [t for t in terms if not any(t in text for text in texts)]
    if len(missing) > len(terms) / 2:
        gaps.append(f"information about: {', '.join(missing[:3])}")

    return gaps


def _grade(score: float, high: float, mid: float, labels: tuple[str, str, str]) -> str:
    if score >= high:
        return labels[0]
    if score >= mid:
        return labels[1]
    return labels[2]


def describe(
    confidence: float,
    similarity: float,
    diversity: float,
    coverage: float,
    gaps: list[str],
) -> str:
    parts = [
        _grade(
            similarity,
            0.7,
            0.5,
            ("High relevance match", "Moderate relevance match", "Low relevance match"),
        ),
        _grade(
            diversity,
            0.6,
            0.4,
            ("diverse sources", "moderate source diversity", "limited source diversity"),
        ),
        _grade(
            coverage,
            0.7,
            0.5,
            ("good query coverage", "partial query coverage", "limited query coverage"),
        ),
    ]
    if gaps:
        parts.append(f"gaps: {', '.join(gaps)}")
    return f"{'; '.join(parts)}. Overall confidence: {round(confidence * 100)}%"


class HeuristicResultEvaluator(ResultEvaluator):
    """Offline evaluator; pure and idempotent."""

    def evaluate(
        self,
        query: str,
        results: list[SearchResult],
        confidence_threshold: float,
        context: Optional[EvaluationContext] = None,
    ) -> Result[Evaluation, str]:
        if not results:
            return Ok(NO_RESULTS)

        similarity = similarity_score(results)
        diversity = diversity_score(results)
        coverage = coverage_score(query, results)
        confidence = (
            SIMILARITY_WEIGHT * similarity
            + DIVERSITY_WEIGHT * diversity
            + COVERAGE_WEIGHT * coverage
        )
        gaps = identify_gaps(query, results)

        return Ok(
            Evaluation(
                confidence=round_confidence(confidence),
                is_complete=confidence >= confidence_threshold and not gaps,
                gaps=tuple(gaps),
                reasoning=describe(confidence, similarity, diversity, coverage, gaps),
            )
        )
