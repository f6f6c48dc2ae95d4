"""Rule-based query planner.

Classifies a query by counting regex indicators and decomposes it with a
fixed set of templates: comparisons, temporal/causal questions,
explanations and conjunctions. Deterministic and offline.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from src.agentic.models import (
    Complexity,
    FollowUpQuery,
    QueryContext,
    QueryPlan,
    SearchResult,
    SubQuery,
)
from src.agentic.result import Err, Ok, Result
from src.planning.base import QueryPlanner

logger = logging.getLogger(__name__)

COMPLEX_INDICATORS = (
    re.compile(r"\b(compare|difference|versus|vs|contrast)\b"),
    re.compile(r"\b(before|after|during|since|until)\b"),
    re.compile(r"\b(why|how|explain|describe)\b.*\b(and|also|additionally)\b"),
    re.compile(r"\b(first.*then|step.*step)\b"),
    re.compile(r"\b(impact|effect|result|consequence)\b.*\b(of|from)\b"),
    re.compile(r"\?.*\?"),
)

MODERATE_INDICATORS = (
    re.compile(r"\b(and|or|but|also|additionally|furthermore)\b"),
    re.compile(r"\b(what|when|where|who|which)\b"),
)

_COMPARISON = re.compile(r"\b(compare|difference|versus|vs|contrast)\b")
_TEMPORAL_CAUSAL = re.compile(r"\b(before|after|impact|effect|result|consequence)\b")
_CONSEQUENCE = re.compile(r"\b(after|impact|effect|result|consequence)\b")
_CAUSE = re.compile(r"\b(before|cause|reason)\b")
_EXPLANATORY = re.compile(r"\b(how|why|explain)\b")
_CONJUNCTION = re.compile(r"\b(and|also|additionally)\b")
_CONJUNCTION_SPLIT = re.compile(r"\b(?:and|also|additionally)\b", re.IGNORECASE)

# Character classes below exclude the letters of "vs" / "and", so entities
# containing those letters are cut short or not matched at all.
_ENTITY_PATTERNS = (
    re.compile(r"([^vs]+)\s+(?:vs|versus)\s+([^?.!]+)", re.IGNORECASE),
    re.compile(r"compare\s+([^and]+)\s+and\s+([^?.!]+)", re.IGNORECASE),
    re.compile(
        r"(?:difference|comparison)\s+between\s+([^and]+)\s+and\s+([^?.!]+)",
        re.IGNORECASE,
    ),
)

_QUESTION_WORDS = re.compile(
    r"\b(what|when|where|who|why|how|is|are|was|were|do|does|did|can|could|would|should)\b",
    re.IGNORECASE,
)
_SENTENCE_PUNCTUATION = re.compile(r"[?!.]")
_PHRASE_SPLIT = re.compile(r"\b(?:and|or|but)\b", re.IGNORECASE)

MAX_TOPIC_LENGTH = 50
MAX_CONJUNCTIVE_PARTS = 3


def _strip_question(query: str) -> str:
    return _SENTENCE_PUNCTUATION.sub("", _QUESTION_WORDS.sub("", query)).strip()


class HeuristicQueryPlanner(QueryPlanner):
    """Pattern-matching planner used when no chat model is available."""

    def create_plan(
        self, query: str, context: Optional[QueryContext] = None
    ) -> Result[QueryPlan, str]:
        try:
            complexity = self.analyze_complexity(query)
            sub_queries = self.decompose(query, complexity)
            plan = QueryPlan(
                original_query=query,
                sub_queries=sub_queries,
                strategy=self.determine_strategy(sub_queries),
                complexity=complexity,
            )
        except ValueError as e:
            return Err(f"Heuristic planning failed: {e}")

        logger.debug(
            "Planned %d sub-queries for %s query", len(plan.sub_queries), complexity.value
        )
        return Ok(plan)

    def analyze_complexity(self, query: str) -> Complexity:
        lower = query.lower()
        complex_count = sum(1 for p in COMPLEX_INDICATORS if p.search(lower))
        moderate_count = sum(1 for p in MODERATE_INDICATORS if p.search(lower))

        if complex_count >= 2:
            return Complexity.COMPLEX
        if complex_count >= 1 or moderate_count >= 2:
            return Complexity.MODERATE
        return Complexity.SIMPLE

    def decompose(self, query: str, complexity: Complexity) -> tuple[SubQuery, ...]:
        """Split ``query`` into sub-queries according to its shape."""
        if complexity == Complexity.SIMPLE:
            return (SubQuery(query=query, reasoning="Simple query requiring single retrieval"),)

        lower = query.lower()

        if _COMPARISON.search(lower):
            entities = self.extract_comparison_entities(query)
            if len(entities) >= 2:
                first, second = entities[0], entities[1]
                return (
                    SubQuery(
                        query=f"Information about {first}",
                        reasoning=f"First entity in comparison: {first}",
                    ),
                    SubQuery(
                        query=f"Information about {second}",
                        reasoning=f"Second entity in comparison: {second}",
                        dependencies=(0,),
                    ),
                    SubQuery(
                        query=f"{first} versus {second} differences similarities",
                        reasoning="Direct comparison information",
                        top_k=3,
                        dependencies=(0, 1),
                    ),
                )

        if _TEMPORAL_CAUSAL.search(lower):
            concepts = self.extract_key_phrases(query)
            if concepts:
                concept = concepts[0]
                sub_queries = [SubQuery(query=concept, reasoning="Primary concept or event")]
                if _CONSEQUENCE.search(lower):
                    sub_queries.append(
                        SubQuery(
                            query=f"{concept} impact effect result",
                            reasoning="Consequences or effects",
                            dependencies=(0,),
                        )
                    )
                if _CAUSE.search(lower):
                    sub_queries.append(
                        SubQuery(
                            query=f"{concept} cause reason background",
                            reasoning="Causes or background",
                            dependencies=(0,),
                        )
                    )
                return tuple(sub_queries)

        if _EXPLANATORY.search(lower):
            topic = self.extract_main_topic(query)
            return (
                SubQuery(query=topic, reasoning="Core concept definition and overview"),
                SubQuery(
                    query=f"{topic} examples use cases",
                    reasoning="Practical examples and applications",
                    top_k=3,
                    dependencies=(0,),
                ),
            )

        if _CONJUNCTION.search(lower):
            parts = [p.strip() for p in _CONJUNCTION_SPLIT.split(query) if len(p.strip()) > 3]
            if parts:
                return tuple(
                    SubQuery(query=part, reasoning=f"Sub-question {i + 1}")
                    for i, part in enumerate(parts[:MAX_CONJUNCTIVE_PARTS])
                )

        return (SubQuery(query=query, reasoning="Direct query execution"),)

    def extract_comparison_entities(self, query: str) -> list[str]:
        for pattern in _ENTITY_PATTERNS:
            match = pattern.search(query)
            if match:
                return [match.group(1).strip(), match.group(2).strip()]
        return []

    def extract_key_phrases(self, query: str) -> list[str]:
        cleaned = _strip_question(query)
        return [p.strip() for p in _PHRASE_SPLIT.split(cleaned) if len(p.strip()) > 5]

    def extract_main_topic(self, query: str) -> str:
        return _strip_question(query)[:MAX_TOPIC_LENGTH].strip() or query

    def generate_follow_up_query(
        self,
        original_query: str,
        existing_results: list[SearchResult],
        gaps: list[str],
    ) -> Result[Optional[FollowUpQuery], str]:
        if not gaps:
            return Ok(None)

        key_phrases = self.extract_key_phrases(original_query)
        if not key_phrases:
            return Ok(None)

        main_gap = gaps[0]
        return Ok(
            FollowUpQuery(
                query=f"{key_phrases[0]} {main_gap}",
                reasoning=f"Addressing identified gap: {main_gap}",
            )
        )
