"""Query planner interface and the fallbacks every planner shares."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional

from src.agentic.models import (
    Complexity,
    FollowUpQuery,
    PlanStrategy,
    QueryContext,
    QueryPlan,
    SearchResult,
    SubQuery,
)
from src.agentic.result import Result

_COMPLEX_FALLBACK = re.compile(r"\b(compare|versus|difference)\b")
_MODERATE_FALLBACK = re.compile(r"\b(and|also|how|why)\b")


class QueryPlanner(ABC):
    """Turns a user query into an ordered list of sub-queries."""

    @abstractmethod
    def create_plan(
        self, query: str, context: Optional[QueryContext] = None
    ) -> Result[QueryPlan, str]:
        """Analyze ``query`` and decide which retrievals to run."""
        ...

    @abstractmethod
    def generate_follow_up_query(
        self,
        original_query: str,
        existing_results: list[SearchResult],
        gaps: list[str],
    ) -> Result[Optional[FollowUpQuery], str]:
        """Propose one more retrieval that targets the first gap, if any."""
        ...

    def fallback_single_query_plan(self, query: str) -> QueryPlan:
        """Plan that runs the query as-is, used when planning fails."""
        lower = query.lower()
        if _COMPLEX_FALLBACK.search(lower):
            complexity = Complexity.COMPLEX
        elif _MODERATE_FALLBACK.search(lower):
            complexity = Complexity.MODERATE
        else:
            complexity = Complexity.SIMPLE

        return QueryPlan(
            original_query=query,
            sub_queries=(SubQuery(query=query, reasoning="Direct query execution"),),
            strategy="sequential",
            complexity=complexity,
        )

    def fallback_follow_up_query(
        self, original_query: str, gaps: list[str]
    ) -> Optional[FollowUpQuery]:
        if not gaps:
            return None

        main_gap = gaps[0]
        concept = next((w for w in original_query.split() if len(w) > 3), "information")
        return FollowUpQuery(query=f"{concept} {main_gap}", reasoning=f"Addressing gap: {main_gap}")

    @staticmethod
    def determine_strategy(sub_queries: tuple[SubQuery, ...]) -> PlanStrategy:
        """Sequential when any sub-query declares dependencies."""
        if any(sq.dependencies for sq in sub_queries):
            return "sequential"
        return "parallel"
