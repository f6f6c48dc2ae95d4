"""Result evaluator interface."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional

from src.agentic.models import Evaluation, EvaluationContext, SearchResult
from src.agentic.result import Result

NO_RESULTS = Evaluation(
    confidence=0.0,
    is_complete=False,
    gaps=("No results found",),
    reasoning="No search results returned",
)


def round_confidence(value: float) -> float:
    """Clamp to [0, 1] and round half up to two decimals."""
    return math.floor(min(1.0, max(0.0, value)) * 100 + 0.5) / 100


class ResultEvaluator(ABC):
    """Judges whether retrieved results answer a query."""

    @abstractmethod
    def evaluate(
        self,
        query: str,
        results: list[SearchResult],
        confidence_threshold: float,
        context: Optional[EvaluationContext] = None,
    ) -> Result[Evaluation, str]:
        """Score ``results`` for ``query`` and list what is still missing."""
        ...
