"""Result evaluators: decide whether retrieved chunks answer a query."""

from src.evaluation.base import ResultEvaluator
from src.evaluation.heuristic import HeuristicResultEvaluator
from src.evaluation.llm import LLMResultEvaluator

__all__ = ["ResultEvaluator", "HeuristicResultEvaluator", "LLMResultEvaluator"]
