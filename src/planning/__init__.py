"""Query planners: heuristic decomposition and chat-model planning."""

from src.planning.base import QueryPlanner
from src.planning.heuristic import HeuristicQueryPlanner
from src.planning.llm import LLMQueryPlanner

__all__ = ["QueryPlanner", "HeuristicQueryPlanner", "LLMQueryPlanner"]
