"""Agentic retrieval core - configuration, data model and result types.

The orchestrator lives in ``src.agentic.orchestrator`` and is imported
from there; it depends on the retrieval, planning and evaluation packages,
which themselves build on this package.
"""

from src.agentic.config import AgenticConfig, MockConfig, RAGConfig
from src.agentic.result import Err, Ok, Result

__all__ = ["AgenticConfig", "MockConfig", "RAGConfig", "Result", "Ok", "Err"]
