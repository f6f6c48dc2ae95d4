"""Chat model boundary used by the LLM planner and evaluator.

The planner and evaluator only need "send a prompt, get text back".
Whether such a model exists is decided once, when the orchestrator is
built: ``create_chat_model`` returns ``None`` when no model can be used,
and the orchestrator then stays on the heuristic planner/evaluator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from src.agentic.config import RAGConfig, RunMode
from src.agentic.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class ChatModel(ABC):
    """Abstract chat model interface."""

    @abstractmethod
    def complete(self, prompt: str, system: Optional[str] = None) -> Result[str, str]:
        """Return the model's reply to ``prompt``."""
        ...


class OpenAIChatModel(ChatModel):
    """OpenAI chat model via langchain-openai."""

    def __init__(self, config: RAGConfig) -> None:
        self._config = config
        self._llm: Optional[object] = None

    def _client(self):  # type: ignore[no-untyped-def]
        if self._llm is None:
            from langchain_openai import ChatOpenAI

            self._llm = ChatOpenAI(
                model=self._config.llm_model,
                temperature=self._config.llm_temperature,
                max_tokens=self._config.llm_max_tokens,
                openai_api_key=self._config.openai_api_key,
            )
        return self._llm

    def complete(self, prompt: str, system: Optional[str] = None) -> Result[str, str]:
        try:
            from langchain_core.messages import HumanMessage, SystemMessage

            messages = []
            if system:
                messages.append(SystemMessage(content=system))
            messages.append(HumanMessage(content=prompt))

            response = self._client().invoke(messages)
            return Ok(str(response.content))
        except ImportError:
            return Err("langchain-openai not installed")
        except Exception as e:
            return Err(f"OpenAI chat completion failed: {e}")


def create_chat_model(config: RAGConfig) -> Optional[ChatModel]:
    """Return a chat model, or None when LLM planning cannot be used."""
    if config.mode != RunMode.PRODUCTION:
        logger.debug("Chat model disabled in %s mode", config.mode.value)
        return None
    if not config.openai_api_key:
        logger.warning("Production mode without RAG_OPENAI_API_KEY; no chat model")
        return None
    return OpenAIChatModel(config)
