"""Result evaluator backed by a chat model.

Transport failures fall back to the heuristic evaluator; a reply that
cannot be parsed becomes a neutral, incomplete evaluation.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.agentic.llm import ChatModel
from src.agentic.models import Evaluation, EvaluationContext, SearchResult
from src.agentic.parsing import parse_json_reply
from src.agentic.result import Ok, Result
from src.evaluation.base import NO_RESULTS, ResultEvaluator, round_confidence
from src.evaluation.heuristic import HeuristicResultEvaluator

logger = logging.getLogger(__name__)

PARSE_FAILURE = Evaluation(
    confidence=0.5,
    is_complete=False,
    gaps=("Evaluation parsing failed",),
    reasoning="Could not parse LLM response",
)

EVALUATION_PROMPT = """You are evaluating search results from a RAG system to determine if they adequately answer the user's query.

User Query: "{query}"

Search Results:
{results}

Evaluate these results and determine:
1. Confidence score (0-1): How well do these results answer the query?
2. Is complete (true/false): Are the results sufficient to answer the query?
3. Information gaps: What key information is missing (if any)?
4. Reasoning: Brief explanation of your evaluation

Respond in this JSON format:
{{
  "confidence": 0.85,
  "isComplete": true,
  "gaps": ["missing examples", "no step-by-step instructions"],
  "reasoning": "Results provide good overview but lack practical examples"
}}

Respond ONLY with valid JSON, no other text."""

PREVIEW_CHARS = 200


class EvaluationReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    is_complete: Optional[bool] = Field(default=None, alias="isComplete")
    gaps: list[str] = Field(default_factory=list)
    reasoning: str = "LLM evaluation completed"


def format_results(results: list[SearchResult]) -> str:
    blocks = []
    for i, r in enumerate(results[:5]):
        text = r.chunk.text[:PREVIEW_CHARS]
        if len(r.chunk.text) > PREVIEW_CHARS:
            text += "..."
        blocks.append(
            f"Result {i + 1} (similarity: {r.similarity:.2f}):\n"
            f"Document: {r.document_name}\n"
            f"Text: {text}\n"
        )
    return "\n".join(blocks)


def describe_context(context: EvaluationContext) -> str:
    text = "You are evaluating search results from a RAG system."
    if context.topic_name:
        text += f'\n\nTopic: "{context.topic_name}"'
    if context.previous_steps:
        text += "\n\nPrevious search steps in this session:\n" + "\n".join(context.previous_steps)
        text += "\n\nConsider what information has already been gathered."
    return text


class LLMResultEvaluator(ResultEvaluator):
    """Asks the chat model to grade the results."""

    def __init__(
        self,
        chat_model: ChatModel,
        fallback: Optional[ResultEvaluator] = None,
    ) -> None:
        self._chat_model = chat_model
        self._fallback = fallback or HeuristicResultEvaluator()

    def evaluate(
        self,
        query: str,
        results: list[SearchResult],
        confidence_threshold: float,
        context: Optional[EvaluationContext] = None,
    ) -> Result[Evaluation, str]:
        if not results:
            return Ok(NO_RESULTS)

        prompt = EVALUATION_PROMPT.format(query=query, results=format_results(results))
        system = describe_context(context) if context is not None else None

        reply = self._chat_model.complete(prompt, system=system)
        if reply.is_err():
            logger.warning(
                "LLM evaluation failed, using heuristic evaluation: %s", reply.unwrap_err()
            )
            return self._fallback.evaluate(query, results, confidence_threshold, context)

        parsed = parse_json_reply(reply.unwrap(), EvaluationReply)
        if parsed.is_err():
            logger.warning("Failed to parse evaluation result: %s", parsed.unwrap_err())
            return Ok(PARSE_FAILURE)

        verdict = parsed.unwrap()
        is_complete = verdict.is_complete
        if is_complete is None:
            is_complete = verdict.confidence >= confidence_threshold

        return Ok(
            Evaluation(
                confidence=round_confidence(verdict.confidence),
                is_complete=is_complete,
                gaps=tuple(verdict.gaps),
                reasoning=verdict.reasoning,
            )
        )
