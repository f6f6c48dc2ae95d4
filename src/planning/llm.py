"""Query planner backed by a chat model.

The model is asked for a JSON plan; the reply is validated with pydantic
and any failure is returned as ``Err`` so the orchestrator can fall back
to the single-query plan.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.agentic.llm import ChatModel
from src.agentic.models import (
    DEFAULT_SUB_QUERY_TOP_K,
    Complexity,
    FollowUpQuery,
    QueryContext,
    QueryPlan,
    SearchResult,
    SubQuery,
)
from src.agentic.parsing import parse_json_reply
from src.agentic.result import Err, Ok, Result
from src.planning.base import QueryPlanner

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a query planning assistant for a RAG system."

PLAN_PROMPT = """Analyze the user's query and create a retrieval plan.

User Query: "{query}"

Analyze this query and provide:
1. Complexity level (simple/moderate/complex)
2. Sub-queries needed to fully answer this question
3. Reasoning for each sub-query
4. Whether sub-queries can be executed in parallel or must be sequential

Guidelines:
- Simple queries: Single concept, can be answered with one search
- Moderate queries: Multiple concepts, 2-3 searches needed
- Complex queries: Comparisons, temporal relationships, multi-step reasoning

Respond in this JSON format:
{{
  "complexity": "simple|moderate|complex",
  "subQueries": [
    {{"query": "specific search query", "reasoning": "why this query is needed", "topK": 5}}
  ],
  "strategy": "parallel|sequential"
}}

Respond ONLY with valid JSON, no other text."""

FOLLOW_UP_PROMPT = """You are helping refine a RAG search that hasn't fully answered the user's question.

Original Query: "{query}"

Current Results Summary:
{results}

Identified Gaps:
{gaps}

Generate a follow-up search query that would fill the most important gap.

Respond in this JSON format:
{{"query": "specific follow-up search query", "reasoning": "why this query addresses the gaps"}}

Respond ONLY with valid JSON, no other text."""


class SubQueryReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    reasoning: str = ""
    top_k: int = Field(default=DEFAULT_SUB_QUERY_TOP_K, ge=1, alias="topK")
    dependencies: list[int] = Field(default_factory=list)


class PlanReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    complexity: Complexity = Complexity.MODERATE
    sub_queries: list[SubQueryReply] = Field(default_factory=list, alias="subQueries")
    strategy: Literal["sequential", "parallel"] = "sequential"


class FollowUpReply(BaseModel):
    query: str = Field(min_length=1)
    reasoning: str = ""


def describe_context(context: QueryContext) -> str:
    """Topic metadata block appended to the system prompt."""
    lines = ["", "RAG Database Context:"]
    if context.topic_name:
        lines.append(f'Current Topic: "{context.topic_name}"')
    if context.topic_description:
        lines.append(f"Topic Description: {context.topic_description}")
    if context.document_count:
        lines.append(f"Available Documents: {context.document_count} documents indexed")
    if context.recent_queries:
        lines.append("")
        lines.append("Recent Queries in this topic:")
        lines.extend(f'- "{q}"' for q in context.recent_queries)
        lines.append(
            "Consider these recent queries when planning - "
            "users may be building on previous knowledge."
        )
    return "\n".join(lines)


class LLMQueryPlanner(QueryPlanner):
    """Asks the chat model to decompose the query."""

    def __init__(self, chat_model: ChatModel) -> None:
        self._chat_model = chat_model

    def create_plan(
        self, query: str, context: Optional[QueryContext] = None
    ) -> Result[QueryPlan, str]:
        system = SYSTEM_PROMPT
        if context is not None:
            system += "\n" + describe_context(context)

        reply = self._chat_model.complete(PLAN_PROMPT.format(query=query), system=system)
        if reply.is_err():
            return Err(f"LLM query planning failed: {reply.unwrap_err()}")

        parsed = parse_json_reply(reply.unwrap(), PlanReply)
        if parsed.is_err():
            return Err(f"LLM query plan unusable: {parsed.unwrap_err()}")
        plan_reply = parsed.unwrap()

        sub_queries = tuple(
            SubQuery(
                query=sq.query,
                reasoning=sq.reasoning,
                top_k=sq.top_k,
                dependencies=tuple(sq.dependencies),
            )
            for sq in plan_reply.sub_queries
        ) or (SubQuery(query=query, reasoning="Default"),)

        logger.debug("LLM planned %d sub-queries", len(sub_queries))
        return Ok(
            QueryPlan(
                original_query=query,
                sub_queries=sub_queries,
                strategy=plan_reply.strategy,
                complexity=plan_reply.complexity,
            )
        )

    def generate_follow_up_query(
        self,
        original_query: str,
        existing_results: list[SearchResult],
        gaps: list[str],
    ) -> Result[Optional[FollowUpQuery], str]:
        if not gaps:
            return Ok(None)

        results = "\n".join(
            f"{i + 1}. {r.chunk.text[:100]}..." for i, r in enumerate(existing_results[:3])
        )
        prompt = FOLLOW_UP_PROMPT.format(
            query=original_query,
            results=results,
            gaps="\n".join(f"{i + 1}. {g}" for i, g in enumerate(gaps)),
        )

        reply = self._chat_model.complete(prompt)
        if reply.is_err():
            return Err(f"LLM follow-up generation failed: {reply.unwrap_err()}")

        parsed = parse_json_reply(reply.unwrap(), FollowUpReply)
        if parsed.is_err():
            return Err(f"LLM follow-up unusable: {parsed.unwrap_err()}")

        follow_up = parsed.unwrap()
        return Ok(FollowUpQuery(query=follow_up.query, reasoning=follow_up.reasoning))
