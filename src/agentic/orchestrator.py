"""Agentic retrieval loop.

The orchestrator is the primary entry point. For one query it:
1. Plans: decomposes the query into ordered sub-queries
2. Retrieves: runs the configured strategy for each sub-query
3. Evaluates: scores each retrieval and, when gaps remain, issues one
   follow-up retrieval aimed at the first gap
4. Merges: deduplicates all results by chunk, keeping the best score,
   and evaluates the merged set against the original query

Every retrieval counts against ``max_iterations``. All collaborators are
injected, so mock mode runs without network access or API keys.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.agentic.config import AgenticConfig, MockConfig, RAGConfig, RetrievalMethod
from src.agentic.embeddings import EmbeddingProvider, create_embedding_provider
from src.agentic.llm import ChatModel, create_chat_model
from src.agentic.models import (
    DEFAULT_SUB_QUERY_TOP_K,
    AgenticSearchResult,
    AgenticSearchStep,
    Evaluation,
    EvaluationContext,
    QueryContext,
    QueryPlan,
    SearchResult,
)
from src.agentic.result import Err, Ok, Result
from src.evaluation import HeuristicResultEvaluator, LLMResultEvaluator, ResultEvaluator
from src.planning import HeuristicQueryPlanner, LLMQueryPlanner, QueryPlanner
from src.retrieval import RetrievalStrategy, VectorStore, create_strategies

logger = logging.getLogger(__name__)

FOLLOW_UP_REASONING = "Follow-up query to address information gaps"

EVALUATION_UNAVAILABLE = Evaluation(
    confidence=0.0,
    is_complete=False,
    gaps=("Evaluation unavailable",),
    reasoning="Evaluator failed",
)


def deduplicate_and_rerank(results: list[SearchResult]) -> list[SearchResult]:
    """Keep the best-scoring instance of each chunk, sorted by similarity.

    Ties keep the first instance seen; the sort is stable.
    """
    best: dict[str, SearchResult] = {}
    for result in results:
        previous = best.get(result.chunk.id)
        if previous is None or result.similarity > previous.similarity:
            best[result.chunk.id] = result
    return sorted(best.values(), key=lambda r: r.similarity, reverse=True)


class AgentOrchestrator:
    """Runs planned, evaluated, iteratively refined retrieval over one topic.

    Usage:
        config = MockConfig.default()
        store = VectorStore(model_name="mock-384")
        orchestrator = AgentOrchestrator(store, config=config)

        result = orchestrator.execute_agentic_query(topic_id, "Compare X and Y")
    """

    def __init__(
        self,
        store: VectorStore,
        embeddings: Optional[EmbeddingProvider] = None,
        config: Optional[RAGConfig] = None,
        chat_model: Optional[ChatModel] = None,
        strategies: Optional[dict[str, RetrievalStrategy]] = None,
        heuristic_planner: Optional[QueryPlanner] = None,
        heuristic_evaluator: Optional[ResultEvaluator] = None,
    ) -> None:
        self._config = config or MockConfig.default()
        self._store = store

        self._embeddings = embeddings or create_embedding_provider(self._config)
        self._strategies = strategies or create_strategies(
            store, self._embeddings, self._config
        )

        self._heuristic_planner = heuristic_planner or HeuristicQueryPlanner()
        self._heuristic_evaluator = heuristic_evaluator or HeuristicResultEvaluator()

        # Resolved once: the LLM pair exists only when a chat model does
        self._chat_model = chat_model if chat_model is not None else create_chat_model(self._config)
        self._llm_planner: Optional[QueryPlanner] = None
        self._llm_evaluator: Optional[ResultEvaluator] = None
        if self._chat_model is not None:
            self._llm_planner = LLMQueryPlanner(self._chat_model)
            self._llm_evaluator = LLMResultEvaluator(
                self._chat_model, fallback=self._heuristic_evaluator
            )

    @property
    def strategies(self) -> dict[str, RetrievalStrategy]:
        return dict(self._strategies)

    def _select(self, use_llm: bool) -> tuple[QueryPlanner, ResultEvaluator]:
        if use_llm:
            if self._llm_planner is not None and self._llm_evaluator is not None:
                return self._llm_planner, self._llm_evaluator
            logger.warning(
                "LLM planning requested but no chat model available; "
                "using heuristic planner/evaluator"
            )
        return self._heuristic_planner, self._heuristic_evaluator

    def _plan(
        self,
        planner: QueryPlanner,
        query: str,
        config: AgenticConfig,
        context: Optional[QueryContext],
    ) -> QueryPlan:
        if not config.enable_query_decomposition:
            return planner.fallback_single_query_plan(query)

        plan_result = planner.create_plan(query, context)
        if plan_result.is_err():
            logger.warning(
                "Planner failed, falling back to single-query plan: %s",
                plan_result.unwrap_err(),
            )
            return planner.fallback_single_query_plan(query)
        return plan_result.unwrap()

    def _evaluate(
        self,
        evaluator: ResultEvaluator,
        query: str,
        results: list[SearchResult],
        config: AgenticConfig,
        context: Optional[EvaluationContext],
    ) -> Evaluation:
        evaluation = evaluator.evaluate(query, results, config.confidence_threshold, context)
        if evaluation.is_err():
            logger.warning("Evaluation failed for %r: %s", query, evaluation.unwrap_err())
            return EVALUATION_UNAVAILABLE
        return evaluation.unwrap()

    @staticmethod
    def _evaluation_context(
        config: AgenticConfig,
        context: Optional[QueryContext],
        steps: list[AgenticSearchStep],
        with_confidence: bool = False,
    ) -> Optional[EvaluationContext]:
        if not (config.use_llm and context is not None):
            return None
        return EvaluationContext(
            topic_name=context.topic_name,
            previous_steps=tuple(s.summary(with_confidence) for s in steps),
        )

    def _search(
        self, strategy: RetrievalStrategy, topic_id: str, query: str, top_k: int
    ) -> Result[list[SearchResult], str]:
        result = strategy.search(topic_id, query, top_k)
        if result.is_err():
            return Err(f"Retrieval strategy '{strategy.name}' failed: {result.unwrap_err()}")
        return result

    def execute_agentic_query(
        self,
        topic_id: str,
        query: str,
        config: Optional[AgenticConfig] = None,
        context: Optional[QueryContext] = None,
    ) -> Result[AgenticSearchResult, str]:
        """Plan, retrieve, evaluate and refine, then merge all results."""
        config = config or self._config.agentic
        planner, evaluator = self._select(config.use_llm)

        plan = self._plan(planner, query, config, context)
        logger.info(
            "Executing %s plan with %d sub-queries for topic %s",
            plan.complexity.value,
            len(plan.sub_queries),
            topic_id,
        )

        strategy_name = getattr(config.retrieval_strategy, "value", config.retrieval_strategy)
        steps: list[AgenticSearchStep] = []
        all_results: list[SearchResult] = []
        iteration = 0

        for sub_query in plan.sub_queries:
            if iteration >= config.max_iterations:
                logger.debug("Iteration budget exhausted; skipping remaining sub-queries")
                break
            iteration += 1

            strategy = self._strategies.get(strategy_name)
            if strategy is None:
                return Err(f"Unknown retrieval strategy: {strategy_name}")

            search = self._search(
                strategy, topic_id, sub_query.query, sub_query.top_k or DEFAULT_SUB_QUERY_TOP_K
            )
            if search.is_err():
                return search  # type: ignore[return-value]
            results = search.unwrap()

            evaluation = self._evaluate(
                evaluator,
                sub_query.query,
                results,
                config,
                self._evaluation_context(config, context, steps),
            )
            steps.append(
                AgenticSearchStep(
                    step_number=iteration,
                    query=sub_query.query,
                    strategy=strategy.name,
                    results_count=len(results),
                    confidence=evaluation.confidence,
                    reasoning=sub_query.reasoning,
                )
            )
            all_results.extend(results)

            if config.enable_iterative_refinement and not evaluation.is_complete:
                follow_up_result = planner.generate_follow_up_query(
                    query, all_results, list(evaluation.gaps)
                )
                if follow_up_result.is_err():
                    logger.warning(
                        "Follow-up generation failed; using fallback: %s",
                        follow_up_result.unwrap_err(),
                    )
                    follow_up = planner.fallback_follow_up_query(query, list(evaluation.gaps))
                else:
                    follow_up = follow_up_result.unwrap()

                if follow_up is not None and iteration < config.max_iterations:
                    iteration += 1
                    search = self._search(
                        strategy, topic_id, follow_up.query, DEFAULT_SUB_QUERY_TOP_K
                    )
                    if search.is_err():
                        return search  # type: ignore[return-value]
                    follow_up_results = search.unwrap()

                    follow_up_evaluation = self._evaluate(
                        evaluator,
                        follow_up.query,
                        follow_up_results,
                        config,
                        self._evaluation_context(config, context, steps),
                    )
                    steps.append(
                        AgenticSearchStep(
                            step_number=iteration,
                            query=follow_up.query,
                            strategy=strategy.name,
                            results_count=len(follow_up_results),
                            confidence=follow_up_evaluation.confidence,
                            reasoning=FOLLOW_UP_REASONING,
                        )
                    )
                    all_results.extend(follow_up_results)

            if evaluation.is_complete and evaluation.confidence >= config.confidence_threshold:
                logger.debug("Sufficient information after step %d", iteration)
                break

        final_results = deduplicate_and_rerank(all_results)
        final_evaluation = self._evaluate(
            evaluator,
            query,
            final_results,
            config,
            self._evaluation_context(config, context, steps, with_confidence=True),
        )

        logger.info(
            "Agentic query finished: %d iterations, %d unique results, confidence %.2f",
            iteration,
            len(final_results),
            final_evaluation.confidence,
        )
        return Ok(
            AgenticSearchResult(
                final_results=final_results[: config.final_result_limit],
                steps=steps,
                total_iterations=iteration,
                query_plan=plan,
                confidence=final_evaluation.confidence,
            )
        )

    def execute_simple_query(
        self, topic_id: str, query: str, top_k: Optional[int] = None
    ) -> Result[list[SearchResult], str]:
        """Single vector retrieval, no planning or evaluation."""
        strategy = self._strategies.get(RetrievalMethod.VECTOR.value)
        if strategy is None:
            return Err("Vector search strategy not available")
        return strategy.search(
            topic_id, query, top_k if top_k is not None else self._config.top_k
        )
