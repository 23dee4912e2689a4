"""Wire LLM-backed components into a ResearchAgent."""

from datetime import datetime
from typing import Callable

from research_agent.agent.config import ResearchConfig
from research_agent.agent.runner import ResearchAgent
from research_agent.agent.selector import LLMActionSelector, RuleBasedActionSelector
from research_agent.core.protocols import FetchExecutor, SearchExecutor
from research_agent.evaluator.classifier import LLMQuestionClassifier
from research_agent.evaluator.error_analysis import LLMErrorAnalyzer
from research_agent.evaluator.llm import LLMAnswerEvaluator
from research_agent.executor.coding import SandboxCodingExecutor
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.llm.usage import (
    ActionTracker,
    TokenTracker,
    TrackerContext,
    UsageTrackingClient,
)


def build_llm_agent(
    llm_client: LLMClient,
    search: SearchExecutor,
    fetcher: FetchExecutor,
    config: ResearchConfig | None = None,
    model_config: ModelConfig | None = None,
    enable_coding: bool = True,
    provider: str = "anthropic",
    clock: Callable[[], datetime] | None = None,
) -> ResearchAgent:
    """
    Build an agent whose selector, evaluator, classifier, error analyzer
    and coder all use ``llm_client``.

    Every component gets its own UsageTrackingClient reporting to one
    shared TokenTracker under the component's name, so the token budget
    covers all model calls of a run.
    """
    config = config or ResearchConfig()
    trackers = TrackerContext(
        token_tracker=TokenTracker(budget=config.max_tokens, provider=provider),
        action_tracker=ActionTracker(),
    )

    def tracked(tool: str) -> UsageTrackingClient:
        return UsageTrackingClient(llm_client, trackers.token_tracker, tool=tool)

    selector_config = model_config or ModelConfig(temperature=0.2, max_tokens=4096)
    coder = None
    if enable_coding:
        coder = SandboxCodingExecutor(
            tracked("coder"),
            max_attempts=config.max_coding_attempts,
        )

    return ResearchAgent(
        selector=LLMActionSelector(
            tracked("agent"),
            model_config=selector_config,
            fallback=RuleBasedActionSelector(
                max_urls=config.max_urls_per_visit,
                max_queries=config.max_queries_per_search,
            ),
        ),
        evaluator=LLMAnswerEvaluator(tracked("evaluator"), clock=clock),
        search=search,
        fetcher=fetcher,
        coder=coder,
        classifier=LLMQuestionClassifier(tracked("classifier")),
        error_analyzer=LLMErrorAnalyzer(tracked("error_analyzer")),
        config=config,
        trackers=trackers,
        clock=clock,
    )
