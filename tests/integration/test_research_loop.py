"""Integration tests for the research loop with mock collaborators."""

from typing import Sequence
from unittest.mock import Mock

import pytest

from research_agent.agent import (
    CancellationToken,
    ResearchAgent,
    ResearchConfig,
    RuleBasedActionSelector,
    best_available_answer,
    build_llm_agent,
)
from research_agent.core.types import (
    AnswerAction,
    Budget,
    CodingAction,
    ErrorAnalysisResponse,
    KnowledgeItem,
    Reference,
    ReflectAction,
    SearchAction,
    SelectionContext,
    StepAction,
)
from research_agent.executor.mock import MockFetchExecutor, MockSearchExecutor
from research_agent.llm.mock import MockLLMClient, tool_call
from research_agent.llm.usage import TokenUsage, TrackerContext

QUESTION = "What is the capital of France?"
WIKI = "https://en.wikipedia.org/wiki/France"


class RecordingSelector:
    """Wraps a selector and records every input it was given."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.calls: list[tuple[str, tuple[KnowledgeItem, ...], Budget, SelectionContext]] = []

    def select_action(self, question, knowledge, budget, context=None) -> StepAction:
        self.calls.append((question, tuple(knowledge), budget, context))
        return self.inner.select_action(question, knowledge, budget, context)


class ScriptedSelector:
    """Returns predetermined actions, then the best available answer."""

    def __init__(self, actions: Sequence[StepAction]) -> None:
        self.actions = list(actions)
        self.contexts: list[SelectionContext] = []
        self.questions: list[str] = []

    def select_action(self, question, knowledge, budget, context=None) -> StepAction:
        self.contexts.append(context)
        self.questions.append(question)
        if self.actions:
            return self.actions.pop(0)
        return best_available_answer(question, knowledge)


class TestAcceptedAnswers:
    """Runs that end with an accepted, final answer."""

    def test_answer_from_prior_knowledge(self, make_agent, france_knowledge, mock_search) -> None:
        result = make_agent().run(QUESTION, knowledge=france_knowledge)

        assert result.termination == "accepted"
        assert result.is_final
        assert result.answer.answer == "Paris"
        assert result.steps == 1
        assert mock_search.call_count == 0
        assert "[^1]" in result.answer.md_answer

    def test_search_visit_answer(self, make_agent, mock_search, mock_fetcher) -> None:
        result = make_agent().run(QUESTION)

        assert result.termination == "accepted"
        assert result.is_final
        assert "Paris" in result.answer.answer
        assert result.answer.references[0].url == WIKI
        assert [a.action for a in result.actions] == ["search", "visit", "answer"]
        assert mock_fetcher.call_count == 1
        assert set(result.visited_urls) == {WIKI, "https://example.org/paris"}
        url_items = [k for k in result.knowledge if k.type == "url"]
        assert len(url_items) == 2
        [wiki_item] = [k for k in url_items if k.references[0].url == WIKI]
        assert wiki_item.references[0].date_time == "2025-05-20"

    def test_coding_result_answers(self, make_agent, mock_coder) -> None:
        agent = make_agent(config=ResearchConfig(max_actions=5, evaluation_types=("definitive",)))

        result = agent.run("Calculate the sum of 17 and 25")

        assert result.answer.answer == "42"
        assert result.is_final
        [coding] = [k for k in result.knowledge if k.type == "coding"]
        assert coding.source_code == "print('42')"
        assert mock_coder.calls == ["Calculate the sum of 17 and 25"]

    def test_knowledge_snapshots_only_grow(self, make_agent) -> None:
        selector = RecordingSelector(RuleBasedActionSelector())

        result = make_agent(selector=selector).run(QUESTION)

        snapshots = [call[1] for call in selector.calls] + [result.knowledge]
        for earlier, later in zip(snapshots, snapshots[1:]):
            assert later[: len(earlier)] == earlier


class TestBudget:
    """Budget floors and exhaustion."""

    def test_at_most_max_actions_cycles(self, make_agent) -> None:
        search = MockSearchExecutor()
        agent = make_agent(
            search=search,
            config=ResearchConfig(max_actions=3, evaluation_types=("definitive", "attribution")),
        )

        result = agent.run(QUESTION)

        assert result.steps == 3
        assert len(result.actions) == 3
        assert isinstance(result.actions[-1], AnswerAction)
        assert result.termination == "forced_answer"
        assert not result.is_final
        assert len(result.evaluations) == 2

    def test_below_floor_answers_without_executors(self, make_agent, mock_search, mock_fetcher) -> None:
        agent = make_agent(config=ResearchConfig(max_actions=1))

        result = agent.run(QUESTION)

        assert result.steps == 1
        assert result.termination == "forced_answer"
        assert not result.is_final
        assert result.answer.answer
        assert mock_search.call_count == 0
        assert mock_fetcher.call_count == 0

    def test_token_exhaustion_stops_before_selection(self, make_agent) -> None:
        trackers = TrackerContext()

        class SpendingSelector:
            calls = 0

            def select_action(self, question, knowledge, budget, context=None):
                trackers.token_tracker.track_usage("agent", TokenUsage(prompt_tokens=1000))
                SpendingSelector.calls += 1
                return SearchAction(think="t", search_requests=(f"q{SpendingSelector.calls}",))

        agent = make_agent(
            selector=SpendingSelector(),
            trackers=trackers,
            config=ResearchConfig(max_tokens=1500, evaluation_types=("definitive",)),
        )

        result = agent.run(QUESTION)

        assert SpendingSelector.calls == 2
        assert result.termination == "budget_exhausted"
        assert not result.is_final
        assert result.usage["tokens"]["total_tokens"] == 2000
        assert result.usage["by_tool"]["agent"]["prompt_tokens"] == 2000


class TestDegradedExecutors:
    """Executor failures become knowledge instead of errors."""

    def test_failed_url_is_recorded(self, make_agent) -> None:
        fetcher = MockFetchExecutor(
            pages={WIKI: "Paris is the capital of France."},
            errors={"https://example.org/paris": "503 Service Unavailable"},
        )

        result = make_agent(fetcher=fetcher).run(QUESTION)

        assert len([k for k in result.knowledge if k.type == "url"]) == 1
        failures = [k for k in result.knowledge if "Failed to read" in k.answer]
        assert len(failures) == 1
        assert failures[0].type == "side-info"
        assert "503 Service Unavailable" in failures[0].answer
        assert result.bad_urls == ["https://example.org/paris"]
        assert result.termination == "accepted"

    def test_search_failure_is_recorded(self, make_agent) -> None:
        search = MockSearchExecutor(fail=True)
        agent = make_agent(
            search=search,
            config=ResearchConfig(max_actions=4, evaluation_types=("definitive", "attribution")),
        )

        result = agent.run(QUESTION)

        failures = [k for k in result.knowledge if "Search failed" in k.answer]
        assert failures
        assert all(k.type == "side-info" for k in failures)
        assert search.call_count >= 1
        assert result.termination == "forced_answer"
        assert not result.is_final

    def test_coding_failure_is_side_info(self, make_agent) -> None:
        coder = Mock()
        coder.run.side_effect = RuntimeError("sandbox crashed")
        selector = ScriptedSelector([CodingAction(think="t", coding_issue="2 + 2")])
        agent = make_agent(
            selector=selector,
            coder=coder,
            config=ResearchConfig(max_actions=2, evaluation_types=("definitive",)),
        )

        result = agent.run(QUESTION)

        [item] = [k for k in result.knowledge if k.question == "2 + 2"]
        assert item.type == "side-info"
        assert "sandbox crashed" in item.answer


class TestCancellation:
    """Cancellation ends the run with a non-final answer."""

    def test_cancelled_before_start(self, make_agent, mock_search) -> None:
        token = CancellationToken()
        token.cancel()

        result = make_agent().run(QUESTION, cancel=token)

        assert result.termination == "cancelled"
        assert result.steps == 0
        assert not result.is_final
        assert mock_search.call_count == 0

    def test_deadline(self, make_agent) -> None:
        result = make_agent().run(QUESTION, cancel=CancellationToken(timeout=0))
        assert result.termination == "cancelled"

    def test_cancel_during_evaluation_is_not_committed(
        self, make_agent, rule_evaluator, france_knowledge
    ) -> None:
        token = CancellationToken()

        class CancellingEvaluator:
            def evaluate(self, question, candidate, applicable_types, knowledge):
                token.cancel()
                return rule_evaluator.evaluate(question, candidate, applicable_types, knowledge)

        agent = make_agent(evaluator=CancellingEvaluator())

        result = agent.run(QUESTION, cancel=token, knowledge=france_knowledge)

        assert result.termination == "cancelled"
        assert result.answer.answer == "Paris"
        assert not result.is_final
        assert len(result.evaluations) == 1


class TestRejectionAndSubQuestions:
    """Answer gating and sub-question handling."""

    @pytest.fixture
    def definitive_only(self) -> ResearchConfig:
        return ResearchConfig(max_actions=10, evaluation_types=("definitive",))

    def test_rejection_feeds_back_and_blocks_answer(self, make_agent, definitive_only) -> None:
        selector = ScriptedSelector(
            [
                AnswerAction(think="t", answer="I don't know"),
                SearchAction(think="t", search_requests=("capital of France",)),
                AnswerAction(think="t", answer="Paris"),
            ]
        )

        result = make_agent(selector=selector, config=definitive_only).run(QUESTION)

        assert result.termination == "accepted"
        assert result.answer.answer == "Paris"
        assert "answer" in selector.contexts[0].allowed_actions
        assert "answer" not in selector.contexts[1].allowed_actions
        assert selector.contexts[1].rejected_answers == ("I don't know",)
        [feedback] = [k for k in result.knowledge if k.question.startswith("Why was the answer")]
        assert feedback.type == "side-info"
        assert "Improvement plan:" in feedback.answer

    def test_error_analysis_adds_pending_questions(self, make_agent, definitive_only) -> None:
        analyzer = Mock()
        analyzer.analyze.return_value = ErrorAnalysisResponse(
            recap="Answered too early.",
            blame="No evidence.",
            improvement="Find an official source.",
            questions_to_answer=("Which source is official?",),
        )
        selector = ScriptedSelector([AnswerAction(think="t", answer="I don't know")])

        result = make_agent(
            selector=selector, config=definitive_only, error_analyzer=analyzer
        ).run(QUESTION)

        assert selector.contexts[1].pending_questions == ("Which source is official?",)
        assert selector.questions[1] == "Which source is official?"
        assert any("Recap: Answered too early." in k.answer for k in result.knowledge)

    def test_sub_question_answer_becomes_knowledge(self, make_agent, definitive_only) -> None:
        selector = ScriptedSelector(
            [
                ReflectAction(think="t", questions_to_answer=("Which river flows through Paris?",)),
                AnswerAction(think="t", answer="The Seine"),
                AnswerAction(think="t", answer="Paris"),
            ]
        )

        result = make_agent(selector=selector, config=definitive_only).run(QUESTION)

        assert selector.questions == [
            QUESTION,
            "Which river flows through Paris?",
            QUESTION,
        ]
        [qa] = [k for k in result.knowledge if k.type == "qa"]
        assert qa.question == "Which river flows through Paris?"
        assert qa.answer == "The Seine"
        assert len(result.evaluations) == 1
        assert result.answer.answer == "Paris"
        assert result.is_final

    def test_sub_question_cannot_launder_a_quote(self, make_agent) -> None:
        """Test an invented quote given for a sub-question does not later pass attribution."""
        moon = Reference("The moon is made of cheese", "https://example.com/moon")
        selector = ScriptedSelector(
            [
                ReflectAction(think="t", questions_to_answer=("What is the moon made of?",)),
                AnswerAction(think="t", answer="Cheese", references=(moon,)),
                AnswerAction(think="t", answer="The moon is made of cheese.", references=(moon,)),
            ]
        )
        config = ResearchConfig(max_actions=10, evaluation_types=("attribution",))

        result = make_agent(selector=selector, config=config).run(QUESTION)

        [qa] = [k for k in result.knowledge if k.type == "qa"]
        assert qa.answer == "Cheese"
        assert qa.references == ()
        verdict = result.evaluations[0]["attribution"]
        assert not verdict.passed
        assert verdict.exact_quote == "The moon is made of cheese"
        assert result.steps > 3

    def test_sub_question_keeps_verified_references(self, make_agent, france_knowledge) -> None:
        paris = Reference("Paris is the capital of France", "https://example.com/a")
        selector = ScriptedSelector(
            [
                ReflectAction(think="t", questions_to_answer=("Which city governs France?",)),
                AnswerAction(think="t", answer="Paris", references=(paris,)),
            ]
        )
        config = ResearchConfig(max_actions=10, evaluation_types=("definitive",))

        result = make_agent(selector=selector, config=config).run(QUESTION, knowledge=france_knowledge)

        [sub] = [k for k in result.knowledge if k.question == "Which city governs France?"]
        assert sub.references == (paris,)

    def test_reflect_disallowed_after_reflect(self, make_agent, definitive_only) -> None:
        selector = ScriptedSelector(
            [
                ReflectAction(think="t", questions_to_answer=("Sub one?",)),
                AnswerAction(think="t", answer="One"),
                AnswerAction(think="t", answer="Paris"),
            ]
        )

        make_agent(selector=selector, config=definitive_only).run(QUESTION)

        assert "reflect" not in selector.contexts[1].allowed_actions

    def test_criteria_dropped_after_repeated_failures(self, make_agent) -> None:
        config = ResearchConfig(
            max_actions=10, evaluation_types=("definitive", "attribution"), max_bad_attempts=2
        )
        selector = ScriptedSelector(
            [
                AnswerAction(think="t", answer="Paris"),
                SearchAction(think="t", search_requests=("a",)),
                AnswerAction(think="t", answer="Paris."),
                SearchAction(think="t", search_requests=("b",)),
                AnswerAction(think="t", answer="Paris!"),
            ]
        )

        result = make_agent(selector=selector, config=config).run(QUESTION)

        assert result.termination == "accepted"
        assert "attribution" in result.evaluations[0]
        assert "attribution" not in result.evaluations[-1]


class TestLLMWiring:
    """build_llm_agent with a scripted mock client."""

    def test_end_to_end_with_usage(self, mock_search, mock_fetcher, france_knowledge, fixed_clock) -> None:
        llm = MockLLMClient(
            [
                tool_call(
                    "submit_applicable_checks",
                    {
                        "needs_definitive": True,
                        "needs_freshness": False,
                        "needs_plurality": False,
                        "needs_completeness": False,
                    },
                ),
                tool_call(
                    "answer",
                    {
                        "think": "Known.",
                        "answer": "Paris",
                        "references": [
                            {"exactQuote": "Paris is the capital of France", "url": "https://example.com/a"}
                        ],
                    },
                ),
                tool_call("submit_definitive_evaluation", {"think": "Concrete.", "pass": True}),
            ]
        )
        agent = build_llm_agent(
            llm, mock_search, mock_fetcher, enable_coding=False, provider="mock", clock=fixed_clock
        )

        result = agent.run(QUESTION, knowledge=france_knowledge)

        assert isinstance(agent, ResearchAgent)
        assert result.is_final
        assert result.answer.answer == "Paris"
        assert set(result.evaluations[0]) == {"definitive", "attribution", "strict"}
        assert set(result.usage["by_tool"]) == {"classifier", "agent", "evaluator"}
        assert result.usage["tokens"]["total_tokens"] > 0
        assert result.usage["actions"] == 1
        assert llm.get_call_count() == 3
