"""Research loop controller: select, execute, integrate, evaluate."""

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from research_agent.agent.config import ResearchConfig
from research_agent.agent.render import with_markdown
from research_agent.agent.selector import best_available_answer
from research_agent.core.errors import (
    BudgetExhausted,
    CancellationRequested,
    EvaluationFailure,
    ExecutorFailure,
)
from research_agent.core.protocols import (
    ActionSelector,
    AnswerEvaluator,
    CodingExecutor,
    ErrorAnalyzer,
    FetchExecutor,
    QuestionClassifier,
    SearchExecutor,
)
from research_agent.core.text import clip, normalize
from research_agent.core.types import (
    ACTION_NAMES,
    AnswerAction,
    Budget,
    CodingAction,
    EvaluationResponse,
    FetchResult,
    KnowledgeItem,
    Reference,
    ReflectAction,
    ResearchResult,
    SearchAction,
    SearchResult,
    SelectionContext,
    StepAction,
    Termination,
    VisitAction,
)
from research_agent.evaluator.checks import verified_references
from research_agent.evaluator.classifier import HeuristicQuestionClassifier
from research_agent.evaluator.rule_based import require_pass
from research_agent.knowledge.store import KnowledgeStore
from research_agent.knowledge.urls import URLPool, normalize_url
from research_agent.llm.usage import ActionTracker, TokenTracker, TrackerContext

logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 50_000
MAX_SNIPPETS = 10


class LoopState(Enum):
    SELECTING = "selecting"
    EXECUTING = "executing"
    INTEGRATING = "integrating"
    EVALUATING = "evaluating"
    DONE = "done"


class CancellationToken:
    """
    Cooperative cancellation signal with an optional deadline.

    ``cancel()`` may be called from any thread. The controller polls
    ``cancelled`` at the top of every selection and before committing an
    evaluation result.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline


@dataclass
class _Run:
    """Mutable state of one run. Never shared between runs."""

    original: str
    store: KnowledgeStore
    urls: URLPool = field(default_factory=URLPool)
    pending: list[str] = field(default_factory=list)
    past_queries: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    actions: list[StepAction] = field(default_factory=list)
    evaluations: list[dict[str, EvaluationResponse]] = field(default_factory=list)
    bad_attempts: Counter = field(default_factory=Counter)
    base_types: tuple[str, ...] = ()
    state: LoopState = LoopState.SELECTING
    step: int = 0
    forced: bool = False
    last_action: StepAction | None = None
    last_search_new: int | None = None
    rejected_at: int | None = None
    cancel: CancellationToken | None = None
    answer: AnswerAction | None = None
    termination: Termination | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.cancelled


class ResearchAgent:
    """
    Iterative research loop.

    Each cycle asks the selector for one action, runs it through the
    matching handler, folds the outcome into the knowledge store and, for
    answers to the original question, gates the answer with the evaluator.
    The loop ends when an answer passes every selected criterion, when the
    budget forces a terminal answer, or on cancellation. Every ending
    yields a well-formed AnswerAction.

    Usage:
        agent = ResearchAgent(selector, evaluator, search, fetcher)
        result = agent.run("What is the capital of France?")
        print(result.answer.answer, result.is_final)
    """

    def __init__(
        self,
        selector: ActionSelector,
        evaluator: AnswerEvaluator,
        search: SearchExecutor,
        fetcher: FetchExecutor,
        coder: CodingExecutor | None = None,
        classifier: QuestionClassifier | None = None,
        error_analyzer: ErrorAnalyzer | None = None,
        config: ResearchConfig | None = None,
        trackers: TrackerContext | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.selector = selector
        self.evaluator = evaluator
        self.search = search
        self.fetcher = fetcher
        self.coder = coder
        self.classifier = classifier or HeuristicQuestionClassifier()
        self.error_analyzer = error_analyzer
        self.config = config or ResearchConfig()
        self.trackers = trackers or TrackerContext(
            token_tracker=TokenTracker(budget=self.config.max_tokens),
            action_tracker=ActionTracker(),
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._handlers: dict[type, Callable[[_Run, str, StepAction], None]] = {
            SearchAction: self._handle_search,
            VisitAction: self._handle_visit,
            ReflectAction: self._handle_reflect,
            CodingAction: self._handle_coding,
            AnswerAction: self._handle_answer,
        }

    # --- main loop ----------------------------------------------------------

    def run(
        self,
        question: str,
        cancel: CancellationToken | None = None,
        knowledge: Sequence[KnowledgeItem] = (),
    ) -> ResearchResult:
        """
        Research ``question`` until an answer is accepted or the run ends.

        Args:
            question: The original question.
            cancel: Optional cancellation token.
            knowledge: Prior knowledge (e.g. chat history) to start from.

        Returns:
            ResearchResult whose ``answer`` is final only if it passed
            every selected criterion.
        """
        self.trackers.reset()
        run = _Run(original=question.strip(), store=KnowledgeStore(knowledge), cancel=cancel)
        run.base_types = self._base_types(run.original)
        logger.info(f"[STEP] Researching: {run.original} (checks: {', '.join(run.base_types)})")

        while run.termination is None:
            self._transition(run, LoopState.SELECTING)

            try:
                budget = self._check_continue(run)
            except CancellationRequested as e:
                logger.info(f"[CANCEL] {e}")
                self._finish(run, self._fallback_answer(run), "cancelled")
                break
            except BudgetExhausted as e:
                logger.info(f"[BUDGET] {e}")
                self._finish(run, self._fallback_answer(run), "budget_exhausted")
                break

            run.forced = budget.below_floor
            current = run.original if run.forced else self._current_question(run)
            context = self._selection_context(run, current)
            action = self.selector.select_action(current, run.store.snapshot(), budget, context)

            if run.forced and not isinstance(action, AnswerAction):
                logger.info(f"[BUDGET] Forced answer; ignoring selected {action.action}")
                action = self._fallback_answer(run)
            if run.forced:
                logger.info("[BUDGET] Below budget floor; this answer is terminal")

            run.step += 1
            run.actions.append(action)
            self.trackers.action_tracker.track_action(run.step, action)
            logger.info(f"[STEP] {run.step}: {action.action} | {clip(action.think, 120)}")

            self._transition(run, LoopState.EXECUTING)
            handler = self._handlers.get(type(action))
            if handler is None:
                raise TypeError(f"No handler for action type {type(action).__name__}")
            handler(run, current, action)
            run.last_action = action

        self._transition(run, LoopState.DONE)
        return self._result(run)

    # --- handlers -----------------------------------------------------------

    def _handle_search(self, run: _Run, question: str, action: SearchAction) -> None:
        queries = [
            q for q in dict.fromkeys(q.strip() for q in action.search_requests)
            if q and q not in run.past_queries
        ][: self.config.max_queries_per_search]

        if not queries:
            run.last_search_new = 0
            self._integrate(run, [self._side_info("Which searches were run?", "No new queries to run.")])
            return

        run.past_queries.extend(queries)
        try:
            results = self._call("search", lambda: self.search.search(queries))
        except ExecutorFailure as e:
            run.last_search_new = 0
            self._integrate(
                run,
                [self._side_info(f'What does the Internet say about "{"; ".join(queries)}"?', f"Search failed: {e}")],
            )
            return

        run.last_search_new = run.urls.add_results(results)
        logger.info(f"[SEARCH] {len(results)} results, {run.last_search_new} new URLs")
        self._integrate(run, [self._search_item(queries, results)])

    def _handle_visit(self, run: _Run, question: str, action: VisitAction) -> None:
        seen = set(run.urls.visited) | set(run.urls.bad)
        targets: list[str] = []
        for url in action.url_targets:
            normalized = normalize_url(url)
            if normalized and normalized not in seen and normalized not in targets:
                targets.append(normalized)
        targets = targets[: self.config.max_urls_per_visit]

        if not targets:
            self._integrate(run, [self._side_info("Which URLs were read?", "No new URLs to visit.")])
            return

        try:
            results = self._call("fetch", lambda: self.fetcher.fetch(targets))
        except ExecutorFailure as e:
            results = [FetchResult(url=url, error=str(e)) for url in targets]

        items = []
        for result in results:
            run.urls.mark_visited(result.url)
            if result.ok:
                run.urls.add_links(result.links)
                items.append(self._page_item(run, question, result))
            else:
                run.urls.mark_bad(result.url)
                items.append(
                    self._side_info(
                        f"What is in {result.url}?",
                        f"Failed to read {result.url}: {result.error}",
                    )
                )
        self._integrate(run, items)

    def _handle_reflect(self, run: _Run, question: str, action: ReflectAction) -> None:
        known = {normalize(q) for q in run.pending} | {normalize(run.original)}
        known |= {normalize(k.question) for k in run.store if k.type == "qa"}
        room = max(self.config.max_pending_questions - len(run.pending), 0)
        fresh = []
        for q in action.questions_to_answer:
            if normalize(q) not in known and len(fresh) < room:
                fresh.append(q.strip())
                known.add(normalize(q))
        run.pending.extend(fresh)
        answer = "\n".join(f"- {q}" for q in fresh) if fresh else "No new sub-questions."
        self._integrate(run, [self._side_info("Which sub-questions must be answered first?", answer)])

    def _handle_coding(self, run: _Run, question: str, action: CodingAction) -> None:
        if self.coder is None:
            self._integrate(
                run,
                [self._side_info(action.coding_issue, "Coding failed: no coding executor configured.")],
            )
            return
        try:
            result = self._call(
                "coding", lambda: self.coder.run(action.coding_issue, run.store.snapshot())
            )
        except ExecutorFailure as e:
            self._integrate(run, [self._side_info(action.coding_issue, f"Coding failed: {e}")])
            return

        if result.ok:
            item = KnowledgeItem(
                question=action.coding_issue,
                answer=result.output,
                type="coding",
                updated=self._now(),
                source_code=result.code,
            )
        else:
            item = self._side_info(action.coding_issue, f"Coding failed: {result.error}")
        self._integrate(run, [item])

    def _handle_answer(self, run: _Run, question: str, action: AnswerAction) -> None:
        candidate = replace(action, is_final=False)

        if not run.forced and normalize(question) != normalize(run.original):
            # sub-question answers skip evaluation; only verified quotes come along
            if question in run.pending:
                run.pending.remove(question)
            references = verified_references(candidate.references, run.store.snapshot())
            dropped = len(candidate.references) - len(references)
            if dropped:
                logger.info(f"[EVAL] Dropped {dropped} unverified reference(s) from sub-answer")
            self._integrate(
                run,
                [
                    KnowledgeItem(
                        question=question,
                        answer=candidate.answer,
                        type="qa",
                        references=references,
                        updated=self._now(),
                    )
                ],
            )
            return

        self._transition(run, LoopState.EVALUATING)
        types = self._active_types(run)
        verdicts = self.evaluator.evaluate(run.original, candidate, types, run.store.snapshot())
        run.evaluations.append(verdicts)

        if run.cancelled:
            logger.info("[CANCEL] Cancelled during evaluation; result not committed")
            self._finish(run, candidate, "cancelled")
            return

        try:
            require_pass(verdicts)
        except EvaluationFailure as failure:
            self._reject(run, candidate, failure.response, verdicts)
            if run.forced:
                self._finish(run, candidate, "forced_answer")
            return

        logger.info(f"[EVAL] Answer accepted after {run.step} steps")
        self._finish(run, replace(candidate, is_final=True), "accepted")

    # --- helpers ------------------------------------------------------------

    def _reject(
        self,
        run: _Run,
        candidate: AnswerAction,
        failure: EvaluationResponse,
        verdicts: dict[str, EvaluationResponse],
    ) -> None:
        for eval_type, verdict in verdicts.items():
            if eval_type != "strict" and not verdict.passed:
                run.bad_attempts[eval_type] += 1
        run.rejected.append(candidate.answer)
        run.rejected_at = run.step
        logger.info(f"[EVAL] Rejected ({failure.type}): {clip(failure.think, 160)}")

        feedback = failure.think
        if failure.improvement_plan:
            feedback += f"\nImprovement plan: {failure.improvement_plan}"
        items = [
            self._side_info(f"Why was the answer '{clip(candidate.answer, 80)}' rejected?", feedback)
        ]

        if self.error_analyzer is not None:
            analysis = self.error_analyzer.analyze(
                run.original, candidate, failure, run.store.snapshot()
            )
            items.append(
                self._side_info(
                    "What should be done differently?",
                    f"Recap: {analysis.recap}\nBlame: {analysis.blame}\n"
                    f"Improvement: {analysis.improvement}",
                )
            )
            room = max(self.config.max_pending_questions - len(run.pending), 0)
            run.pending.extend(
                [q for q in analysis.questions_to_answer if q not in run.pending][:room]
            )
        self._integrate(run, items)

    def _base_types(self, question: str) -> tuple[str, ...]:
        if self.config.evaluation_types is not None:
            return tuple(t for t in self.config.evaluation_types if t != "strict")
        types = [t for t in self.classifier.classify(question) if t != "strict"]
        if self.config.require_attribution and "attribution" not in types:
            types.append("attribution")
        return tuple(types)

    def _active_types(self, run: _Run) -> list[str]:
        """Base criteria minus those that failed too often, plus "strict"."""
        active = []
        for eval_type in run.base_types:
            if run.bad_attempts[eval_type] >= self.config.max_bad_attempts:
                logger.info(f"[EVAL] Dropping {eval_type} after {run.bad_attempts[eval_type]} failures")
                continue
            active.append(eval_type)
        return active + ["strict"]

    def _check_continue(self, run: _Run) -> Budget:
        """Return the current budget, or raise if the run must stop now."""
        if run.cancelled:
            raise CancellationRequested("Cancellation requested")
        budget = self._budget(run)
        if budget.exhausted:
            raise BudgetExhausted(
                f"Exhausted: {budget.tokens_used}/{budget.token_budget} tokens, "
                f"{budget.actions_taken}/{budget.max_actions} actions"
            )
        return budget

    def _budget(self, run: _Run) -> Budget:
        return Budget(
            tokens_used=self.trackers.token_tracker.total_tokens,
            token_budget=self.config.max_tokens,
            actions_taken=run.step,
            max_actions=self.config.max_actions,
            floor_ratio=self.config.min_budget_floor,
            action_floor=self.config.action_floor,
        )

    def _current_question(self, run: _Run) -> str:
        questions = [run.original] + run.pending
        return questions[run.step % len(questions)]

    def _allowed_actions(self, run: _Run, candidates: Sequence[object]) -> frozenset[str]:
        allowed = set(ACTION_NAMES)
        if run.rejected_at is not None and run.rejected_at == run.step:
            allowed.discard("answer")
        if isinstance(run.last_action, ReflectAction) or len(run.pending) >= self.config.max_pending_questions:
            allowed.discard("reflect")
        if isinstance(run.last_action, SearchAction) and run.last_search_new == 0:
            allowed.discard("search")
        if not candidates:
            allowed.discard("visit")
        if isinstance(run.last_action, CodingAction) or self.coder is None:
            allowed.discard("coding")
        return frozenset(allowed)

    def _selection_context(self, run: _Run, question: str) -> SelectionContext:
        candidates = tuple(run.urls.ranked(question, limit=20))
        return SelectionContext(
            original_question=run.original,
            allowed_actions=self._allowed_actions(run, candidates),
            pending_questions=tuple(run.pending),
            candidate_urls=candidates,
            visited_urls=frozenset(run.urls.visited) | frozenset(run.urls.bad),
            past_queries=tuple(run.past_queries),
            rejected_answers=tuple(run.rejected),
            step=run.step,
        )

    def _call(self, executor: str, fn: Callable):
        """Run a collaborator call, mapping any error to ExecutorFailure."""
        try:
            return fn()
        except ExecutorFailure as e:
            logger.warning(f"[STEP] {executor} failed: {e}")
            raise
        except Exception as e:
            logger.warning(f"[STEP] {executor} failed: {e}")
            raise ExecutorFailure(executor, str(e), cause=e) from e

    def _fallback_answer(self, run: _Run) -> AnswerAction:
        return best_available_answer(
            run.original,
            run.store.snapshot(),
            think="Best available answer from gathered knowledge.",
        )

    def _integrate(self, run: _Run, items: Sequence[KnowledgeItem]) -> None:
        self._transition(run, LoopState.INTEGRATING)
        run.store.extend(items)

    def _finish(self, run: _Run, answer: AnswerAction, termination: Termination) -> None:
        run.answer = with_markdown(answer)
        run.termination = termination

    def _transition(self, run: _Run, state: LoopState) -> None:
        if run.state is not state:
            logger.debug(f"[STEP] {run.state.value} -> {state.value}")
            run.state = state

    def _now(self) -> str:
        return self._clock().isoformat()

    def _side_info(self, question: str, answer: str) -> KnowledgeItem:
        return KnowledgeItem(question=question, answer=answer, type="side-info", updated=self._now())

    def _search_item(self, queries: Sequence[str], results: Sequence[SearchResult]) -> KnowledgeItem:
        top = list(results)[:MAX_SNIPPETS]
        if top:
            answer = "\n".join(f"- {r.title}: {r.description}" for r in top)
        else:
            answer = "No results."
        return KnowledgeItem(
            question=f'What does the Internet say about "{"; ".join(queries)}"?',
            answer=answer,
            type="side-info",
            references=tuple(
                Reference(exact_quote=r.description, url=r.url, date_time=r.date)
                for r in top
                if r.description
            ),
            updated=self._now(),
        )

    def _page_item(self, run: _Run, question: str, result: FetchResult) -> KnowledgeItem:
        content = result.content[:MAX_PAGE_CHARS]
        return KnowledgeItem(
            question=f"What does {result.url} say about: {question}",
            answer=content,
            type="url",
            references=(
                Reference(
                    exact_quote=content[:200],
                    url=result.url,
                    date_time=run.urls.date_for(result.url),
                ),
            ),
            updated=self._now(),
        )

    def _result(self, run: _Run) -> ResearchResult:
        token_tracker = self.trackers.token_tracker
        usage = {
            "tokens": token_tracker.get_total_usage().to_dict(),
            "by_tool": {k: v.to_dict() for k, v in token_tracker.get_usage_summary().items()},
            "cost": token_tracker.get_total_cost(),
            "actions": self.trackers.action_tracker.count,
        }
        return ResearchResult(
            question=run.original,
            answer=run.answer,
            termination=run.termination,
            steps=run.step,
            knowledge=run.store.snapshot(),
            actions=list(run.actions),
            evaluations=list(run.evaluations),
            visited_urls=run.urls.visited,
            bad_urls=run.urls.bad,
            usage=usage,
        )
