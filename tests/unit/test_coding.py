"""Tests for the coding executors."""

import pytest

from research_agent.core.types import CodingResult, KnowledgeItem
from research_agent.executor.coding import SandboxCodingExecutor
from research_agent.executor.mock import MockCodingExecutor
from research_agent.llm.mock import MockLLMClient
from research_agent.sandbox import InProcessRunner


def _executor(responses: list[str], **kwargs) -> tuple[SandboxCodingExecutor, MockLLMClient]:
    llm = MockLLMClient(responses)
    return SandboxCodingExecutor(llm, runner=InProcessRunner(), **kwargs), llm


class TestSandboxCodingExecutor:
    """Tests for SandboxCodingExecutor."""

    def test_runs_generated_code(self) -> None:
        executor, _ = _executor(["Here:\n```python\nprint(17 + 25)\n```"])

        result = executor.run("What is 17 + 25?", [])

        assert result.ok
        assert result.output == "42"
        assert result.code == "print(17 + 25)"
        assert result.attempts == 1

    def test_retries_with_error_feedback(self) -> None:
        executor, llm = _executor(
            ["```python\nprint(undefined_name)\n```", "```python\nprint(42)\n```"]
        )

        result = executor.run("Compute the answer", [])

        assert result.output == "42"
        assert result.attempts == 2
        feedback = llm.get_call_history()[1]["messages"][-1]["content"]
        assert "NameError" in feedback

    def test_gives_up_without_code(self) -> None:
        executor, llm = _executor(["I would rather not."], max_attempts=2)

        result = executor.run("Compute", [])

        assert not result.ok
        assert result.error == "No code block found in LLM response"
        assert result.attempts == 2
        assert llm.get_call_count() == 2

    def test_silent_code_is_an_error(self) -> None:
        executor, _ = _executor(["```python\nx = 1\n```"], max_attempts=1)

        result = executor.run("Compute", [])

        assert result.error == "The code printed nothing"
        assert result.code == "x = 1"

    def test_generic_code_block(self) -> None:
        executor, _ = _executor(["```\nprint('ok')\n```"])
        assert executor.run("Say ok", []).output == "ok"

    def test_prompt_includes_knowledge(self) -> None:
        executor, llm = _executor(["```python\nprint(3)\n```"])
        knowledge = [KnowledgeItem(question="How many moons?", answer="Mars has 2 moons", type="qa")]

        executor.run("Add one to the number of moons", knowledge)

        call = llm.get_call_history()[0]
        assert "Mars has 2 moons" in call["messages"][0]["content"]
        assert "Python" in call["kwargs"]["system"]


class TestMockCodingExecutor:
    def test_cycles_outputs(self) -> None:
        failed = CodingResult(think="t", code="", error="boom")
        executor = MockCodingExecutor(["1", failed])

        assert executor.run("a", []).output == "1"
        assert executor.run("b", []) is failed
        assert executor.calls == ["a", "b"]
        assert executor.call_count == 2


@pytest.mark.parametrize("response", ["no fences", "``` ```"])
def test_extract_code_rejects_empty(response: str) -> None:
    executor, _ = _executor([response])
    assert not executor._extract_code(response)
