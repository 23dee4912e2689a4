"""Coding executor that has an LLM write Python and runs it in the sandbox."""

import logging
import re
from typing import Sequence

from research_agent.core.types import CodingResult, KnowledgeItem
from research_agent.llm.model_config import ModelConfig
from research_agent.llm.protocol import LLMClient
from research_agent.prompts.research import CODER_SYSTEM_PROMPT, format_knowledge
from research_agent.sandbox import SandboxConfig, SandboxedRunner, create_runner

logger = logging.getLogger(__name__)


class SandboxCodingExecutor:
    """
    Executor for coding actions.

    Generates Python via the LLM, runs it with the sandbox runner and
    returns the printed output. When the code fails, the error is fed back
    to the LLM and generation is retried, up to ``max_attempts`` times.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        runner: SandboxedRunner | None = None,
        sandbox_config: SandboxConfig | None = None,
        max_attempts: int = 3,
        model_config: ModelConfig | None = None,
    ) -> None:
        """
        Initialize the coding executor.

        Args:
            llm_client: LLM client for code generation.
            runner: Sandbox runner. Creates the default runner if not provided.
            sandbox_config: Time, memory and import limits.
            max_attempts: Generation attempts before giving up.
            model_config: Sampling settings for code generation.
        """
        self._llm = llm_client
        self._runner = runner or create_runner()
        self._sandbox_config = sandbox_config or SandboxConfig()
        self._max_attempts = max(1, max_attempts)
        self._model_config = model_config or ModelConfig()

    def run(self, issue: str, knowledge: Sequence[KnowledgeItem]) -> CodingResult:
        """Solve ``issue`` with generated code; never raises for bad code."""
        messages = [{"role": "user", "content": self._build_prompt(issue, knowledge)}]
        code = ""
        error: str | None = "No code generated"

        for attempt in range(1, self._max_attempts + 1):
            response = self._llm.complete(
                messages, system=CODER_SYSTEM_PROMPT, **self._model_config.to_llm_kwargs()
            )
            extracted = self._extract_code(response)
            if not extracted:
                error = "No code block found in LLM response"
                messages.extend(
                    [
                        {"role": "assistant", "content": response},
                        {"role": "user", "content": "Return the Python code in a ```python block."},
                    ]
                )
                continue

            code = extracted
            result = self._runner.run_code(code, self._sandbox_config)
            if result.success:
                output = result.output.strip()
                if output:
                    logger.info(f"[CODING] Solved in {attempt} attempt(s)")
                    return CodingResult(
                        think=f"Computed with generated code (attempt {attempt}).",
                        code=code,
                        output=output,
                        attempts=attempt,
                    )
                error = "The code printed nothing"
            else:
                error = result.error or "Execution failed"

            logger.info(f"[CODING] Attempt {attempt} failed: {error[:200]}")
            messages.extend(
                [
                    {"role": "assistant", "content": f"```python\n{code}\n```"},
                    {
                        "role": "user",
                        "content": f"The code failed with:\n{error}\n\nFix it and print the result.",
                    },
                ]
            )

        return CodingResult(
            think=f"Code generation failed after {self._max_attempts} attempts.",
            code=code,
            error=error,
            attempts=self._max_attempts,
        )

    def _build_prompt(self, issue: str, knowledge: Sequence[KnowledgeItem]) -> str:
        parts = [f"Problem: {issue}"]
        if knowledge:
            parts.append("\nContext:")
            parts.append(format_knowledge(knowledge, max_chars=800))
        return "\n".join(parts)

    def _extract_code(self, response: str) -> str | None:
        """Extract Python code from markdown code blocks."""
        matches = re.findall(r"```python\s*(.*?)```", response, re.DOTALL)
        if matches:
            return matches[0].strip()

        matches = re.findall(r"```\s*(.*?)```", response, re.DOTALL)
        if matches:
            return matches[0].strip()

        return None
