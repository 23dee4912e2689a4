"""Sandboxed execution of generated Python code."""

import io
import logging
import os
import subprocess
import sys
import threading
import time
from abc import ABC, abstractmethod

from .types import SandboxConfig, SandboxResult

logger = logging.getLogger(__name__)

# Bootstrap run by the child interpreter. The user code arrives on stdin and
# runs with a restricted __builtins__; library modules keep the real ones.
_BOOTSTRAP = """
import builtins
import sys

ALLOWED_MODULES = set({modules!r})
ALLOWED_BUILTINS = {builtins_list!r}
MEMORY_LIMIT = {memory_limit!r}

try:
    import resource
    resource.setrlimit(resource.RLIMIT_AS, (MEMORY_LIMIT, MEMORY_LIMIT))
except (ImportError, ValueError, OSError):
    pass

_real_import = builtins.__import__

def _guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level or name.split(".")[0] not in ALLOWED_MODULES:
        raise ImportError(f"Import of '{{name}}' is not allowed")
    return _real_import(name, globals, locals, fromlist, level)

safe = {{n: getattr(builtins, n) for n in ALLOWED_BUILTINS if hasattr(builtins, n)}}
safe["__import__"] = _guarded_import

source = sys.stdin.read()
try:
    exec(compile(source, "<generated>", "exec"), {{"__builtins__": safe, "__name__": "__main__"}})
except Exception as e:
    print(f"{{type(e).__name__}}: {{e}}", file=sys.stderr)
    sys.exit(1)
"""


def _truncate(output: str, limit: int) -> tuple[str, bool]:
    if len(output) > limit:
        return output[:limit] + "...", True
    return output, False


class SandboxedRunner(ABC):
    """Abstract base class for sandboxed code execution runners."""

    @abstractmethod
    def run_code(self, code: str, config: SandboxConfig) -> SandboxResult:
        """
        Execute code in a sandboxed environment.

        Args:
            code: The Python code to execute.
            config: Sandbox configuration (time limits, memory, etc.)

        Returns:
            SandboxResult with execution outcome.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass


class SubprocessRunner(SandboxedRunner):
    """Run code in a separate Python interpreter with a time limit."""

    def is_available(self) -> bool:
        try:
            result = subprocess.run(
                [sys.executable, "-c", "print('ok')"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
            return False

    def run_code(self, code: str, config: SandboxConfig) -> SandboxResult:
        start_time = time.time()
        bootstrap = _BOOTSTRAP.format(
            modules=sorted(config.allowed_modules),
            builtins_list=list(config.allowed_builtins),
            memory_limit=config.memory_limit,
        )
        env = os.environ.copy()
        env.update(config.environment_variables)

        try:
            result = subprocess.run(
                [sys.executable, "-I", "-c", bootstrap],
                input=code,
                capture_output=True,
                text=True,
                timeout=config.time_limit,
                env=env,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"[SANDBOX] Timed out after {config.time_limit}s")
            return SandboxResult.timeout_result(time.time() - start_time)
        except OSError as e:
            return SandboxResult.error_result(str(e), execution_time=time.time() - start_time)

        execution_time = time.time() - start_time
        if result.returncode != 0:
            error = (result.stderr or result.stdout).strip()
            return SandboxResult.error_result(error, result.returncode, execution_time)

        output, truncated = _truncate(result.stdout, config.max_output_length)
        return SandboxResult.success_result(output, execution_time, truncated)


class InProcessRunner(SandboxedRunner):
    """
    Run code in a thread of the current process.

    Applies the same import and builtin restrictions as the subprocess
    runner but cannot enforce the memory limit, and a timed-out thread
    keeps running in the background. Only print() output is captured;
    direct writes to sys.stdout go to the host process.
    """

    def is_available(self) -> bool:
        return True

    def run_code(self, code: str, config: SandboxConfig) -> SandboxResult:
        import builtins

        start_time = time.time()
        output_buffer = io.StringIO()
        allowed_modules = set(config.allowed_modules)
        real_import = builtins.__import__

        def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
            if level or name.split(".")[0] not in allowed_modules:
                raise ImportError(f"Import of '{name}' is not allowed")
            return real_import(name, globals, locals, fromlist, level)

        safe = {
            name: getattr(builtins, name)
            for name in config.allowed_builtins
            if hasattr(builtins, name)
        }
        safe["__import__"] = guarded_import
        if "print" in safe:
            # writes go to this run's buffer; sys.stdout stays untouched
            def buffered_print(*args, **kwargs):
                kwargs.setdefault("file", output_buffer)
                print(*args, **kwargs)

            safe["print"] = buffered_print
        globals_dict = {"__builtins__": safe, "__name__": "__main__"}

        errors: list[BaseException] = []

        def execute() -> None:
            try:
                exec(compile(code, "<generated>", "exec"), globals_dict)
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=execute, daemon=True)
        thread.start()
        thread.join(config.time_limit)
        execution_time = time.time() - start_time

        if thread.is_alive():
            return SandboxResult.timeout_result(execution_time)
        if errors:
            e = errors[0]
            return SandboxResult.error_result(
                f"{type(e).__name__}: {e}", execution_time=execution_time
            )

        output, truncated = _truncate(output_buffer.getvalue(), config.max_output_length)
        return SandboxResult.success_result(output, execution_time, truncated)


def create_runner(runner_type: str = "auto") -> SandboxedRunner:
    """
    Create a sandbox runner.

    Args:
        runner_type: "subprocess", "inprocess", or "auto" (subprocess when
            available, otherwise in-process).

    Raises:
        ValueError: If runner_type is unknown or the subprocess runner is
            requested but unavailable.
    """
    if runner_type == "auto":
        runner_type = "subprocess" if SubprocessRunner().is_available() else "inprocess"

    if runner_type == "subprocess":
        runner = SubprocessRunner()
        if not runner.is_available():
            raise ValueError("SubprocessRunner is not available on this platform")
        return runner
    if runner_type == "inprocess":
        return InProcessRunner()
    raise ValueError(
        f"Unknown runner_type: {runner_type}. Must be 'subprocess', 'inprocess', or 'auto'"
    )
