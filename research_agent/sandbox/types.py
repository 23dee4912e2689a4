"""Sandbox configuration and result types."""

from dataclasses import dataclass, field

RESEARCH_MODULES = [
    "math",
    "cmath",
    "statistics",
    "fractions",
    "decimal",
    "random",
    "datetime",
    "calendar",
    "time",
    "json",
    "re",
    "string",
    "collections",
    "itertools",
    "functools",
    "operator",
    "heapq",
    "bisect",
]

SAFE_BUILTINS = [
    "abs", "all", "any", "bin", "bool", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "format", "frozenset", "hex", "int", "isinstance",
    "issubclass", "iter", "len", "list", "map", "max", "min", "next", "oct",
    "ord", "pow", "print", "range", "repr", "reversed", "round", "set", "slice",
    "sorted", "str", "sum", "tuple", "type", "zip", "True", "False", "None",
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
    "ZeroDivisionError", "ArithmeticError", "RuntimeError", "StopIteration",
    "ImportError", "NameError", "AttributeError", "__build_class__",
]


@dataclass
class SandboxConfig:
    """
    Limits and permissions for running generated code.

    ``memory_limit`` is applied as an address-space limit where the
    platform supports it.
    """

    time_limit: float = 10.0  # seconds
    memory_limit: int = 512 * 1024 * 1024
    allowed_modules: list[str] = field(default_factory=lambda: list(RESEARCH_MODULES))
    allowed_builtins: list[str] = field(default_factory=lambda: list(SAFE_BUILTINS))
    max_output_length: int = 10 * 1024
    environment_variables: dict[str, str] = field(default_factory=dict)


@dataclass
class SandboxResult:
    """Outcome of one sandboxed execution."""

    success: bool
    output: str
    error: str | None = None
    exit_code: int = 0
    execution_time: float = 0.0
    timed_out: bool = False
    truncated_output: bool = False

    @property
    def failed(self) -> bool:
        return not self.success

    @classmethod
    def success_result(
        cls, output: str, execution_time: float = 0.0, truncated: bool = False
    ) -> "SandboxResult":
        return cls(
            success=True,
            output=output,
            execution_time=execution_time,
            truncated_output=truncated,
        )

    @classmethod
    def error_result(
        cls, error: str, exit_code: int = 1, execution_time: float = 0.0
    ) -> "SandboxResult":
        return cls(
            success=False,
            output="",
            error=error,
            exit_code=exit_code,
            execution_time=execution_time,
        )

    @classmethod
    def timeout_result(cls, execution_time: float) -> "SandboxResult":
        return cls(
            success=False,
            output="",
            error="Execution timed out",
            timed_out=True,
            execution_time=execution_time,
        )
