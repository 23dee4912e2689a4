"""Sandboxed execution for generated code."""

from .types import RESEARCH_MODULES, SandboxConfig, SandboxResult
from .runner import (
    SandboxedRunner,
    SubprocessRunner,
    InProcessRunner,
    create_runner,
)

__all__ = [
    "RESEARCH_MODULES",
    "SandboxConfig",
    "SandboxResult",
    "SandboxedRunner",
    "SubprocessRunner",
    "InProcessRunner",
    "create_runner",
]
