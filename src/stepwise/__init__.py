"""
Stepwise: a small workflow language and its execution engine.
"""

from __future__ import annotations

from pathlib import Path

from .errors import (  # noqa: F401
    BuildError,
    DispatchError,
    ExecutionAbort,
    ExecutionCancelled,
    LexError,
    LoopLimitError,
    ParseError,
    RenderError,
    ResolutionError,
    StepwiseError,
    TypeMismatchError,
)
from .ir import CallKind, Workflow, ast_to_ir
from .parser import parse_source
from .runtime import EngineConfig, ExecutionResult, FunctionDispatcher, WorkflowEngine, execute, run_workflow
from .version import MODEL_VERSION, __version__  # noqa: F401


def parse(source: str, filename: str = "<string>") -> Workflow:
    """Parse workflow source text into an immutable Workflow."""
    return ast_to_ir(parse_source(source, filename=filename))


def parse_file(path: str | Path) -> Workflow:
    path = Path(path)
    return parse(path.read_text(encoding="utf-8"), filename=str(path))


__all__ = [
    "CallKind",
    "EngineConfig",
    "ExecutionResult",
    "FunctionDispatcher",
    "Workflow",
    "WorkflowEngine",
    "execute",
    "parse",
    "parse_file",
    "run_workflow",
    "__version__",
    "MODEL_VERSION",
]
