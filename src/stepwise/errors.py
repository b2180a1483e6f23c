"""
Custom error types for the Stepwise toolchain and runtime.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass
class StepwiseError(Exception):
    """Base error with optional location metadata."""

    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    code = "SW-0000"

    def __str__(self) -> str:  # pragma: no cover - trivial
        location = ""
        if self.line is not None:
            location = f" (line {self.line}"
            if self.column is not None:
                location += f", column {self.column}"
            location += ")"
        return f"{self.message}{location}"


@dataclass
class ParseError(StepwiseError):
    """Malformed workflow source."""

    position: Optional[int] = None
    expected: Tuple[str, ...] = ()

    code = "SW-1001"


class LexError(ParseError):
    """Lexical analysis error."""

    code = "SW-1002"


class BuildError(StepwiseError):
    """Parse tree does not match the shape the workflow model requires."""

    code = "SW-1101"


class RenderError(StepwiseError):
    """A workflow model value has no source representation."""

    code = "SW-1201"


class ResolutionError(StepwiseError):
    """Unknown identifier or register."""

    code = "SW-2001"


class TypeMismatchError(StepwiseError):
    """Operands fall outside the domain an operator or iterable accepts."""

    code = "SW-2002"


@dataclass
class DispatchError(StepwiseError):
    """An external call failed; wraps host-supplied detail."""

    function: Optional[str] = None
    detail: Any = None

    code = "SW-3001"


class LoopLimitError(StepwiseError):
    """A loop produced more elements than the configured limit."""

    code = "SW-2101"


class ExecutionCancelled(StepwiseError):
    """The run was cancelled at a statement checkpoint."""

    code = "SW-2201"


@dataclass
class ExecutionAbort(StepwiseError):
    """Terminal failure of a run, wrapping the first unrecovered error."""

    step: Optional[str] = None
    path: str = ""
    cause: Optional[StepwiseError] = field(default=None, repr=False)

    code = "SW-4001"

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f"step '{self.step}'" if self.step else "workflow"
        if self.path:
            where = f"{where} at {self.path}"
        return f"{self.message} [{where}]"
