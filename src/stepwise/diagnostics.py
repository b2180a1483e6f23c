"""
Structured diagnostics derived from Stepwise errors.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ExecutionAbort, ParseError, StepwiseError


@dataclass
class Diagnostic:
    code: str
    message: str
    severity: str = "error"
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    hint: Optional[str] = None
    expected: List[str] = field(default_factory=list)

    @classmethod
    def from_error(cls, error: StepwiseError, file: str | None = None) -> "Diagnostic":
        hint = None
        expected: List[str] = []
        if isinstance(error, ParseError) and error.expected:
            expected = list(error.expected)
            hint = f"expected {', '.join(expected)}"
        if isinstance(error, ExecutionAbort) and error.step:
            hint = f"in step '{error.step}' at statement {error.path or '?'}"
        return cls(
            code=error.code,
            message=error.message,
            file=file,
            line=error.line,
            column=error.column,
            hint=hint,
            expected=expected,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def format(self) -> str:
        loc_parts = [str(part) for part in (self.file, self.line, self.column) if part is not None]
        location = ":".join(loc_parts)
        prefix = f"{location} " if location else ""
        return f"{prefix}{self.severity} {self.code}: {self.message}"
