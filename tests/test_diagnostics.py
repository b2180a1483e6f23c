import pytest

import stepwise
from stepwise.diagnostics import Diagnostic
from stepwise.errors import ExecutionAbort, ParseError, ResolutionError


def test_parse_error_diagnostic():
    with pytest.raises(ParseError) as excinfo:
        stepwise.parse("workflow W {\n}", filename="flow.wf")
    diag = Diagnostic.from_error(excinfo.value, file="flow.wf")
    assert diag.code == "SW-1001"
    assert diag.severity == "error"
    assert (diag.line, diag.column) == (1, 12)
    assert diag.expected == ["version"]
    assert diag.hint == "expected version"
    assert diag.format().startswith("flow.wf:1:12 error SW-1001: Expected a version")


def test_execution_abort_diagnostic():
    cause = ResolutionError("Register '$x' is not set")
    abort = ExecutionAbort("ResolutionError: Register '$x' is not set", step="Main", path="0.for[1].2", cause=cause)
    payload = Diagnostic.from_error(abort).to_dict()
    assert payload["code"] == "SW-4001"
    assert payload["hint"] == "in step 'Main' at statement 0.for[1].2"
    assert payload["file"] is None


def test_error_string_includes_location():
    err = ParseError("Expected '}'", 3, 7)
    assert str(err) == "Expected '}' (line 3, column 7)"
    abort = ExecutionAbort("boom", step="S", path="1")
    assert str(abort) == "boom [step 'S' at 1]"
