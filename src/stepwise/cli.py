"""
Command-line interface for Stepwise.
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from dataclasses import asdict, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

from . import ir, parse, parse_file
from .diagnostics import Diagnostic
from .errors import ExecutionAbort, ParseError, StepwiseError
from .formatter import format_source
from .parser import parse_source
from .runtime import EngineConfig, FunctionDispatcher, WorkflowEngine
from .runtime.dispatch import Dispatcher
from .version import MODEL_VERSION, __version__

logger = logging.getLogger("stepwise.cli")


def build_cli_parser() -> argparse.ArgumentParser:
    cli = argparse.ArgumentParser(prog="stepwise", description="Stepwise workflow CLI")
    cli.add_argument(
        "--version",
        action="version",
        version=f"Stepwise {__version__} (Python {sys.version.split()[0]})",
    )
    cli.add_argument("-v", "--verbose", action="store_true", help="Log engine activity to stderr")
    sub = cli.add_subparsers(dest="command", required=True)

    parse_cmd = sub.add_parser("parse", help="Parse a workflow file and show the parse tree")
    parse_cmd.add_argument("file", type=Path)

    ir_cmd = sub.add_parser("ir", help="Build the workflow model and show it as JSON")
    ir_cmd.add_argument("file", type=Path)

    check_cmd = sub.add_parser("check", help="Parse workflow files and report diagnostics")
    check_cmd.add_argument("files", nargs="+", type=Path)
    check_cmd.add_argument("--json", action="store_true", help="Emit diagnostics as JSON")

    fmt_cmd = sub.add_parser("fmt", help="Rewrite workflow files in canonical form")
    fmt_cmd.add_argument("files", nargs="*", type=Path)
    fmt_cmd.add_argument("--check", action="store_true", help="Exit non-zero if a file would change")
    fmt_cmd.add_argument("--stdin", action="store_true", help="Format source read from stdin")

    functions_cmd = sub.add_parser("functions", help="List external functions a workflow calls")
    functions_cmd.add_argument("file", type=Path)

    run_cmd = sub.add_parser("run", help="Execute a workflow")
    run_cmd.add_argument("file", type=Path)
    run_cmd.add_argument(
        "--bind",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Initial register value (JSON decoded when possible)",
    )
    run_cmd.add_argument(
        "--dispatcher",
        help="Import path of the host dispatcher, as module:attribute",
    )
    return cli


def to_jsonable(node: Any) -> Any:
    """Serialize model nodes with their type names so union members stay distinct."""
    if isinstance(node, Enum):
        return node.value
    if is_dataclass(node) and not isinstance(node, type):
        payload: Dict[str, Any] = {"type": type(node).__name__}
        for item in fields(node):
            payload[item.name] = to_jsonable(getattr(node, item.name))
        return payload
    if isinstance(node, (list, tuple)):
        return [to_jsonable(item) for item in node]
    if isinstance(node, dict):
        return {key: to_jsonable(value) for key, value in node.items()}
    return node


def parse_bindings(pairs: List[str]) -> Dict[str, Any]:
    bindings: Dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            raise SystemExit(f"Invalid binding '{pair}'; expected NAME=VALUE")
        try:
            bindings[name.lstrip("$")] = json.loads(raw)
        except ValueError:
            bindings[name.lstrip("$")] = raw
    return bindings


def load_dispatcher(import_path: str | None) -> Dispatcher:
    if not import_path:
        return FunctionDispatcher()
    module_name, sep, attr = import_path.partition(":")
    if not sep or not attr:
        raise SystemExit(f"Invalid dispatcher '{import_path}'; expected module:attribute")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise SystemExit(f"Cannot load dispatcher '{import_path}': {exc}") from exc
    if isinstance(target, type) or (callable(target) and not hasattr(target, "invoke")):
        target = target()
    if not hasattr(target, "invoke"):
        raise SystemExit(f"Dispatcher '{import_path}' has no invoke() method")
    logger.debug("using dispatcher %s from %s", type(target).__name__, import_path)
    return target


def _print_parse_failure(path: Path | str, err: ParseError) -> None:
    print(Diagnostic.from_error(err, file=str(path)).format())


def main(argv: list[str] | None = None) -> None:
    cli = build_cli_parser()
    args = cli.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "parse":
        try:
            tree = parse_source(args.file.read_text(encoding="utf-8"), filename=str(args.file))
        except ParseError as err:
            _print_parse_failure(args.file, err)
            raise SystemExit(1)
        print(json.dumps(asdict(tree), indent=2))
        return

    if args.command == "ir":
        workflow = _load_or_exit(args.file)
        payload = to_jsonable(workflow)
        payload["model_version"] = MODEL_VERSION
        print(json.dumps(payload, indent=2))
        return

    if args.command == "check":
        diagnostics: list[Diagnostic] = []
        for path in args.files:
            try:
                parse_file(path)
            except StepwiseError as err:
                diagnostics.append(Diagnostic.from_error(err, file=str(path)))
        success = not diagnostics
        if args.json:
            payload = {"success": success, "diagnostics": [d.to_dict() for d in diagnostics]}
            print(json.dumps(payload, indent=2))
        else:
            for diag in diagnostics:
                print(diag.format())
                if diag.hint:
                    print(f"  hint: {diag.hint}")
            print(f"Summary: {len(diagnostics)} errors across {len(args.files)} files.")
        if not success:
            raise SystemExit(1)
        return

    if args.command == "fmt":
        if args.stdin:
            src = sys.stdin.read()
            try:
                formatted = format_source(src)
            except StepwiseError as err:
                print(f"stdin:{err.line}:{err.column}: parse error: {err.message}")
                raise SystemExit(1)
            if args.check:
                if formatted != src:
                    raise SystemExit(1)
                return
            sys.stdout.write(formatted)
            return

        if not args.files:
            raise SystemExit("fmt needs at least one file, or --stdin")
        failed = False
        changed = False
        for path in args.files:
            src = path.read_text(encoding="utf-8")
            try:
                formatted = format_source(src, filename=str(path))
            except StepwiseError as err:
                print(f"{path}:{err.line}:{err.column}: parse error: {err.message}")
                failed = True
                continue
            if args.check:
                if formatted != src:
                    print(f"{path} would be reformatted.")
                    changed = True
            elif formatted != src:
                path.write_text(formatted, encoding="utf-8")
        if failed or (args.check and changed):
            raise SystemExit(1)
        return

    if args.command == "functions":
        workflow = _load_or_exit(args.file)
        for name in workflow.function_names():
            print(name)
        return

    if args.command == "run":
        workflow = _load_or_exit(args.file)
        bindings = parse_bindings(args.bind)
        dispatcher = load_dispatcher(args.dispatcher)
        engine = WorkflowEngine(dispatcher, EngineConfig.from_env())
        try:
            result = engine.run(workflow, bindings)
        except ExecutionAbort as abort:
            payload = {
                "status": "failed",
                "workflow": workflow.name,
                "error": Diagnostic.from_error(abort, file=str(args.file)).to_dict(),
            }
            print(json.dumps(payload, indent=2, default=str))
            raise SystemExit(1)
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return


def _load_or_exit(path: Path) -> ir.Workflow:
    try:
        return parse(path.read_text(encoding="utf-8"), filename=str(path))
    except StepwiseError as err:
        print(Diagnostic.from_error(err, file=str(path)).format())
        raise SystemExit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
