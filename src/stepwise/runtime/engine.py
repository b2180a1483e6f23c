"""
Tree-walking execution engine for Stepwise workflows.

Each call to `WorkflowEngine.start` builds a `WorkflowRun` that owns its own
register store and loop scope; nothing mutable is shared between runs, so
independent runs can be awaited concurrently against a reentrant dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Tuple

from .. import ir
from ..errors import ExecutionAbort, ExecutionCancelled, StepwiseError
from ..observability.logging_utils import redact_args
from .config import EngineConfig
from .dispatch import Dispatcher, invoke_dispatcher
from .expressions import ExpressionEvaluator
from .registers import LoopScope, RegisterStore

logger = logging.getLogger("stepwise.engine")

StatementPath = Tuple[str, ...]


class CancelEvent(Protocol):
    def is_set(self) -> bool: ...


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CallRecord:
    name: str
    kind: ir.CallKind
    args: List[Any]
    step: str
    path: str


@dataclass
class StepRecord:
    name: str
    index: int
    registers: Dict[str, Any] = field(default_factory=dict)
    calls: List[CallRecord] = field(default_factory=list)
    duration_seconds: float = 0.0


@dataclass
class ExecutionResult:
    workflow_name: str
    status: RunState
    registers: Dict[str, Any] = field(default_factory=dict)
    steps: List[StepRecord] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def calls(self) -> List[CallRecord]:
        return [call for step in self.steps for call in step.calls]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow_name,
            "status": self.status.value,
            "registers": self.registers,
            "steps": [
                {
                    "name": step.name,
                    "index": step.index,
                    "calls": [{"name": c.name, "kind": c.kind.value, "path": c.path} for c in step.calls],
                    "duration_seconds": step.duration_seconds,
                }
                for step in self.steps
            ],
            "duration_seconds": self.duration_seconds,
        }


def render_path(path: StatementPath) -> str:
    return ".".join(path)


class WorkflowRun:
    """A single execution of a workflow: Idle -> Running -> Completed | Failed."""

    def __init__(
        self,
        workflow: ir.Workflow,
        dispatcher: Dispatcher,
        config: EngineConfig,
        initial_bindings: Mapping[str, Any] | None = None,
        cancel_event: CancelEvent | None = None,
    ) -> None:
        if not isinstance(workflow, ir.Workflow):
            raise TypeError(f"Expected a parsed Workflow, got {type(workflow).__name__}")
        self.workflow = workflow
        self.dispatcher = dispatcher
        self.config = config
        self.cancel_event = cancel_event
        self.store = RegisterStore(initial_bindings)
        self.scope = LoopScope(self.store)
        self.evaluator = ExpressionEvaluator(self.scope)
        self.state = RunState.IDLE
        self.steps: List[StepRecord] = []
        self.error: Optional[ExecutionAbort] = None
        self._calls: List[CallRecord] = []
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None

    async def run(self) -> ExecutionResult:
        async for _ in self.iter_steps():
            pass
        return self.result()

    async def iter_steps(self) -> AsyncIterator[StepRecord]:
        """Execute top-level steps in order, yielding a record after each one."""
        if self.state is not RunState.IDLE:
            raise StepwiseError(f"Workflow run is already {self.state.value}; start a new run instead")
        self.state = RunState.RUNNING
        self._started_at = time.monotonic()
        logger.info("workflow %s %s started", self.workflow.name, self.workflow.version)
        for index, step in enumerate(self.workflow.steps):
            record = await self._run_step(index, step)
            yield record
        self.state = RunState.COMPLETED
        self._finished_at = time.monotonic()
        logger.info(
            "workflow %s completed %d step(s) in %.3fs",
            self.workflow.name,
            len(self.steps),
            self._finished_at - self._started_at,
        )

    def result(self) -> ExecutionResult:
        if self.state is RunState.FAILED and self.error is not None:
            raise self.error
        end = self._finished_at or time.monotonic()
        return ExecutionResult(
            workflow_name=self.workflow.name,
            status=self.state,
            registers=self.store.snapshot(),
            steps=list(self.steps),
            duration_seconds=end - (self._started_at or end),
        )

    async def _run_step(self, index: int, step: ir.Step) -> StepRecord:
        started = time.monotonic()
        self._calls = []
        logger.debug("step %s (%d/%d)", step.name, index + 1, len(self.workflow.steps))
        try:
            await self._execute_body(step.body, step, ())
        except ExecutionAbort as abort:
            self._fail(abort)
            raise
        except BaseException:
            self.state = RunState.FAILED
            self._finished_at = time.monotonic()
            raise
        record = StepRecord(
            name=step.name,
            index=index,
            registers=self.store.snapshot(),
            calls=self._calls,
            duration_seconds=time.monotonic() - started,
        )
        self.steps.append(record)
        return record

    def _fail(self, abort: ExecutionAbort) -> None:
        self.state = RunState.FAILED
        self.error = abort
        self._finished_at = time.monotonic()
        logger.warning(
            "workflow %s failed in step %s at %s: %s",
            self.workflow.name,
            abort.step,
            abort.path,
            abort.message,
        )

    async def _execute_body(self, body: Tuple[ir.Statement, ...], step: ir.Step, prefix: StatementPath) -> None:
        for idx, stmt in enumerate(body):
            path = prefix + (str(idx),)
            try:
                self._checkpoint()
                await self._execute_statement(stmt, step, path)
            except ExecutionAbort:
                raise
            except StepwiseError as exc:
                raise ExecutionAbort(
                    f"{type(exc).__name__}: {exc.message}",
                    exc.line,
                    exc.column,
                    step=step.name,
                    path=render_path(path),
                    cause=exc,
                ) from exc

    def _checkpoint(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ExecutionCancelled("Workflow run was cancelled")

    async def _execute_statement(self, stmt: ir.Statement, step: ir.Step, path: StatementPath) -> None:
        if isinstance(stmt, ir.Condition):
            if self.evaluator.evaluate_guard(stmt.guard):
                await self._execute_body(stmt.body, step, path + ("if",))
            return
        if isinstance(stmt, ir.ForLoop):
            await self._execute_loop(stmt, step, path)
            return
        if isinstance(stmt, ir.RegisterAssignment):
            if isinstance(stmt.value, ir.Call):
                value = await self._dispatch(stmt.value, step, path)
            else:
                value = self.evaluator.resolve(stmt.value)
            self.store.set(stmt.register, value)
            return
        if isinstance(stmt, ir.Action):
            await self._dispatch(stmt.call, step, path)
            return
        raise TypeError(f"Unsupported statement node {type(stmt).__name__}")

    async def _execute_loop(self, loop: ir.ForLoop, step: ir.Step, path: StatementPath) -> None:
        items = self.evaluator.evaluate_iterable(loop.iterable, limit=self.config.max_loop_iterations)
        for iteration, item in enumerate(items):
            self.scope.push(loop.var_name, item)
            try:
                await self._execute_body(loop.body, step, path + (f"for[{iteration}]",))
            finally:
                self.scope.pop()

    async def _dispatch(self, call: ir.Call, step: ir.Step, path: StatementPath) -> Any:
        args = [self.evaluator.resolve(param) for param in call.params]
        self._calls.append(CallRecord(name=call.name, kind=call.kind, args=list(args), step=step.name, path=render_path(path)))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s %s(%s) at %s.%s",
                call.kind.value,
                call.name,
                ", ".join(repr(arg) for arg in redact_args(args, enabled=self.config.log_redact_args)),
                step.name,
                render_path(path),
            )
        return await invoke_dispatcher(self.dispatcher, call.name, args, call.kind)


class WorkflowEngine:
    """Stateless between runs; holds only the dispatcher and configuration."""

    def __init__(self, dispatcher: Dispatcher, config: EngineConfig | None = None) -> None:
        self.dispatcher = dispatcher
        self.config = config or EngineConfig.from_env()

    def start(
        self,
        workflow: ir.Workflow,
        initial_bindings: Mapping[str, Any] | None = None,
        cancel_event: CancelEvent | None = None,
    ) -> WorkflowRun:
        return WorkflowRun(workflow, self.dispatcher, self.config, initial_bindings, cancel_event)

    async def execute(
        self,
        workflow: ir.Workflow,
        initial_bindings: Mapping[str, Any] | None = None,
        cancel_event: CancelEvent | None = None,
    ) -> ExecutionResult:
        return await self.start(workflow, initial_bindings, cancel_event).run()

    def run(
        self,
        workflow: ir.Workflow,
        initial_bindings: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        return asyncio.run(self.execute(workflow, initial_bindings))


async def execute(
    workflow: ir.Workflow,
    initial_bindings: Mapping[str, Any] | None,
    dispatcher: Dispatcher,
    *,
    config: EngineConfig | None = None,
    cancel_event: CancelEvent | None = None,
) -> ExecutionResult:
    return await WorkflowEngine(dispatcher, config).execute(workflow, initial_bindings, cancel_event)


def run_workflow(
    workflow: ir.Workflow,
    initial_bindings: Mapping[str, Any] | None,
    dispatcher: Dispatcher,
    *,
    config: EngineConfig | None = None,
) -> ExecutionResult:
    """
    Synchronous helper that delegates to the async engine.
    """

    return asyncio.run(execute(workflow, initial_bindings, dispatcher, config=config))
