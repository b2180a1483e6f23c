"""
Execution runtime for Stepwise workflows.
"""

from .config import EngineConfig
from .dispatch import Dispatcher, FunctionDispatcher
from .engine import ExecutionResult, RunState, StepRecord, WorkflowEngine, WorkflowRun, execute, run_workflow
from .registers import RegisterStore

__all__ = [
    "Dispatcher",
    "EngineConfig",
    "ExecutionResult",
    "FunctionDispatcher",
    "RegisterStore",
    "RunState",
    "StepRecord",
    "WorkflowEngine",
    "WorkflowRun",
    "execute",
    "run_workflow",
]
