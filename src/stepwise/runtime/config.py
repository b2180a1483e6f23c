"""
Configuration for the execution engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool = True) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def get_max_loop_iterations() -> Optional[int]:
    """
    Resolve the per-loop iteration limit from the environment (0 means unlimited).
    """
    limit = _env_int("STEPWISE_MAX_LOOP_ITERATIONS", 0)
    return limit if limit > 0 else None


@dataclass
class EngineConfig:
    max_loop_iterations: Optional[int] = None
    log_redact_args: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            max_loop_iterations=get_max_loop_iterations(),
            log_redact_args=_env_bool("STEPWISE_LOG_REDACT_ARGS", True),
        )
