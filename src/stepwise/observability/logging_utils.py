from __future__ import annotations

import os
from typing import Any, Dict, Sequence

_SENSITIVE_KEYS = {"email", "phone", "authorization", "access_token", "password", "secret", "token"}


def _env_bool(name: str, default: bool = True) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def redact_value(value: Any, enabled: bool | None = None) -> Any:
    if enabled is None:
        enabled = _env_bool("STEPWISE_LOG_REDACT_ARGS", True)
    if not enabled:
        return value
    if isinstance(value, str):
        return "[REDACTED]" if value else value
    if isinstance(value, dict):
        return redact_mapping(value, enabled=True)
    if isinstance(value, list):
        return ["[REDACTED]" if isinstance(item, str) and item else item for item in value]
    return value


def redact_args(args: Sequence[Any], enabled: bool | None = None) -> list[Any]:
    """
    Redact dispatch arguments before they reach the log. Integers and
    booleans are kept so control-flow decisions stay readable.
    """

    return [redact_value(arg, enabled=enabled) for arg in args]


def redact_mapping(values: Dict[str, Any], enabled: bool | None = None) -> Dict[str, Any]:
    if enabled is None:
        enabled = _env_bool("STEPWISE_LOG_REDACT_ARGS", True)
    if not enabled:
        return dict(values)
    redacted: Dict[str, Any] = {}
    for key, value in values.items():
        if str(key).lower() in _SENSITIVE_KEYS or isinstance(value, str):
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted
