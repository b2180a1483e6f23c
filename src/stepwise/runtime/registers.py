"""
Per-run register storage and the loop-variable binding overlay.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from ..errors import ResolutionError

NOT_FOUND = object()


class RegisterStore:
    """Mutable name -> value mapping owned by exactly one run."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, name: str, default: Any = NOT_FOUND) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def has(self, name: str) -> bool:
        return name in self._values

    def resolve(self, name: str) -> Any:
        if name in self._values:
            return self._values[name]
        raise ResolutionError(f"Register '${name}' is not set")

    def snapshot(self) -> Dict[str, Any]:
        # Structured values from dispatchers may be mutated by the host later.
        return copy.deepcopy(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


class LoopScope:
    """
    Stack of loop-variable frames layered over a RegisterStore.

    Lookups walk frames innermost first; the store itself is never written
    by loop bindings, so popping a frame restores the previous view exactly.
    """

    def __init__(self, store: RegisterStore) -> None:
        self.store = store
        self._frames: List[Tuple[str, Any]] = []

    def push(self, name: str, value: Any) -> None:
        self._frames.append((name, value))

    def pop(self) -> Tuple[str, Any]:
        return self._frames.pop()

    def lookup(self, name: str) -> Any:
        for frame_name, value in reversed(self._frames):
            if frame_name == name:
                return value
        return self.store.get(name)
