"""
Boundary between the engine and host-supplied functionality.

The engine only depends on the `Dispatcher` protocol; `FunctionDispatcher`
is a convenience registry that hosts can use to expose plain Python
callables (sync or async) as workflow commands and functions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..errors import DispatchError
from ..ir import CallKind

logger = logging.getLogger("stepwise.dispatch")


@runtime_checkable
class Dispatcher(Protocol):
    def invoke(self, name: str, args: List[Any], *, kind: CallKind) -> Any:
        """Run `name` with ordered `args`; may return a value or an awaitable."""


async def invoke_dispatcher(dispatcher: Dispatcher, name: str, args: List[Any], kind: CallKind) -> Any:
    """Invoke and await if needed, normalising failures to DispatchError."""
    try:
        result = dispatcher.invoke(name, args, kind=kind)
        if inspect.isawaitable(result):
            result = await result
    except DispatchError:
        raise
    except Exception as exc:
        raise DispatchError(f"Call to '{name}' failed: {exc}", function=name, detail=exc) from exc
    return result


@dataclass
class RegisteredFunction:
    name: str
    fn: Callable[..., Any]
    kind: Optional[CallKind] = None
    description: Optional[str] = None

    def accepts(self, kind: CallKind) -> bool:
        return self.kind is None or self.kind is kind


class FunctionDispatcher:
    """
    Registry-backed dispatcher. Callables receive the resolved arguments
    positionally; coroutine functions are awaited and plain callables run in
    a worker thread.
    """

    def __init__(self, functions: Dict[str, Callable[..., Any]] | None = None) -> None:
        self._functions: Dict[str, RegisteredFunction] = {}
        for name, fn in (functions or {}).items():
            self.register(name, fn)

    def register(
        self,
        name: str,
        fn: Callable[..., Any],
        *,
        kind: CallKind | None = None,
        description: str | None = None,
    ) -> None:
        if not callable(fn):
            raise TypeError(f"Function '{name}' is not callable")
        self._functions[name] = RegisteredFunction(name=name, fn=fn, kind=kind, description=description)

    def function(self, name: str | None = None, *, kind: CallKind | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of `register`."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name or fn.__name__, fn, kind=kind, description=inspect.getdoc(fn))
            return fn

        return decorator

    def names(self) -> List[str]:
        return sorted(self._functions)

    def missing(self, names: Sequence[str]) -> List[str]:
        return [name for name in names if name not in self._functions]

    async def invoke(self, name: str, args: List[Any], *, kind: CallKind = CallKind.FUNCTION) -> Any:
        entry = self._functions.get(name)
        if entry is None or not entry.accepts(kind):
            raise DispatchError(f"Unknown {kind.value} '{name}'", function=name)
        logger.debug("dispatching %s '%s' with %d argument(s)", kind.value, name, len(args))
        if inspect.iscoroutinefunction(entry.fn):
            return await entry.fn(*args)
        # Plain callables may block; they run off the event loop.
        result = await asyncio.to_thread(entry.fn, *args)
        if inspect.isawaitable(result):
            result = await result
        return result
