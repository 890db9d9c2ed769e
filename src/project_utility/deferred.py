from __future__ import annotations

"""Single-assignment asynchronous values shared between independent awaiters."""

import asyncio
from typing import Awaitable, Callable, Generator, Generic, Optional, TypeVar

__all__ = ["DeferredValue"]

T = TypeVar("T")
R = TypeVar("R")

_UNSET = object()


class DeferredValue(Generic[T]):
    """
    Lazily started, memoized asynchronous result.

    The factory runs at most once, on the first `start()` or `await`. Every awaiter, concurrent or
    later, observes the same outcome: the same value, or the same exception re-raised. Cancelling one
    awaiter does not cancel the shared task.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]], *, name: Optional[str] = None) -> None:
        self._factory: Optional[Callable[[], Awaitable[T]]] = factory
        self._name = name
        self._task: Optional[asyncio.Task[T]] = None
        self._value: object = _UNSET

    @classmethod
    def resolved(cls, value: T, *, name: Optional[str] = None) -> "DeferredValue[T]":
        deferred: DeferredValue[T] = cls.__new__(cls)
        deferred._factory = None
        deferred._name = name
        deferred._task = None
        deferred._value = value
        return deferred

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def started(self) -> bool:
        return self._value is not _UNSET or self._task is not None

    @property
    def done(self) -> bool:
        if self._value is not _UNSET:
            return True
        return self._task is not None and self._task.done()

    def start(self) -> None:
        """Kick off the factory without waiting for it. Requires a running event loop."""

        if self.started:
            return
        factory = self._factory
        assert factory is not None
        self._factory = None
        self._task = asyncio.ensure_future(factory())
        self._task.add_done_callback(_consume_exception)

    async def get(self) -> T:
        if self._value is not _UNSET:
            return self._value  # type: ignore[return-value]
        self.start()
        assert self._task is not None
        return await asyncio.shield(self._task)

    def map(self, transform: Callable[[T], R], *, name: Optional[str] = None) -> "DeferredValue[R]":
        """Derive a new deferred value; the source is awaited once, when the result is first needed."""

        if self._value is not _UNSET:
            return DeferredValue.resolved(transform(self._value), name=name)  # type: ignore[arg-type]

        async def _derive() -> R:
            return transform(await self.get())

        return DeferredValue(_derive, name=name)

    def __await__(self) -> Generator[object, None, T]:
        return self.get().__await__()

    def __repr__(self) -> str:
        state = "resolved" if self.done else ("pending" if self.started else "idle")
        return f"DeferredValue(name={self._name!r}, state={state})"


def _consume_exception(task: asyncio.Future) -> None:
    # Mark failures as retrieved; awaiters still receive them through `get()`.
    if not task.cancelled():
        task.exception()
