"""Single-assignment result slot that can be awaited by another task.

The transition engine starts every entered state's resolution at once and
hands each one the previous state's ``Deferred`` as its inherited locals.
A slot is settled exactly once, either with a value or an exception, and
awaiting it re-raises the exception.

Deferreds wrap an ``anyio.Event`` so they must be created inside a running
event loop.
"""

from collections.abc import Generator
from typing import Any, Generic, TypeVar

import anyio

T = TypeVar("T")

_UNSET: Any = object()


class Deferred(Generic[T]):
    """An awaitable that completes when ``set_result``/``set_exception`` is called."""

    __slots__ = ("_error", "_event", "_value")

    def __init__(self) -> None:
        self._event = anyio.Event()
        self._value: T = _UNSET
        self._error: BaseException | None = None

    @classmethod
    def resolved(cls, value: T) -> "Deferred[T]":
        """Return a slot that is already settled with *value*."""
        deferred: Deferred[T] = cls()
        deferred.set_result(value)
        return deferred

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def set_result(self, value: T) -> None:
        self._check_unsettled()
        self._value = value
        self._event.set()

    def set_exception(self, error: BaseException) -> None:
        self._check_unsettled()
        self._error = error
        self._event.set()

    def result(self) -> T:
        """Return the value or raise the stored exception.

        Raises ``RuntimeError`` if the slot has not been settled.
        """
        if not self._event.is_set():
            msg = "Deferred result is not available yet"
            raise RuntimeError(msg)
        if self._error is not None:
            raise self._error
        return self._value

    async def wait_settled(self) -> None:
        """Wait until the slot is settled without raising its exception."""
        await self._event.wait()

    async def _get(self) -> T:
        await self._event.wait()
        return self.result()

    def __await__(self) -> Generator[Any, None, T]:
        return self._get().__await__()

    def _check_unsettled(self) -> None:
        if self._event.is_set():
            msg = "Deferred is already settled"
            raise RuntimeError(msg)
