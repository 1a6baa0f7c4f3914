"""Dependency injection by parameter name.

Resolve factories, ``on_enter``/``on_exit`` callbacks, and services are
plain functions whose parameter names say what they need::

    injector = Injector()
    injector.provide("api", ApiClient())

    def load_user(api, state_params):
        return api.fetch_user(state_params["user_id"])

    injector.invoke(load_user, {"state_params": {"user_id": "7"}})

Resolution priority for each parameter:

1. *locals* passed to ``invoke()``
2. Values registered with ``provide()``
3. Factories registered with ``factory()`` (invoked once, then cached;
   async factories are awaited through ``aget()``)
4. The parameter's default value
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from perch._internal.invoke import settle
from perch.errors import UnknownDependencyError


class Injector:
    """Named service registry with signature-based invocation."""

    __slots__ = ("_factories", "_services")

    def __init__(self, services: Mapping[str, Any] | None = None) -> None:
        self._services: dict[str, Any] = dict(services or {})
        self._factories: dict[str, Callable[..., Any]] = {}

    def provide(self, name: str, value: Any) -> None:
        """Register a ready-made service."""
        self._services[name] = value

    def factory(self, name: str, func: Callable[..., Any]) -> None:
        """Register a service built lazily by invoking *func* on first use."""
        self._factories[name] = func

    def has(self, name: str) -> bool:
        return name in self._services or name in self._factories

    def get(self, name: str) -> Any:
        """Return the service registered under *name*.

        Raises ``UnknownDependencyError`` if nothing is registered, and
        ``TypeError`` if the service comes from an async factory that has
        not been built yet (use ``aget()`` for those).
        """
        if name in self._services:
            return self._services[name]
        func = self._factories.get(name)
        if func is None:
            raise UnknownDependencyError(name)
        value = self.invoke(func)
        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            msg = f"Factory for {name!r} is asynchronous; resolve it with aget()"
            raise TypeError(msg)
        self._services[name] = value
        return value

    async def aget(self, name: str) -> Any:
        """Return the service registered under *name*, awaiting async factories.

        The awaited value is cached, so every caller gets the same object.
        If two callers build the service concurrently, the first value wins.
        """
        if name in self._services:
            return self._services[name]
        func = self._factories.get(name)
        if func is None:
            raise UnknownDependencyError(name)
        value = await settle(self.invoke(func))
        return self._services.setdefault(name, value)

    def invoke(self, func: Callable[..., Any], locals: Mapping[str, Any] | None = None) -> Any:
        """Call *func*, binding each parameter by name.

        The return value is passed through unchanged, so coroutine functions
        return a coroutine for the caller to await.
        """
        locals = locals or {}
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for name, param in inspect.signature(func).parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if name in locals:
                value = locals[name]
            elif self.has(name):
                value = self.get(name)
            elif param.default is not inspect.Parameter.empty:
                continue
            else:
                raise UnknownDependencyError(name)

            if param.kind is param.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[name] = value

        return func(*args, **kwargs)
