"""Transition engine — moves the active-state pointer.

A transition:

1. Finds the target and, with ``inherit=True``, carries over the current
   values of parameters shared with the current state.
2. Keeps the longest common prefix of the current and target paths whose
   own parameters are unchanged; kept states keep their locals.
3. Emits ``TransitionStart`` (listeners may prevent the transition).
4. Starts resolving every entered state at once, each one chained to its
   parent's pending locals.
5. Commits only if no newer transition was started in the meantime:
   swaps the locals of exited and entered states, updates the active
   state and parameters, then runs ``on_exit`` deepest-first and
   ``on_enter`` shallowest-first. Callback errors are logged, not raised.
   Finally pushes the location and emits ``TransitionSuccess``.

Nothing is mutated before the commit, so a failed or superseded
transition leaves the active state and every node's locals untouched.
The commit step contains no awaits and cannot interleave with another
transition.
"""

import inspect
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import anyio

from perch._internal.deferred import Deferred
from perch._internal.params import equal_for_keys, inherit_params, normalize
from perch.config import RouterConfig
from perch.errors import (
    AbstractTransitionError,
    TransitionPreventedError,
    TransitionSupersededError,
    UnknownStateError,
)
from perch.injector import Injector
from perch.routing.url_router import Location
from perch.state.events import (
    TransitionEventBus,
    TransitionFailure,
    TransitionStart,
    TransitionSuccess,
)
from perch.state.registry import StateRegistry
from perch.state.resolver import Resolver
from perch.state.types import Locals, StateDefinition, StateNode

logger = logging.getLogger("perch.state")


class _Transition:
    """Token identifying one in-flight transition."""

    __slots__ = ("cancel_scope", "to")

    def __init__(self, to: StateNode) -> None:
        self.to = to
        self.cancel_scope = anyio.CancelScope()

    def __repr__(self) -> str:
        return f"<Transition to {self.to.name!r}>"


class TransitionEngine:
    """Owns the active state and performs transitions between states.

    Usage::

        engine = TransitionEngine(registry, resolver, injector, events)
        await engine.transition_to("blog.post", {"post": "42"})
        engine.current.name     # "blog.post"
        engine.params           # {"post": "42"}
    """

    __slots__ = (
        "_config",
        "_events",
        "_injector",
        "_location",
        "_registry",
        "_resolver",
        "current",
        "params",
        "pending",
        "state_params",
    )

    def __init__(
        self,
        registry: StateRegistry,
        resolver: Resolver,
        injector: Injector,
        events: TransitionEventBus,
        *,
        location: Location | None = None,
        config: RouterConfig | None = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._injector = injector
        self._events = events
        self._location = location
        self._config = config or RouterConfig()

        self.current: StateNode = registry.root
        self.params: dict[str, str | None] = {}
        # Mirrors ``params``; updated in place so references stay valid
        self.state_params: dict[str, str | None] = {}
        self.pending: _Transition | None = None

    @property
    def is_transitioning(self) -> bool:
        return self.pending is not None

    async def transition_to(
        self,
        to: "str | StateNode | StateDefinition",
        params: Mapping[str, Any] | None = None,
        *,
        location: bool = True,
        inherit: bool = False,
        relative: StateNode | None = None,
    ) -> StateDefinition:
        """Transition to *to* and return its definition once committed.

        Raises:
            UnknownStateError: No state matches *to*.
            AbstractTransitionError: *to* is abstract.
            TransitionPreventedError: A start listener prevented it.
            TransitionSupersededError: A newer transition started before
                this one could commit.
            Exception: Any error raised while resolving dependencies, as-is.
        """
        target = self._registry.find(to, relative)
        if target is None:
            raise UnknownStateError(to)
        if target.abstract:
            raise AbstractTransitionError(target.name)

        to_params: dict[str, Any] = dict(params or {})
        if inherit:
            to_params = inherit_params(self.params, to_params, self.current, target)

        origin = self.current
        from_params = self.params
        to_path = target.path
        from_path = origin.path

        # Keep every leading state that is shared and whose own params are unchanged
        keep = 0
        locals_ = self._registry.root.locals
        while (
            keep < len(to_path)
            and keep < len(from_path)
            and to_path[keep] is from_path[keep]
            and equal_for_keys(to_params, from_params, to_path[keep].own_params)
        ):
            locals_ = to_path[keep].locals
            keep += 1

        if target is origin and locals_ is origin.locals:
            # Nothing to do, but still cancel any other pending transition
            self._supersede()
            self.pending = None
            return origin.definition

        to_params = normalize(target.params, to_params)

        start = TransitionStart(target.definition, to_params, origin.definition, from_params)
        self._events.emit(start)
        if start.prevented:
            logger.debug("Transition to %r prevented", target.name)
            raise TransitionPreventedError(target.name)

        if self._config.lifecycle_logging:
            logger.debug("Transition %r -> %r started (keep=%d)", origin.name, target.name, keep)

        transition = _Transition(target)
        self._supersede()
        self.pending = transition

        try:
            with transition.cancel_scope:
                entered = await self._resolve_path(target, to_path[keep:], to_params, locals_)
        except Exception as exc:
            if self.pending is not transition:
                raise TransitionSupersededError(target.name) from exc
            self.pending = None
            if self._config.lifecycle_logging:
                logger.warning("Transition %r -> %r failed: %r", origin.name, target.name, exc)
            self._events.emit(
                TransitionFailure(target.definition, to_params, origin.definition, from_params, exc)
            )
            raise

        if self.pending is not transition:
            logger.debug("Transition to %r superseded", target.name)
            raise TransitionSupersededError(target.name)

        self._commit(target, to_params, from_path[keep:], to_path[keep:], entered)

        nav = target.navigable
        if location and nav is not None and nav.locals is not None and self._location is not None:
            self._location.push(nav.url.format(nav.locals.params))

        if self._config.lifecycle_logging:
            logger.info("Transition %r -> %r succeeded", origin.name, target.name)
        self._events.emit(
            TransitionSuccess(target.definition, to_params, origin.definition, from_params)
        )
        return target.definition

    def _supersede(self) -> None:
        if self.pending is not None and self._config.cancel_superseded:
            self.pending.cancel_scope.cancel()

    async def _resolve_path(
        self,
        target: StateNode,
        entering: Sequence[StateNode],
        params: Mapping[str, Any],
        seed: Locals,
    ) -> list[Locals]:
        """Resolve every entered state, each chained to its parent's locals.

        All resolutions start immediately; only the final merge of each
        state waits for its parent.
        """
        slots: list[Deferred[Locals]] = []

        async def _resolve_into(
            slot: Deferred[Locals],
            state: StateNode,
            inherited: Deferred[Locals],
        ) -> None:
            try:
                result = await self._resolver.resolve(
                    state, params, inherited, params_filtered=state is target
                )
            except Exception as exc:
                slot.set_exception(exc)
            else:
                slot.set_result(result)

        async with anyio.create_task_group() as tg:
            inherited: Deferred[Locals] = Deferred.resolved(seed)
            for state in entering:
                slot: Deferred[Locals] = Deferred()
                tg.start_soon(_resolve_into, slot, state, inherited)
                slots.append(slot)
                inherited = slot

            # Errors travel down the chain, so the last slot carries any failure
            await inherited.wait_settled()
            tg.cancel_scope.cancel()

        inherited.result()
        return [slot.result() for slot in slots]

    def _commit(
        self,
        target: StateNode,
        to_params: dict[str, str | None],
        exiting: Sequence[StateNode],
        entering: Sequence[StateNode],
        entered: Sequence[Locals],
    ) -> None:
        exited = [(state, state.locals) for state in reversed(exiting)]
        for state in exiting:
            state.locals = None
        for state, locals_ in zip(entering, entered, strict=True):
            state.locals = locals_

        self.current = target
        self.params = to_params
        self.state_params.clear()
        self.state_params.update(to_params)
        self.pending = None

        # Callbacks run against the committed tree; a failing one cannot undo it
        for state, locals_ in exited:
            if state.on_exit is not None and locals_ is not None:
                self._run_callback(state, "on_exit", locals_)
        for state, locals_ in zip(entering, entered, strict=True):
            if state.on_enter is not None:
                self._run_callback(state, "on_enter", locals_)

    def _run_callback(self, state: StateNode, hook: str, locals_: Locals) -> None:
        try:
            result = self._injector.invoke(getattr(state, hook), locals_.globals)
        except Exception:
            logger.exception("%s of state %r failed", hook, state.name)
            return
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            logger.error(
                "%s of state %r returned an awaitable; it must be synchronous", hook, state.name
            )
