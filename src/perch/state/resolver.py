"""Dependency resolver — builds the ``Locals`` of one state.

Pipeline for ``resolve(state, params, inherited)``::

    1. Restrict params to the state's own parameter set
    2. Resolve state.resolve entries            -> globals      (concurrently,
    3. Load each view's template and resolve     -> view bags     one task group)
       its own resolve map
    4. Await the inherited (parent) locals
    5. globals = parent globals beneath own globals
    6. every view bag = globals beneath the view's own values

The first failing entry cancels the rest of the state's work and is
re-raised unchanged, so a state never ends up with partial locals.
"""

from collections.abc import Awaitable, Callable, Mapping
from functools import partial
from typing import Any

import anyio

from perch._internal.invoke import invoke
from perch._internal.params import filter_by_keys
from perch.injector import Injector
from perch.state.types import Locals, ResolveMap, StateNode, ViewLocals
from perch.views import TemplateLoader


class Resolver:
    """Resolves state and view dependencies through the injector."""

    __slots__ = ("_injector", "_template_loader")

    def __init__(self, injector: Injector, template_loader: TemplateLoader) -> None:
        self._injector = injector
        self._template_loader = template_loader

    async def resolve(
        self,
        state: StateNode,
        params: Mapping[str, Any],
        inherited: Awaitable[Locals],
        *,
        params_filtered: bool = False,
    ) -> Locals:
        """Resolve *state*'s dependencies and merge them over *inherited*.

        Args:
            state: The state being entered.
            params: Parameters of the transition.
            inherited: Resolves to the locals of the nearest ancestor.
            params_filtered: ``True`` if *params* already hold exactly the
                state's parameters (the transition target).
        """
        state_params = dict(params) if params_filtered else filter_by_keys(state.params, params)
        invoke_locals = {"state_params": state_params}

        own_globals: dict[str, Any] = {}
        view_values: dict[str, dict[str, Any]] = {name: {} for name in state.views}
        templates: dict[str, str] = {}
        failures: list[Exception] = []

        async with anyio.create_task_group() as tg:

            async def _run(
                dst: dict[str, Any], key: str, work: Callable[[], Awaitable[Any]]
            ) -> None:
                try:
                    dst[key] = await work()
                except Exception as exc:
                    failures.append(exc)
                    tg.cancel_scope.cancel()

            def _resolve_map(deps: ResolveMap, dst: dict[str, Any]) -> None:
                for key, dep in deps.items():
                    work = partial(self._resolve_dependency, dep, invoke_locals)
                    tg.start_soon(_run, dst, key, work)

            _resolve_map(state.resolve, own_globals)

            for name, view in state.views.items():
                load = partial(
                    invoke,
                    self._template_loader.load,
                    name,
                    view=view,
                    locals=invoke_locals,
                    params=state_params,
                )
                tg.start_soon(_run, templates, name, load)
                # The implicit unnamed view shares the state's resolve map
                if view.resolve is not None and view.resolve is not state.resolve:
                    _resolve_map(view.resolve, view_values[name])

        if failures:
            raise failures[0]

        parent = await inherited

        merged_globals = {**parent.globals, "state_params": state_params, **own_globals}
        views = dict(parent.views)
        for name, view in state.views.items():
            views[name] = ViewLocals(
                name=name,
                state=state,
                template=templates.get(name) or "",
                controller=view.controller,
                data={**merged_globals, **view_values[name]},
            )

        return Locals(state=state, params=state_params, globals=merged_globals, views=views)

    async def _resolve_dependency(self, dep: Any, locals: Mapping[str, Any]) -> Any:
        if isinstance(dep, str):
            return await self._injector.aget(dep)
        return await invoke(self._injector.invoke, dep, locals)
