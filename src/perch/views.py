"""Template loading and presentation binding.

The resolver asks a ``TemplateLoader`` for each view's template while it
resolves the view's data. ``ViewSlot`` is the presentation side: it tracks
one qualified view name and reports when the committed view bag changes,
so a renderer only redraws views whose data actually changed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import anyio

from perch._internal.invoke import settle

if TYPE_CHECKING:
    from perch.state.router import StateRouter
    from perch.state.types import StateNode, ViewDefinition, ViewLocals


class TemplateLoader(Protocol):
    """Loads the template text for a view."""

    def load(
        self,
        name: str,
        *,
        view: ViewDefinition,
        locals: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> str | Awaitable[str]: ...


class DefaultTemplateLoader:
    """Loads inline templates, template callables, and template files.

    - ``template="<h1>Hi</h1>"`` is returned as-is
    - ``template=callable`` is called with the state params
    - ``template_url="blog/post.html"`` is read from *template_dir*
    - a view with neither gets an empty template
    """

    __slots__ = ("_template_dir",)

    def __init__(self, template_dir: str | Path = "templates") -> None:
        self._template_dir = anyio.Path(template_dir)

    async def load(
        self,
        name: str,
        *,
        view: ViewDefinition,
        locals: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> str:
        template = view.template
        if isinstance(template, str):
            return template
        if callable(template):
            return await settle(template(params)) or ""
        if view.template_url is not None:
            return await (self._template_dir / view.template_url).read_text(encoding="utf-8")
        return ""


class ViewSlot:
    """One rendered view in the presentation tree.

    A slot is identified by a qualified name ``"view@state"``. Unqualified
    names are qualified against the state that rendered the *parent* slot
    (the root state for top-level slots).

    Usage::

        main = ViewSlot(router, "main")
        if main.update():
            render(main.locals.template, main.locals.controller, main.locals.data)
    """

    __slots__ = ("_router", "locals", "name")

    def __init__(
        self,
        router: StateRouter,
        name: str = "",
        parent: ViewSlot | None = None,
    ) -> None:
        if "@" not in name:
            owner = parent.state.name if parent is not None and parent.state is not None else ""
            name = f"{name}@{owner}"
        self._router = router
        self.name = name
        self.locals: ViewLocals | None = None

    @property
    def state(self) -> StateNode | None:
        """The state whose view is currently shown, if any."""
        return self.locals.state if self.locals is not None else None

    def update(self) -> bool:
        """Pick up the view bag of the active state.

        Returns ``True`` if the bag changed identity since the last update.
        """
        current = self._router.views.get(self.name)
        if current is self.locals:
            return False
        self.locals = current
        return True
