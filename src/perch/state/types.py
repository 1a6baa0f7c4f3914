"""State tree data model.

``StateDefinition`` and ``ViewDefinition`` are the user-authored, frozen
configuration. ``StateNode`` is the registry's derived view of a definition,
computed once at registration. ``Locals`` and ``ViewLocals`` are the
immutable records a transition resolves for each entered state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from perch.routing.matcher import UrlMatcher

# name -> injectable name, or a factory invoked through the injector
ResolveMap = Mapping[str, str | Callable[..., Any]]


@dataclass(frozen=True, slots=True, eq=False)
class ViewDefinition:
    """A named view of a state: what to render and which data it needs.

    ``template`` is inline markup or a callable receiving the state params;
    ``template_url`` names a file for the template loader.
    """

    template: str | Callable[..., Any] | None = None
    template_url: str | None = None
    controller: Any = None
    resolve: ResolveMap | None = None

    @classmethod
    def from_mapping(cls, data: ViewDefinition | Mapping[str, Any]) -> ViewDefinition:
        if isinstance(data, ViewDefinition):
            return data
        return cls(**data)


@dataclass(frozen=True, slots=True, eq=False)
class StateDefinition:
    """A user-authored state. Never mutated after creation.

    Usage::

        StateDefinition(
            name="blog.post",
            url="/post/{post}",
            resolve={"post": load_post},
            template_url="blog/post.html",
        )

    A ``url`` starting with ``^`` is absolute; any other URL is appended to
    the nearest navigable ancestor's URL.
    """

    name: str
    url: str | UrlMatcher | None = None
    abstract: bool = False
    params: Sequence[str] | None = None
    parent: str | StateDefinition | StateNode | None = None
    data: Mapping[str, Any] | None = None
    resolve: ResolveMap | None = None
    views: Mapping[str, ViewDefinition | Mapping[str, Any]] | None = None
    template: str | Callable[..., Any] | None = None
    template_url: str | None = None
    controller: Any = None
    on_enter: Callable[..., Any] | None = None
    on_exit: Callable[..., Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], name: str | None = None) -> StateDefinition:
        """Build a definition from a mapping, optionally supplying the name.

        Unknown keys raise ``TypeError``.
        """
        values = dict(data)
        if name is not None:
            values["name"] = name
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            msg = f"Unknown state definition keys: {sorted(unknown)}"
            raise TypeError(msg)
        return cls(**values)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class ViewLocals:
    """Resolved data for one view of one state.

    The presentation binding re-renders a view only when the identity of
    its ``ViewLocals`` changes between transitions.
    """

    name: str
    state: StateNode
    template: str
    controller: Any
    data: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Locals:
    """Resolved data for one state, merged with its ancestors'.

    ``globals`` holds the ancestors' resolved values beneath this state's
    own, plus ``state_params``. ``views`` holds the ancestors' view bags
    (same objects) beneath this state's own.
    """

    state: StateNode | None
    params: Mapping[str, Any] = field(default_factory=dict)
    globals: Mapping[str, Any] = field(default_factory=dict)
    views: Mapping[str, ViewLocals] = field(default_factory=dict)


class StateNode:
    """A registered state with the properties derived from its definition.

    Everything except ``locals`` is computed once by the registry and never
    changes. ``locals`` is written only by the transition engine's commit
    step and is ``None`` while the state is not active.
    """

    __slots__ = (
        "abstract",
        "data",
        "definition",
        "includes",
        "locals",
        "name",
        "navigable",
        "on_enter",
        "on_exit",
        "own_params",
        "params",
        "parent",
        "path",
        "resolve",
        "url",
        "views",
    )

    def __init__(self, definition: StateDefinition) -> None:
        self.definition = definition
        self.name = definition.name
        self.abstract = definition.abstract
        self.resolve: ResolveMap = definition.resolve if definition.resolve is not None else {}
        self.on_enter = definition.on_enter
        self.on_exit = definition.on_exit

        # Derived by the registry, in this order
        self.parent: StateNode | None = None
        self.data: dict[str, Any] = {}
        self.url: UrlMatcher | None = None
        self.navigable: StateNode | None = None
        self.params: tuple[str, ...] = ()
        self.views: dict[str, ViewDefinition] = {}
        self.own_params: tuple[str, ...] = ()
        self.path: tuple[StateNode, ...] = ()
        self.includes: frozenset[str] = frozenset()

        self.locals: Locals | None = None

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<StateNode {self.name!r}>"
