"""StateRouter — the public navigation surface.

Wires the registry, resolver, engine, URL router, and event bus together
and exposes configuration (``state()``), commands (``go()``,
``transition_to()``, ``sync()``) and queries (``is_state()``,
``includes()``, ``href()``, ``get()``).

Usage::

    router = StateRouter()
    (router
        .state("home", url="/", template="<h1>Home</h1>")
        .state("blog", url="/blog", resolve={"posts": load_posts})
        .state("blog.post", url="/post/{post}", resolve={"post": load_post}))

    await router.go("blog.post", {"post": "42"})
    router.href("blog.post", {"post": "7"})   # "#/blog/post/7"
"""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from perch._internal.params import equal_for_keys, inherit_params, normalize
from perch.config import RouterConfig
from perch.injector import Injector
from perch.routing.url_router import Location, UrlRouter
from perch.state.engine import TransitionEngine
from perch.state.events import TransitionEventBus
from perch.state.registry import StateRegistry
from perch.state.resolver import Resolver
from perch.state.types import StateDefinition, StateNode, ViewLocals
from perch.views import DefaultTemplateLoader, TemplateLoader

logger = logging.getLogger("perch.state")

StateRef = str | StateNode | StateDefinition


class StateRouter:
    """Hierarchical state router.

    All collaborators are optional; defaults are built from *config*.
    """

    __slots__ = ("_engine", "_registry", "config", "events", "injector", "location", "url_router")

    def __init__(
        self,
        config: RouterConfig | None = None,
        *,
        injector: Injector | None = None,
        template_loader: TemplateLoader | None = None,
        location: Location | None = None,
    ) -> None:
        self.config = config or RouterConfig()
        self.injector = injector or Injector()
        self.location = location or Location()
        self.url_router = UrlRouter(self.location)
        self.events = TransitionEventBus(queue_size=self.config.event_queue_size)

        loader = template_loader or DefaultTemplateLoader(self.config.template_dir)
        self._registry = StateRegistry(on_register=self._bind_url)
        self._engine = TransitionEngine(
            self._registry,
            Resolver(self.injector, loader),
            self.injector,
            self.events,
            location=self.location,
            config=self.config,
        )

    # -- Configuration --

    def state(
        self,
        name: str | StateDefinition | Mapping[str, Any],
        definition: StateDefinition | Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> "StateRouter":
        """Register a state. Returns the router for chaining.

        Accepted forms::

            router.state("home", url="/")
            router.state("home", {"url": "/"})
            router.state("home", StateDefinition(name="", url="/"))
            router.state(StateDefinition(name="home", url="/"))
            router.state({"name": "home", "url": "/"})
        """
        self.register(_coerce_definition(name, definition, fields))
        return self

    def register(self, definition: StateDefinition) -> StateNode:
        """Register a definition and return its node."""
        return self._registry.register(definition)

    def otherwise(self, url: str) -> "StateRouter":
        """Redirect unmatched locations to *url*."""
        self.url_router.otherwise(url)
        return self

    def _bind_url(self, node: StateNode) -> None:
        async def on_match(match: dict[str, Any]) -> bool:
            engine = self._engine
            on_state = engine.current.navigable is node
            if not on_state or not equal_for_keys(match, engine.state_params):
                await engine.transition_to(node, match, location=False)
            return True

        self.url_router.when(node.url, on_match)
        logger.debug("Routing %s to state %r", node.url, node.name)

    # -- Active state --

    @property
    def current(self) -> StateDefinition:
        """Definition of the active state."""
        return self._engine.current.definition

    @property
    def current_node(self) -> StateNode:
        return self._engine.current

    @property
    def params(self) -> dict[str, str | None]:
        """Parameters of the active state."""
        return self._engine.params

    @property
    def state_params(self) -> dict[str, str | None]:
        """Long-lived mirror of ``params``, updated in place on each commit."""
        return self._engine.state_params

    @property
    def is_transitioning(self) -> bool:
        return self._engine.is_transitioning

    @property
    def views(self) -> Mapping[str, ViewLocals]:
        """Committed view bags of the active path, by qualified view name."""
        locals_ = self._engine.current.locals
        return locals_.views if locals_ is not None else {}

    # -- Commands --

    async def transition_to(
        self,
        to: StateRef,
        params: Mapping[str, Any] | None = None,
        *,
        location: bool = True,
        inherit: bool = False,
        relative: StateNode | None = None,
    ) -> StateDefinition:
        """Transition to a state. See ``TransitionEngine.transition_to``."""
        return await self._engine.transition_to(
            to, params, location=location, inherit=inherit, relative=relative
        )

    async def go(
        self,
        to: StateRef,
        params: Mapping[str, Any] | None = None,
        *,
        location: bool = True,
        inherit: bool = True,
        relative: StateNode | None = None,
    ) -> StateDefinition:
        """Transition relative to the active state, keeping shared parameters.

        ``go("^")`` goes to the parent, ``go(".child")`` to a child,
        ``go("^.sibling")`` to a sibling.
        """
        return await self._engine.transition_to(
            to,
            params,
            location=location,
            inherit=inherit,
            relative=relative or self._engine.current,
        )

    async def sync(self, url: str | None = None) -> bool:
        """Route a location change into a transition.

        With *url*, the location is first moved there. Returns ``True`` if
        a state (or the ``otherwise`` fallback) handled the URL.
        """
        if url is not None and url != self.location.url:
            self.location.push(url)
        return await self.url_router.sync()

    # -- Queries --

    def find(self, state: StateRef, relative: StateNode | None = None) -> StateNode | None:
        return self._registry.find(state, relative)

    def is_state(self, state: StateRef) -> bool | None:
        """Is *state* the active state? ``None`` if it is not registered."""
        node = self._registry.find(state)
        if node is None:
            return None
        return node is self._engine.current

    def includes(self, state: StateRef) -> bool | None:
        """Is *state* the active state or one of its ancestors?

        ``None`` if it is not registered.
        """
        node = self._registry.find(state)
        if node is None:
            return None
        return node.name in self._engine.current.includes

    def href(
        self,
        state: StateRef,
        params: Mapping[str, Any] | None = None,
        *,
        lossy: bool = True,
        inherit: bool = False,
        relative: StateNode | None = None,
    ) -> str | None:
        """Build the URL for *state* without navigating.

        With *lossy* (the default), a state without its own URL uses its
        nearest navigable ancestor's. Returns ``None`` if there is no URL.
        Unless ``config.html5_mode`` is set, the URL gets the hash prefix.
        """
        node = self._registry.find(state, relative or self._engine.current)
        if node is None:
            return None

        values: Mapping[str, Any] = params or {}
        if inherit:
            values = inherit_params(self._engine.params, values, self._engine.current, node)

        nav = node.navigable if lossy else node
        if nav is None or nav.url is None:
            return None
        url = nav.url.format(normalize(node.params, values))
        if self.config.html5_mode:
            return url
        return self.config.hash_prefix + url

    def get(self, state: StateRef) -> StateDefinition | None:
        """Return the user-facing definition of *state*, or ``None``."""
        node = self._registry.find(state)
        return node.definition if node is not None else None

    def __contains__(self, name: object) -> bool:
        return name in self._registry


def _coerce_definition(
    name: str | StateDefinition | Mapping[str, Any],
    definition: StateDefinition | Mapping[str, Any] | None,
    fields: Mapping[str, Any],
) -> StateDefinition:
    if isinstance(name, StateDefinition):
        return replace(name, **fields) if fields else name
    if isinstance(name, Mapping):
        return StateDefinition.from_mapping({**name, **fields})
    if isinstance(definition, StateDefinition):
        return replace(definition, name=name, **fields)
    return StateDefinition.from_mapping({**(definition or {}), **fields}, name=name)
