"""State registry — builds the state tree from definitions.

Each registration wraps the definition in a ``StateNode`` and derives its
properties in a fixed order, since later builders read earlier ones::

    parent -> data -> url -> navigable -> params -> views
           -> own_params -> path -> includes

Ancestors must be registered before their children. Registration is
append-only and a failed registration leaves the tree untouched.
"""

import inspect
import logging
import re
from collections.abc import Callable, Iterator
from typing import Any

from perch.errors import (
    DuplicateStateError,
    InvalidNameError,
    InvalidParamsError,
    InvalidPathError,
    InvalidUrlError,
    MissingParameterError,
    NoRelativeBaseError,
    RegistrationError,
    UnknownParentError,
)
from perch.routing.matcher import compile, is_matcher
from perch.state.types import Locals, StateDefinition, StateNode, ViewDefinition

logger = logging.getLogger("perch.state")

# Matches composite names: "contact.list" -> "contact", but not "contacts"
_COMPOSITE_NAME = re.compile(r"^(.+)\.[^.]+$")

ROOT_DEFINITION = StateDefinition(name="", url="^", abstract=True)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _build_parent(registry: "StateRegistry", node: StateNode) -> StateNode | None:
    if registry.root is None:
        return None
    explicit = node.definition.parent
    if explicit:
        parent = registry.find(explicit)
        if parent is None:
            raise UnknownParentError(node.name, explicit)
        return parent
    match = _COMPOSITE_NAME.match(node.name)
    if match is None:
        return registry.root
    parent = registry.find(match.group(1))
    if parent is None:
        raise UnknownParentError(node.name, match.group(1))
    return parent


def _build_data(registry: "StateRegistry", node: StateNode) -> dict[str, Any]:
    inherited = node.parent.data if node.parent is not None else {}
    return {**inherited, **(node.definition.data or {})}


def _build_url(registry: "StateRegistry", node: StateNode) -> Any:
    url = node.definition.url
    if isinstance(url, str):
        if url.startswith("^"):
            return compile(url[1:])
        base = node.parent.navigable or registry.root
        return base.url.concat(url)
    if url is None or is_matcher(url):
        return url
    msg = f"Invalid url {url!r} in state {node.name!r}"
    raise InvalidUrlError(msg)


def _build_navigable(registry: "StateRegistry", node: StateNode) -> StateNode | None:
    if node is registry.root or registry.root is None:
        return None
    if node.url is not None:
        return node
    return node.parent.navigable if node.parent is not None else None


def _build_params(registry: "StateRegistry", node: StateNode) -> tuple[str, ...]:
    explicit = node.definition.params
    if explicit is None:
        if node.url is not None:
            return tuple(node.url.parameters())
        return node.parent.params if node.parent is not None else ()
    if isinstance(explicit, str) or not isinstance(explicit, (list, tuple)):
        msg = f"Invalid params in state {node.name!r}"
        raise InvalidParamsError(msg)
    if node.url is not None:
        msg = f"Both params and url specified in state {node.name!r}"
        raise InvalidParamsError(msg)
    return tuple(explicit)


def _build_views(registry: "StateRegistry", node: StateNode) -> dict[str, ViewDefinition]:
    """Qualify every view name as ``"view@state"``.

    A state without explicit ``views`` gets one unnamed view built from its
    own template, controller, and resolve map. Unqualified names target the
    parent state.
    """
    definition = node.definition
    if node is registry.root or registry.root is None:
        return {}
    if definition.views is not None:
        declared = {name: ViewDefinition.from_mapping(v) for name, v in definition.views.items()}
    else:
        declared = {
            "": ViewDefinition(
                template=definition.template,
                template_url=definition.template_url,
                controller=definition.controller,
                resolve=node.resolve,
            )
        }

    parent_name = node.parent.name if node.parent is not None else ""
    views: dict[str, ViewDefinition] = {}
    for name, view in declared.items():
        if "@" not in name:
            name = f"{name}@{parent_name}"
        views[name] = view
    return views


def _build_own_params(registry: "StateRegistry", node: StateNode) -> tuple[str, ...]:
    if node.parent is None:
        return node.params
    for param in node.parent.params:
        if param not in node.params:
            raise MissingParameterError(node.name, param)
    return tuple(p for p in node.params if p not in node.parent.params)


def _build_path(registry: "StateRegistry", node: StateNode) -> tuple[StateNode, ...]:
    # The root is excluded from every path
    if node.parent is None:
        return ()
    return (*node.parent.path, node)


def _build_includes(registry: "StateRegistry", node: StateNode) -> frozenset[str]:
    inherited = node.parent.includes if node.parent is not None else frozenset()
    return inherited | {node.name}


_BUILDERS: tuple[tuple[str, Callable[["StateRegistry", StateNode], Any]], ...] = (
    ("parent", _build_parent),
    ("data", _build_data),
    ("url", _build_url),
    ("navigable", _build_navigable),
    ("params", _build_params),
    ("views", _build_views),
    ("own_params", _build_own_params),
    ("path", _build_path),
    ("includes", _build_includes),
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class StateRegistry:
    """Index of registered states, rooted at an implicit abstract root.

    Usage::

        registry = StateRegistry()
        registry.register(StateDefinition(name="blog", url="/blog"))
        registry.register(StateDefinition(name="blog.post", url="/post/{post}"))
        registry.find("blog.post").url.format({"post": "42"})  # "/blog/post/42"
    """

    __slots__ = ("_on_register", "_states", "root")

    def __init__(self, on_register: Callable[[StateNode], None] | None = None) -> None:
        self._states: dict[str, StateNode] = {}
        self._on_register = on_register
        self.root: StateNode | None = None
        root = self.register(ROOT_DEFINITION)
        root.locals = Locals(state=root, params={}, globals={"state_params": {}}, views={})
        self.root = root

    def register(self, definition: StateDefinition) -> StateNode:
        """Register *definition* and return its node.

        Raises a ``RegistrationError`` subclass if the definition is invalid.
        """
        name = definition.name
        if not isinstance(name, str) or "@" in name:
            raise InvalidNameError(name)
        if name in self._states:
            raise DuplicateStateError(name)
        for hook in ("on_enter", "on_exit"):
            callback = getattr(definition, hook)
            if callback is not None and inspect.iscoroutinefunction(callback):
                msg = f"{hook} of state {name!r} must be synchronous"
                raise RegistrationError(msg)

        node = StateNode(definition)
        for attr, builder in _BUILDERS:
            setattr(node, attr, builder(self, node))
        self._states[name] = node
        logger.debug("Registered state %r (url=%s)", name, node.url)

        if self._on_register is not None and not node.abstract and node.url is not None:
            self._on_register(node)
        return node

    def find(
        self,
        state_or_name: "str | StateNode | StateDefinition",
        relative: StateNode | None = None,
    ) -> StateNode | None:
        """Look up a state by name, relative path, node, or definition.

        Relative paths start with ``.`` (children of *relative*) or ``^``
        (parent of *relative*); e.g. ``"^.sibling"`` or ``"^.^"``.

        Returns ``None`` if nothing matches. Raises ``NoRelativeBaseError``
        for a relative path without *relative*, and ``InvalidPathError`` if
        the path walks past the root.
        """
        is_name = isinstance(state_or_name, str)
        name = state_or_name if is_name else getattr(state_or_name, "name", None)
        if not isinstance(name, str):
            return None

        if name.startswith((".", "^")):
            if relative is None:
                raise NoRelativeBaseError(name)
            name = self._resolve_relative(name, relative)

        node = self._states.get(name)
        if node is None:
            return None
        if is_name or node is state_or_name or node.definition is state_or_name:
            return node
        return None

    def _resolve_relative(self, path: str, base: StateNode) -> str:
        segments = path.split(".")
        current = base
        i = 0
        for i, segment in enumerate(segments):
            if segment == "" and i == 0:
                continue
            if segment == "^":
                if current.parent is None:
                    raise InvalidPathError(path, base.name)
                current = current.parent
                continue
            break
        else:
            i = len(segments)

        rest = ".".join(segments[i:])
        if current.name and rest:
            return f"{current.name}.{rest}"
        return current.name or rest

    def __contains__(self, name: object) -> bool:
        return name in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[StateNode]:
        return iter(self._states.values())
