"""Perch exception hierarchy.

Shared across the registry, resolver, engine, and facade so every module
raises and catches the same types.

Registration errors are raised immediately from ``register()``.
Navigation errors are raised from inside the ``transition_to()`` coroutine,
so callers see them when they await the transition.
"""


class PerchError(Exception):
    """Base for all perch-specific errors."""


# -- Registration --


class RegistrationError(PerchError):
    """Raised when a state definition is invalid.

    A failed registration never adds a node to the tree.
    """


class InvalidNameError(RegistrationError):
    """State name is not a string or contains the ``@`` view qualifier."""

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"State must have a valid name, got {name!r}")


class DuplicateStateError(RegistrationError):
    """A state with this name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"State {name!r} is already defined")


class UnknownParentError(RegistrationError):
    """The parent of a state has not been registered yet.

    Ancestors must be registered before their descendants.
    """

    def __init__(self, name: str, parent: object) -> None:
        self.name = name
        self.parent = parent
        super().__init__(
            f"Parent {parent!r} of state {name!r} is not registered. "
            "Register ancestors before their children."
        )


class InvalidUrlError(RegistrationError):
    """A URL pattern is malformed or of an unsupported type."""


class InvalidParamsError(RegistrationError):
    """Explicit ``params`` are not a list, or were combined with a ``url``."""


class MissingParameterError(RegistrationError):
    """A state does not declare a parameter its parent requires."""

    def __init__(self, name: str, param: str) -> None:
        self.name = name
        self.param = param
        super().__init__(f"Missing required parameter {param!r} in state {name!r}")


# -- Navigation --


class NavigationError(PerchError):
    """Raised when a transition cannot be performed.

    The active state is unchanged whenever one of these is raised.
    """


class UnknownStateError(NavigationError):
    """No registered state matches the requested target."""

    def __init__(self, target: object) -> None:
        self.target = target
        super().__init__(f"No such state {target!r}")


class AbstractTransitionError(NavigationError):
    """Abstract states can be transitioned through but never to."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot transition to abstract state {name!r}")


class NoRelativeBaseError(NavigationError):
    """A relative state path was given without a reference state."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No reference point given for path {path!r}")


class InvalidPathError(NavigationError):
    """A relative path walks past the root of the state tree."""

    def __init__(self, path: str, base: str) -> None:
        self.path = path
        self.base = base
        super().__init__(f"Path {path!r} not valid for state {base!r}")


class TransitionPreventedError(NavigationError):
    """A start listener cancelled the transition."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Transition to {name!r} prevented")


class TransitionSupersededError(PerchError):
    """A newer transition was started before this one could commit.

    Not a failure of the requested transition itself: the active state
    reflects the newer transition.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Transition to {name!r} superseded")


# -- Injection --


class UnknownDependencyError(PerchError):
    """The injector has no service or local with the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown dependency {name!r}")
