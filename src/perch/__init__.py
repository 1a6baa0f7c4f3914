"""Perch — a hierarchical, URL-driven application-state router.

States form a tree. Each state may own a URL, parameters, views, and
asynchronous data dependencies. A transition resolves everything the
destination needs before committing it, and a newer transition always
wins over an older one still in flight.

Basic usage::

    from perch import StateRouter

    router = StateRouter()
    router.state("home", url="/")
    router.state("blog", url="/blog", resolve={"posts": load_posts})
    router.state("blog.post", url="/post/{post}", resolve={"post": load_post})

    await router.go("blog.post", {"post": "42"})
    router.includes("blog")                 # True
    router.href("blog.post", {"post": "7"})  # "#/blog/post/7"
"""

__version__ = "0.1.0.dev0"
__all__ = [
    "AbstractTransitionError",
    "DuplicateStateError",
    "Injector",
    "InvalidNameError",
    "InvalidParamsError",
    "InvalidPathError",
    "InvalidUrlError",
    "Location",
    "MissingParameterError",
    "NavigationError",
    "NoRelativeBaseError",
    "PerchError",
    "RegistrationError",
    "RouterConfig",
    "StateDefinition",
    "StateRouter",
    "TransitionFailure",
    "TransitionPreventedError",
    "TransitionStart",
    "TransitionSuccess",
    "TransitionSupersededError",
    "UnknownDependencyError",
    "UnknownParentError",
    "UnknownStateError",
    "UrlMatcher",
    "ViewDefinition",
    "ViewSlot",
]

# name -> module that defines it
_LAZY_IMPORTS: dict[str, str] = {
    "StateRouter": "perch.state.router",
    "RouterConfig": "perch.config",
    "Injector": "perch.injector",
    "Location": "perch.routing.url_router",
    "UrlMatcher": "perch.routing.matcher",
    "StateDefinition": "perch.state.types",
    "ViewDefinition": "perch.state.types",
    "ViewSlot": "perch.views",
    "TransitionStart": "perch.state.events",
    "TransitionSuccess": "perch.state.events",
    "TransitionFailure": "perch.state.events",
    "PerchError": "perch.errors",
    "RegistrationError": "perch.errors",
    "InvalidNameError": "perch.errors",
    "DuplicateStateError": "perch.errors",
    "UnknownParentError": "perch.errors",
    "InvalidUrlError": "perch.errors",
    "InvalidParamsError": "perch.errors",
    "MissingParameterError": "perch.errors",
    "NavigationError": "perch.errors",
    "UnknownStateError": "perch.errors",
    "AbstractTransitionError": "perch.errors",
    "NoRelativeBaseError": "perch.errors",
    "InvalidPathError": "perch.errors",
    "TransitionPreventedError": "perch.errors",
    "TransitionSupersededError": "perch.errors",
    "UnknownDependencyError": "perch.errors",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    module_path = _LAZY_IMPORTS.get(name)
    if module_path is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    return getattr(importlib.import_module(module_path), name)
