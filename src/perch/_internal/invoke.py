"""Invoke helpers — call sync or async factories uniformly.

Resolve factories and template loaders can be ``def`` or ``async def``.
Any code that calls a user-provided callable must handle both cases. This
module provides a single helper so the sync/async check lives in exactly
one place.

Usage::

    from perch._internal.invoke import invoke

    user = await invoke(injector.invoke, load_user, {"state_params": params})
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable."""
    return await settle(func(*args, **kwargs))


async def settle(value: Any) -> Any:
    """Await *value* if it's awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        value = await value
    return value
