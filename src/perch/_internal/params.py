"""Parameter-set helpers shared by the engine and the facade.

Parameter values are compared in their normalized string form: ``42`` and
``"42"`` are equal, ``None`` only equals ``None``.
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from perch.state.types import StateNode


def _normalize_value(value: Any) -> str | None:
    return str(value) if value is not None else None


def normalize(keys: Iterable[str], values: Mapping[str, Any]) -> dict[str, str | None]:
    """Stringify every declared parameter. Unset parameters become ``None``.

    Keys not in *keys* are dropped.
    """
    return {name: _normalize_value(values.get(name)) for name in keys}


def equal_for_keys(
    a: Mapping[str, Any],
    b: Mapping[str, Any],
    keys: Iterable[str] | None = None,
) -> bool:
    """Compare two parameter mappings for the given keys.

    If *keys* is omitted, the keys of *a* are used.
    """
    if keys is None:
        keys = list(a)
    return all(_normalize_value(a.get(k)) == _normalize_value(b.get(k)) for k in keys)


def filter_by_keys(keys: Iterable[str], values: Mapping[str, Any]) -> dict[str, Any]:
    """Restrict *values* to *keys*. Missing keys map to ``None``."""
    return {name: values.get(name) for name in keys}


def inherit_params(
    current_params: Mapping[str, Any],
    new_params: Mapping[str, Any],
    current: "StateNode",
    target: "StateNode",
) -> dict[str, Any]:
    """Carry over current values for parameters shared by both states.

    Explicit values in *new_params* always win::

        # on "contacts.detail" with {"contact_id": "7"}
        inherit_params(params, {"tab": "notes"}, current, contacts_notes)
        # -> {"contact_id": "7", "tab": "notes"}
    """
    shared = set(current.params).intersection(target.params)
    inherited = {
        name: current_params[name]
        for name in target.params
        if name in shared and name in current_params
    }
    return {**inherited, **new_params}
