"""Compiled URL matchers.

A ``UrlMatcher`` is built from a pattern such as::

    "/users/{id:int}/posts/:slug?sort&page"

- ``:name`` and ``{name}`` match one path segment
- ``{name:int}`` uses a named converter from ``perch.routing.params``
- ``{name:[a-z]+}`` uses a raw regular expression
- ``*name`` matches the rest of the path
- names after ``?`` (separated by ``&``) are query parameters

Matchers are immutable. ``concat()`` returns a new matcher for a child
pattern, which is how relative state URLs are composed onto their parent's.
"""

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote

from perch.errors import InvalidUrlError
from perch.routing.params import CONVERTERS, placeholder_pattern

_PLACEHOLDER = re.compile(
    r"([:*])(\w+)"
    r"|\{(\w+)(?::((?:[^{}\\]+|\\.|\{(?:[^{}\\]+|\\.)*\})+))?\}"
)
_QUERY_NAME = re.compile(r"^\w+$")


def _split_search(pattern: str) -> tuple[str, tuple[str, ...]]:
    """Split ``"/path?a&b"`` into ``("/path", ("a", "b"))``."""
    path, sep, search = pattern.partition("?")
    if not sep:
        return path, ()
    names = tuple(name for name in search.split("&") if name)
    for name in names:
        if not _QUERY_NAME.match(name):
            msg = f"Invalid query parameter name {name!r} in pattern {pattern!r}"
            raise InvalidUrlError(msg)
    return path, names


class UrlMatcher:
    """A compiled URL pattern.

    Usage::

        matcher = UrlMatcher("/blog/post/{post}")
        matcher.exec("/blog/post/42")       # {"post": "42"}
        matcher.format({"post": "42"})      # "/blog/post/42"
        matcher.parameters()                # ["post"]
    """

    __slots__ = ("_path_params", "_query_params", "_regex", "_segments", "source", "source_path")

    def __init__(self, pattern: str) -> None:
        if not isinstance(pattern, str):
            msg = f"URL pattern must be a string, got {pattern!r}"
            raise InvalidUrlError(msg)

        path, query_params = _split_search(pattern)
        self.source = pattern
        self.source_path = path

        segments: list[str] = []
        path_params: list[str] = []
        regex = ["^"]
        last = 0

        for i, match in enumerate(_PLACEHOLDER.finditer(path)):
            name = match.group(2) or match.group(3)
            spec = match.group(4)
            if match.group(1) == "*":
                spec = CONVERTERS["path"]
            if name in path_params:
                msg = f"Duplicate parameter name {name!r} in pattern {pattern!r}"
                raise InvalidUrlError(msg)

            segment = path[last : match.start()]
            segments.append(segment)
            path_params.append(name)
            regex.append(re.escape(segment))
            regex.append(f"(?P<p{i}>{placeholder_pattern(spec)})")
            last = match.end()

        tail = path[last:]
        segments.append(tail)
        regex.append(re.escape(tail))
        regex.append("$")

        for name in query_params:
            if name in path_params:
                msg = f"Duplicate parameter name {name!r} in pattern {pattern!r}"
                raise InvalidUrlError(msg)

        try:
            self._regex = re.compile("".join(regex))
        except re.error as exc:
            msg = f"Invalid pattern {pattern!r}: {exc}"
            raise InvalidUrlError(msg) from exc

        self._segments = tuple(segments)
        self._path_params = tuple(path_params)
        self._query_params = query_params

    def concat(self, pattern: str) -> "UrlMatcher":
        """Return a new matcher for this pattern followed by *pattern*.

        Query parameters of both patterns are kept, parent's first.
        """
        path, query_params = _split_search(pattern)
        names = list(self._query_params)
        names.extend(name for name in query_params if name not in names)
        source = self.source_path + path
        if names:
            source += "?" + "&".join(names)
        return UrlMatcher(source)

    def exec(self, path: str, search: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """Match *path* and collect parameter values.

        Returns ``None`` if the path does not match. Query parameters absent
        from *search* map to ``None``.
        """
        match = self._regex.match(path)
        if match is None:
            return None

        values: dict[str, Any] = {}
        for i, name in enumerate(self._path_params):
            captured = match.group(f"p{i}")
            values[name] = unquote(captured) if captured is not None else None

        search = search or {}
        for name in self._query_params:
            values[name] = search.get(name)
        return values

    def parameters(self) -> list[str]:
        """Return all parameter names: path parameters first, then query."""
        return [*self._path_params, *self._query_params]

    def format(self, values: Mapping[str, Any] | None = None) -> str:
        """Build a URL from parameter values.

        ``None`` path values format as empty segments; ``None`` query values
        are omitted.
        """
        values = values or {}
        parts = [self._segments[0]]
        for i, name in enumerate(self._path_params):
            value = values.get(name)
            if value is not None:
                parts.append(quote(str(value), safe=""))
            parts.append(self._segments[i + 1])

        sep = "?"
        for name in self._query_params:
            value = values.get(name)
            if value is not None:
                parts.append(f"{sep}{name}={quote(str(value), safe='')}")
                sep = "&"
        return "".join(parts)

    def __str__(self) -> str:
        return self.source

    def __repr__(self) -> str:
        return f"UrlMatcher({self.source!r})"


def compile(pattern: str) -> UrlMatcher:  # noqa: A001
    """Compile *pattern* into a ``UrlMatcher``."""
    return UrlMatcher(pattern)


def is_matcher(obj: object) -> bool:
    return isinstance(obj, UrlMatcher)
