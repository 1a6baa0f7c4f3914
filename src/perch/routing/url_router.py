"""Location abstraction and location-change dispatch.

``Location`` holds the current URL (path plus optional query string) and a
history of visited URLs. ``UrlRouter`` maps a URL onto the first rule whose
matcher accepts it; the state router registers one rule per concrete state
so that location changes turn into state transitions.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from perch._internal.invoke import invoke
from perch.routing.matcher import UrlMatcher, is_matcher

logger = logging.getLogger("perch.routing")

# Receives the matched parameters. Returning False declines the URL.
RuleHandler = Callable[[dict[str, Any]], Awaitable[bool | None] | bool | None]


def split_url(url: str) -> tuple[str, dict[str, str]]:
    """Split ``"/a/b?x=1"`` into ``("/a/b", {"x": "1"})``.

    A leading hash prefix (``"#/a/b"``) is ignored.
    """
    parts = urlsplit(url.lstrip("#"))
    return parts.path, dict(parse_qsl(parts.query, keep_blank_values=True))


class Location:
    """The current URL and the history of URLs pushed to it.

    Usage::

        location = Location("/")
        location.push("/blog")
        location.url        # "/blog"
        location.history    # ["/", "/blog"]
    """

    __slots__ = ("_history",)

    def __init__(self, url: str = "") -> None:
        self._history: list[str] = [url]

    @property
    def url(self) -> str:
        return self._history[-1]

    @property
    def history(self) -> list[str]:
        return list(self._history)

    def push(self, url: str) -> None:
        """Navigate to *url*, adding a history entry."""
        self._history.append(url)

    def replace(self, url: str) -> None:
        """Navigate to *url*, replacing the current history entry."""
        self._history[-1] = url


@dataclass(frozen=True, slots=True)
class UrlRule:
    """A matcher and the handler to call when it matches."""

    matcher: UrlMatcher
    handler: RuleHandler


class UrlRouter:
    """Ordered URL rules with a fallback redirect.

    Usage::

        urls = UrlRouter(location)
        urls.when("/users/{id}", show_user)
        urls.otherwise("/")
        await urls.sync("/users/42")
    """

    __slots__ = ("_location", "_otherwise", "_rules")

    def __init__(self, location: Location) -> None:
        self._location = location
        self._rules: list[UrlRule] = []
        self._otherwise: str | None = None

    @property
    def rules(self) -> list[UrlRule]:
        return list(self._rules)

    def when(self, what: str | UrlMatcher, handler: RuleHandler) -> UrlRule:
        """Add a rule. Rules are tried in the order they were added."""
        matcher = what if is_matcher(what) else UrlMatcher(what)
        rule = UrlRule(matcher=matcher, handler=handler)
        self._rules.append(rule)
        return rule

    def otherwise(self, url: str) -> None:
        """Redirect to *url* when no rule handles a location."""
        self._otherwise = url

    async def sync(self, url: str | None = None) -> bool:
        """Dispatch *url* (default: the current location) to the first matching rule.

        Returns ``True`` if a rule handled the URL. Exceptions from rule
        handlers propagate to the caller.
        """
        if url is None:
            url = self._location.url
        path, search = split_url(url)

        for rule in self._rules:
            match = rule.matcher.exec(path, search)
            if match is None:
                continue
            handled = await invoke(rule.handler, match)
            if handled is not False:
                return True

        if self._otherwise is not None and url != self._otherwise:
            logger.debug("No rule matched %r, redirecting to %r", url, self._otherwise)
            self._location.replace(self._otherwise)
            return await self.sync(self._otherwise)

        logger.debug("No rule matched %r", url)
        return False
