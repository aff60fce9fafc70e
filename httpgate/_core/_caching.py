from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Union

from typing_extensions import assert_never


@dataclass(frozen=True)
class NoCache:
    """The response must not be stored by any cache."""


@dataclass(frozen=True)
class Public:
    """Any cache may store the response for ``max_age``."""

    max_age: Union[int, timedelta]


@dataclass(frozen=True)
class Private:
    """Only the client's private cache may store the response for ``max_age``."""

    max_age: Union[int, timedelta]


CacheDirective = Union[NoCache, Public, Private]


def _seconds(max_age: Union[int, timedelta]) -> int:
    if isinstance(max_age, timedelta):
        return int(max_age.total_seconds())
    return int(max_age)


def response_caching_headers(directive: CacheDirective, vary: Optional[str] = None) -> Dict[str, str]:
    """
    Headers enabling or disabling response caching.

    Args:
        directive: ``NoCache()``, ``Public(max_age)`` or ``Private(max_age)``.
            [RFC 9111, Section 5.2.2]
            NoCache also emits the HTTP/1.0 ``Pragma`` and ``Expires``
            headers for older caches.
        vary: Optional Vary header value, e.g. ``"Accept, Accept-Encoding"``.
            [RFC 9110, Section 12.5.5]

    Examples:
        >>> response_caching_headers(Public(3600), vary="Accept")
        {'Cache-Control': 'public, max-age=3600', 'Vary': 'Accept'}
        >>> response_caching_headers(NoCache())
        {'Cache-Control': 'no-store, no-cache', 'Pragma': 'no-cache', 'Expires': '-1'}
    """
    headers: Dict[str, str] = {}

    if isinstance(directive, NoCache):
        headers["Cache-Control"] = "no-store, no-cache"
        headers["Pragma"] = "no-cache"
        headers["Expires"] = "-1"
    elif isinstance(directive, Public):
        headers["Cache-Control"] = f"public, max-age={_seconds(directive.max_age)}"
    elif isinstance(directive, Private):
        headers["Cache-Control"] = f"private, max-age={_seconds(directive.max_age)}"
    else:
        assert_never(directive)

    if vary is not None:
        headers["Vary"] = vary

    return headers
