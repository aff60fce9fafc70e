from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar

from httpgate._core._headers import AcceptEntry

logger = logging.getLogger("httpgate.core.negotiation")

R = TypeVar("R")

Capability = Callable[..., R]


@dataclass
class NegotiationConfig:
    """
    Negotiation rules together with the handler used when none of them
    can satisfy the client.

    Attributes:
    ----------
    rules : Mapping[str, Capability]
        Media types mapped to the callable producing a response in that
        media type. Lookups are by exact media type. Iteration order matters:
        the first rule is used when the request has no Accept header, so
        build the mapping in the order of preference (dicts keep insertion
        order).
    unacceptable : Capability
        Called when no accepted media type has a rule. Usually produces a
        406 Not Acceptable response.

    Examples:
    --------
    >>> config = NegotiationConfig(
    ...     rules={"application/json": to_json, "text/plain": to_text},
    ...     unacceptable=not_acceptable,
    ... )
    """

    rules: Mapping[str, Capability[Any]]
    unacceptable: Capability[Any]


def select_media_type(accept: Optional[Sequence[AcceptEntry]], rules: Mapping[str, Any]) -> Optional[str]:
    """
    Picks the media type whose rule should produce the response.

    - Without Accept entries the first rule wins.
    - Otherwise only entries whose media type is a key of ``rules`` are
      considered and the one with the greatest quality wins. On equal
      quality the entry listed first in the Accept header is kept.

    Returns:
    -------
    str | None
        The selected media type, or None when nothing can be served.

    Examples:
    --------
    >>> rules = {"application/json": ..., "text/plain": ...}
    >>> select_media_type([AcceptEntry("text/plain", 0.5), AcceptEntry("application/json", 0.9)], rules)
    'application/json'
    >>> select_media_type([AcceptEntry("application/xml")], rules) is None
    True
    """
    if not accept:
        return next(iter(rules), None)

    best: Optional[AcceptEntry] = None
    best_quality = -math.inf

    for entry in accept:
        if entry.media_type not in rules:
            continue
        # strict comparison keeps the first entry on ties
        if entry.quality > best_quality:
            best = entry
            best_quality = entry.quality

    if best is None:
        return None
    return best.media_type


def negotiate(
    accept: Optional[Sequence[AcceptEntry]],
    rules: Mapping[str, Capability[R]],
    fallback: Capability[R],
    *args: Any,
    **kwargs: Any,
) -> R:
    """
    Dispatches to exactly one capability based on the client's Accept entries.

    The selection follows ``select_media_type``. The selected rule, or
    ``fallback`` when nothing matches, is called once with ``args`` and
    ``kwargs`` and its result is returned.

    Parameters:
    ----------
    accept : Sequence[AcceptEntry] | None
        Parsed Accept header, empty or None when the client sent none
    rules : Mapping[str, Capability]
        Media types mapped to response producing callables
    fallback : Capability
        Called when no rule can satisfy the client
    """
    media_type = select_media_type(accept, rules)

    if media_type is None:
        logger.debug("No acceptable media type found, using fallback")
        return fallback(*args, **kwargs)

    logger.debug("Negotiated media type: %s", media_type)
    return rules[media_type](*args, **kwargs)
