from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from httpgate._core._headers import EntityTag, Headers, parse_entity_tag_list
from httpgate._exceptions import ParseError
from httpgate._utils import as_utc, format_http_date, parse_http_date, truncate_to_seconds, utc_now

logger = logging.getLogger("httpgate.core.preconditions")

Clock = Callable[[], datetime]
"""A zero-argument callable returning the current time as an aware datetime."""

SAFE_VALIDATION_METHODS = ("GET", "HEAD")


class Precondition(enum.Enum):
    """
    Outcome of evaluating the conditional headers of a request.

    - NO_CONDITIONS_SPECIFIED: the client sent no (applicable) conditional
      headers, no validation took place. Continue as normal.
    - ALL_CONDITIONS_MET: every condition holds. Continue as normal.
    - CONDITION_FAILED: at least one condition can't be satisfied. Respond
      with 412 Precondition Failed.
    - RESOURCE_NOT_MODIFIED: the client's copy is current. Respond with
      304 Not Modified without running the rest of the pipeline.
    """

    NO_CONDITIONS_SPECIFIED = "NoConditionsSpecified"
    ALL_CONDITIONS_MET = "AllConditionsMet"
    CONDITION_FAILED = "ConditionFailed"
    RESOURCE_NOT_MODIFIED = "ResourceNotModified"


STICKY_OUTCOMES = (Precondition.CONDITION_FAILED, Precondition.RESOURCE_NOT_MODIFIED)

# RFC 7232 Section 4.1: the headers a 304 response carries over
NOT_MODIFIED_HEADERS = (
    "cache-control",
    "content-location",
    "date",
    "etag",
    "expires",
    "last-modified",
    "vary",
)


@dataclass(frozen=True)
class RequestConditionals:
    """
    Snapshot of the request facts that take part in precondition evaluation.

    Attributes:
    ----------
    method : str
        The request method. Only GET and HEAD enable If-Modified-Since and
        turn an If-None-Match hit into "not modified".
    if_match : tuple[EntityTag, ...] | None
        Parsed If-Match tags, ``(EntityTag.ANY,)`` for ``*``.
    if_unmodified_since : datetime | None
        Parsed If-Unmodified-Since date.
    if_none_match : tuple[EntityTag, ...] | None
        Parsed If-None-Match tags, ``(EntityTag.ANY,)`` for ``*``.
    if_modified_since : datetime | None
        Parsed If-Modified-Since date.
    """

    method: str = "GET"
    if_match: Optional[Tuple[EntityTag, ...]] = None
    if_unmodified_since: Optional[datetime] = None
    if_none_match: Optional[Tuple[EntityTag, ...]] = None
    if_modified_since: Optional[datetime] = None

    @property
    def is_get_or_head(self) -> bool:
        return self.method.upper() in SAFE_VALIDATION_METHODS

    @property
    def has_conditions(self) -> bool:
        return bool(self.if_match) or bool(self.if_none_match) or (
            self.if_unmodified_since is not None or self.if_modified_since is not None
        )

    @classmethod
    def from_headers(cls, method: str, headers: Mapping[str, Union[str, list[str]]]) -> "RequestConditionals":
        """
        Build the snapshot from raw request headers.

        A malformed conditional header is treated as if it was not sent,
        the same way typed header accessors of most servers behave.

        Examples:
        --------
        >>> conditionals = RequestConditionals.from_headers("GET", {"If-None-Match": '"v1"'})
        >>> conditionals.if_none_match
        (EntityTag(tag='"v1"', is_weak=False),)
        """
        if not isinstance(headers, Headers):
            headers = Headers(headers)

        return cls(
            method=method,
            if_match=_entity_tags_header(headers, "if-match"),
            if_unmodified_since=_date_header(headers, "if-unmodified-since"),
            if_none_match=_entity_tags_header(headers, "if-none-match"),
            if_modified_since=_date_header(headers, "if-modified-since"),
        )


def _entity_tags_header(headers: Headers, name: str) -> Optional[Tuple[EntityTag, ...]]:
    if name not in headers:
        return None
    try:
        tags = parse_entity_tag_list(headers[name])
    except ParseError as exc:
        logger.debug("Ignoring malformed %s header: %s", name, exc)
        return None
    return tuple(tags) or None


def _date_header(headers: Headers, name: str) -> Optional[datetime]:
    if name not in headers:
        return None
    # combined values of a repeated date header never parse, use the first one
    raw = (headers.get_list(name) or [""])[0]
    parsed = parse_http_date(raw)
    if parsed is None:
        logger.debug("Ignoring malformed %s header: %r", name, raw)
    return parsed


def _matches(tags: Sequence[EntityTag], etag: EntityTag, strong: bool) -> bool:
    for tag in tags:
        if tag.is_any:
            return True
        if strong and tag.strong_equals(etag):
            return True
        if not strong and tag.weak_equals(etag):
            return True
    return False


def validate_if_match(etag: Optional[EntityTag], conditionals: RequestConditionals) -> Precondition:
    """
    Evaluates the If-Match precondition.

    RFC 7232 Section 3.1: If-Match
    https://www.rfc-editor.org/rfc/rfc7232#section-3.1

    "An origin server MUST use the strong comparison function when comparing
    entity-tags for If-Match, since the client intends this precondition to
    prevent the method from being applied if there have been any changes to
    the representation data."

    Returns:
    -------
    Precondition
        - NO_CONDITIONS_SPECIFIED: the header is absent or empty
        - CONDITION_FAILED: the resource has no entity tag, or no supplied
          tag strongly matches it
        - ALL_CONDITIONS_MET: ``*`` or a strong match
    """
    if not conditionals.if_match:
        return Precondition.NO_CONDITIONS_SPECIFIED

    # There is nothing to match against, "*" included
    if etag is None:
        return Precondition.CONDITION_FAILED

    if _matches(conditionals.if_match, etag, strong=True):
        return Precondition.ALL_CONDITIONS_MET
    return Precondition.CONDITION_FAILED


def validate_if_unmodified_since(
    last_modified: Optional[datetime], conditionals: RequestConditionals, now: datetime
) -> Precondition:
    """
    Evaluates the If-Unmodified-Since precondition.

    RFC 7232 Section 3.4: If-Unmodified-Since
    https://www.rfc-editor.org/rfc/rfc7232#section-3.4

    A date in the future relative to ``now`` is treated as satisfied.

    Returns:
    -------
    Precondition
        - NO_CONDITIONS_SPECIFIED: the header is absent
        - ALL_CONDITIONS_MET: the resource has no Last-Modified, the date is in
          the future, or the resource was not modified after the date
        - CONDITION_FAILED: the resource was modified after the date
    """
    if conditionals.if_unmodified_since is None:
        return Precondition.NO_CONDITIONS_SPECIFIED

    if last_modified is None:
        return Precondition.ALL_CONDITIONS_MET

    since = truncate_to_seconds(as_utc(conditionals.if_unmodified_since))
    modified = truncate_to_seconds(as_utc(last_modified))

    if since > truncate_to_seconds(as_utc(now)) or since >= modified:
        return Precondition.ALL_CONDITIONS_MET
    return Precondition.CONDITION_FAILED


def validate_if_none_match(etag: Optional[EntityTag], conditionals: RequestConditionals) -> Precondition:
    """
    Evaluates the If-None-Match precondition.

    RFC 7232 Section 3.2: If-None-Match
    https://www.rfc-editor.org/rfc/rfc7232#section-3.2

    "A recipient MUST use the weak comparison function when comparing
    entity-tags for If-None-Match, since weak entity-tags can be used for
    cache validation even if there have been changes to the representation
    data."

    "If the field-value is "*", the condition is false if the origin server
    has a current representation for the target resource."

    Returns:
    -------
    Precondition
        - NO_CONDITIONS_SPECIFIED: the header is absent or empty
        - ALL_CONDITIONS_MET: the resource has no entity tag, or nothing matches
        - RESOURCE_NOT_MODIFIED: a weak match on a GET or HEAD request
        - CONDITION_FAILED: a weak match on any other method
    """
    if not conditionals.if_none_match:
        return Precondition.NO_CONDITIONS_SPECIFIED

    # Nothing to conflict with, unlike If-Match
    if etag is None:
        return Precondition.ALL_CONDITIONS_MET

    if not _matches(conditionals.if_none_match, etag, strong=False):
        return Precondition.ALL_CONDITIONS_MET

    if conditionals.is_get_or_head:
        return Precondition.RESOURCE_NOT_MODIFIED
    return Precondition.CONDITION_FAILED


def validate_if_modified_since(
    last_modified: Optional[datetime], conditionals: RequestConditionals, now: datetime
) -> Precondition:
    """
    Evaluates the If-Modified-Since precondition.

    RFC 7232 Section 3.3: If-Modified-Since
    https://www.rfc-editor.org/rfc/rfc7232#section-3.3

    "A recipient MUST ignore the If-Modified-Since header field if the
    received field-value is not a valid HTTP-date, or if the request method
    is neither GET nor HEAD."

    Returns:
    -------
    Precondition
        - NO_CONDITIONS_SPECIFIED: the header is absent or the method is not GET/HEAD
        - ALL_CONDITIONS_MET: the resource has no Last-Modified, or it was
          modified after a date that is not in the future
        - RESOURCE_NOT_MODIFIED: otherwise
    """
    if conditionals.if_modified_since is None or not conditionals.is_get_or_head:
        return Precondition.NO_CONDITIONS_SPECIFIED

    if last_modified is None:
        return Precondition.ALL_CONDITIONS_MET

    since = truncate_to_seconds(as_utc(conditionals.if_modified_since))
    modified = truncate_to_seconds(as_utc(last_modified))

    if since <= truncate_to_seconds(as_utc(now)) and since < modified:
        return Precondition.ALL_CONDITIONS_MET
    return Precondition.RESOURCE_NOT_MODIFIED


def if_not_specified(current: Precondition, step: Callable[[], Precondition]) -> Precondition:
    """
    Runs ``step`` only while no condition has been evaluated yet.

    Any other running result is kept as is.
    """
    if current is Precondition.NO_CONDITIONS_SPECIFIED:
        return step()
    return current


def bind(current: Precondition, step: Callable[[], Precondition]) -> Precondition:
    """
    Combines the running result with ``step``.

    CONDITION_FAILED and RESOURCE_NOT_MODIFIED are sticky and ``step`` is not
    run. A running ALL_CONDITIONS_MET only gives way to a sticky result of
    ``step``, and NO_CONDITIONS_SPECIFIED is replaced by whatever ``step``
    returns.
    """
    if current in STICKY_OUTCOMES:
        return current

    result = step()
    if current is Precondition.NO_CONDITIONS_SPECIFIED:
        return result
    if result in STICKY_OUTCOMES:
        return result
    return Precondition.ALL_CONDITIONS_MET


def evaluate_preconditions(
    etag: Optional[EntityTag],
    last_modified: Optional[datetime],
    conditionals: RequestConditionals,
    *,
    clock: Optional[Clock] = None,
) -> Precondition:
    """
    Validates the conditional headers of a request against the current
    validators of the target resource.

    RFC 7232 Section 6: Precedence
    https://www.rfc-editor.org/rfc/rfc7232#section-6

    The conditions are evaluated in the order the RFC prescribes:

    1. If-Match
    2. If-Unmodified-Since, only when If-Match was not sent
    3. If-None-Match
    4. If-Modified-Since, only when neither If-None-Match nor anything
       before it decided the outcome

    Once the running result is CONDITION_FAILED or RESOURCE_NOT_MODIFIED it
    can no longer change.

    Parameters:
    ----------
    etag : EntityTag | None
        Current entity tag of the resource, if it has one
    last_modified : datetime | None
        Current modification date of the resource, if known
    conditionals : RequestConditionals
        The conditional headers of the request
    clock : Clock | None
        Source of "now" for the future-date checks, defaults to the wall clock

    Returns:
    -------
    Precondition
        One of the four outcomes. This function never raises.

    Examples:
    --------
    >>> conditionals = RequestConditionals(method="GET", if_none_match=(EntityTag.from_string(False, "v1"),))
    >>> evaluate_preconditions(EntityTag.from_string(True, "v1"), None, conditionals)
    <Precondition.RESOURCE_NOT_MODIFIED: 'ResourceNotModified'>
    """
    now = (clock or utc_now)()

    # STEP 1: If-Match
    result = validate_if_match(etag, conditionals)

    # STEP 2: If-Unmodified-Since
    # "When recipient is the origin server and If-Match is not present,
    # evaluate the If-Unmodified-Since precondition"
    result = if_not_specified(result, lambda: validate_if_unmodified_since(last_modified, conditionals, now))

    # STEP 3: If-None-Match
    result = bind(result, lambda: validate_if_none_match(etag, conditionals))

    # STEP 4: If-Modified-Since
    # "When the method is GET or HEAD, If-None-Match is not present, and
    # If-Modified-Since is present, evaluate the If-Modified-Since precondition"
    result = if_not_specified(result, lambda: validate_if_modified_since(last_modified, conditionals, now))

    logger.debug("Preconditions evaluated: method=%s outcome=%s", conditionals.method, result.value)
    return result


def precondition_headers(etag: Optional[EntityTag], last_modified: Optional[datetime]) -> Dict[str, str]:
    """
    Response validator headers for the resource.

    Callers set these on every response, whatever the outcome of
    ``evaluate_preconditions`` was.

    Examples:
    --------
    >>> precondition_headers(EntityTag.from_string(False, "v1"), None)
    {'ETag': '"v1"'}
    """
    headers: Dict[str, str] = {}
    if etag is not None:
        headers["ETag"] = str(etag)
    if last_modified is not None:
        headers["Last-Modified"] = format_http_date(last_modified)
    return headers


def status_for(outcome: Precondition) -> Optional[int]:
    """
    Maps an outcome to the status code the response should short-circuit
    with, or None when processing should continue.
    """
    if outcome is Precondition.CONDITION_FAILED:
        return 412
    if outcome is Precondition.RESOURCE_NOT_MODIFIED:
        return 304
    return None
