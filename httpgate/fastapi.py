from __future__ import annotations

import logging
import typing as t
from datetime import datetime, timedelta

from httpgate._core._caching import CacheDirective, NoCache, Private, Public, response_caching_headers
from httpgate._core._headers import AcceptEntry, EntityTag, parse_accept
from httpgate._core._negotiation import NegotiationConfig, negotiate as negotiate_with
from httpgate._core._preconditions import (
    NOT_MODIFIED_HEADERS,
    Clock,
    RequestConditionals,
    evaluate_preconditions,
    precondition_headers,
    status_for,
)
from httpgate._exceptions import ParseError

try:
    import fastapi
    from fastapi.encoders import jsonable_encoder
    from fastapi.responses import JSONResponse, PlainTextResponse
except ImportError as e:
    raise ImportError(
        "fastapi is required to use httpgate.fastapi module. "
        "Please install httpgate with the 'fastapi' extra, "
        "e.g., 'pip install httpgate[fastapi]'."
    ) from e

logger = logging.getLogger(__name__)


def _request_headers(request: fastapi.Request) -> dict[str, list[str]]:
    return {key: request.headers.getlist(key) for key in request.headers.keys()}


def conditionals_from_request(request: fastapi.Request) -> RequestConditionals:
    """
    Snapshot the conditional headers of a FastAPI request.
    """
    return RequestConditionals.from_headers(request.method, _request_headers(request))


def accept_from_request(request: fastapi.Request) -> list[AcceptEntry]:
    """
    Parse the Accept header of a FastAPI request.

    A malformed header is treated as if the client sent none.
    """
    try:
        return parse_accept(request.headers.get("accept"))
    except ParseError as exc:
        logger.debug("Ignoring malformed Accept header: %s", exc)
        return []


def validate_preconditions(
    request: fastapi.Request,
    response: fastapi.Response,
    etag: EntityTag | None = None,
    last_modified: datetime | None = None,
    *,
    clock: Clock | None = None,
) -> fastapi.Response | None:
    """
    Validate the If-Match, If-Unmodified-Since, If-None-Match and
    If-Modified-Since headers of the request.

    The ``ETag`` and ``Last-Modified`` headers are always set on ``response``.
    When the request can't proceed a bare response is returned that the
    endpoint should return as is:

    - 304 Not Modified when the client's copy is current, carrying the
      validator and caching headers already set on ``response``
    - 412 Precondition Failed when a condition doesn't hold

    ``None`` means all conditions are met (or none were sent) and the
    endpoint should continue as normal.

    Args:
        request: The incoming request.
        response: The response FastAPI injected into the endpoint.
        etag: Current entity tag of the resource, see ``EntityTag.from_string``.
        last_modified: Current modification date of the resource.
        clock: Source of "now", defaults to the wall clock.

    Examples:
        >>> @app.get("/articles/{article_id}")
        >>> async def get_article(article_id: int, request: Request, response: Response):
        ...     article = load(article_id)
        ...     not_modified = validate_preconditions(
        ...         request, response, etag=EntityTag.from_string(False, article.version)
        ...     )
        ...     if not_modified is not None:
        ...         return not_modified
        ...     return article
    """
    validators = precondition_headers(etag, last_modified)
    for key, value in validators.items():
        response.headers[key] = value

    outcome = evaluate_preconditions(etag, last_modified, conditionals_from_request(request), clock=clock)
    status_code = status_for(outcome)

    if status_code is None:
        return None

    logger.info(
        "Short-circuiting request: method=%s path=%s status=%d",
        request.method,
        request.url.path,
        status_code,
    )
    if status_code != 304:
        return fastapi.Response(status_code=status_code, headers=validators)

    # keep caching headers set by dependencies or the endpoint so far
    not_modified = fastapi.Response(status_code=status_code)
    for key, value in response.headers.items():
        if key.lower() in NOT_MODIFIED_HEADERS:
            not_modified.headers.append(key, value)
    return not_modified


def json_response(obj: t.Any) -> fastapi.Response:
    return JSONResponse(content=jsonable_encoder(obj))


def text_response(obj: t.Any) -> fastapi.Response:
    return PlainTextResponse(content=str(obj))


def not_acceptable(request: fastapi.Request) -> fastapi.Response:
    """
    Default handler for requests whose Accept header can't be satisfied.
    """
    accept = request.headers.get("accept", "")
    return PlainTextResponse(content=f"{accept} is unacceptable by the server.", status_code=406)


DEFAULT_NEGOTIATION_CONFIG = NegotiationConfig(
    rules={
        "*/*": json_response,
        "application/json": json_response,
        "text/plain": text_response,
    },
    unacceptable=not_acceptable,
)
"""
Default rules: ``*/*`` and ``application/json`` get JSON, ``text/plain`` gets
``str(obj)``, anything else gets a 406 from ``not_acceptable``.
"""


def negotiate(
    request: fastapi.Request,
    obj: t.Any,
    config: NegotiationConfig | None = None,
) -> fastapi.Response:
    """
    Respond with ``obj`` in the representation the client prefers.

    Each rule of ``config`` is called with ``obj`` and must return a response.
    ``config.unacceptable`` is called with the request when none of the
    accepted media types has a rule. Without an Accept header the first
    rule is used.

    Examples:
        >>> @app.get("/users/{user_id}")
        >>> async def get_user(user_id: int, request: Request):
        ...     return negotiate(request, {"id": user_id})
    """
    config = config or DEFAULT_NEGOTIATION_CONFIG

    def unacceptable(_: t.Any) -> fastapi.Response:
        return t.cast(fastapi.Response, config.unacceptable(request))

    return negotiate_with(accept_from_request(request), config.rules, unacceptable, obj)


def response_caching(directive: CacheDirective, vary: str | None = None) -> t.Any:
    """
    Dependency adding response caching headers to FastAPI responses.

    Examples:
        >>> @app.get("/static/logo.png", dependencies=[response_caching(Public(31536000))])
        >>> async def get_logo():
        ...     return {"image": "logo.png"}
    """
    headers = response_caching_headers(directive, vary)

    def add_caching_headers(response: fastapi.Response) -> None:
        """Add caching headers to the response."""
        for key, value in headers.items():
            response.headers[key] = value

    return fastapi.Depends(add_caching_headers)


def no_response_caching() -> t.Any:
    return response_caching(NoCache())


def public_response_caching(seconds: int, vary: str | None = None) -> t.Any:
    return response_caching(Public(timedelta(seconds=seconds)), vary)


def private_response_caching(seconds: int, vary: str | None = None) -> t.Any:
    return response_caching(Private(timedelta(seconds=seconds)), vary)
