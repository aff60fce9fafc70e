from __future__ import annotations

import logging
import typing as t
from datetime import datetime

from httpgate._core._headers import EntityTag, Headers, parse_entity_tag
from httpgate._core._preconditions import (
    NOT_MODIFIED_HEADERS,
    Clock,
    RequestConditionals,
    evaluate_preconditions,
    status_for,
)
from httpgate._core.models import Request, Response
from httpgate._exceptions import ParseError
from httpgate._utils import parse_http_date

logger = logging.getLogger(__name__)

class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]
_ASGIApp = t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]


class ConditionalResponseMiddleware:
    """
    ASGI middleware answering conditional GET and HEAD requests.

    The wrapped application runs as usual. When the request carries
    conditional headers and the application answers with a 2xx response,
    the ``ETag`` and ``Last-Modified`` headers of that response are checked
    against the request (RFC 7232) and the body is replaced with a bare
    304 Not Modified or 412 Precondition Failed when a condition says so.

    Requests with other methods are passed through untouched: their
    preconditions must be evaluated before the application changes any
    state, see ``httpgate.fastapi.validate_preconditions``.

    Args:
        app: The ASGI application to wrap.
        clock: Source of "now" for the date checks. Defaults to the wall clock.

    Example:
        ```python
        from httpgate.asgi import ConditionalResponseMiddleware

        app = ConditionalResponseMiddleware(app=my_asgi_app)
        ```
    """

    def __init__(self, app: _ASGIApp, clock: Clock | None = None) -> None:
        self.app = app
        self.clock = clock

        logger.info("Initialized ConditionalResponseMiddleware")

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            await self.app(scope, receive, send)
            return

        request = self._asgi_to_internal_request(scope)
        conditionals = RequestConditionals.from_headers(request.method, request.headers)

        if not request.is_get_or_head or not conditionals.has_conditions:
            await self.app(scope, receive, send)
            return

        logger.debug("Conditional request: method=%s path=%s", request.method, scope.get("path", "/"))

        status_code = 200
        response_headers: list[tuple[bytes, bytes]] = []
        response_body_chunks: list[bytes] = []

        async def inner_send(message: dict[str, t.Any]) -> None:
            nonlocal status_code, response_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = message.get("headers", [])
            elif message["type"] == "http.response.body":
                body_chunk = message.get("body", b"")
                if body_chunk:
                    response_body_chunks.append(body_chunk)

        try:
            await self.app(scope, receive, inner_send)
        except Exception as e:
            logger.error(
                "Error calling wrapped application: path=%s error=%s",
                scope.get("path", "/"),
                str(e),
                exc_info=True,
            )
            raise

        response = Response(
            status_code=status_code,
            headers=self._decode_headers(response_headers),
            body=b"".join(response_body_chunks),
        )

        if response.is_successful:
            response = self._apply_preconditions(conditionals, response)

        await self._send_internal_response(response, send)

    def _apply_preconditions(self, conditionals: RequestConditionals, response: Response) -> Response:
        etag = self._response_etag(response)
        last_modified = self._response_last_modified(response)

        outcome = evaluate_preconditions(etag, last_modified, conditionals, clock=self.clock)
        status_code = status_for(outcome)

        if status_code is None:
            return response

        logger.info("Replacing response: status=%d outcome=%s", status_code, outcome.value)

        if status_code == 304:
            kept = {key: response.headers.get_list(key) or [] for key in response.headers if key in NOT_MODIFIED_HEADERS}
        else:
            kept = {}
        return Response(status_code=status_code, headers=Headers(kept))

    def _response_etag(self, response: Response) -> EntityTag | None:
        if "etag" not in response.headers:
            return None
        try:
            return parse_entity_tag(response.headers["etag"])
        except ParseError as exc:
            logger.warning("Application sent a malformed ETag header: %s", exc)
            return None

    def _response_last_modified(self, response: Response) -> datetime | None:
        if "last-modified" not in response.headers:
            return None
        return parse_http_date(response.headers["last-modified"])

    def _decode_headers(self, raw_headers: t.Iterable[tuple[bytes, bytes]]) -> Headers:
        headers = Headers({})
        for key, value in raw_headers:
            headers[key.decode("latin1")] = value.decode("latin1")
        return headers

    def _asgi_to_internal_request(self, scope: _Scope) -> Request:
        return Request(
            method=scope.get("method", "GET"),
            headers=self._decode_headers(scope.get("headers", [])),
        )

    async def _send_internal_response(self, response: Response, send: _Send) -> None:
        headers: list[tuple[bytes, bytes]] = []
        for key in response.headers:
            for value in response.headers.get_list(key) or []:
                headers.append((key.encode("latin1"), value.encode("latin1")))

        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": headers,
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": response.body,
                "more_body": False,
            }
        )
