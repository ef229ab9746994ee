"""
AuthGate — Request/Response Audit Interceptor
==============================================

What:  Records every request's path parameters, JSON body, and every response
       payload to the audit sink.
Why:   Gives an audit trail of what each client sent and what the API answered,
       without touching route handlers.
How:   Pure ASGI middleware. On entry it resolves path parameters from the
       routing table and buffers the JSON body (replaying it downstream), then
       hands the application a LoggingResponseWriter in place of `send`. The
       writer logs each outbound body chunk and forwards the message unchanged.
When:  Innermost of the middleware chain: after proxy headers, rate limiting,
       security headers, CORS, and sanitization; right before route dispatch.

Per-request ordering:
    Params (if any) → Body (if any) → Response (one per body chunk sent)

    All Params/Body entries are emitted before the application runs, and each
    Response entry is emitted before the wrapped `send` is awaited, so the
    entry always precedes the bytes reaching the transport.

Why pure ASGI (not BaseHTTPMiddleware):
    BaseHTTPMiddleware only sees the Response object after the app returns; it
    cannot observe individual `send` calls, which is exactly the seam we need.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

from starlette.routing import Match
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authgate.audit import AuditTag, LogEntry, redact
from authgate.middleware.asgi import (
    ORIGINAL_QUERY_STRING,
    client_address,
    header_value,
    is_json,
    read_body,
    replay_body,
)

logger = logging.getLogger(__name__)


class EntrySink(Protocol):
    def emit(self, entry: LogEntry) -> None: ...


def decode_response_payload(body: bytes, content_type: str) -> Any:
    """
    Turn an outbound body chunk back into loggable data.

    JSON bodies are parsed so they render compactly; other bodies are logged as
    text; bytes that are not UTF-8 become a size marker.
    """
    if is_json(content_type):
        try:
            return json.loads(body)
        except (ValueError, RecursionError):
            pass
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return f"<binary {len(body)} bytes>"


@dataclass
class AuditContext:
    """
    Per-request interceptor state; discarded with the request.

    Holds the fields every entry of this request shares and the sink to
    write them to.
    """

    method: str
    path: str
    client_address: str
    sink: EntrySink

    @classmethod
    def from_scope(cls, scope: Scope, sink: EntrySink) -> "AuditContext":
        path = scope.get("path", "")
        query = scope.get(ORIGINAL_QUERY_STRING) or scope.get("query_string", b"")
        if query:
            path = f"{path}?{query.decode('latin-1')}"
        return cls(
            method=scope.get("method", ""),
            path=path,
            client_address=client_address(scope),
            sink=sink,
        )

    @property
    def prefix(self) -> str:
        return f"[{self.method}] {self.path} - IP: {self.client_address}"

    def emit(self, tag: AuditTag, payload: Any) -> None:
        """Write one entry; sink failures are reported here and never raised."""
        try:
            self.sink.emit(
                LogEntry(
                    method=self.method,
                    path=self.path,
                    client_address=self.client_address,
                    tag=tag,
                    payload=payload,
                )
            )
        except Exception as e:
            logger.warning("%s - audit %s entry not written: %s", self.prefix, tag.value, e)


class LoggingResponseWriter:
    """
    Decorator around the ASGI `send` callable.

    Each `http.response.body` message is logged as a Response entry, then the
    original `send` is awaited with the identical message object and its
    return value passed back. Start messages are only inspected (for the
    content type); nothing is ever modified.
    """

    def __init__(self, send: Send, context: AuditContext):
        self._send = send
        self._context = context
        self._content_type = ""
        self._logged_chunks = 0

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self._content_type = header_value(message.get("headers", []), b"content-type")
        elif message_type == "http.response.body":
            self._record(message)
        return await self._send(message)

    def _record(self, message: Message) -> None:
        body = message.get("body", b"")
        # The empty terminator of a streamed body adds nothing to the log
        if not body and self._logged_chunks and not message.get("more_body", False):
            return
        self._logged_chunks += 1
        try:
            payload = decode_response_payload(body, self._content_type)
        except Exception as e:
            logger.warning("%s - could not decode response payload: %s", self._context.prefix, e)
            payload = f"<binary {len(body)} bytes>"
        self._context.emit(AuditTag.RESPONSE, payload)


class AuditInterceptorMiddleware:
    """
    Pure ASGI middleware writing Params/Body/Response audit entries.

    Args:
        app:           The downstream ASGI application.
        sink:          Anything with `emit(entry)`; normally the process-wide
                       AuditSink, a recording fake in tests.
        redact_fields: Body/param keys whose values are masked in the log only.
    """

    def __init__(
        self,
        app: ASGIApp,
        sink: EntrySink,
        redact_fields: Optional[Iterable[str]] = None,
    ):
        self.app = app
        self.sink = sink
        self.redact_fields = list(redact_fields or [])

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = AuditContext.from_scope(scope, self.sink)

        params = self._resolve_path_params(scope)
        if params:
            context.emit(AuditTag.PARAMS, redact(params, self.redact_fields))

        body, pending = await read_body(receive)
        parsed = self._parse_json_body(scope, body)
        if isinstance(parsed, dict) and parsed:
            context.emit(AuditTag.BODY, redact(parsed, self.redact_fields))

        await self.app(
            scope,
            replay_body(body, receive, pending),
            LoggingResponseWriter(send, context),
        )

    @staticmethod
    def _resolve_path_params(scope: Scope) -> Dict[str, Any]:
        """
        Match the request against the application's routes the way the router
        will, and return the path parameters of the route it will dispatch to.
        """
        app = scope.get("app")
        router = getattr(app, "router", None)
        if router is None:
            return dict(scope.get("path_params") or {})

        partial_params: Optional[Dict[str, Any]] = None
        for route in router.routes:
            match, child_scope = route.matches(scope)
            if match == Match.FULL:
                return dict(child_scope.get("path_params") or {})
            if match == Match.PARTIAL and partial_params is None:
                partial_params = dict(child_scope.get("path_params") or {})
        return partial_params or {}

    @staticmethod
    def _parse_json_body(scope: Scope, body: bytes) -> Any:
        if not body:
            return None
        if not is_json(header_value(scope.get("headers", []), b"content-type")):
            return None
        try:
            return json.loads(body)
        except (ValueError, RecursionError):
            return None
