"""
AuthGate — Input Sanitization Middleware
=========================================

What:  Neutralizes HTML in user input before any route handler sees it.
Why:   Values stored from request bodies (names, emails) may later be rendered
       in a browser; escaping `<` at the edge stops them being interpreted as
       markup (stored XSS).
How:   Pure ASGI middleware. JSON request bodies are buffered, every string
       (keys are left alone) has `<` replaced by `&lt;`, and the rewritten body
       is replayed downstream with a corrected Content-Length. Query-string
       values get the same treatment.

Scope:
    Only JSON bodies are rewritten; anything else (JSON that does not parse,
    or that is nested too deeply to walk) passes through byte-for-byte so the
    validation layer can reject it.

    A rewritten query string keeps the client's original under
    ORIGINAL_QUERY_STRING in the scope; the audit log records that one.
"""

import json
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode

from starlette.types import ASGIApp, Receive, Scope, Send

from authgate.middleware.asgi import (
    ORIGINAL_QUERY_STRING,
    header_value,
    is_json,
    read_body,
    replay_body,
)


def clean(value: Any) -> Any:
    """Recursively escape `<` in every string of a decoded JSON value."""
    if isinstance(value, str):
        return value.replace("<", "&lt;")
    if isinstance(value, dict):
        return {k: clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [clean(item) for item in value]
    return value


def clean_query_string(query_string: bytes) -> bytes:
    if b"<" not in query_string and b"%3C" not in query_string.upper():
        return query_string
    pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
    return urlencode([(key, clean(value)) for key, value in pairs]).encode("latin-1")


def sanitize_json_body(body: bytes) -> Optional[bytes]:
    """
    Return the escaped re-encoding of a JSON body, or None when the body should
    be forwarded as is: nothing to escape, not valid JSON, or nested deeper
    than the interpreter can recurse.
    """
    try:
        parsed = json.loads(body)
        cleaned = clean(parsed)
        if cleaned == parsed:
            return None
        return json.dumps(cleaned, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (ValueError, RecursionError):
        return None


class SanitizeMiddleware:
    """Escapes HTML in JSON bodies and query strings of HTTP requests."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_string = scope.get("query_string", b"")
        if query_string:
            cleaned_query = clean_query_string(query_string)
            if cleaned_query != query_string:
                scope = {
                    **scope,
                    "query_string": cleaned_query,
                    ORIGINAL_QUERY_STRING: query_string,
                }

        if not is_json(header_value(scope.get("headers", []), b"content-type")):
            await self.app(scope, receive, send)
            return

        body, pending = await read_body(receive)
        new_body = sanitize_json_body(body)
        if new_body is not None:
            headers = [
                (key, value) for key, value in scope.get("headers", [])
                if key.lower() != b"content-length"
            ]
            headers.append((b"content-length", str(len(new_body)).encode("latin-1")))
            scope = {**scope, "headers": headers}
            body = new_body

        await self.app(scope, replay_body(body, receive, pending), send)
