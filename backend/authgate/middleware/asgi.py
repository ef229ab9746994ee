"""
AuthGate — ASGI Helpers Shared by the Pure-ASGI Middleware
===========================================================

What:  Small helpers for middleware that must look at the request body before
       the application does (sanitizer, audit interceptor).
Why:   In ASGI the body is a stream of `http.request` messages that can only
       be consumed once. Middleware that reads it has to hand an identical
       stream back to the next app in the chain.
"""

from typing import Iterable, Optional, Tuple

from starlette.types import Message, Receive, Scope

# Set by SanitizeMiddleware when it rewrites the query string; holds what the
# client actually sent so the audit log can show it.
ORIGINAL_QUERY_STRING = "authgate.original_query_string"


async def read_body(receive: Receive) -> Tuple[bytes, Optional[Message]]:
    """
    Drain the request body from `receive`.

    Returns:
        (body, pending) where `pending` is a non-body message (normally
        `http.disconnect`) that arrived before the body completed and must be
        delivered downstream, or None.
    """
    chunks = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            return b"".join(chunks), message
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks), None


def replay_body(body: bytes, receive: Receive, pending: Optional[Message] = None) -> Receive:
    """
    Build a `receive` callable that yields `body` as a single message, then
    falls through to the original channel (for `http.disconnect`).
    """
    delivered = False

    async def receive_replay() -> Message:
        nonlocal delivered, pending
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        if pending is not None:
            message, pending = pending, None
            return message
        return await receive()

    return receive_replay


def header_value(headers: Iterable[Tuple[bytes, bytes]], name: bytes) -> str:
    """Case-insensitive lookup in a raw ASGI header list; empty string if absent."""
    name = name.lower()
    for key, value in headers:
        if key.lower() == name:
            return value.decode("latin-1")
    return ""


def is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def client_address(scope: Scope) -> str:
    """Client host as resolved by the server (and the proxy-headers middleware)."""
    client = scope.get("client")
    return client[0] if client else "unknown"
