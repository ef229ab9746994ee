"""
AuthGate — Unexpected Error Reply Middleware
=============================================

What:  Turns exceptions no handler claimed into the generic 500 JSON reply.
Why:   Starlette answers unhandled exceptions in ServerErrorMiddleware, the
       outermost layer, so those replies would bypass every middleware in
       between, the audit interceptor included. Answering here keeps the
       500 reply on the same `send` the interceptor wraps.
When:  Innermost middleware, directly around the router's exception layer.

If the response has already started there is nothing left to replace; the
exception is re-raised for the server to close the connection.
"""

import logging

from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authgate.exceptions import GENERIC_ERROR_MESSAGE

logger = logging.getLogger(__name__)


class UnhandledErrorMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            return await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as e:
            if response_started:
                raise
            logger.error(
                "Unexpected error on %s %s: %s",
                scope.get("method", ""),
                scope.get("path", ""),
                str(e),
                exc_info=True,
            )
            response = JSONResponse(status_code=500, content={"msg": GENERIC_ERROR_MESSAGE})
            await response(scope, receive, send)
