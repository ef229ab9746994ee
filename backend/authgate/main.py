"""
AuthGate — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error handling,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (`uvicorn authgate.main:app`) or `authgate` / run().

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware Chain (outermost first):                         │
    │  Proxy Headers → Rate Limit → Security Headers → CORS        │
    │               → Sanitize → Audit Interceptor → Error Reply   │
    │                                                              │
    │  Routes:                                                     │
    │  GET /    POST /api/auth/{register,login,forgot-password,    │
    │                               reset-password}   /public/*    │
    │                                                              │
    │  Handlers:                                                   │
    │  unknown route → 404 "Route does not exist"                  │
    │  AuthGateError → status + {"msg"}   anything else → 500      │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Start the audit sink
    3. Connect to the database (abort startup on failure)
    4. Start the scheduler (expired password-reset purge)

    Shutdown:
    1. Stop the scheduler
    2. Dispose database engine
    3. Flush and close the audit sink
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from authgate import __version__
from authgate.audit import AuditSink, audit_sink as default_audit_sink
from authgate.config import settings
from authgate.database import connect_db, dispose_engine
from authgate.exceptions import GENERIC_ERROR_MESSAGE, AuthGateError, DatabaseError
from authgate.middleware.audit import AuditInterceptorMiddleware, EntrySink
from authgate.middleware.errors import UnhandledErrorMiddleware
from authgate.middleware.rate_limit import RateLimitMiddleware
from authgate.middleware.sanitize import SanitizeMiddleware
from authgate.middleware.security_headers import SecurityHeadersMiddleware
from authgate.routes import auth, root
from authgate.services.scheduler import create_scheduler

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Route does not exist"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure application logging (not the audit stream, which AuditSink owns).

    Format: 2024-01-15T12:00:00 [INFO] authgate.database: Connected to database ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup/shutdown of process-wide resources.

    The database check runs before the server accepts connections; if it fails
    the error is logged and re-raised, which makes uvicorn abort startup.
    """
    setup_logging()
    sink = app.state.audit_sink
    if isinstance(sink, AuditSink):
        sink.init()

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("%s", str(e))

    try:
        await connect_db()
    except Exception as e:
        logger.error("Could not connect to the database: %s", str(e))
        if isinstance(sink, AuditSink):
            sink.shutdown()
        raise

    scheduler = create_scheduler()
    scheduler.start()
    logger.info("Server is listening on port %d...", settings.port)

    yield

    logger.info("Shutting down...")
    scheduler.shutdown(wait=False)
    await dispose_engine()
    if isinstance(sink, AuditSink):
        sink.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Not-Found and Error Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to responses.

        unknown route / method  → 404 text "Route does not exist"
        other HTTPException     → its status, {"msg": detail}
        RequestValidationError  → 400, {"msg": "<field>: <problem>, ..."}
        AuthGateError subclass  → its status_code, {"msg": message}
        Exception (fallback)    → 500, {"msg": "Something went wrong try again later"}

    Exceptions raised by routes reach UnhandledErrorMiddleware first, inside
    the audit interceptor; the Exception handler here only sees failures in
    the outer middleware.

    Internal details (stack traces, SQL) are logged, never returned.
    """

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)
        return JSONResponse(
            status_code=exc.status_code,
            content={"msg": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        messages = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ())[1:])
            messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
        return JSONResponse(status_code=400, content={"msg": ", ".join(messages)})

    @app.exception_handler(AuthGateError)
    async def handle_app_error(request: Request, exc: AuthGateError):
        if isinstance(exc, DatabaseError) or exc.status_code >= 500:
            logger.error("%s | Context: %s", exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content={"msg": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"msg": GENERIC_ERROR_MESSAGE})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(audit_sink: Optional[EntrySink] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        audit_sink: Destination of audit entries. Defaults to the process-wide
                    AuditSink; tests pass a recording fake.
    """
    app = FastAPI(
        title="AuthGate API",
        version=__version__,
        # Interactive docs load scripts from a CDN, which the CSP forbids
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    sink = audit_sink if audit_sink is not None else default_audit_sink
    app.state.audit_sink = sink

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute; see authgate.middleware for the chain
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        AuditInterceptorMiddleware,
        sink=sink,
        redact_fields=settings.audit_redact_fields_list,
    )
    app.add_middleware(SanitizeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxies_list)

    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/public", StaticFiles(directory=static_dir), name="public")
    else:
        logger.debug("Static directory %s not found; /public not mounted", static_dir)

    app.include_router(root.router)
    app.include_router(auth.router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app on HOST:PORT."""
    uvicorn.run(
        "authgate.main:app",
        host=settings.host,
        port=settings.port,
        # Client address resolution is done by ProxyHeadersMiddleware above
        proxy_headers=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()
