# Middleware package init
"""
AuthGate — Middleware Package
==============================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Proxy Headers] → [Rate Limit] → [Security Headers] → [CORS]
            → [Sanitize] → [Audit] → [Error Reply] → Route Handler

    1. Proxy Headers (uvicorn): resolve the real client IP behind a trusted proxy
    2. Rate Limit: reject abusive clients before any body is read
    3. Security Headers: harden every response the application produces
    4. CORS (Starlette): preflight handling and CORS response headers
    5. Sanitize: escape HTML in JSON bodies and query strings
    6. Audit: log params, body, and each response payload (sees sanitized input)
    7. Error Reply: answer unhandled exceptions with the generic 500 inside the
       audit interceptor, so those replies are logged too

    The order is reversed for responses, so the audit interceptor records the
    payload exactly as the route produced it.
"""
