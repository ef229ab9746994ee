"""
AuthGate — Application Package
===============================

A minimal HTTP API boilerplate: security middleware, request/response audit
logging, an authentication route group, and generic not-found/error handlers
on top of FastAPI and async SQLAlchemy.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Middleware (security + audit)     │  ← cross-cutting, every request
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← credentials, reset flow, jobs
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
