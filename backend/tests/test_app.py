"""
AuthGate — Application Factory and Error Handler Tests
=======================================================

What:  Tests for create_app(): root route, not-found mapping, and how each
       exception type is turned into a response.
How:   HTTPX AsyncClient against the real app; extra routes are attached to
       the per-test app instance to raise specific exceptions.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from authgate.audit import AuditTag
from authgate.exceptions import (
    BadRequestError,
    DatabaseError,
    NotFoundError,
    UnauthenticatedError,
)
from authgate.main import GENERIC_ERROR_MESSAGE, NOT_FOUND_MESSAGE, create_app
from authgate.middleware.errors import UnhandledErrorMiddleware
from authgate.routes.root import ROOT_MESSAGE


class TestRoot:

    @pytest.mark.asyncio
    async def test_root_returns_plain_text(self, test_client):
        response = await test_client.get("/")

        assert response.status_code == 200
        assert response.text == ROOT_MESSAGE
        assert response.headers["content-type"].startswith("text/plain")


class TestNotFound:

    @pytest.mark.asyncio
    async def test_unknown_route(self, test_client):
        response = await test_client.get("/nope")

        assert response.status_code == 404
        assert response.text == NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_wrong_method_is_reported_as_not_found(self, test_client):
        response = await test_client.get("/api/auth/login")

        assert response.status_code == 404
        assert response.text == NOT_FOUND_MESSAGE


class TestErrorHandlers:

    @pytest.mark.asyncio
    async def test_validation_error_is_400_with_msg(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"name": "ab", "email": "a@example.com", "password": "secret1"},
        )

        assert response.status_code == 400
        assert response.json()["msg"].startswith("name:")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status, message",
        [
            (BadRequestError("bad"), 400, "bad"),
            (UnauthenticatedError("who"), 401, "who"),
            (NotFoundError("user", "42"), 404, "No user found with id 42"),
            (DatabaseError(), 500, GENERIC_ERROR_MESSAGE),
        ],
    )
    async def test_app_errors_map_to_status(self, app, test_client, error, status, message):
        @app.get("/raise")
        async def raise_error():
            raise error

        response = await test_client.get("/raise")

        assert response.status_code == status
        assert response.json() == {"msg": message}

    @pytest.mark.asyncio
    async def test_unexpected_error_hides_details(self, app, test_client):
        @app.get("/crash")
        async def crash():
            raise RuntimeError("connection string with password")

        response = await test_client.get("/crash")

        assert response.status_code == 500
        assert response.json() == {"msg": GENERIC_ERROR_MESSAGE}
        assert "password" not in response.text

    @pytest.mark.asyncio
    async def test_unexpected_error_reply_is_audited(self, app, test_client, recording_sink):
        @app.get("/crash")
        async def crash():
            raise RuntimeError("boom")

        await test_client.get("/crash")

        assert recording_sink.tags() == [AuditTag.RESPONSE]
        assert recording_sink.entries[0].payload == {"msg": GENERIC_ERROR_MESSAGE}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_answered_inside_the_app(self, app):
        @app.get("/crash")
        async def crash():
            raise RuntimeError("boom")

        # Default transport re-raises anything the app lets escape
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/crash")

        assert response.status_code == 500


class TestUnhandledErrorMiddleware:

    @pytest.mark.asyncio
    async def test_error_after_response_started_is_reraised(self):
        sent = []

        async def downstream(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            raise RuntimeError("mid-stream")

        async def send(message):
            sent.append(message)

        middleware = UnhandledErrorMiddleware(downstream)
        with pytest.raises(RuntimeError, match="mid-stream"):
            await middleware({"type": "http", "method": "GET", "path": "/"}, None, send)

        assert [m["type"] for m in sent] == ["http.response.start"]


class TestCreateApp:

    def test_sink_is_stored_on_state(self, recording_sink):
        application = create_app(audit_sink=recording_sink)
        assert application.state.audit_sink is recording_sink

    def test_default_sink_is_process_wide(self):
        from authgate.audit import audit_sink

        assert create_app().state.audit_sink is audit_sink

    def test_docs_are_disabled(self, recording_sink):
        application = create_app(audit_sink=recording_sink)
        assert application.docs_url is None
        assert application.openapi_url is None
