"""Tests for the async API client transport and error mapping."""
from __future__ import annotations

import json

import httpx
import pytest

from client.config import ClientSettings
from client.errors import (
    GENERIC_USER_MESSAGE,
    MalformedResponseError,
    RequestFailedError,
    TransportError,
    UnauthorizedError,
    is_transient,
)
from client.http import ApiClient, clean_params


def make_client(handler, token="secret-token", on_unauthorized=None, redirect_delay=0.05):
    settings = ClientSettings(base_url="http://crm.test", login_redirect_delay=redirect_delay)
    return ApiClient(
        settings=settings,
        token=token,
        on_unauthorized=on_unauthorized,
        transport=httpx.MockTransport(handler),
    )


class TestCleanParams:
    def test_drops_unset_filters(self):
        assert clean_params({"status": "all", "source": "", "limit": None, "page": 0}) == {"page": 0}

    def test_empty(self):
        assert clean_params(None) == {}


class TestRequests:
    @pytest.mark.asyncio
    async def test_sends_bearer_token_and_clean_params(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": 1}])

        async with make_client(handler) as api:
            result = await api.get("/api/leads", {"status": "all", "source": "referral", "limit": None})

        assert result == [{"id": 1}]
        assert seen[0].headers["Authorization"] == "Bearer secret-token"
        assert dict(seen[0].url.params) == {"source": "referral"}

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "healthy"})

        async with make_client(handler, token=None) as api:
            await api.get("/api/health")

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_json_body_is_sent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert json.loads(request.content) == {"status": "qualified"}
            return httpx.Response(200, json={"id": 3, "status": "qualified"})

        async with make_client(handler) as api:
            result = await api.patch("/api/leads/3/status", json={"status": "qualified"})

        assert result["status"] == "qualified"

    @pytest.mark.asyncio
    async def test_no_content(self):
        async with make_client(lambda request: httpx.Response(204)) as api:
            assert await api.delete("/api/tasks/4") is None

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        async with make_client(lambda request: httpx.Response(200, text="<html>oops</html>")) as api:
            with pytest.raises(MalformedResponseError):
                await api.get("/api/leads")


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        def handler(request):
            return httpx.Response(503, json={"error": "database_error", "message": "Database unavailable"})

        async with make_client(handler) as api:
            with pytest.raises(RequestFailedError) as exc_info:
                await api.get("/api/leads")

        assert exc_info.value.status == 503
        assert exc_info.value.is_transient
        assert str(exc_info.value) == "503: Database unavailable"
        assert exc_info.value.user_message == GENERIC_USER_MESSAGE

    @pytest.mark.asyncio
    async def test_not_found_is_not_transient(self):
        def handler(request):
            return httpx.Response(404, json={"error": "not_found", "message": "Lead 9 not found"})

        async with make_client(handler) as api:
            with pytest.raises(RequestFailedError) as exc_info:
                await api.get("/api/leads/9")

        assert exc_info.value.status == 404
        assert not is_transient(exc_info.value)

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.get("/api/leads")

        assert is_transient(exc_info.value)
        assert exc_info.value.user_message == GENERIC_USER_MESSAGE


class TestUnauthorized:
    @pytest.mark.asyncio
    async def test_401_schedules_a_single_redirect(self):
        redirects = []

        def handler(request):
            return httpx.Response(401, json={"error": "unauthorized", "message": "Not authenticated"})

        async with make_client(handler, on_unauthorized=lambda: redirects.append("login")) as api:
            for _ in range(3):
                with pytest.raises(UnauthorizedError):
                    await api.get("/api/leads")
            assert api.redirect_pending

            await api.wait_for_redirect()

        assert redirects == ["login"]

    @pytest.mark.asyncio
    async def test_async_redirect_callback(self):
        redirects = []

        async def go_to_login():
            redirects.append("login")

        async with make_client(lambda request: httpx.Response(401), on_unauthorized=go_to_login, redirect_delay=0) as api:
            with pytest.raises(UnauthorizedError) as exc_info:
                await api.get("/api/notifications")
            await api.wait_for_redirect()

        assert exc_info.value.status == 401
        assert redirects == ["login"]

    @pytest.mark.asyncio
    async def test_401_without_callback(self):
        async with make_client(lambda request: httpx.Response(401)) as api:
            with pytest.raises(UnauthorizedError):
                await api.get("/api/leads")
            assert not api.redirect_pending
