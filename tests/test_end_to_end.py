"""End-to-end flows: the async client against the real app over an ASGI transport."""
from __future__ import annotations

import httpx
import pytest

from client import (
    ApiClient,
    AssistantBridge,
    ClientSettings,
    Mutations,
    NotificationCenter,
    PipelineController,
    QueryCache,
    RequestFailedError,
    UnauthorizedError,
    build_snapshot,
)
from core.auth import create_access_token
from domain.board import PipelineKind


def make_api(app, token=None, on_unauthorized=None) -> ApiClient:
    settings = ClientSettings(base_url="http://testserver", retry_delay_seconds=0, login_redirect_delay=0)
    return ApiClient(
        settings=settings,
        token=token,
        on_unauthorized=on_unauthorized,
        transport=httpx.ASGITransport(app=app),
    )


@pytest.fixture
def token(sample_user) -> str:
    return create_access_token(sample_user.id, sample_user.email, sample_user.role)


def board_ids(board, column):
    return [item["id"] for item in board[column]]


class TestPipelineFlow:
    @pytest.mark.asyncio
    async def test_create_move_and_reload(self, app, token):
        async with make_api(app, token) as api:
            cache = QueryCache(api.get, api.settings)
            controller = PipelineController(api, cache)

            lead = await Mutations(api, cache).create(
                PipelineKind.LEAD,
                {"firstName": "Mike", "lastName": "Chen", "source": "referral", "phone": "555-0199"},
            )
            board = await controller.load(PipelineKind.LEAD)
            assert board_ids(board, "new") == [lead["id"]]

            moved = await controller.move_item(PipelineKind.LEAD, lead["id"], "qualified")
            assert moved["status"] == "qualified"

            board = await controller.load(PipelineKind.LEAD)
            assert board_ids(board, "new") == []
            assert board_ids(board, "qualified") == [lead["id"]]

            server_board = await api.get("/api/pipeline/lead")
            qualified = next(column for column in server_board["columns"] if column["id"] == "qualified")
            assert [item["id"] for item in qualified["items"]] == [lead["id"]]

            await cache.close()

    @pytest.mark.asyncio
    async def test_rejected_move_rolls_back(self, app, token, sample_lead):
        async with make_api(app, token) as api:
            cache = QueryCache(api.get, api.settings)
            controller = PipelineController(api, cache)
            await controller.load(PipelineKind.LEAD)

            with pytest.raises(RequestFailedError) as exc_info:
                await controller.move_item(PipelineKind.LEAD, sample_lead.id, "vanished")

            assert exc_info.value.status == 400
            board = await controller.load(PipelineKind.LEAD)
            assert board_ids(board, "new") == [sample_lead.id]

            await cache.close()


class TestNotificationFlow:
    @pytest.mark.asyncio
    async def test_status_change_notifies_owner(self, app, token, sample_lead):
        async with make_api(app, token) as api:
            cache = QueryCache(api.get, api.settings)
            center = NotificationCenter(api, cache, api.settings)
            assert await center.unread_count() == 0

            await PipelineController(api, cache).move_item(PipelineKind.LEAD, sample_lead.id, "qualified")

            assert await center.unread_count(force=True) == 1
            (notification,) = await center.list(is_read=False)
            assert notification["title"] == "Lead Qualified"
            assert notification["actionUrl"] == f"/leads/{sample_lead.id}"

            assert await center.mark_all_read() == 1
            assert await center.unread_count() == 0

            await cache.close()


class TestAssistantFlow:
    @pytest.mark.asyncio
    async def test_chat_with_page_context(self, app, token, sample_lead):
        async with make_api(app, token) as api:
            bridge = AssistantBridge(api)
            leads = await api.get("/api/leads")

            reply = await bridge.ask("How many leads do I have?", page="dashboard", snapshot=build_snapshot(leads=leads))
            about_lead = await bridge.ask("Next step?", page="lead-detail", lead_id=sample_lead.id)

        assert reply.startswith("You have 1 total leads.")
        assert "For Sarah Johnson" in about_lead


class TestUnauthorizedFlow:
    @pytest.mark.asyncio
    async def test_missing_token_redirects_to_login(self, app, tables):
        redirects = []

        async with make_api(app, on_unauthorized=lambda: redirects.append("login")) as api:
            with pytest.raises(UnauthorizedError):
                await api.get("/api/leads")
            await api.wait_for_redirect()

        assert redirects == ["login"]
