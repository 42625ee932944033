"""Tests for client pipeline boards, optimistic moves and mutations."""
from __future__ import annotations

import asyncio

import pytest

from client.config import ClientSettings
from client.errors import RequestFailedError, UnauthorizedError
from client.pipeline import Mutations, PipelineController, PipelineView
from client.query_cache import QueryCache
from domain.board import PipelineKind


class FakeApi:
    """In-memory stand-in for ApiClient serving one lead collection."""

    def __init__(self, items):
        self.items = {item["id"]: dict(item) for item in items}
        self.calls = []
        self.gate = None
        self.error = None

    async def get(self, endpoint, params=None):
        self.calls.append(("GET", endpoint))
        parts = endpoint.strip("/").split("/")
        if parts[1] != "leads":
            return {"endpoint": endpoint}
        if len(parts) == 3:
            return dict(self.items[int(parts[2])])
        return [dict(item) for item in self.items.values()]

    async def _maybe_fail(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def patch(self, endpoint, json=None):
        self.calls.append(("PATCH", endpoint))
        await self._maybe_fail()
        item = self.items[int(endpoint.strip("/").split("/")[2])]
        item.update(json)
        return dict(item)

    async def request(self, method, endpoint, json=None):
        self.calls.append((method, endpoint))
        await self._maybe_fail()
        if method == "PATCH":
            item = self.items[int(endpoint.strip("/").split("/")[2])]
            item.update(json)
            return dict(item)
        new_id = max(self.items, default=0) + 1
        self.items[new_id] = {"id": new_id, "status": "new", **json}
        return dict(self.items[new_id])

    async def delete(self, endpoint):
        self.calls.append(("DELETE", endpoint))
        await self._maybe_fail()
        self.items.pop(int(endpoint.strip("/").split("/")[2]))
        return None


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def api():
    return FakeApi(
        [
            {"id": 1, "name": "Sarah Johnson", "status": "new"},
            {"id": 2, "name": "Mike Chen", "status": "new"},
            {"id": 3, "name": "Priya Patel", "status": "contacted"},
            {"id": 4, "name": "Old Import", "status": "nurturing"},
        ]
    )


@pytest.fixture
def cache(api):
    return QueryCache(api.get, ClientSettings(retry_delay_seconds=0))


@pytest.fixture
def controller(api, cache):
    return PipelineController(api, cache)


def ids(board, column):
    return [item["id"] for item in board[column]]


# ============================================================================
# Views and boards
# ============================================================================


class TestPipelineView:
    def test_endpoints(self):
        view = PipelineView(PipelineKind.PROPERTY)

        assert view.endpoint == "/api/properties"
        assert view.item_endpoint(7) == "/api/properties/7"
        assert [column.id for column in view.columns] == ["available", "pending", "sold", "withdrawn"]

    @pytest.mark.asyncio
    async def test_load_groups_the_collection(self, controller):
        board = await controller.load("lead")

        assert list(board) == ["new", "contacted", "qualified", "tour", "offer", "closed", "lost"]
        assert ids(board, "new") == [1, 2]
        assert ids(board, "contacted") == [3]
        assert sum(len(items) for items in board.values()) == 3


# ============================================================================
# Optimistic moves
# ============================================================================


class TestMoveItem:
    @pytest.mark.asyncio
    async def test_move_is_visible_before_the_server_answers(self, controller, api, cache):
        await controller.load(PipelineKind.LEAD)
        await cache.fetch("/api/leads/1")
        api.gate = asyncio.Event()

        move = asyncio.create_task(controller.move_item(PipelineKind.LEAD, 1, "qualified"))
        await settle()

        board = PipelineView(PipelineKind.LEAD).board(cache.peek("/api/leads").data)
        assert ids(board, "qualified") == [1]
        assert ids(board, "new") == [2]
        assert cache.peek("/api/leads/1").data["status"] == "qualified"

        api.gate.set()
        result = await move

        assert result["status"] == "qualified"
        assert ("PATCH", "/api/leads/1/status") in api.calls

    @pytest.mark.asyncio
    async def test_route_param_id_matches_integer_cached_ids(self, controller, api, cache):
        await controller.load(PipelineKind.LEAD)
        await cache.fetch("/api/leads/2")
        api.gate = asyncio.Event()

        move = asyncio.create_task(controller.move_item(PipelineKind.LEAD, "2", "contacted"))
        await settle()

        board = PipelineView(PipelineKind.LEAD).board(cache.peek("/api/leads").data)
        assert ids(board, "contacted") == [2, 3]
        assert cache.peek("/api/leads/2").data["status"] == "contacted"

        api.gate.set()
        await move
        assert ("PATCH", "/api/leads/2/status") in api.calls

    @pytest.mark.asyncio
    async def test_success_invalidates_the_collection(self, controller, api, cache):
        await controller.load(PipelineKind.LEAD)
        await cache.fetch("/api/dashboard/metrics")
        await cache.fetch("/api/tasks")

        await controller.move_item(PipelineKind.LEAD, 3, "qualified")

        assert cache.peek("/api/leads").is_fresh is False
        assert cache.peek("/api/dashboard/metrics").is_fresh is False
        assert cache.peek("/api/tasks").is_fresh is True

        board = await controller.load(PipelineKind.LEAD)
        assert ids(board, "qualified") == [3]
        assert api.calls.count(("GET", "/api/leads")) == 2

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_reraises(self, controller, api, cache):
        await controller.load(PipelineKind.LEAD)
        api.error = RequestFailedError(400, "Invalid status transition")

        with pytest.raises(RequestFailedError):
            await controller.move_item(PipelineKind.LEAD, 1, "closed")

        cached = cache.peek("/api/leads")
        assert [item["status"] for item in cached.data] == ["new", "new", "contacted", "nurturing"]
        assert cached.is_fresh is False

    @pytest.mark.asyncio
    async def test_unauthorized_stays_distinguishable(self, controller, api):
        await controller.load(PipelineKind.LEAD)
        api.error = UnauthorizedError()

        with pytest.raises(UnauthorizedError):
            await controller.move_item(PipelineKind.LEAD, 2, "contacted")

        assert api.items[2]["status"] == "new"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_abandon_the_write(self, controller, api, cache):
        await controller.load(PipelineKind.LEAD)
        api.gate = asyncio.Event()

        move = asyncio.create_task(controller.move_item(PipelineKind.LEAD, 1, "contacted"))
        await settle()
        move.cancel()
        await settle()
        api.gate.set()
        await settle()

        assert move.cancelled()
        assert api.items[1]["status"] == "contacted"
        assert cache.peek("/api/leads").is_fresh is False


# ============================================================================
# Mutations
# ============================================================================


class TestMutations:
    @pytest.mark.asyncio
    async def test_create_invalidates_collection_board_and_dashboard(self, api, cache):
        await cache.fetch("/api/leads")
        await cache.fetch("/api/pipeline/lead")
        await cache.fetch("/api/dashboard/metrics")
        await cache.fetch("/api/properties")

        created = await Mutations(api, cache).create(PipelineKind.LEAD, {"name": "Dana Lee"})

        assert created["id"] == 5
        assert cache.peek("/api/leads").is_fresh is False
        assert cache.peek("/api/pipeline/lead").is_fresh is False
        assert cache.peek("/api/dashboard/metrics").is_fresh is False
        assert cache.peek("/api/properties").is_fresh is True

    @pytest.mark.asyncio
    async def test_update_and_delete(self, api, cache):
        mutations = Mutations(api, cache)

        await mutations.update(PipelineKind.LEAD, 2, {"name": "Michael Chen"})
        await mutations.delete(PipelineKind.LEAD, 3)

        assert ("PATCH", "/api/leads/2") in api.calls
        assert ("DELETE", "/api/leads/3") in api.calls
        assert 3 not in api.items

    @pytest.mark.asyncio
    async def test_failed_write_still_invalidates(self, api, cache):
        await cache.fetch("/api/leads")
        api.error = RequestFailedError(500, "boom")

        with pytest.raises(RequestFailedError):
            await Mutations(api, cache).create(PipelineKind.LEAD, {"name": "Nobody"})

        assert cache.peek("/api/leads").is_fresh is False
