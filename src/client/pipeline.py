"""Client-side pipeline views and the optimistic status-move controller."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.logging_config import get_logger
from domain.board import PIPELINE_COLUMNS, PipelineKind, StatusColumn, group_by_status
from .http import ApiClient
from .query_cache import QueryCache, QueryKey, spawn

LOGGER = get_logger(__name__)

COLLECTIONS = {
    PipelineKind.LEAD: "leads",
    PipelineKind.PROPERTY: "properties",
    PipelineKind.DEAL: "deals",
    PipelineKind.TASK: "tasks",
}

# Cached views that summarise every collection and go stale with any write.
DERIVED_PREFIXES = ("/api/dashboard", "/api/activities")


class PipelineView:
    """A kind bound to its collection endpoint and ordered column set."""

    def __init__(self, kind: PipelineKind) -> None:
        self.kind = PipelineKind(kind)
        self.endpoint = f"/api/{COLLECTIONS[self.kind]}"
        self.columns: Sequence[StatusColumn] = PIPELINE_COLUMNS[self.kind]

    def item_endpoint(self, item_id: Any) -> str:
        return f"{self.endpoint}/{item_id}"

    def board(self, items: Sequence[Any]) -> Dict[str, List[Any]]:
        return group_by_status(items, self.columns)

    def __repr__(self) -> str:
        return f"PipelineView({self.kind.value!r})"


def _same_id(item: Any, item_id: Any) -> bool:
    # Route params arrive as strings while cached payloads carry integer ids.
    return isinstance(item, dict) and item.get("id") is not None and str(item["id"]) == str(item_id)


def _with_status(value: Any, item_id: Any, status: str) -> Any:
    """Copy of a cached list/detail value with one item's status replaced."""
    if isinstance(value, list):
        return [
            {**item, "status": status} if _same_id(item, item_id) else item
            for item in value
        ]
    if _same_id(value, item_id):
        return {**value, "status": status}
    return value


def invalidate_collection(cache: QueryCache, view: PipelineView) -> None:
    """Mark every cached read of a collection, its board and derived views stale."""
    cache.invalidate(view.endpoint)
    cache.invalidate(f"/api/pipeline/{view.kind.value}")
    for prefix in DERIVED_PREFIXES:
        cache.invalidate(prefix)


class PipelineController:
    """
    Loads grouped boards and moves items between columns.

    A move updates every cached copy of the item first, then sends
    ``PATCH {collection}/{id}/status``. The write runs as its own task so a
    caller that stops waiting does not abandon it. Writes are never retried.
    """

    def __init__(self, api: ApiClient, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache

    async def load(
        self, kind: PipelineKind, params: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, List[Any]]:
        """Read the collection through the cache and group it; recomputed every call."""
        view = PipelineView(kind)
        items = await self.cache.fetch(view.endpoint, params)
        return view.board(items or [])

    def _item_keys(self, view: PipelineView, item_id: Any) -> List[QueryKey]:
        detail = view.item_endpoint(item_id)
        return [key for key in self.cache.keys(view.endpoint) if key.endpoint in (view.endpoint, detail)]

    async def move_item(self, kind: PipelineKind, item_id: Any, target_status: str) -> Dict[str, Any]:
        """
        Optimistically move an item and persist the move.

        Returns:
            The updated entity as returned by the server.

        Raises:
            ClientError: The original failure, after the optimistic change has
                been rolled back. ``UnauthorizedError`` stays distinguishable.
        """
        view = PipelineView(kind)
        snapshot = self.cache.set_data(
            self._item_keys(view, item_id),
            lambda value: _with_status(value, item_id, target_status),
        )
        task = spawn(self._persist_move(view, item_id, target_status, snapshot))
        return await asyncio.shield(task)

    async def _persist_move(self, view: PipelineView, item_id: Any, target_status: str, snapshot) -> Any:
        try:
            result = await self.api.patch(f"{view.item_endpoint(item_id)}/status", json={"status": target_status})
        except Exception:
            LOGGER.warning(f"Moving {view.kind.value} {item_id} to {target_status} failed; rolling back")
            self.cache.restore(snapshot)
            self._invalidate(view)
            raise
        LOGGER.debug(f"Moved {view.kind.value} {item_id} to {target_status}")
        self._invalidate(view)
        return result

    def _invalidate(self, view: PipelineView) -> None:
        invalidate_collection(self.cache, view)


class Mutations:
    """Create, update and delete for each collection; every write invalidates its collection."""

    def __init__(self, api: ApiClient, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache

    async def _write(self, view: PipelineView, method: str, endpoint: str, payload: Any = None) -> Any:
        async def run() -> Any:
            try:
                if method == "DELETE":
                    return await self.api.delete(endpoint)
                return await self.api.request(method, endpoint, json=payload)
            finally:
                invalidate_collection(self.cache, view)

        return await asyncio.shield(spawn(run()))

    async def create(self, kind: PipelineKind, payload: Mapping[str, Any]) -> Any:
        view = PipelineView(kind)
        return await self._write(view, "POST", view.endpoint, dict(payload))

    async def update(self, kind: PipelineKind, item_id: Any, payload: Mapping[str, Any]) -> Any:
        view = PipelineView(kind)
        return await self._write(view, "PATCH", view.item_endpoint(item_id), dict(payload))

    async def delete(self, kind: PipelineKind, item_id: Any) -> Any:
        view = PipelineView(kind)
        return await self._write(view, "DELETE", view.item_endpoint(item_id))


__all__ = ["PipelineView", "PipelineController", "Mutations", "COLLECTIONS", "invalidate_collection"]
