"""
Client notification center and background poller.

Two loops run side by side:
- unread count every ``notification_count_interval`` seconds
- notification list every ``notification_list_interval`` seconds

Each loop backs off exponentially on failure and returns to its base
interval after the next success.
"""
from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from core.logging_config import get_logger
from .config import ClientSettings, get_client_settings
from .errors import ClientError, MalformedResponseError
from .http import ApiClient
from .query_cache import QueryCache, spawn

LOGGER = get_logger(__name__)

NOTIFICATIONS_ENDPOINT = "/api/notifications"
UNREAD_COUNT_ENDPOINT = "/api/notifications/unread-count"

Callback = Callable[[Any], Optional[Awaitable[None]]]
Sleep = Callable[[float], Awaitable[None]]


class NotificationCenter:
    """Cached reads and invalidating writes for the current user's notifications."""

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        settings: Optional[ClientSettings] = None,
    ) -> None:
        self.api = api
        self.cache = cache
        self.settings = settings or get_client_settings()

    async def list(
        self,
        is_read: Optional[bool] = None,
        limit: Optional[int] = None,
        force: bool = False,
    ) -> List[Dict[str, Any]]:
        params = {"isRead": is_read, "limit": limit}
        items = await self.cache.fetch(NOTIFICATIONS_ENDPOINT, params, force=force)
        return items or []

    async def unread_count(self, force: bool = False) -> int:
        body = await self.cache.fetch(UNREAD_COUNT_ENDPOINT, force=force)
        count = body.get("count") if isinstance(body, dict) else None
        if not isinstance(count, int):
            raise MalformedResponseError("unread-count response has no integer 'count'")
        return count

    async def mark_read(self, notification_id: int) -> Dict[str, Any]:
        """Mark one notification read; marking an already-read one is a no-op."""
        return await self._write(f"{NOTIFICATIONS_ENDPOINT}/{notification_id}/read")

    async def mark_all_read(self) -> int:
        """Mark every unread notification read and return how many changed."""
        body = await self._write(f"{NOTIFICATIONS_ENDPOINT}/read-all")
        return int((body or {}).get("updated", 0))

    async def _write(self, endpoint: str) -> Any:
        async def run() -> Any:
            try:
                return await self.api.patch(endpoint)
            finally:
                self.cache.invalidate(UNREAD_COUNT_ENDPOINT)
                self.cache.invalidate(NOTIFICATIONS_ENDPOINT)

        # The PATCH outlives a caller that stops waiting for it.
        return await asyncio.shield(spawn(run()))


async def _deliver(callback: Optional[Callback], value: Any) -> None:
    if callback is None:
        return
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class NotificationPoller:
    """
    Keeps the unread badge and the notification list current.

    Usage:
        poller = NotificationPoller(center, on_count=badge.update)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        center: NotificationCenter,
        settings: Optional[ClientSettings] = None,
        on_count: Optional[Callback] = None,
        on_list: Optional[Callback] = None,
        list_params: Optional[Mapping[str, Any]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.center = center
        self.settings = settings or center.settings
        self.on_count = on_count
        self.on_list = on_list
        self.list_params = dict(list_params or {})
        self._sleep = sleep
        self._tasks: List[asyncio.Task] = []

        # Stats
        self._count_polls = 0
        self._list_polls = 0
        self._errors = 0
        self._callback_errors = 0
        self._last_poll: Optional[datetime] = None
        self.delays: Dict[str, List[float]] = {"count": [], "list": []}

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def next_delay(self, interval: float, failures: int) -> float:
        """Delay before the next poll after ``failures`` consecutive errors."""
        if failures <= 0:
            return interval
        return min(interval * (2 ** failures), self.settings.poll_backoff_max)

    async def poll_count(self) -> int:
        count = await self.center.unread_count(force=True)
        self._count_polls += 1
        self._last_poll = datetime.now(timezone.utc)
        await self._notify("count", self.on_count, count)
        return count

    async def poll_list(self) -> List[Dict[str, Any]]:
        items = await self.center.list(force=True, **self.list_params)
        self._list_polls += 1
        self._last_poll = datetime.now(timezone.utc)
        await self._notify("list", self.on_list, items)
        return items

    async def _notify(self, name: str, callback: Optional[Callback], value: Any) -> None:
        try:
            await _deliver(callback, value)
        except Exception:
            # A broken subscriber must not stop the poll loop.
            self._callback_errors += 1
            LOGGER.exception(f"Notification {name} callback failed")

    async def _loop(self, name: str, poll: Callable[[], Awaitable[Any]], interval: float) -> None:
        failures = 0
        while True:
            try:
                await poll()
                failures = 0
            except ClientError as e:
                failures += 1
                self._errors += 1
                LOGGER.warning(f"Notification {name} poll failed ({failures} in a row): {e}")
            delay = self.next_delay(interval, failures)
            self.delays[name].append(delay)
            await self._sleep(delay)

    async def start(self) -> None:
        if self.running:
            return
        LOGGER.info(
            "Starting notification poller",
            extra={"extra_data": {
                "count_interval": self.settings.notification_count_interval,
                "list_interval": self.settings.notification_list_interval,
            }},
        )
        self._tasks = [
            asyncio.create_task(
                self._loop("count", self.poll_count, self.settings.notification_count_interval)
            ),
            asyncio.create_task(
                self._loop("list", self.poll_list, self.settings.notification_list_interval)
            ),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        LOGGER.info("Notification poller stopped")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "count_polls": self._count_polls,
            "list_polls": self._list_polls,
            "errors": self._errors,
            "callback_errors": self._callback_errors,
            "last_poll": self._last_poll.isoformat() if self._last_poll else None,
        }


__all__ = ["NotificationCenter", "NotificationPoller", "NOTIFICATIONS_ENDPOINT", "UNREAD_COUNT_ENDPOINT"]
