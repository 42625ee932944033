"""Async client for the CRM API: query cache, pipeline boards, notifications and chat.

Imports nothing that touches the database.
"""
from __future__ import annotations

from .assistant import AssistantBridge, build_snapshot
from .config import ClientSettings, get_client_settings
from .errors import (
    ClientError,
    MalformedResponseError,
    RequestFailedError,
    TransportError,
    UnauthorizedError,
)
from .http import ApiClient
from .notifications import NotificationCenter, NotificationPoller
from .pipeline import Mutations, PipelineController, PipelineView
from .query_cache import QueryCache, QueryKey

__all__ = [
    "ApiClient",
    "AssistantBridge",
    "build_snapshot",
    "ClientSettings",
    "get_client_settings",
    "ClientError",
    "MalformedResponseError",
    "RequestFailedError",
    "TransportError",
    "UnauthorizedError",
    "NotificationCenter",
    "NotificationPoller",
    "Mutations",
    "PipelineController",
    "PipelineView",
    "QueryCache",
    "QueryKey",
]
