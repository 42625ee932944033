"""Client-side settings: endpoint, staleness thresholds and polling intervals."""
from __future__ import annotations

from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for the async API client, read from ``CRM_CLIENT_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="CRM_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:8000")

    # -------------------------------------------------------------------------
    # Query cache (seconds)
    # -------------------------------------------------------------------------
    stale_time_leads: float = Field(default=60.0, ge=0)
    stale_time_tasks: float = Field(default=60.0, ge=0)
    stale_time_deals: float = Field(default=120.0, ge=0)
    stale_time_properties: float = Field(default=180.0, ge=0)
    stale_time_notifications: float = Field(default=15.0, ge=0)
    stale_time_default: float = Field(default=300.0, ge=0)
    gc_time: float = Field(default=600.0, ge=0)

    query_retries: int = Field(default=1, ge=0, le=10)
    retry_delay_seconds: float = Field(default=1.0, ge=0)

    # -------------------------------------------------------------------------
    # Notification polling (seconds)
    # -------------------------------------------------------------------------
    notification_count_interval: float = Field(default=15.0, gt=0)
    notification_list_interval: float = Field(default=30.0, gt=0)
    poll_backoff_max: float = Field(default=300.0, gt=0)

    login_redirect_delay: float = Field(default=0.5, ge=0)

    def stale_times(self) -> Dict[str, float]:
        """Staleness threshold per collection segment (``/api/<segment>``)."""
        return {
            "leads": self.stale_time_leads,
            "tasks": self.stale_time_tasks,
            "deals": self.stale_time_deals,
            "properties": self.stale_time_properties,
            "notifications": self.stale_time_notifications,
        }

    def stale_time_for(self, endpoint: str) -> float:
        """Threshold for an endpoint, keyed by the first path segment after ``/api``."""
        parts = [part for part in endpoint.split("/") if part]
        if parts and parts[0] == "api":
            parts = parts[1:]
        if not parts:
            return self.stale_time_default
        return self.stale_times().get(parts[0], self.stale_time_default)


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()


__all__ = ["ClientSettings", "get_client_settings"]
