"""Cross-cutting services shared by the domain layer.

- Activity log: append-only record of creates, status changes and AI matches
- Notifications: per-user alerts fired by entity changes
"""
from __future__ import annotations

# Activity log
from .activity import (
    ActivityLog,
    ActivityType,
)

# Notifications
from .notification import (
    NotificationService,
    NotificationType,
)

__all__ = [
    # Activity
    "ActivityLog",
    "ActivityType",
    # Notifications
    "NotificationService",
    "NotificationType",
]
