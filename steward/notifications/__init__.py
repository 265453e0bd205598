"""Operator notifications."""

from steward.notifications.notifier import OverrideNotifier
from steward.notifications.sender import (
    InMemoryNotificationSender,
    Notification,
    NotificationSender,
)

__all__ = [
    "InMemoryNotificationSender",
    "Notification",
    "NotificationSender",
    "OverrideNotifier",
]
