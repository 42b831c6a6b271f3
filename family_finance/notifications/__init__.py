"""Notification fan-out and inbox."""

from family_finance.notifications.fanout import (
    NotificationBuilder,
    NotificationFanout,
    format_amount,
    notification_payload,
)
from family_finance.notifications.inbox import (
    InboxView,
    NotificationInbox,
    filter_notifications,
    unread_count,
)

__all__ = [
    "InboxView",
    "NotificationBuilder",
    "NotificationFanout",
    "NotificationInbox",
    "filter_notifications",
    "format_amount",
    "notification_payload",
    "unread_count",
]
