"""
Notification inbox: what a signed-in user reads and clears.
"""

from typing import Literal

from family_finance.models.entities import Notification, NotificationType
from family_finance.services.storage.repositories import NotificationRepository


InboxView = Literal["all", "unread", "requests", "alerts"]


def filter_notifications(
    notifications: list[Notification],
    view: InboxView = "all",
) -> list[Notification]:
    """Read-time filter used by the inbox tabs."""
    if view == "unread":
        return [n for n in notifications if not n.is_read]
    if view == "requests":
        return [n for n in notifications if n.type == NotificationType.INVITE]
    if view == "alerts":
        return [
            n for n in notifications
            if n.type in (NotificationType.ALERT, NotificationType.ADMIN)
        ]
    return list(notifications)


def unread_count(notifications: list[Notification]) -> int:
    return sum(1 for n in notifications if not n.is_read)


class NotificationInbox:

    def __init__(self, notifications: NotificationRepository):
        self._notifications = notifications

    async def list_for(self, user_id: str) -> list[Notification]:
        """Newest first."""
        return await self._notifications.for_user(user_id)

    async def mark_read(self, notification_id: str) -> None:
        await self._notifications.update(notification_id, is_read=True)

    async def clear_all(self, user_id: str) -> int:
        """Delete every notification of the user. Returns the number removed."""
        return await self._notifications.delete_for_user(user_id)
