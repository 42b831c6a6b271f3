"""
Notification Fan-out

Pure side-effect producer. Ledger and membership operations hand it one
or more notification drafts; it inserts them and swallows (but logs)
every failure, so a notification problem never fails the operation that
triggered it.

The one exception is broadcast(): there the notifications ARE the
operation, so backend errors propagate to the admin who sent it.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from family_finance.audit import AuditLogger, get_logger
from family_finance.errors import PermissionDeniedError, ValidationError
from family_finance.models.audit import AuditEvent, AuditEventType
from family_finance.models.entities import (
    Account,
    Notification,
    NotificationDraft,
    NotificationStatus,
    NotificationType,
    TransactionType,
    User,
)
from family_finance.services.storage.repositories import NotificationRepository


logger = get_logger(__name__)


def format_amount(amount: Decimal, currency: str = "USD") -> str:
    return f"{currency} {amount:,.2f}"


class NotificationBuilder:
    """
    Drafts for every notification the application sends.

    Usage:
        draft = NotificationBuilder.funds_received(owner_id, actor, amount, account)
    """

    @staticmethod
    def family_transaction(
        recipient_id: str,
        actor: User,
        entry_type: TransactionType,
        amount: Decimal,
        account: Account,
        category_name: str,
    ) -> NotificationDraft:
        return NotificationDraft(
            user_id=recipient_id,
            title="New Family Transaction",
            message=(
                f"{actor.name} added {entry_type.value} of "
                f"{format_amount(amount, account.currency)} to {account.name} ({category_name})"
            ),
            type=NotificationType.TRANSACTION,
            data={"account_id": account.id, "amount": str(amount)},
        )

    @staticmethod
    def funds_received(
        recipient_id: str,
        actor: User,
        amount: Decimal,
        target: Account,
        transfer_id: str,
    ) -> NotificationDraft:
        return NotificationDraft(
            user_id=recipient_id,
            title="Funds Received",
            message=(
                f"{actor.name} transferred {format_amount(amount, target.currency)} "
                f"to {target.name}"
            ),
            type=NotificationType.TRANSACTION,
            data={
                "account_id": target.id,
                "amount": str(amount),
                "transfer_id": transfer_id,
            },
        )

    @staticmethod
    def join_request(owner_id: str, requester: User, account: Account) -> NotificationDraft:
        return NotificationDraft(
            user_id=owner_id,
            title="Fund Join Request",
            message=f"{requester.name} requests to join the family fund: {account.name}",
            type=NotificationType.INVITE,
            status=NotificationStatus.PENDING,
            data={
                "account_id": account.id,
                "action": "join",
                "requester_id": requester.id,
            },
        )

    @staticmethod
    def join_response(
        requester_id: str,
        account_name: str,
        accepted: bool,
    ) -> NotificationDraft:
        verdict = "accepted" if accepted else "declined"
        return NotificationDraft(
            user_id=requester_id,
            title=f"Join Request {verdict.capitalize()}",
            message=f"Your request to join the family fund {account_name} was {verdict}",
            type=NotificationType.INFO,
        )

    @staticmethod
    def member_added(user_id: str, account: Account) -> NotificationDraft:
        return NotificationDraft(
            user_id=user_id,
            title="Added to Family Group",
            message=f"You have been added to the family fund: {account.name}",
            type=NotificationType.INFO,
            data={"account_id": account.id},
        )

    @staticmethod
    def member_left(owner_id: str, member: User, account: Account) -> NotificationDraft:
        return NotificationDraft(
            user_id=owner_id,
            title="Member Left",
            message=f"{member.name} has left the family fund: {account.name}",
            type=NotificationType.INFO,
            data={"account_id": account.id},
        )

    @staticmethod
    def member_removed(user_id: str, account: Account) -> NotificationDraft:
        return NotificationDraft(
            user_id=user_id,
            title="Removed from Group",
            message=f"You have been removed from the family fund: {account.name}",
            type=NotificationType.ALERT,
            data={"account_id": account.id},
        )

    @staticmethod
    def admin_message(user_id: str, title: str, message: str) -> NotificationDraft:
        return NotificationDraft(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType.ADMIN,
        )


class NotificationFanout:
    """
    Best-effort creation of notification rows.
    """

    def __init__(
        self,
        notifications: NotificationRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._notifications = notifications
        self._audit_logger = audit_logger

    async def emit(
        self,
        drafts: list[NotificationDraft],
        correlation_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """
        Insert the drafts in one statement.

        Returns the stored notifications, or [] if the insert failed.
        Never raises.
        """
        if not drafts:
            return []
        try:
            return await self._notifications.insert_many(drafts)
        except Exception as e:
            recipients = [d.user_id for d in drafts]
            logger.warning(
                "notification_failed",
                recipients=recipients,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_notification_failed(
                    recipients=recipients,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return []

    async def emit_one(
        self,
        draft: NotificationDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Notification]:
        stored = await self.emit([draft], correlation_id=correlation_id)
        return stored[0] if stored else None

    async def broadcast(
        self,
        admin: User,
        title: str,
        message: str,
        users: list[User],
    ) -> list[Notification]:
        """
        Send an admin message to every user except the sender.

        One row per recipient, inserted in a single bulk statement.

        Raises:
            PermissionDeniedError: If the sender is not an admin
            ValidationError: Empty title/message or no recipients
            BackendError: If the bulk insert fails
        """
        if not admin.is_admin:
            raise PermissionDeniedError("Only admins can broadcast")
        if not title.strip() or not message.strip():
            raise ValidationError("Broadcast needs a title and a message")

        recipients = [u for u in users if u.id != admin.id]
        if not recipients:
            raise ValidationError("No other users to broadcast to.")

        drafts = [
            NotificationBuilder.admin_message(u.id, title.strip(), message.strip())
            for u in recipients
        ]
        stored = await self._notifications.insert_many(drafts)

        if self._audit_logger:
            await self._audit_logger.log(AuditEvent(
                event_type=AuditEventType.BROADCAST_SENT,
                actor_id=admin.id,
                description=f"Broadcast sent to {len(stored)} users",
                details={"title": title, "recipient_count": len(stored)},
            ))
        return stored


def notification_payload(notification: Notification, key: str) -> Optional[Any]:
    """
    Read a key from a notification's payload.

    Older rows carry camelCase keys (accountId, requesterId).
    """
    if key in notification.data:
        return notification.data[key]
    head, *rest = key.split("_")
    camel = head + "".join(part.capitalize() for part in rest)
    return notification.data.get(camel)
