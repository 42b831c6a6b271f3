"""
Membership & Request Workflow

State per (shared account, candidate user) pair:

    NONE --request_join--> PENDING --accepted--> MEMBER
                              |                    |
                              +--rejected--> NONE <+-- leave_group / remove_member

The account owner is implicit and never stored in the member list.

Every mutation re-fetches the member list immediately before writing it
back. This narrows the lost-update window between concurrent edits of
the same account but does not close it: there is no version column to
compare against, so two edits landing between each other's read and
write can still drop one change.
"""

from decimal import Decimal
from typing import Optional, Union

from family_finance.audit import AuditLogger, create_correlation_id, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.errors import PermissionDeniedError, ValidationError
from family_finance.models.audit import AuditEvent, AuditEventType
from family_finance.models.entities import (
    Account,
    AccountDraft,
    AccountType,
    Notification,
    NotificationStatus,
    NotificationType,
    User,
)
from family_finance.notifications.fanout import (
    NotificationBuilder,
    NotificationFanout,
    notification_payload,
)
from family_finance.services.storage.repositories import Repositories
from family_finance.validation import parse_opening_balance, require_text


logger = get_logger(__name__)

ACCOUNT_COLORS = {
    AccountType.PERSONAL: "bg-indigo-600",
    AccountType.SHARED: "bg-emerald-600",
}


class MembershipWorkflow:
    """
    Account creation and shared-account membership changes.
    """

    def __init__(
        self,
        repositories: Repositories,
        fanout: NotificationFanout,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repos = repositories
        self._fanout = fanout
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    async def _audit(
        self,
        event_type: AuditEventType,
        account: Account,
        user_id: str,
        actor_id: Optional[str],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_membership(
                event_type=event_type,
                account_id=account.id,
                user_id=user_id,
                actor_id=actor_id,
                correlation_id=create_correlation_id(),
            )

    async def _fresh_shared(self, account_id: str) -> Account:
        return await self._repos.accounts.get(account_id, AccountType.SHARED)

    async def _write_members(self, account: Account, members: list[str]) -> Account:
        members = [m for m in members if m != account.owner_id]
        await self._repos.accounts.update(account.id, AccountType.SHARED, members=members)
        return account.model_copy(update={"members": members})

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        owner: User,
        name: str,
        account_type: Union[AccountType, str] = AccountType.PERSONAL,
        opening_balance: Union[Decimal, int, str, None] = None,
        currency: Optional[str] = None,
    ) -> Account:
        """
        Create a wallet owned by `owner`.

        Shared accounts (family funds) start with an empty member list.

        Raises:
            ValidationError: empty name or negative opening balance
        """
        kind = AccountType(account_type)
        balance = parse_opening_balance(opening_balance)

        account = await self._repos.accounts.insert(AccountDraft(
            owner_id=owner.id,
            name=require_text(name, "Account name"),
            balance=balance,
            currency=currency or self._settings.default_currency,
            type=kind,
            color=ACCOUNT_COLORS[kind],
        ))

        logger.info(
            "account_created",
            account_id=account.id,
            account_type=kind.value,
            owner_id=owner.id,
        )
        if self._audit_logger:
            await self._audit_logger.log(AuditEvent(
                event_type=AuditEventType.ACCOUNT_CREATED,
                entity_type="account",
                entity_id=account.id,
                actor_id=owner.id,
                description=f"Created {kind.value} account '{account.name}'",
                details={"opening_balance": str(balance), "currency": account.currency},
            ))
        return account

    # -------------------------------------------------------------------------
    # Join requests
    # -------------------------------------------------------------------------

    async def request_join(self, account_id: str, user: User) -> Optional[Notification]:
        """
        Ask the owner of a shared account to let `user` in.

        Membership is not touched until the owner responds.

        Returns:
            The pending invite notification (None if it could not be stored)

        Raises:
            NotFoundError: no such shared account
            ValidationError: user already belongs to the account
        """
        account = await self._fresh_shared(account_id)
        if account.is_participant(user.id):
            raise ValidationError(f"You are already a member of {account.name}")

        notification = await self._fanout.emit_one(
            NotificationBuilder.join_request(account.owner_id, user, account)
        )
        await self._audit(AuditEventType.JOIN_REQUESTED, account, user.id, user.id)
        return notification

    async def respond_to_request(
        self,
        notification_id: str,
        action: Union[NotificationStatus, str],
        responder: Optional[User] = None,
    ) -> Optional[Account]:
        """
        Accept or reject a pending join request.

        Only a pending request can be answered. Accepting an already
        accepted request returns the account without writing or notifying;
        a rejected request is closed and the user must ask again.

        Args:
            notification_id: The owner's invite notification
            action: "accepted" or "rejected"
            responder: When given, must be the account owner or an admin

        Returns:
            The account after the change (None when rejected)

        Raises:
            NotFoundError: notification or account missing
            ValidationError: not a join request, unknown action, or the
                request was already answered
            PermissionDeniedError: responder may not answer this request
        """
        try:
            status = NotificationStatus(action)
        except ValueError:
            raise ValidationError(f"Unknown response: {action!r}")
        if status == NotificationStatus.PENDING:
            raise ValidationError("A request can only be accepted or rejected")

        notification = await self._repos.notifications.get(notification_id)
        account_id = notification_payload(notification, "account_id")
        requester_id = notification_payload(notification, "requester_id")
        if (
            notification.type != NotificationType.INVITE
            or notification_payload(notification, "action") != "join"
            or not account_id
        ):
            raise ValidationError("Notification is not a join request")
        if not requester_id:
            raise ValidationError("Join request does not name its requester")

        account = await self._fresh_shared(account_id)
        if responder and not (responder.is_admin or responder.id == account.owner_id):
            raise PermissionDeniedError("Only the fund owner can answer join requests")

        if notification.status == NotificationStatus.ACCEPTED and status == NotificationStatus.ACCEPTED:
            logger.info("join_request_already_accepted", notification_id=notification.id)
            return account
        if notification.status != NotificationStatus.PENDING:
            current = notification.status.value if notification.status else "none"
            raise ValidationError(f"This request has already been answered ({current})")

        await self._repos.notifications.update(notification.id, status=status)

        updated: Optional[Account] = None
        if status == NotificationStatus.ACCEPTED:
            if requester_id == account.owner_id or requester_id in account.members:
                updated = account
            else:
                updated = await self._write_members(account, account.members + [requester_id])

        await self._repos.notifications.update(notification.id, is_read=True)

        await self._fanout.emit_one(NotificationBuilder.join_response(
            requester_id=requester_id,
            account_name=account.name,
            accepted=updated is not None,
        ))
        await self._audit(
            AuditEventType.JOIN_ACCEPTED if updated else AuditEventType.JOIN_REJECTED,
            account,
            requester_id,
            responder.id if responder else account.owner_id,
        )
        return updated

    # -------------------------------------------------------------------------
    # Direct membership changes
    # -------------------------------------------------------------------------

    async def leave_group(self, account_id: str, user: User) -> Account:
        """
        Remove `user` from a shared account and tell the owner.

        Raises:
            ValidationError: user is the owner, or not a member
        """
        account = await self._fresh_shared(account_id)
        if user.id == account.owner_id:
            raise ValidationError("The owner cannot leave their own family fund")
        if user.id not in account.members:
            raise ValidationError(f"You are not a member of {account.name}")

        updated = await self._write_members(
            account, [m for m in account.members if m != user.id]
        )
        await self._fanout.emit_one(
            NotificationBuilder.member_left(account.owner_id, user, account)
        )
        await self._audit(AuditEventType.MEMBER_LEFT, account, user.id, user.id)
        return updated

    async def remove_member(self, account_id: str, target_id: str, actor: User) -> Account:
        """
        Owner/admin removal of a member. The removed user gets an alert.

        Raises:
            PermissionDeniedError: actor is neither owner nor admin
            ValidationError: target is the owner
        """
        account = await self._fresh_shared(account_id)
        if not (actor.is_admin or actor.id == account.owner_id):
            raise PermissionDeniedError("Only the owner or an admin can remove members")
        if target_id == account.owner_id:
            raise ValidationError("The owner cannot be removed from the family fund")

        updated = await self._write_members(
            account, [m for m in account.members if m != target_id]
        )
        await self._fanout.emit_one(NotificationBuilder.member_removed(target_id, account))
        await self._audit(AuditEventType.MEMBER_REMOVED, account, target_id, actor.id)
        return updated

    async def add_member(self, account_id: str, user_id: str, actor: User) -> Account:
        """
        Add a user without a join request (admin panel path).

        Raises:
            PermissionDeniedError: actor is neither owner nor admin
            NotFoundError: no such user
            ValidationError: user already belongs to the account
        """
        account = await self._fresh_shared(account_id)
        if not (actor.is_admin or actor.id == account.owner_id):
            raise PermissionDeniedError("Only the owner or an admin can add members")

        user = await self._repos.profiles.get(user_id)
        if account.is_participant(user.id):
            raise ValidationError(f"{user.name} is already a member of {account.name}")

        updated = await self._write_members(account, account.members + [user.id])
        await self._fanout.emit_one(NotificationBuilder.member_added(user.id, account))
        await self._audit(AuditEventType.MEMBER_ADDED, account, user.id, actor.id)
        return updated
