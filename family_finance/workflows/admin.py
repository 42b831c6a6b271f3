"""
Admin-only operations: categories, broadcasts and the per-user activity view.

Shared-account administration (create fund, add/remove member, suspend)
goes through MembershipWorkflow and LedgerExecutor, which check the
admin role themselves.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from family_finance.aggregator import AppSnapshot
from family_finance.audit import get_logger
from family_finance.errors import PermissionDeniedError
from family_finance.models.entities import (
    Account,
    Category,
    CategoryDraft,
    Notification,
    Transaction,
    TransactionType,
    User,
)
from family_finance.notifications.fanout import NotificationFanout
from family_finance.services.storage.repositories import Repositories
from family_finance.validation import require_text


logger = get_logger(__name__)


class UserActivity(BaseModel):
    """What an admin sees on a user's detail page."""
    user: User
    accounts: list[Account]
    transactions: list[Transaction]
    total_balance: Decimal


def require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError("Admin access required")


class AdminService:

    def __init__(self, repositories: Repositories, fanout: NotificationFanout):
        self._repos = repositories
        self._fanout = fanout

    async def add_category(
        self,
        actor: User,
        name: str,
        category_type: TransactionType,
        color: str = "#6366f1",
        icon: Optional[str] = None,
    ) -> Category:
        require_admin(actor)
        category = await self._repos.categories.insert(CategoryDraft(
            name=require_text(name, "Category name"),
            type=category_type,
            color=color,
            icon=icon,
        ))
        logger.info("category_added", category_id=category.id, actor_id=actor.id)
        return category

    async def delete_category(self, actor: User, category_id: str) -> None:
        """Existing transactions keep their (now dangling) category ID."""
        require_admin(actor)
        await self._repos.categories.delete(category_id)
        logger.info("category_deleted", category_id=category_id, actor_id=actor.id)

    async def broadcast(self, actor: User, title: str, message: str) -> list[Notification]:
        """Send an admin notification to every other user."""
        require_admin(actor)
        users = await self._repos.profiles.list()
        return await self._fanout.broadcast(actor, title, message, users)

    def user_activity(self, actor: User, user_id: str, snapshot: AppSnapshot) -> Optional[UserActivity]:
        """
        Accounts owned by the user and transactions they created, from the
        loaded snapshot. None if the user is unknown.
        """
        require_admin(actor)
        user = snapshot.user(user_id)
        if user is None:
            return None
        accounts = [a for a in snapshot.accounts if a.owner_id == user_id]
        return UserActivity(
            user=user,
            accounts=accounts,
            transactions=[t for t in snapshot.transactions if t.created_by == user_id],
            total_balance=sum((a.balance for a in accounts), Decimal("0")),
        )
