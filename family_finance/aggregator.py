"""
Data Aggregator

Builds the in-memory picture every view reads from: all profiles, all
accounts (personal first, then shared), all categories, the newest
transactions and - when signed in - the user's notifications.

The fetches are independent and run concurrently. A failed fetch is
logged and yields an empty list so one broken table never blanks the
whole application.
"""

import asyncio
from typing import Any, Awaitable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from family_finance.audit import AuditLogger, create_correlation_id, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.models.entities import (
    Account,
    Category,
    Notification,
    Transaction,
    User,
)
from family_finance.services.auth.interface import AuthInterface
from family_finance.services.storage.repositories import Repositories


logger = get_logger(__name__)


class AppSnapshot(BaseModel):
    """Everything loaded by one full fetch."""
    current_user: Optional[User] = None
    users: list[User] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)

    def user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    def account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def category(self, category_id: Optional[str]) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)


class DataAggregator:

    def __init__(
        self,
        repositories: Repositories,
        auth: AuthInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repos = repositories
        self._auth = auth
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    async def _safe(self, kind: str, fetch: Awaitable[list[Any]], correlation_id: UUID) -> list[Any]:
        try:
            return await fetch
        except Exception as e:
            logger.warning("fetch_failed", entity_kind=kind, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_fetch_failed(
                    entity_kind=kind,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return []

    async def resolve_identity(self) -> Optional[User]:
        """
        Phase 1 of start-up: current session and its profile.

        Returns None when there is no session. A session without a
        profile row (signup still in flight) also yields None.
        """
        session = await self._auth.get_session()
        if session is None:
            return None
        profile = await self._repos.profiles.find(session.user_id)
        if profile is None:
            logger.warning("profile_missing", user_id=session.user_id)
        return profile

    async def load_all(self, session_user_id: Optional[str] = None) -> AppSnapshot:
        """
        Phase 2: every collection, fetched concurrently.

        Args:
            session_user_id: Signed-in user; without it notifications are
                             not fetched

        Returns:
            AppSnapshot (current_user is left for the caller to set)
        """
        correlation_id = create_correlation_id()
        repos = self._repos

        fetches = [
            self._safe("profiles", repos.profiles.list(), correlation_id),
            self._safe("accounts", repos.accounts.list_personal(), correlation_id),
            self._safe("group_accounts", repos.accounts.list_shared(), correlation_id),
            self._safe("categories", repos.categories.list(), correlation_id),
            self._safe(
                "transactions",
                repos.transactions.recent(self._settings.transaction_fetch_limit),
                correlation_id,
            ),
        ]
        if session_user_id:
            fetches.append(self._safe(
                "notifications",
                repos.notifications.for_user(session_user_id),
                correlation_id,
            ))

        results = await asyncio.gather(*fetches)
        users, personal, shared, categories, transactions = results[:5]
        notifications = results[5] if session_user_id else []

        logger.debug(
            "snapshot_loaded",
            users=len(users),
            accounts=len(personal) + len(shared),
            transactions=len(transactions),
            notifications=len(notifications),
        )
        return AppSnapshot(
            users=users,
            accounts=personal + shared,
            categories=categories,
            transactions=transactions,
            notifications=notifications,
        )
