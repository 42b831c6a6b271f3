"""
Abstract Row Store Interface

All persistence is delegated to a hosted backend. We define an abstract,
table-oriented interface for it. This allows us to:
1. Run against Supabase (PostgREST) in production
2. Use in-memory storage for testing and offline use
3. Keep ledger and workflow logic decoupled from the provider

The interface is intentionally small - equality filters, ordering, limit,
single-row fetch, insert/update/delete. No joins, no transactions.
Rows are plain dicts keyed by column name; translating them into domain
entities is the repositories' job.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


# Tables exposed by the backend
PROFILES = "profiles"
ACCOUNTS = "accounts"
GROUP_ACCOUNTS = "group_accounts"
CATEGORIES = "categories"
TRANSACTIONS = "transactions"
NOTIFICATIONS = "notifications"
FRIENDSHIPS = "friendships"
MESSAGES = "messages"

ALL_TABLES = (
    PROFILES,
    ACCOUNTS,
    GROUP_ACCOUNTS,
    CATEGORIES,
    TRANSACTIONS,
    NOTIFICATIONS,
    FRIENDSHIPS,
    MESSAGES,
)


class RowStoreInterface(ABC):
    """
    Abstract interface for the backend's queryable row store.

    Every call is a single statement; the backend guarantees per-statement
    atomicity and nothing more.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch rows matching all equality filters.

        Args:
            table: Table name
            filters: {column: value} equality filters, AND-ed
            order_by: Column to sort by
            descending: Sort direction
            limit: Maximum number of rows

        Returns:
            List of rows (possibly empty)

        Raises:
            BackendError: If the query fails
        """
        pass

    @abstractmethod
    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Insert rows in one statement.

        Returns:
            The stored rows, with backend-assigned IDs

        Raises:
            BackendError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        patch: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """
        Update every row matching the filters.

        Returns:
            The updated rows

        Raises:
            BackendError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> int:
        """
        Delete every row matching the filters.

        Returns:
            Number of rows deleted

        Raises:
            BackendError: If the delete fails
        """
        pass

    async def select_one(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Fetch the first matching row, or None."""
        rows = await self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None


class BackendError(Exception):
    """
    Base exception for failures reported by the hosted backend.

    The provider-supplied message is kept as the exception message.
    """
    pass


class NotFoundError(BackendError):
    """Referenced entity absent on fetch."""
    pass


class DuplicateError(BackendError):
    """Attempted to create something that already exists."""
    pass


class ConnectionError(BackendError):
    """Could not connect to the backend."""
    pass
