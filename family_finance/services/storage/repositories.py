"""
Entity Store Adapter

One repository per entity kind. Repositories translate between backend
rows (snake_case columns, raw strings/numbers) and domain entities, and
supply the defaults the backend may leave out. There are no business
rules here - ledger and membership logic live above this layer.

Every repository exposes the same contract:
    list(**filters) -> [Entity]
    get(id) -> Entity            (raises NotFoundError)
    insert(draft) -> Entity
    update(id, **changes) -> None
    delete(id) -> None
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Optional, TypeVar
from urllib.parse import quote

from pydantic import BaseModel

from family_finance.audit import get_logger
from family_finance.models.entities import (
    Account,
    AccountDraft,
    AccountType,
    Category,
    Friendship,
    Message,
    Notification,
    Role,
    Transaction,
    User,
    utc_now,
)
from family_finance.services.storage.interface import (
    ACCOUNTS,
    CATEGORIES,
    FRIENDSHIPS,
    GROUP_ACCOUNTS,
    MESSAGES,
    NOTIFICATIONS,
    PROFILES,
    TRANSACTIONS,
    NotFoundError,
    RowStoreInterface,
)


logger = get_logger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


def encode_value(value: Any) -> Any:
    """Convert a domain value into something the backend's JSON accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    return value


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def default_avatar(name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(name or 'User')}&background=random"


class _Repository(Generic[EntityT]):
    """
    Shared plumbing for single-table repositories.

    Subclasses set `table`, `columns` ({domain_field: column}) and
    implement _from_row.
    """

    table: str = ""
    columns: dict[str, str] = {}

    def __init__(self, store: RowStoreInterface):
        self._store = store

    def _column(self, field: str) -> str:
        return self.columns.get(field, field)

    def _encode_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {self._column(k): encode_value(v) for k, v in fields.items()}

    def _to_row(self, draft: BaseModel) -> dict[str, Any]:
        # None means "let the backend default it"
        fields = {k: v for k, v in draft.model_dump().items() if v is not None}
        return self._encode_fields(fields)

    def _from_row(self, row: dict[str, Any]) -> EntityT:
        raise NotImplementedError

    def _decode_rows(self, rows: list[dict[str, Any]]) -> list[EntityT]:
        entities = []
        for row in rows:
            try:
                entities.append(self._from_row(row))
            except Exception as e:
                # Skip malformed rows rather than failing the whole list
                logger.warning(
                    "malformed_row_skipped",
                    table=self.table,
                    row_id=row.get("id"),
                    error=str(e),
                )
        return entities

    async def list(
        self,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> list[EntityT]:
        rows = await self._store.select(
            self.table,
            filters=self._encode_fields(filters) or None,
            order_by=self._column(order_by) if order_by else None,
            descending=descending,
            limit=limit,
        )
        return self._decode_rows(rows)

    async def find(self, entity_id: str) -> Optional[EntityT]:
        row = await self._store.select_one(self.table, {"id": entity_id})
        return self._from_row(row) if row else None

    async def get(self, entity_id: str) -> EntityT:
        entity = await self.find(entity_id)
        if entity is None:
            raise NotFoundError(f"{self.table} row not found: {entity_id}")
        return entity

    async def insert(self, draft: BaseModel) -> EntityT:
        stored = await self._store.insert(self.table, [self._to_row(draft)])
        return self._from_row(stored[0])

    async def insert_many(self, drafts: list[BaseModel]) -> list[EntityT]:
        if not drafts:
            return []
        stored = await self._store.insert(self.table, [self._to_row(d) for d in drafts])
        return self._decode_rows(stored)

    async def update(self, entity_id: str, **changes: Any) -> None:
        await self._store.update(self.table, self._encode_fields(changes), {"id": entity_id})

    async def delete(self, entity_id: str) -> None:
        await self._store.delete(self.table, {"id": entity_id})


class ProfileRepository(_Repository[User]):
    table = PROFILES

    def _from_row(self, row: dict[str, Any]) -> User:
        name = row.get("name") or "Unknown User"
        return User(
            id=row["id"],
            name=name,
            email=row.get("email") or "",
            role=Role(row.get("role") or Role.MEMBER.value),
            avatar=row.get("avatar") or default_avatar(name),
        )

    def _to_row(self, user: BaseModel) -> dict[str, Any]:
        return self._encode_fields(user.model_dump())

    async def count(self) -> int:
        return len(await self._store.select(self.table))


class CategoryRepository(_Repository[Category]):
    table = CATEGORIES

    def _from_row(self, row: dict[str, Any]) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            color=row.get("color") or "#6366f1",
            icon=row.get("icon"),
            is_default=bool(row.get("is_default", False)),
        )


class TransactionRepository(_Repository[Transaction]):
    table = TRANSACTIONS

    def _from_row(self, row: dict[str, Any]) -> Transaction:
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            amount=to_decimal(row["amount"]),
            type=row["type"],
            category_id=row.get("category_id"),
            date=row.get("date") or utc_now(),
            note=row.get("note") or "",
            created_by=row["created_by"],
            transfer_id=row.get("transfer_id"),
        )

    async def recent(self, limit: int) -> list[Transaction]:
        """Newest-first, bounded."""
        return await self.list(order_by="date", descending=True, limit=limit)


class NotificationRepository(_Repository[Notification]):
    table = NOTIFICATIONS

    def _from_row(self, row: dict[str, Any]) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            title=row.get("title") or "Notification",
            message=row.get("message") or "",
            type=row.get("type") or "info",
            status=row.get("status"),
            is_read=bool(row.get("is_read", False)),
            created_at=row.get("created_at") or utc_now(),
            data=row.get("data") or {},
        )

    async def for_user(self, user_id: str) -> list[Notification]:
        return await self.list(order_by="created_at", descending=True, user_id=user_id)

    async def delete_for_user(self, user_id: str) -> int:
        return await self._store.delete(self.table, {"user_id": user_id})


class FriendshipRepository(_Repository[Friendship]):
    table = FRIENDSHIPS

    def _from_row(self, row: dict[str, Any]) -> Friendship:
        return Friendship(
            id=row["id"],
            requester_id=row["requester_id"],
            receiver_id=row["receiver_id"],
            status=row.get("status") or "pending",
        )

    async def involving(self, user_id: str) -> list[Friendship]:
        """Rows where the user is either side (two equality queries, merged)."""
        sent = await self.list(requester_id=user_id)
        received = await self.list(receiver_id=user_id)
        seen = {f.id for f in sent}
        return sent + [f for f in received if f.id not in seen]

    async def between(self, user_a: str, user_b: str) -> list[Friendship]:
        forward = await self.list(requester_id=user_a, receiver_id=user_b)
        backward = await self.list(requester_id=user_b, receiver_id=user_a)
        return forward + backward


class MessageRepository(_Repository[Message]):
    table = MESSAGES

    def _from_row(self, row: dict[str, Any]) -> Message:
        return Message(
            id=row["id"],
            sender_id=row["sender_id"],
            receiver_id=row["receiver_id"],
            content=row["content"],
            created_at=row.get("created_at") or utc_now(),
            is_read=bool(row.get("is_read", False)),
        )

    def decode(self, row: dict[str, Any]) -> Message:
        """Decode a pushed realtime row."""
        return self._from_row(row)

    async def conversation(self, user_a: str, user_b: str) -> list[Message]:
        """Both directions, oldest first."""
        sent = await self.list(sender_id=user_a, receiver_id=user_b)
        received = await self.list(sender_id=user_b, receiver_id=user_a)
        return sorted(sent + received, key=lambda m: m.created_at)


class AccountRepository:
    """
    Accounts live in two tables: `accounts` (personal) and
    `group_accounts` (shared). This repository hides the split and tags
    every account with its type.
    """

    columns = {"owner_id": "user_id"}

    def __init__(self, store: RowStoreInterface):
        self._store = store

    @staticmethod
    def table_for(account_type: AccountType) -> str:
        return GROUP_ACCOUNTS if account_type == AccountType.SHARED else ACCOUNTS

    def _encode_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {self.columns.get(k, k): encode_value(v) for k, v in fields.items()}

    def _from_row(self, row: dict[str, Any], account_type: AccountType) -> Account:
        return Account(
            id=row["id"],
            owner_id=row["user_id"],
            name=row.get("name") or "Account",
            balance=to_decimal(row.get("balance")),
            currency=row.get("currency") or "USD",
            type=account_type,
            is_suspended=bool(row.get("is_suspended") or False),
            color=row.get("color"),
            members=list(row.get("members") or []) if account_type == AccountType.SHARED else [],
        )

    def _to_row(self, draft: AccountDraft) -> dict[str, Any]:
        fields = draft.model_dump(exclude={"type", "members"})
        fields = {k: v for k, v in fields.items() if v is not None}
        row = self._encode_fields(fields)
        if draft.type == AccountType.SHARED:
            row["members"] = [m for m in draft.members if m != draft.owner_id]
        else:
            # The personal table keeps a legacy type column
            row["type"] = AccountType.PERSONAL.value
        return row

    async def _list_table(self, account_type: AccountType, **filters: Any) -> list[Account]:
        rows = await self._store.select(
            self.table_for(account_type),
            filters=self._encode_fields(filters) or None,
        )
        accounts = []
        for row in rows:
            try:
                accounts.append(self._from_row(row, account_type))
            except Exception as e:
                logger.warning("malformed_row_skipped", row_id=row.get("id"), error=str(e))
        return accounts

    async def list_personal(self, **filters: Any) -> list[Account]:
        return await self._list_table(AccountType.PERSONAL, **filters)

    async def list_shared(self, **filters: Any) -> list[Account]:
        return await self._list_table(AccountType.SHARED, **filters)

    async def list(self, **filters: Any) -> list[Account]:
        """Personal accounts first, then shared."""
        return await self.list_personal(**filters) + await self.list_shared(**filters)

    async def find(
        self,
        account_id: str,
        account_type: Optional[AccountType] = None,
    ) -> Optional[Account]:
        types = [account_type] if account_type else [AccountType.PERSONAL, AccountType.SHARED]
        for kind in types:
            row = await self._store.select_one(self.table_for(kind), {"id": account_id})
            if row:
                return self._from_row(row, kind)
        return None

    async def get(
        self,
        account_id: str,
        account_type: Optional[AccountType] = None,
    ) -> Account:
        account = await self.find(account_id, account_type)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def first_personal_for(self, user_id: str) -> Optional[Account]:
        """The user's personal account with the lowest ID, so lookups are repeatable."""
        rows = await self._store.select(
            ACCOUNTS,
            filters={"user_id": user_id},
            order_by="id",
            limit=1,
        )
        return self._from_row(rows[0], AccountType.PERSONAL) if rows else None

    async def insert(self, draft: AccountDraft) -> Account:
        stored = await self._store.insert(self.table_for(draft.type), [self._to_row(draft)])
        return self._from_row(stored[0], draft.type)

    async def update(self, account_id: str, account_type: AccountType, **changes: Any) -> None:
        await self._store.update(
            self.table_for(account_type),
            self._encode_fields(changes),
            {"id": account_id},
        )

    async def delete(self, account_id: str, account_type: AccountType) -> None:
        await self._store.delete(self.table_for(account_type), {"id": account_id})


class Repositories:
    """All repositories over one row store."""

    def __init__(self, store: RowStoreInterface):
        self.store = store
        self.profiles = ProfileRepository(store)
        self.accounts = AccountRepository(store)
        self.categories = CategoryRepository(store)
        self.transactions = TransactionRepository(store)
        self.notifications = NotificationRepository(store)
        self.friendships = FriendshipRepository(store)
        self.messages = MessageRepository(store)
