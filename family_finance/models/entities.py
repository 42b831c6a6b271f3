"""
Domain Entities for Family Finance

These models define the schemas of everything the application reads from
and writes to the hosted backend. Every row that crosses the storage
boundary is converted into one of these models, so field names and enum
values are validated in one place.

Each persisted entity has a *Draft* variant without an ID. Drafts are what
the workflows build; the backend assigns the ID on insert and the adapter
returns the full entity.

NOTE: Account.balance is a stored running total. It is mutated by the
ledger alongside transaction inserts and is NOT recomputed from the
transactions table.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def assume_utc(value: datetime) -> datetime:
    """Attach UTC to timestamps stored without a zone (legacy rows)."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    """
    User role.

    Only two roles exist; this is a first-class distinction, not a
    permission matrix.
    """
    ADMIN = "admin"
    MEMBER = "member"


class AccountType(str, Enum):
    """Wallet kind. Shared accounts are the family funds."""
    PERSONAL = "personal"
    SHARED = "shared"


class TransactionType(str, Enum):
    """Posting type. The amount is always a magnitude; the sign comes from here."""
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class NotificationType(str, Enum):
    INVITE = "invite"
    INFO = "info"
    ALERT = "alert"
    TRANSACTION = "transaction"
    ADMIN = "admin"


class NotificationStatus(str, Enum):
    """Workflow status, only meaningful for actionable notifications."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# =============================================================================
# USERS
# =============================================================================

class User(BaseModel):
    """A profile row. Created at signup; the role is fixed at creation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str = Field(..., min_length=1, max_length=200)
    email: str = ""
    role: Role = Role.MEMBER
    avatar: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountDraft(BaseModel):
    """
    A wallet before it is stored.

    Personal accounts have one owner and no members. Shared accounts have
    one owner (the admin of the fund) plus a member list of user IDs that
    never contains the owner.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: str
    name: str = Field(..., min_length=1, max_length=200)
    balance: Decimal = Decimal("0")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    type: AccountType = AccountType.PERSONAL
    is_suspended: bool = False
    color: Optional[str] = None
    members: list[str] = Field(default_factory=list)


class Account(AccountDraft):
    id: str

    @property
    def is_shared(self) -> bool:
        return self.type == AccountType.SHARED

    @property
    def participants(self) -> list[str]:
        """Owner first, then members."""
        return [self.owner_id] + [m for m in self.members if m != self.owner_id]

    def is_participant(self, user_id: str) -> bool:
        return user_id == self.owner_id or user_id in self.members


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryDraft(BaseModel):
    """Global, admin-managed category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = "#6366f1"
    icon: Optional[str] = None
    is_default: bool = False


class Category(CategoryDraft):
    id: str


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A posting against one account.

    Immutable once created. A transfer is two of these (one leg per
    account) sharing the same transfer_id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str
    amount: Decimal = Field(..., gt=0, description="Magnitude only")
    type: TransactionType
    category_id: Optional[str] = None
    date: datetime = Field(default_factory=utc_now)
    note: str = ""
    created_by: str
    transfer_id: Optional[str] = None

    @field_validator('date')
    @classmethod
    def date_is_aware(cls, v: datetime) -> datetime:
        return assume_utc(v)


class Transaction(TransactionDraft):
    id: str


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = ""
    type: NotificationType = NotificationType.INFO
    status: Optional[NotificationStatus] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator('created_at')
    @classmethod
    def created_at_is_aware(cls, v: datetime) -> datetime:
        return assume_utc(v)


class Notification(NotificationDraft):
    id: str

    @property
    def is_actionable(self) -> bool:
        return (
            self.type == NotificationType.INVITE
            and self.status == NotificationStatus.PENDING
        )


# =============================================================================
# FRIENDS & CHAT
# =============================================================================

class FriendshipDraft(BaseModel):
    """
    Directional while pending (only the receiver can act on it),
    symmetric once accepted.
    """
    requester_id: str
    receiver_id: str
    status: FriendshipStatus = FriendshipStatus.PENDING


class Friendship(FriendshipDraft):
    id: str

    def other_party(self, user_id: str) -> str:
        return self.receiver_id if self.requester_id == user_id else self.requester_id

    def involves(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.receiver_id)


class MessageDraft(BaseModel):
    """One-to-one chat message. There is no group chat."""
    model_config = ConfigDict(str_strip_whitespace=True)

    sender_id: str
    receiver_id: str
    content: str = Field(..., min_length=1, max_length=4000)
    created_at: datetime = Field(default_factory=utc_now)
    is_read: bool = False

    @field_validator('created_at')
    @classmethod
    def created_at_is_aware(cls, v: datetime) -> datetime:
        return assume_utc(v)


class Message(MessageDraft):
    id: str

    def is_between(self, user_a: str, user_b: str) -> bool:
        return {self.sender_id, self.receiver_id} == {user_a, user_b}
