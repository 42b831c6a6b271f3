"""
Data Models Package

This package contains all Pydantic models used in the Family Finance system.
All data crossing the storage boundary must conform to these schemas.
"""

from family_finance.models.entities import (
    Account,
    AccountDraft,
    AccountType,
    Category,
    CategoryDraft,
    Friendship,
    FriendshipDraft,
    FriendshipStatus,
    Message,
    MessageDraft,
    Notification,
    NotificationDraft,
    NotificationStatus,
    NotificationType,
    Role,
    Transaction,
    TransactionDraft,
    TransactionType,
    User,
    utc_now,
)
from family_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "Account",
    "AccountDraft",
    "AccountType",
    "Category",
    "CategoryDraft",
    "Friendship",
    "FriendshipDraft",
    "FriendshipStatus",
    "Message",
    "MessageDraft",
    "Notification",
    "NotificationDraft",
    "NotificationStatus",
    "NotificationType",
    "Role",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "User",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
