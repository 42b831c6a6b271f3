"""
Storage Services Package

Provides the abstract row-store interface, its Supabase and in-memory
implementations, and the entity repositories layered on top.
"""

from family_finance.services.storage.interface import (
    BackendError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RowStoreInterface,
)
from family_finance.services.storage.memory import InMemoryRowStore
from family_finance.services.storage.repositories import (
    AccountRepository,
    CategoryRepository,
    FriendshipRepository,
    MessageRepository,
    NotificationRepository,
    ProfileRepository,
    Repositories,
    TransactionRepository,
)
from family_finance.services.storage.supabase_store import (
    SupabaseClient,
    SupabaseRowStore,
)

__all__ = [
    # Interface
    "RowStoreInterface",
    # Exceptions
    "BackendError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    # Implementations
    "InMemoryRowStore",
    "SupabaseClient",
    "SupabaseRowStore",
    # Repositories
    "AccountRepository",
    "CategoryRepository",
    "FriendshipRepository",
    "MessageRepository",
    "NotificationRepository",
    "ProfileRepository",
    "Repositories",
    "TransactionRepository",
]
