"""Services package: hosted-backend collaborators (storage, auth, realtime)."""

from family_finance.services.auth import (
    AuthError,
    AuthEvent,
    AuthInterface,
    AuthSession,
    InMemoryAuth,
    SupabaseAuth,
)
from family_finance.services.realtime import (
    InMemoryRealtime,
    RealtimeInterface,
    SupabaseRealtime,
)
from family_finance.services.storage import (
    BackendError,
    ConnectionError,
    DuplicateError,
    InMemoryRowStore,
    NotFoundError,
    Repositories,
    RowStoreInterface,
    SupabaseClient,
    SupabaseRowStore,
)

__all__ = [
    # Auth
    "AuthError",
    "AuthEvent",
    "AuthInterface",
    "AuthSession",
    "InMemoryAuth",
    "SupabaseAuth",
    # Realtime
    "InMemoryRealtime",
    "RealtimeInterface",
    "SupabaseRealtime",
    # Storage
    "BackendError",
    "ConnectionError",
    "DuplicateError",
    "InMemoryRowStore",
    "NotFoundError",
    "Repositories",
    "RowStoreInterface",
    "SupabaseClient",
    "SupabaseRowStore",
]
