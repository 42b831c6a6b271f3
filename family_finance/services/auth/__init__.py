"""Authentication collaborator package."""

from family_finance.services.auth.interface import (
    AuthCallback,
    AuthError,
    AuthEvent,
    AuthInterface,
    AuthSession,
)
from family_finance.services.auth.memory import InMemoryAuth
from family_finance.services.auth.supabase_auth import SupabaseAuth

__all__ = [
    "AuthCallback",
    "AuthError",
    "AuthEvent",
    "AuthInterface",
    "AuthSession",
    "InMemoryAuth",
    "SupabaseAuth",
]
