"""Realtime collaborator package: push delivery of new chat messages."""

from family_finance.services.realtime.channels import (
    InMemoryRealtime,
    MessageCallback,
    RealtimeInterface,
    SupabaseRealtime,
    Unsubscribe,
)

__all__ = [
    "InMemoryRealtime",
    "MessageCallback",
    "RealtimeInterface",
    "SupabaseRealtime",
    "Unsubscribe",
]
