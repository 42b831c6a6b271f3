"""
Realtime message channels.

One subscription per open conversation, delivering rows inserted into
`messages` whose sender/receiver pair matches the conversation. Delivery
is at-most-once: a missed push is only recovered by an explicit fetch.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from family_finance.audit import get_logger
from family_finance.services.storage.interface import MESSAGES, BackendError
from family_finance.services.storage.memory import InMemoryRowStore
from family_finance.services.storage.supabase_store import SupabaseClient


logger = get_logger(__name__)

MessageCallback = Callable[[dict[str, Any]], None]
Unsubscribe = Callable[[], Awaitable[None]]


def _is_between(row: dict[str, Any], user_a: str, user_b: str) -> bool:
    return (
        (row.get("sender_id") == user_a and row.get("receiver_id") == user_b)
        or (row.get("sender_id") == user_b and row.get("receiver_id") == user_a)
    )


class RealtimeInterface(ABC):

    @abstractmethod
    async def subscribe_messages(
        self,
        user_a: str,
        user_b: str,
        callback: MessageCallback,
    ) -> Unsubscribe:
        """
        Deliver every row inserted into `messages` between the two users.

        Args:
            user_a, user_b: The conversation's participants (order-free)
            callback: Called with the raw inserted row

        Returns:
            Coroutine function that tears the subscription down
        """
        pass


class InMemoryRealtime(RealtimeInterface):
    """Listens to the in-memory store's inserts."""

    def __init__(self, store: InMemoryRowStore):
        self._store = store

    async def subscribe_messages(
        self,
        user_a: str,
        user_b: str,
        callback: MessageCallback,
    ) -> Unsubscribe:
        def on_insert(table: str, row: dict[str, Any]) -> None:
            if table == MESSAGES and _is_between(row, user_a, user_b):
                callback(row)

        remove = self._store.add_insert_listener(on_insert)

        async def unsubscribe() -> None:
            remove()

        return unsubscribe


class SupabaseRealtime(RealtimeInterface):
    """Postgres-changes channel on the public.messages table."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    async def subscribe_messages(
        self,
        user_a: str,
        user_b: str,
        callback: MessageCallback,
    ) -> Unsubscribe:
        client = await self._client.connect()

        def on_insert(payload: dict[str, Any]) -> None:
            data = payload.get("data") or {}
            row = data.get("record") or payload.get("new") or {}
            if _is_between(row, user_a, user_b):
                callback(row)

        try:
            channel = client.channel(f"chat:{user_a}-{user_b}")
            channel.on_postgres_changes(
                "INSERT",
                schema="public",
                table=MESSAGES,
                callback=on_insert,
            )
            await channel.subscribe()
        except Exception as e:
            raise BackendError(f"Failed to subscribe to messages: {e}")

        async def unsubscribe() -> None:
            try:
                await client.remove_channel(channel)
            except Exception as e:
                logger.warning("realtime_unsubscribe_failed", error=str(e))

        return unsubscribe
