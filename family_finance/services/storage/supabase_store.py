"""
Supabase Storage Implementation

The hosted backend exposes every table through PostgREST. This module
wraps the async supabase client behind RowStoreInterface.

TRADEOFFS:
- One HTTP round trip per statement; no multi-statement transactions
- Only equality filters are used, so OR-queries (e.g. "either side of a
  friendship") are issued as two selects and merged by the caller
- Reads are retried; writes are not, because a retried insert whose
  first attempt actually landed would post the same money twice
"""

from typing import Any, Optional

from supabase import AsyncClient, acreate_client
from tenacity import retry, stop_after_attempt, wait_exponential

from family_finance.config import get_settings
from family_finance.config.settings import SupabaseSettings
from family_finance.services.storage.interface import (
    BackendError,
    ConnectionError,
    RowStoreInterface,
)


class SupabaseClient:
    """
    Low-level Supabase client wrapper.

    Creates the async client once and shares it between the row store,
    the auth adapter and the realtime adapter.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._client: Optional[AsyncClient] = None
        self._settings = settings or get_settings().supabase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def connect(self) -> AsyncClient:
        """Establish the client session (idempotent)."""
        if self._client is None:
            try:
                self._client = await acreate_client(
                    self._settings.url,
                    self._settings.anon_key,
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Supabase: {e}")
        return self._client


class SupabaseRowStore(RowStoreInterface):
    """
    PostgREST-backed row store.

    Provider errors are re-raised as BackendError with the provider's
    message preserved.
    """

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    @staticmethod
    def _apply_filters(query, filters: Optional[dict[str, Any]]):
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, value)
        return query

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        client = await self._client.connect()
        try:
            query = self._apply_filters(client.table(table).select("*"), filters)
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            response = await query.execute()
            return list(response.data or [])
        except Exception as e:
            raise BackendError(f"Failed to read {table}: {e}")

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        client = await self._client.connect()
        try:
            response = await client.table(table).insert(rows).execute()
            return list(response.data or [])
        except Exception as e:
            raise BackendError(f"Failed to insert into {table}: {e}")

    async def update(
        self,
        table: str,
        patch: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        client = await self._client.connect()
        try:
            query = self._apply_filters(client.table(table).update(patch), filters)
            response = await query.execute()
            return list(response.data or [])
        except Exception as e:
            raise BackendError(f"Failed to update {table}: {e}")

    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> int:
        client = await self._client.connect()
        try:
            query = self._apply_filters(client.table(table).delete(), filters)
            response = await query.execute()
            return len(response.data or [])
        except Exception as e:
            raise BackendError(f"Failed to delete from {table}: {e}")
