"""
In-Memory Row Store

A dict-of-lists implementation of RowStoreInterface. Used by the test
suite and for running the application offline. Rows are deep-copied on
the way in and out so callers can never mutate stored state in place.

Insert listeners let the in-memory realtime channel observe new rows the
same way the hosted backend pushes row-change events.
"""

import copy
from typing import Any, Callable, Optional
from uuid import uuid4

from family_finance.services.storage.interface import (
    ALL_TABLES,
    BackendError,
    RowStoreInterface,
)


InsertListener = Callable[[str, dict[str, Any]], None]


def _matches(row: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(row.get(column) == value for column, value in filters.items())


class InMemoryRowStore(RowStoreInterface):
    """
    Process-local row store.

    Every table from the backend schema exists up front; unknown tables
    are rejected the way the backend rejects them.
    """

    def __init__(self, seed: Optional[dict[str, list[dict[str, Any]]]] = None):
        self._tables: dict[str, list[dict[str, Any]]] = {t: [] for t in ALL_TABLES}
        self._listeners: list[InsertListener] = []
        for table, rows in (seed or {}).items():
            self._table(table).extend(self._with_id(row) for row in rows)

    def _table(self, table: str) -> list[dict[str, Any]]:
        try:
            return self._tables[table]
        except KeyError:
            raise BackendError(f'relation "public.{table}" does not exist')

    @staticmethod
    def _with_id(row: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(row)
        if not stored.get("id"):
            stored["id"] = str(uuid4())
        return stored

    def add_insert_listener(self, listener: InsertListener) -> Callable[[], None]:
        """Register a callback for inserted rows. Returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Snapshot of a whole table."""
        return copy.deepcopy(self._table(table))

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        rows = [r for r in self._table(table) if _matches(r, filters)]
        if order_by:
            # Rows missing the column sort last regardless of direction
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        target = self._table(table)
        stored = [self._with_id(row) for row in rows]
        target.extend(stored)
        for row in stored:
            for listener in list(self._listeners):
                listener(table, copy.deepcopy(row))
        return copy.deepcopy(stored)

    async def update(
        self,
        table: str,
        patch: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        updated = []
        for row in self._table(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(patch))
                updated.append(row)
        return copy.deepcopy(updated)

    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> int:
        target = self._table(table)
        keep = [r for r in target if not _matches(r, filters)]
        removed = len(target) - len(keep)
        target[:] = keep
        return removed
