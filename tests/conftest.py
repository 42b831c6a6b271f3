"""
Shared fixtures: a seeded in-memory backend and the services built over it.

Everything async is driven with asyncio.run so tests stay plain
functions.
"""

import asyncio
from decimal import Decimal

import pytest

from family_finance.config.settings import AppSettings
from family_finance.models.entities import Role, User
from family_finance.orchestrator import create_in_memory_app
from family_finance.services.storage.interface import BackendError
from family_finance.services.storage.memory import InMemoryRowStore


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


class FlakyRowStore(InMemoryRowStore):
    """
    In-memory store that fails one chosen call.

    fail("update", "accounts", after=1) lets one update on `accounts`
    through and fails the next one, once.
    """

    def __init__(self, seed=None):
        super().__init__(seed)
        self._failures: dict[tuple[str, str], int] = {}

    def fail(self, operation: str, table: str, after: int = 0) -> None:
        self._failures[(operation, table)] = after

    def _check(self, operation: str, table: str) -> None:
        key = (operation, table)
        if key not in self._failures:
            return
        if self._failures[key] == 0:
            del self._failures[key]
            raise BackendError(f"simulated {operation} failure on {table}")
        self._failures[key] -= 1

    async def select(self, table, filters=None, order_by=None, descending=False, limit=None):
        self._check("select", table)
        return await super().select(table, filters, order_by, descending, limit)

    async def insert(self, table, rows):
        self._check("insert", table)
        return await super().insert(table, rows)

    async def update(self, table, patch, filters):
        self._check("update", table)
        return await super().update(table, patch, filters)

    async def delete(self, table, filters):
        self._check("delete", table)
        return await super().delete(table, filters)


def seed_rows() -> dict:
    return {
        "profiles": [
            {"id": "U1", "name": "Asha", "email": "asha@example.com", "role": "admin"},
            {"id": "U2", "name": "Ben", "email": "ben@example.com", "role": "member"},
            {"id": "U3", "name": "Chen", "email": "chen@example.com", "role": "member"},
        ],
        "accounts": [
            {"id": "A1", "user_id": "U1", "name": "Asha Wallet", "balance": "100",
             "currency": "USD", "type": "personal"},
            {"id": "A2", "user_id": "U2", "name": "Ben Wallet", "balance": "40",
             "currency": "USD", "type": "personal"},
            {"id": "A3", "user_id": "U3", "name": "Chen Wallet", "balance": "0",
             "currency": "USD", "type": "personal"},
        ],
        "group_accounts": [
            {"id": "G1", "user_id": "U1", "name": "Family Fund", "balance": "500",
             "currency": "USD", "members": ["U2"], "is_suspended": False},
        ],
        "categories": [
            {"id": "C-FOOD", "name": "Food", "type": "expense", "is_default": True},
            {"id": "C-SALARY", "name": "Salary", "type": "income", "is_default": True},
        ],
    }


@pytest.fixture
def settings():
    return AppSettings(compensate_failed_writes=True, admin_role_policy="first_user")


@pytest.fixture
def store():
    return FlakyRowStore(seed_rows())


@pytest.fixture
def app(store, settings):
    return create_in_memory_app(store=store, settings=settings)


@pytest.fixture
def asha():
    return User(id="U1", name="Asha", email="asha@example.com", role=Role.ADMIN)


@pytest.fixture
def ben():
    return User(id="U2", name="Ben", email="ben@example.com")


@pytest.fixture
def chen():
    return User(id="U3", name="Chen", email="chen@example.com")


def balance_of(store: InMemoryRowStore, table: str, account_id: str) -> Decimal:
    row = next(r for r in store.rows(table) if r["id"] == account_id)
    return Decimal(str(row["balance"]))
