"""
Tests for the entity repositories over the in-memory row store.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import run
from family_finance.models.entities import AccountDraft, AccountType, Role
from family_finance.services.storage import InMemoryRowStore, Repositories
from family_finance.services.storage.interface import BackendError, NotFoundError


@pytest.fixture
def repos(store):
    return Repositories(store)


class TestDefaults:
    """Backend rows may leave fields out; repositories fill them in."""

    def test_profile_defaults(self):
        store = InMemoryRowStore({"profiles": [{"id": "U9"}]})
        user = run(Repositories(store).profiles.get("U9"))

        assert user.name == "Unknown User"
        assert user.role == Role.MEMBER
        assert user.avatar.startswith("https://ui-avatars.com/api/?name=Unknown%20User")

    def test_account_balance_defaults_to_zero(self):
        store = InMemoryRowStore({"accounts": [{"id": "A9", "user_id": "U1", "name": "X"}]})
        account = run(Repositories(store).accounts.get("A9"))

        assert account.balance == Decimal("0")
        assert account.currency == "USD"
        assert account.is_suspended is False

    def test_malformed_rows_are_skipped(self):
        store = InMemoryRowStore({"transactions": [
            {"id": "t1", "account_id": "A1", "amount": "5", "type": "expense", "created_by": "U1"},
            {"id": "t2", "account_id": "A1", "amount": "oops", "type": "expense", "created_by": "U1"},
        ]})
        rows = run(Repositories(store).transactions.list())

        assert [t.id for t in rows] == ["t1"]

    def test_timestamps_without_zone_are_read_as_utc(self):
        store = InMemoryRowStore({
            "transactions": [{
                "id": "t1", "account_id": "A1", "amount": "5", "type": "expense",
                "created_by": "U1", "date": "2026-10-10T12:00:00",
            }],
            "messages": [{
                "id": "m1", "sender_id": "U1", "receiver_id": "U2", "content": "hi",
                "created_at": "2026-10-10T12:00:00",
            }],
            "notifications": [{
                "id": "n1", "user_id": "U1", "title": "Hello",
                "created_at": "2026-10-10T12:00:00",
            }],
        })
        repos = Repositories(store)

        transaction = run(repos.transactions.list())[0]
        message = run(repos.messages.list())[0]
        notification = run(repos.notifications.list())[0]

        assert transaction.date == datetime(2026, 10, 10, 12, 0, tzinfo=timezone.utc)
        assert message.created_at.tzinfo is not None
        assert notification.created_at.tzinfo is not None


class TestAccountRepository:

    def test_find_searches_both_tables(self, repos):
        assert run(repos.accounts.find("A1")).type == AccountType.PERSONAL
        assert run(repos.accounts.find("G1")).type == AccountType.SHARED
        assert run(repos.accounts.find("G1", AccountType.PERSONAL)) is None

    def test_get_missing(self, repos):
        with pytest.raises(NotFoundError):
            run(repos.accounts.get("missing"))

    def test_shared_insert_never_stores_owner_as_member(self, repos, store):
        fund = run(repos.accounts.insert(AccountDraft(
            owner_id="U1",
            name="Fund",
            type=AccountType.SHARED,
            members=["U1", "U2"],
        )))

        row = next(r for r in store.rows("group_accounts") if r["id"] == fund.id)
        assert row["members"] == ["U2"]
        assert row["user_id"] == "U1"
        assert "type" not in row

    def test_first_personal_for(self, repos):
        assert run(repos.accounts.first_personal_for("U2")).id == "A2"
        assert run(repos.accounts.first_personal_for("U404")) is None

    def test_first_personal_for_is_independent_of_row_order(self):
        store = InMemoryRowStore({"accounts": [
            {"id": "A-2", "user_id": "U9", "name": "Savings"},
            {"id": "A-1", "user_id": "U9", "name": "Main"},
        ]})
        assert run(Repositories(store).accounts.first_personal_for("U9")).id == "A-1"

    def test_update_balance_round_trips_decimal(self, repos):
        run(repos.accounts.update("A1", AccountType.PERSONAL, balance=Decimal("12.34")))
        assert run(repos.accounts.get("A1")).balance == Decimal("12.34")


class TestRowStore:

    def test_unknown_table(self):
        with pytest.raises(BackendError):
            run(InMemoryRowStore().select("ledger"))

    def test_ordering_and_limit(self):
        store = InMemoryRowStore({"messages": [
            {"id": "m1", "created_at": "2026-01-02"},
            {"id": "m2", "created_at": "2026-01-01"},
            {"id": "m3"},
        ]})
        rows = run(store.select("messages", order_by="created_at", descending=True, limit=2))

        assert [r["id"] for r in rows] == ["m1", "m2"]

    def test_rows_are_copies(self):
        store = InMemoryRowStore({"profiles": [{"id": "U1", "name": "Asha"}]})
        rows = run(store.select("profiles"))
        rows[0]["name"] = "Changed"

        assert store.rows("profiles")[0]["name"] == "Asha"

    def test_friendships_involving_merges_both_sides(self, repos):
        run(repos.store.insert("friendships", [
            {"id": "f1", "requester_id": "U1", "receiver_id": "U2", "status": "accepted"},
            {"id": "f2", "requester_id": "U3", "receiver_id": "U1", "status": "pending"},
        ]))

        assert sorted(f.id for f in run(repos.friendships.involving("U1"))) == ["f1", "f2"]
        assert [f.id for f in run(repos.friendships.between("U2", "U1"))] == ["f1"]
