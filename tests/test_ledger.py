"""
Tests for the ledger executor.

Balances are checked against the raw stored rows, not against the
executor's return values, so a write the executor forgot shows up.
"""

from decimal import Decimal

import pytest

from conftest import balance_of, run
from family_finance.config.settings import AppSettings
from family_finance.errors import (
    PartialWriteError,
    PermissionDeniedError,
    RecipientNotFoundError,
    SuspendedAccountError,
    ValidationError,
)
from family_finance.models.audit import AuditEventType
from family_finance.models.entities import AccountType, NotificationType, TransactionType
from family_finance.orchestrator import create_in_memory_app
from family_finance.services.storage.interface import BackendError


def transactions(store, account_id=None):
    rows = store.rows("transactions")
    return [r for r in rows if account_id is None or r["account_id"] == account_id]


def notifications_for(store, user_id):
    return [r for r in store.rows("notifications") if r["user_id"] == user_id]


class TestSimpleEntries:
    """Income and expense on a single account."""

    def test_expense_reduces_balance(self, app, store, asha):
        """A1 (100) records expense 30 'lunch' -> 70, one expense row of 30."""
        result = run(app.ledger.record_simple_entry("A1", "30", "expense", asha, note="lunch"))

        assert result.new_balance == Decimal("70")
        assert balance_of(store, "accounts", "A1") == Decimal("70")
        rows = transactions(store, "A1")
        assert len(rows) == 1
        assert rows[0]["type"] == "expense"
        assert Decimal(rows[0]["amount"]) == Decimal("30")
        assert rows[0]["note"] == "lunch"
        assert rows[0]["created_by"] == "U1"

    def test_income_then_expense_round_trips(self, app, store, asha):
        run(app.ledger.record_simple_entry("A1", "25.50", "income", asha))
        run(app.ledger.record_simple_entry("A1", "25.50", "expense", asha))

        assert balance_of(store, "accounts", "A1") == Decimal("100")
        assert len(transactions(store, "A1")) == 2

    def test_default_note_and_category(self, app, store, asha):
        result = run(app.ledger.record_simple_entry("A1", 10, "income", asha))

        assert result.transaction.note == "Income"
        assert result.transaction.category_id == "C-SALARY"

    def test_explicit_category_is_kept(self, app, asha):
        result = run(app.ledger.record_simple_entry(
            "A1", 10, "expense", asha, category_id="C-FOOD"
        ))
        assert result.transaction.category_id == "C-FOOD"

    @pytest.mark.parametrize("amount", ["", "abc", "0", "-5", None])
    def test_invalid_amount_rejected_before_write(self, app, store, asha, amount):
        with pytest.raises(ValidationError):
            run(app.ledger.record_simple_entry("A1", amount, "expense", asha))

        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")

    def test_transfer_type_is_not_a_simple_entry(self, app, asha):
        with pytest.raises(ValidationError):
            run(app.ledger.record_simple_entry("A1", 5, "transfer", asha))

    def test_rejection_is_audited(self, app, asha):
        with pytest.raises(ValidationError):
            run(app.ledger.record_simple_entry("A1", "0", "expense", asha))

        rejected = [
            e for e in app.audit_logger.history
            if e.event_type == AuditEventType.OPERATION_REJECTED
        ]
        assert len(rejected) == 1
        assert rejected[0].actor_id == "U1"

    def test_shared_entry_notifies_other_participants(self, app, store, ben):
        """U2 records income 50 on G1 (500) -> 550, owner U1 gets one notification."""
        run(app.ledger.record_simple_entry("G1", "50", "income", ben))

        assert balance_of(store, "group_accounts", "G1") == Decimal("550")
        owner_notes = notifications_for(store, "U1")
        assert len(owner_notes) == 1
        assert owner_notes[0]["type"] == NotificationType.TRANSACTION.value
        assert owner_notes[0]["title"] == "New Family Transaction"
        assert notifications_for(store, "U2") == []

    def test_personal_entry_sends_no_notification(self, app, store, asha):
        run(app.ledger.record_simple_entry("A1", "5", "expense", asha))
        assert store.rows("notifications") == []

    def test_notification_failure_does_not_fail_entry(self, app, store, ben):
        store.fail("insert", "notifications")

        result = run(app.ledger.record_simple_entry("G1", "50", "income", ben))

        assert result.new_balance == Decimal("550")
        assert balance_of(store, "group_accounts", "G1") == Decimal("550")
        assert any(
            e.event_type == AuditEventType.NOTIFICATION_FAILED
            for e in app.audit_logger.history
        )

    def test_successful_entry_is_audited_under_operation_id(self, app, asha):
        result = run(app.ledger.record_simple_entry("A1", "5", "expense", asha))

        events = app.audit_logger.events_for(result.operation_id)
        assert [e.event_type for e in events] == [AuditEventType.ENTRY_RECORDED]


class TestTransfers:
    """Two-leg transfers."""

    def test_transfer_moves_money_and_creates_two_legs(self, app, store, asha):
        """A1 (70 after lunch) sends 20 to G1 (550 after income) -> 50 / 570."""
        run(app.ledger.record_simple_entry("A1", "30", "expense", asha, note="lunch"))
        run(app.ledger.record_simple_entry("G1", "50", "income", asha))

        result = run(app.ledger.record_transfer("A1", "20", "G1", asha))

        assert balance_of(store, "accounts", "A1") == Decimal("50")
        assert balance_of(store, "group_accounts", "G1") == Decimal("570")
        legs = [r for r in transactions(store) if r["type"] == "transfer"]
        assert len(legs) == 2
        assert {r["transfer_id"] for r in legs} == {result.transfer_id}
        assert {r["account_id"] for r in legs} == {"A1", "G1"}
        assert result.source_balance == Decimal("50")
        assert result.target_balance == Decimal("570")

    def test_leg_notes(self, app, asha):
        result = run(app.ledger.record_transfer("A1", "20", "G1", asha, note="groceries"))

        assert result.debit_leg.note == "Transfer to Family Fund: groceries"
        assert result.credit_leg.note == "Transfer from Asha Wallet: groceries"

    def test_owner_transfer_into_own_fund_sends_no_notification(self, app, store, asha):
        run(app.ledger.record_transfer("A1", "20", "G1", asha))
        assert store.rows("notifications") == []

    def test_transfer_to_user_id_notifies_recipient(self, app, store, ben):
        """A user ID resolves to that user's first personal account."""
        result = run(app.ledger.record_transfer("A2", "15", "U3", ben))

        assert result.target_account_id == "A3"
        assert balance_of(store, "accounts", "A2") == Decimal("25")
        assert balance_of(store, "accounts", "A3") == Decimal("15")
        received = notifications_for(store, "U3")
        assert len(received) == 1
        assert received[0]["title"] == "Funds Received"
        assert received[0]["data"]["transfer_id"] == result.transfer_id

    @pytest.mark.parametrize("recipient", ["A1", "U1", "  A1  "])
    def test_self_transfer_rejected_before_write(self, app, store, asha, recipient):
        with pytest.raises(ValidationError):
            run(app.ledger.record_transfer("A1", "10", recipient, asha))

        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")

    def test_unknown_recipient(self, app, store, asha):
        with pytest.raises(RecipientNotFoundError):
            run(app.ledger.record_transfer("A1", "10", "nobody", asha))
        assert transactions(store) == []

    def test_empty_recipient(self, app, asha):
        with pytest.raises(ValidationError):
            run(app.ledger.record_transfer("A1", "10", "   ", asha))


class TestRecipientResolution:

    def test_shared_account_id(self, app):
        account = run(app.ledger.resolve_recipient("G1"))
        assert account.id == "G1"
        assert account.type == AccountType.SHARED

    def test_user_id_resolves_to_personal_account(self, app):
        account = run(app.ledger.resolve_recipient("U2"))
        assert account.id == "A2"

    def test_raw_personal_account_id(self, app):
        account = run(app.ledger.resolve_recipient("A3"))
        assert account.owner_id == "U3"


class TestSuspension:

    def test_suspended_account_rejects_entries_until_reactivated(self, app, store, asha, ben):
        suspended = run(app.ledger.toggle_suspension("G1", asha))
        assert suspended.is_suspended is True

        with pytest.raises(SuspendedAccountError):
            run(app.ledger.record_simple_entry("G1", "10", "expense", ben))
        assert transactions(store) == []

        run(app.ledger.toggle_suspension("G1", asha))
        result = run(app.ledger.record_simple_entry("G1", "10", "expense", ben))
        assert result.new_balance == Decimal("490")

    def test_suspended_source_blocks_transfer(self, app, store, asha):
        run(app.ledger.toggle_suspension("A1", asha))

        with pytest.raises(SuspendedAccountError):
            run(app.ledger.record_transfer("A1", "10", "G1", asha))
        assert transactions(store) == []

    def test_suspended_target_blocks_transfer(self, app, store, asha, ben):
        run(app.ledger.toggle_suspension("G1", asha))

        with pytest.raises(SuspendedAccountError):
            run(app.ledger.record_transfer("A2", "10", "G1", ben))
        assert balance_of(store, "accounts", "A2") == Decimal("40")

    def test_only_owner_or_admin_can_toggle(self, app, ben):
        with pytest.raises(PermissionDeniedError):
            run(app.ledger.toggle_suspension("G1", ben))

    def test_owner_can_toggle_own_wallet(self, app, store, ben):
        run(app.ledger.toggle_suspension("A2", ben))
        row = next(r for r in store.rows("accounts") if r["id"] == "A2")
        assert row["is_suspended"] is True


class TestPartialFailures:
    """A write failing halfway through an operation."""

    def test_first_write_failure_raises_backend_error(self, app, store, asha):
        store.fail("insert", "transactions")

        with pytest.raises(BackendError):
            run(app.ledger.record_simple_entry("A1", "10", "expense", asha))
        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")

    def test_balance_write_failure_removes_inserted_entry(self, app, store, asha):
        store.fail("update", "accounts")

        with pytest.raises(PartialWriteError) as exc_info:
            run(app.ledger.record_simple_entry("A1", "10", "expense", asha))

        assert exc_info.value.failed_step == "update_balance"
        assert exc_info.value.completed_steps == ["insert_transaction"]
        assert exc_info.value.compensated is True
        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")

    def test_credit_leg_failure_removes_debit_leg(self, app, store, asha):
        store.fail("insert", "transactions", after=1)

        with pytest.raises(PartialWriteError) as exc_info:
            run(app.ledger.record_transfer("A1", "20", "G1", asha))

        assert exc_info.value.failed_step == "insert_credit_leg"
        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")
        assert balance_of(store, "group_accounts", "G1") == Decimal("500")

    def test_target_balance_failure_restores_source(self, app, store, asha):
        store.fail("update", "group_accounts")

        with pytest.raises(PartialWriteError) as exc_info:
            run(app.ledger.record_transfer("A1", "20", "G1", asha))

        assert exc_info.value.completed_steps == [
            "insert_debit_leg",
            "insert_credit_leg",
            "debit_source_balance",
        ]
        assert exc_info.value.compensated is True
        assert transactions(store) == []
        assert balance_of(store, "accounts", "A1") == Decimal("100")
        assert balance_of(store, "group_accounts", "G1") == Decimal("500")

        compensated = app.audit_logger.events_for(exc_info.value.operation_id)
        assert AuditEventType.WRITE_FAILED in [e.event_type for e in compensated]
        assert AuditEventType.WRITES_COMPENSATED in [e.event_type for e in compensated]

    def test_without_compensation_prior_writes_stay(self, store, asha):
        app = create_in_memory_app(
            store=store,
            settings=AppSettings(compensate_failed_writes=False),
        )
        store.fail("update", "group_accounts")

        with pytest.raises(PartialWriteError) as exc_info:
            run(app.ledger.record_transfer("A1", "20", "G1", asha))

        assert exc_info.value.compensated is False
        assert len(transactions(store)) == 2
        assert balance_of(store, "accounts", "A1") == Decimal("80")
        assert balance_of(store, "group_accounts", "G1") == Decimal("500")

    def test_failed_undo_is_reported(self, app, store, asha):
        store.fail("update", "accounts")
        store.fail("delete", "transactions")

        with pytest.raises(PartialWriteError) as exc_info:
            run(app.ledger.record_simple_entry("A1", "10", "expense", asha))

        assert exc_info.value.compensated is False
        assert len(transactions(store)) == 1


class TestEntryTypes:

    def test_transaction_types(self):
        assert TransactionType("income") == TransactionType.INCOME
        assert TransactionType.TRANSFER.value == "transfer"
