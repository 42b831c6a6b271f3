"""
Ledger Operation Executor

Balance-affecting operations:
1. record_simple_entry - income/expense on one account
2. record_transfer     - two legs, two balance updates
3. toggle_suspension   - block/unblock new postings

The hosted backend has no multi-statement transactions, so every
operation is a short sequence of independent writes. Ordering is fixed:

    simple entry:  insert transaction -> update balance -> notify
    transfer:      insert debit leg -> insert credit leg
                   -> debit source balance -> credit target balance -> notify

All validation happens BEFORE the first write. If a write fails halfway,
the completed writes are journalled and - when compensate_failed_writes
is enabled - undone in reverse order (inserted legs deleted, inverse
balance deltas applied). The caller always gets PartialWriteError so the
failure is visible either way.

Balances are read fresh right before each balance write, which narrows
but does not close the lost-update window between concurrent writers on
the same account.
"""

from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from family_finance.audit import AuditLogger, create_correlation_id, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.errors import (
    PartialWriteError,
    PermissionDeniedError,
    RecipientNotFoundError,
    SuspendedAccountError,
    ValidationError,
)
from family_finance.models.audit import AuditEventBuilder
from family_finance.models.entities import (
    Account,
    AccountType,
    Category,
    Transaction,
    TransactionDraft,
    TransactionType,
    User,
)
from family_finance.notifications.fanout import NotificationBuilder, NotificationFanout
from family_finance.services.storage.repositories import Repositories
from family_finance.validation import parse_amount, require_entry_type


logger = get_logger(__name__)

Amount = Union[Decimal, int, float, str]
Undo = Callable[[Any], Awaitable[Any]]


class EntryResult(BaseModel):
    """Outcome of record_simple_entry."""
    operation_id: UUID
    transaction: Transaction
    account_id: str
    new_balance: Decimal


class TransferResult(BaseModel):
    """Outcome of record_transfer. Both legs share transfer_id."""
    operation_id: UUID
    transfer_id: str
    debit_leg: Transaction
    credit_leg: Transaction
    source_account_id: str
    target_account_id: str
    source_balance: Decimal
    target_balance: Decimal


class WriteJournal:
    """
    Completed writes of one operation, with the action that undoes each.
    """

    def __init__(self, operation_id: UUID):
        self.operation_id = operation_id
        self._entries: list[tuple[str, Optional[Callable[[], Awaitable[Any]]]]] = []

    @property
    def steps(self) -> list[str]:
        return [name for name, _ in self._entries]

    def record(self, step: str, undo: Optional[Callable[[], Awaitable[Any]]] = None) -> None:
        self._entries.append((step, undo))

    async def compensate(self) -> tuple[list[str], list[str]]:
        """
        Undo completed steps, newest first.

        Returns:
            (undone_steps, failed_undo_steps)
        """
        undone, failed = [], []
        for step, undo in reversed(self._entries):
            if undo is None:
                continue
            try:
                await undo()
                undone.append(step)
            except Exception as e:
                logger.error(
                    "compensation_failed",
                    operation_id=str(self.operation_id),
                    step=step,
                    error=str(e),
                )
                failed.append(step)
        return undone, failed


class LedgerExecutor:
    """
    Performs balance-affecting operations against the row store.

    One instance per application; operations are independent and
    carry their own operation ID.
    """

    def __init__(
        self,
        repositories: Repositories,
        fanout: NotificationFanout,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repos = repositories
        self._fanout = fanout
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Write plumbing
    # -------------------------------------------------------------------------

    async def _step(
        self,
        journal: WriteJournal,
        name: str,
        action: Callable[[], Awaitable[Any]],
        undo: Optional[Undo] = None,
    ) -> Any:
        try:
            result = await action()
        except Exception as e:
            await self._abort(journal, name, e)
        journal.record(name, (lambda: undo(result)) if undo else None)
        return result

    async def _abort(self, journal: WriteJournal, failed_step: str, error: Exception) -> None:
        """Log the failure, optionally compensate, and raise."""
        completed = journal.steps
        logger.error(
            "ledger_write_failed",
            operation_id=str(journal.operation_id),
            failed_step=failed_step,
            completed_steps=completed,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_write_failed(
                step=failed_step,
                completed_steps=completed,
                error_message=str(error),
                correlation_id=journal.operation_id,
            )

        if not completed:
            # Nothing was written; the backend error is the whole story
            raise error

        compensated = False
        if self._settings.compensate_failed_writes:
            undone, failed = await journal.compensate()
            compensated = not failed
            if self._audit_logger:
                await self._audit_logger.log(AuditEventBuilder.writes_compensated(
                    undone_steps=undone,
                    failed_undo_steps=failed,
                    correlation_id=journal.operation_id,
                ))

        raise PartialWriteError(
            operation_id=journal.operation_id,
            failed_step=failed_step,
            completed_steps=completed,
            compensated=compensated,
        ) from error

    async def _apply_delta(self, account: Account, delta: Decimal) -> Decimal:
        """Read the current balance, add delta, write it back."""
        fresh = await self._repos.accounts.get(account.id, account.type)
        new_balance = fresh.balance + delta
        await self._repos.accounts.update(account.id, account.type, balance=new_balance)
        return new_balance

    async def _reject(
        self,
        operation: str,
        error: Exception,
        actor: Optional[User],
        operation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_rejected(
                operation=operation,
                reason=str(error),
                actor_id=actor.id if actor else None,
                correlation_id=operation_id,
            )
        raise error

    async def _resolve_category(
        self,
        category_id: Optional[str],
        entry_type: TransactionType,
    ) -> Optional[Category]:
        """Explicit category, or the first category of the entry's type."""
        if category_id:
            return await self._repos.categories.find(category_id)
        if entry_type == TransactionType.TRANSFER:
            return None
        candidates = await self._repos.categories.list(type=entry_type)
        return candidates[0] if candidates else None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def record_simple_entry(
        self,
        account_id: str,
        amount: Amount,
        entry_type: Union[TransactionType, str],
        actor: User,
        category_id: Optional[str] = None,
        note: str = "",
    ) -> EntryResult:
        """
        Post an income or expense against one account.

        Raises:
            ValidationError: bad amount or type
            NotFoundError: account does not exist
            SuspendedAccountError: account is suspended
            BackendError: the transaction insert failed (nothing written)
            PartialWriteError: the balance write failed after the insert
        """
        operation_id = create_correlation_id()

        try:
            value = parse_amount(amount)
            kind = require_entry_type(entry_type)
        except ValidationError as e:
            await self._reject("record_simple_entry", e, actor, operation_id)

        account = await self._repos.accounts.get(account_id)
        if account.is_suspended:
            await self._reject(
                "record_simple_entry",
                SuspendedAccountError(account.id, account.name),
                actor,
                operation_id,
            )

        category = await self._resolve_category(category_id, kind)
        draft = TransactionDraft(
            account_id=account.id,
            amount=value,
            type=kind,
            category_id=category.id if category else category_id,
            note=note.strip() or kind.value.capitalize(),
            created_by=actor.id,
        )
        delta = value if kind == TransactionType.INCOME else -value

        journal = WriteJournal(operation_id)
        transaction = await self._step(
            journal,
            "insert_transaction",
            lambda: self._repos.transactions.insert(draft),
            undo=lambda tx: self._repos.transactions.delete(tx.id),
        )
        new_balance = await self._step(
            journal,
            "update_balance",
            lambda: self._apply_delta(account, delta),
            undo=lambda _: self._apply_delta(account, -delta),
        )

        if account.is_shared:
            recipients = [p for p in account.participants if p != actor.id]
            category_name = category.name if category else "General"
            await self._fanout.emit(
                [
                    NotificationBuilder.family_transaction(
                        recipient_id=user_id,
                        actor=actor,
                        entry_type=kind,
                        amount=value,
                        account=account,
                        category_name=category_name,
                    )
                    for user_id in recipients
                ],
                correlation_id=operation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.entry_recorded(
                account_id=account.id,
                entry_type=kind.value,
                amount=str(value),
                new_balance=str(new_balance),
                actor_id=actor.id,
                correlation_id=operation_id,
            ))

        return EntryResult(
            operation_id=operation_id,
            transaction=transaction,
            account_id=account.id,
            new_balance=new_balance,
        )

    async def resolve_recipient(self, identifier: str) -> Account:
        """
        Resolve a transfer target. First match wins:
        1. shared account ID
        2. user ID -> that user's first personal account
        3. raw personal account ID

        Raises:
            RecipientNotFoundError: nothing matched
        """
        identifier = identifier.strip()

        shared = await self._repos.accounts.find(identifier, AccountType.SHARED)
        if shared:
            return shared

        profile = await self._repos.profiles.find(identifier)
        if profile:
            personal = await self._repos.accounts.first_personal_for(profile.id)
            if personal:
                return personal

        raw = await self._repos.accounts.find(identifier, AccountType.PERSONAL)
        if raw:
            return raw

        raise RecipientNotFoundError(identifier)

    async def record_transfer(
        self,
        source_account_id: str,
        amount: Amount,
        recipient: str,
        actor: User,
        category_id: Optional[str] = None,
        note: str = "",
    ) -> TransferResult:
        """
        Move money from one account to another as two legs.

        Only the target's owner is notified ("Funds Received"), and only
        when the owner is not the actor. Unlike simple entries, other
        members of a shared target are not told; a transfer into a fund
        the actor owns notifies no one.

        Raises:
            ValidationError: bad amount, empty recipient, self-transfer
            NotFoundError: source account does not exist
            RecipientNotFoundError: recipient could not be resolved
            SuspendedAccountError: source or target is suspended
            BackendError: the debit-leg insert failed (nothing written)
            PartialWriteError: a later write failed
        """
        operation_id = create_correlation_id()

        try:
            value = parse_amount(amount)
            if not (recipient or "").strip():
                raise ValidationError("Please enter a recipient User ID or Group ID.")
        except ValidationError as e:
            await self._reject("record_transfer", e, actor, operation_id)

        source = await self._repos.accounts.get(source_account_id)
        try:
            target = await self.resolve_recipient(recipient)
        except RecipientNotFoundError as e:
            await self._reject("record_transfer", e, actor, operation_id)

        if target.id == source.id:
            await self._reject(
                "record_transfer",
                ValidationError("Cannot transfer to the same account."),
                actor,
                operation_id,
            )
        for account in (source, target):
            if account.is_suspended:
                await self._reject(
                    "record_transfer",
                    SuspendedAccountError(account.id, account.name),
                    actor,
                    operation_id,
                )

        transfer_id = str(operation_id)
        suffix = f": {note.strip()}" if note and note.strip() else ""
        debit_draft = TransactionDraft(
            account_id=source.id,
            amount=value,
            type=TransactionType.TRANSFER,
            category_id=category_id,
            note=f"Transfer to {target.name}{suffix}",
            created_by=actor.id,
            transfer_id=transfer_id,
        )
        credit_draft = TransactionDraft(
            account_id=target.id,
            amount=value,
            type=TransactionType.TRANSFER,
            category_id=category_id,
            note=f"Transfer from {source.name}{suffix}",
            created_by=actor.id,
            transfer_id=transfer_id,
        )

        journal = WriteJournal(operation_id)
        delete_leg = lambda tx: self._repos.transactions.delete(tx.id)  # noqa: E731
        debit_leg = await self._step(
            journal,
            "insert_debit_leg",
            lambda: self._repos.transactions.insert(debit_draft),
            undo=delete_leg,
        )
        credit_leg = await self._step(
            journal,
            "insert_credit_leg",
            lambda: self._repos.transactions.insert(credit_draft),
            undo=delete_leg,
        )
        source_balance = await self._step(
            journal,
            "debit_source_balance",
            lambda: self._apply_delta(source, -value),
            undo=lambda _: self._apply_delta(source, value),
        )
        target_balance = await self._step(
            journal,
            "credit_target_balance",
            lambda: self._apply_delta(target, value),
            undo=lambda _: self._apply_delta(target, -value),
        )

        if target.owner_id != actor.id:
            await self._fanout.emit_one(
                NotificationBuilder.funds_received(
                    recipient_id=target.owner_id,
                    actor=actor,
                    amount=value,
                    target=target,
                    transfer_id=transfer_id,
                ),
                correlation_id=operation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transfer_recorded(
                source_account_id=source.id,
                target_account_id=target.id,
                amount=str(value),
                actor_id=actor.id,
                correlation_id=operation_id,
            ))

        return TransferResult(
            operation_id=operation_id,
            transfer_id=transfer_id,
            debit_leg=debit_leg,
            credit_leg=credit_leg,
            source_account_id=source.id,
            target_account_id=target.id,
            source_balance=source_balance,
            target_balance=target_balance,
        )

    async def toggle_suspension(
        self,
        account_id: str,
        actor: Optional[User] = None,
    ) -> Account:
        """
        Flip the suspension flag. Existing transactions are untouched.

        When an actor is given, only the owner or an admin may do this.

        Returns:
            The account with its new flag
        """
        operation_id = create_correlation_id()
        account = await self._repos.accounts.get(account_id)

        if actor and not (actor.is_admin or actor.id == account.owner_id):
            await self._reject(
                "toggle_suspension",
                PermissionDeniedError("Only the owner or an admin can suspend this account"),
                actor,
                operation_id,
            )

        suspended = not account.is_suspended
        await self._repos.accounts.update(account.id, account.type, is_suspended=suspended)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.suspension_toggled(
                account_id=account.id,
                is_suspended=suspended,
                actor_id=actor.id if actor else None,
                correlation_id=operation_id,
            ))

        return account.model_copy(update={"is_suspended": suspended})
