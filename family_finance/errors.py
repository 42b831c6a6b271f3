"""
Domain errors raised by the ledger and the workflows.

Backend failures live in family_finance.services.storage.interface
(BackendError and subclasses). Everything here is raised BEFORE a write
happens, except PartialWriteError which reports a write sequence that
broke halfway.
"""

from typing import Optional
from uuid import UUID


class FamilyFinanceError(Exception):
    """Base exception for domain-level failures."""
    pass


class ValidationError(FamilyFinanceError):
    """Missing or invalid required input (e.g. empty or negative amount)."""
    pass


class SuspendedAccountError(FamilyFinanceError):
    """Operation blocked because the account is suspended."""

    def __init__(self, account_id: str, account_name: Optional[str] = None):
        self.account_id = account_id
        label = account_name or account_id
        super().__init__(
            f"Account '{label}' is suspended. Transactions cannot be added."
        )


class RecipientNotFoundError(FamilyFinanceError):
    """Transfer target could not be resolved to an account."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(
            f"Recipient '{identifier}' invalid. User or group not found."
        )


class PermissionDeniedError(FamilyFinanceError):
    """Actor is not allowed to perform the operation (owner/admin-only paths)."""
    pass


class PartialWriteError(FamilyFinanceError):
    """
    A multi-write operation failed after some writes completed.

    Attributes:
        operation_id: ID shared by all writes of the operation
        failed_step: the step that raised
        completed_steps: steps that had succeeded before the failure
        compensated: True if completed steps were undone
    """

    def __init__(
        self,
        operation_id: UUID,
        failed_step: str,
        completed_steps: list[str],
        compensated: bool,
    ):
        self.operation_id = operation_id
        self.failed_step = failed_step
        self.completed_steps = list(completed_steps)
        self.compensated = compensated
        state = "rolled back" if compensated else "left in place"
        super().__init__(
            f"Failed to save transaction at step '{failed_step}'; "
            f"{len(completed_steps)} earlier writes {state}."
        )
