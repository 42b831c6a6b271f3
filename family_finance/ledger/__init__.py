"""
Ledger Package

Balance-affecting operations: simple entries, transfers, suspension.
"""

from family_finance.ledger.executor import (
    EntryResult,
    LedgerExecutor,
    TransferResult,
    WriteJournal,
)

__all__ = [
    "EntryResult",
    "LedgerExecutor",
    "TransferResult",
    "WriteJournal",
]
