"""
Input Validation

Every ledger and workflow operation validates its input here BEFORE the
first write. Validation never silently fixes input; it raises
ValidationError with a message that can be shown inline.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from family_finance.errors import ValidationError
from family_finance.models.entities import TransactionType


SIMPLE_ENTRY_TYPES = (TransactionType.INCOME, TransactionType.EXPENSE)


def parse_amount(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """
    Parse a user-entered amount into a positive Decimal.

    Raises:
        ValidationError: empty, non-numeric, non-finite, zero or negative
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Amount is required")
    if isinstance(value, str) and not value.strip():
        raise ValidationError("Amount is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Amount must be a number, got {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be a positive number")
    return amount


def require_entry_type(value: Any) -> TransactionType:
    """Only income and expense are simple entries; transfers have their own path."""
    try:
        entry_type = TransactionType(value)
    except ValueError:
        raise ValidationError(f"Unknown transaction type: {value!r}")
    if entry_type not in SIMPLE_ENTRY_TYPES:
        raise ValidationError("Use a transfer to move money between accounts")
    return entry_type


def require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def parse_opening_balance(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """Like parse_amount, but blank means zero and zero is allowed."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    try:
        balance = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Opening balance must be a number, got {value!r}")
    if not balance.is_finite() or balance < 0:
        raise ValidationError("Opening balance cannot be negative")
    return balance
