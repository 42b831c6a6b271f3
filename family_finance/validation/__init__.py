"""Validation package."""

from family_finance.validation.validator import (
    SIMPLE_ENTRY_TYPES,
    parse_amount,
    parse_opening_balance,
    require_entry_type,
    require_text,
)

__all__ = [
    "SIMPLE_ENTRY_TYPES",
    "parse_amount",
    "parse_opening_balance",
    "require_entry_type",
    "require_text",
]
