"""
Read-time views over a loaded AppSnapshot.

Nothing here touches the backend; every function filters or totals what
the aggregator already fetched.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from family_finance.aggregator import AppSnapshot
from family_finance.models.entities import (
    Account,
    AccountType,
    Transaction,
    TransactionType,
    User,
    utc_now,
)


DashboardMode = Literal["personal", "family"]

RECENT_WINDOW = timedelta(days=30)


class CategorySpend(BaseModel):
    category_id: str
    name: str
    color: str
    total: Decimal


class DashboardSummary(BaseModel):
    mode: DashboardMode
    accounts: list[Account]
    total_funds: Decimal = Decimal("0")
    income_30d: Decimal = Decimal("0")
    expense_30d: Decimal = Decimal("0")
    spend_by_category: list[CategorySpend] = Field(default_factory=list)
    recent: list[Transaction] = Field(default_factory=list)

    @property
    def net_30d(self) -> Decimal:
        return self.income_30d - self.expense_30d


def visible_accounts(accounts: list[Account], user: User) -> list[Account]:
    """Admins see everything; members see their own personal wallets and every shared fund."""
    if user.is_admin:
        return list(accounts)
    return [
        a for a in accounts
        if a.is_shared or (a.type == AccountType.PERSONAL and a.owner_id == user.id)
    ]


def family_groups(accounts: list[Account], user: User) -> list[Account]:
    """Shared accounts the user owns or belongs to."""
    return [a for a in accounts if a.is_shared and a.is_participant(user.id)]


def _total(transactions: list[Transaction], kind: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type == kind), Decimal("0"))


def dashboard_summary(
    snapshot: AppSnapshot,
    user: User,
    mode: DashboardMode = "personal",
    group_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DashboardSummary:
    """
    Totals for the dashboard.

    personal: the user's own personal wallets
    family:   the user's family groups, or just `group_id` when given

    Income and expense only count the last 30 days; transfers count in
    neither.
    """
    if mode == "personal":
        accounts = [
            a for a in snapshot.accounts
            if a.type == AccountType.PERSONAL and a.owner_id == user.id
        ]
    else:
        accounts = family_groups(snapshot.accounts, user)
        if group_id:
            accounts = [a for a in accounts if a.id == group_id]

    account_ids = {a.id for a in accounts}
    transactions = [t for t in snapshot.transactions if t.account_id in account_ids]
    since = (now or utc_now()) - RECENT_WINDOW
    recent = [t for t in transactions if t.date > since]

    spend: dict[str, Decimal] = defaultdict(Decimal)
    for t in recent:
        if t.type == TransactionType.EXPENSE and t.category_id:
            spend[t.category_id] += t.amount

    by_category = [
        CategorySpend(category_id=c.id, name=c.name, color=c.color, total=spend[c.id])
        for c in snapshot.categories
        if c.type == TransactionType.EXPENSE and spend.get(c.id, Decimal("0")) > 0
    ]

    return DashboardSummary(
        mode=mode,
        accounts=accounts,
        total_funds=sum((a.balance for a in accounts), Decimal("0")),
        income_30d=_total(recent, TransactionType.INCOME),
        expense_30d=_total(recent, TransactionType.EXPENSE),
        spend_by_category=by_category,
        recent=sorted(transactions, key=lambda t: t.date, reverse=True)[:5],
    )


def search_transactions(
    transactions: list[Transaction],
    term: str = "",
    entry_type: Union[TransactionType, str, None] = None,
) -> list[Transaction]:
    """Case-insensitive note search, optionally narrowed to one type ("all" = any)."""
    needle = term.strip().lower()
    kind = None if entry_type in (None, "", "all") else TransactionType(entry_type)
    return [
        t for t in transactions
        if needle in t.note.lower() and (kind is None or t.type == kind)
    ]
