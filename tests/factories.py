"""Builders for ledger objects used across the tests."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from smartfi.models.ledger import Account, AccountType, Currency, Transaction

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
PROJECT_START = datetime(2025, 12, 31, tzinfo=timezone.utc)


def make_account(
    name: str = "Savings",
    balance: float = 0.0,
    account_type: AccountType = AccountType.DEBIT,
    currency: Currency = Currency.COP,
    credit_limit: Optional[float] = None,
    group_id: Optional[UUID] = None,
    category: Optional[str] = None,
    sort_order: int = 0,
    created_at: Optional[datetime] = None,
) -> Account:
    return Account(
        name=name,
        balance=balance,
        type=account_type,
        currency=currency,
        credit_limit=credit_limit,
        group_id=group_id,
        category=category,
        sort_order=sort_order,
        created_at=created_at or PROJECT_START,
    )


def make_transaction(
    account: Account,
    amount: float,
    timestamp: datetime,
    rate: Optional[float] = 4000.0,
    new_balance: Optional[float] = None,
) -> Transaction:
    return Transaction(
        account_id=account.id,
        amount=amount,
        new_balance=account.balance if new_balance is None else new_balance,
        timestamp=timestamp,
        exchange_rate_used=rate,
    )
