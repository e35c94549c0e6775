"""
Ledger Reconstructor

Rebuilds a day-by-day net worth series without stored snapshots.

DESIGN DECISION: History is derived by replaying the transaction ledger
backward from the current balances. The transaction stream is sorted newest
first and consumed by a single cursor that only moves forward, while a
second cursor walks day boundaries from today back to the start date.
A transaction is undone exactly once: just before the day it happened on
is emitted.
"""

import math
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from smartfi.engine.currency import CurrencyConverter
from smartfi.engine.valuation import compute_valuation
from smartfi.models.ledger import Account, Currency, Transaction, ensure_utc
from smartfi.models.metrics import HistoryPoint

ONE_DAY = timedelta(days=1)


def day_count(start_date: datetime, now: datetime) -> int:
    """Number of daily points between start and now; never less than one."""
    elapsed = abs((now - start_date).total_seconds())
    return max(1, math.ceil(elapsed / ONE_DAY.total_seconds()))


def start_of_day(now: datetime, days_back: int) -> datetime:
    """Midnight `days_back` days before `now`, in now's timezone."""
    day = now.date() - timedelta(days=days_back)
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def converted_amount(
    transaction: Transaction,
    account: Account,
    target_currency: Currency,
    converter: CurrencyConverter,
) -> float:
    """Transaction delta in the target currency, at the rate it was recorded with."""
    return converter.convert_at(
        transaction.amount,
        account.currency,
        target_currency,
        transaction.exchange_rate_used,
    )


def reconstruct_history(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    start_date: datetime,
    now: datetime,
    usd_to_cop_rate: float,
    target_currency: Currency = Currency.COP,
) -> list[HistoryPoint]:
    """
    Produce one point per day from start_date to now, oldest first.

    Each point is the position at the *start* of its day, so transactions
    dated today are already undone in today's point.

    Transactions whose account is not in `accounts` still happened: they
    are undone from liquidity as a COP amount, since their account type
    and currency are gone with the account.

    The credit limit total is held constant for the whole window.
    """
    now = ensure_utc(now)
    start_date = ensure_utc(start_date)
    accounts = list(accounts)
    by_id = {account.id: account for account in accounts}
    converter = CurrencyConverter(usd_to_cop_rate)

    current = compute_valuation(accounts, target_currency, usd_to_cop_rate)
    liquidity = current.liquidity
    liabilities = current.total_liabilities
    credit_limit_total = current.credit_limit_total

    stream = sorted(transactions, key=lambda t: t.timestamp, reverse=True)
    cursor = 0

    points: list[HistoryPoint] = []
    for days_back in range(day_count(start_date, now)):
        boundary = start_of_day(now, days_back)

        while cursor < len(stream) and stream[cursor].timestamp >= boundary:
            transaction = stream[cursor]
            cursor += 1
            account: Optional[Account] = by_id.get(transaction.account_id)
            if account is None:
                liquidity -= converter.convert_at(
                    transaction.amount,
                    Currency.COP,
                    target_currency,
                    transaction.exchange_rate_used,
                )
                continue
            delta = converted_amount(transaction, account, target_currency, converter)
            if account.is_credit:
                liabilities -= delta
            else:
                liquidity -= delta

        points.append(HistoryPoint(
            date=boundary,
            net_worth=liquidity - liabilities,
            liquidity=liquidity,
            buying_power=liquidity + (credit_limit_total - liabilities),
        ))

    points.reverse()
    return points
