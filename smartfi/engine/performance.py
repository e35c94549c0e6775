"""
Performance Analytics

Normal return, annualized return ("EA") and snowball projections for a
scoped subset of accounts over a lookback window.

DESIGN DECISION: There are no stored historical balances per account, so
the valuation at the start of the window is inferred by undoing every
in-scope transaction that falls inside the window, the same replay idea
the history chart uses.

All degenerate cases (empty scope, empty window, zero or negative start
valuation) resolve to zero-valued figures. The UI shows "0%", never an error.
"""

import calendar
from datetime import datetime, timedelta
from typing import Iterable

from smartfi.engine.currency import CurrencyConverter
from smartfi.engine.history import converted_amount
from smartfi.engine.valuation import net_value
from smartfi.models.ledger import Account, Currency, Group, Transaction, ensure_utc
from smartfi.models.metrics import (
    PerformanceScope,
    PerformanceStats,
    Projection,
    ScopeDimension,
    ScopeOption,
    TimeWindow,
)

PROJECTION_MONTHS = (3, 6, 12)
DAYS_PER_YEAR = 365


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier, day clamped to month end."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(window: TimeWindow, now: datetime, project_start: datetime) -> datetime:
    if window.months is None:
        return ensure_utc(project_start)
    return months_before(ensure_utc(now), window.months)


def window_years(start: datetime, now: datetime) -> float:
    """Window length in years, floored at one year."""
    years = (now - start) / timedelta(days=DAYS_PER_YEAR)
    return max(years, 1.0)


def accounts_in_scope(
    scope: PerformanceScope,
    accounts: Iterable[Account],
) -> list[Account]:
    accounts = list(accounts)
    if scope.selects_all:
        return accounts
    if scope.dimension == ScopeDimension.GROUP:
        return [a for a in accounts if a.group_id is not None and str(a.group_id) == scope.filter_id]
    return [a for a in accounts if a.category == scope.filter_id]


def available_scope_filters(
    dimension: ScopeDimension,
    accounts: Iterable[Account],
    groups: Iterable[Group],
) -> list[ScopeOption]:
    """Filter values the user can pick for a dimension, "ALL" first."""
    options = [ScopeOption(id="ALL", label="All")]
    if dimension == ScopeDimension.GROUP:
        ordered = sorted(groups, key=lambda g: (g.sort_order, str(g.id)))
        options.extend(ScopeOption(id=str(g.id), label=g.name) for g in ordered)
    elif dimension == ScopeDimension.TAG:
        seen: list[str] = []
        for account in accounts:
            if account.category and account.category not in seen:
                seen.append(account.category)
        options.extend(ScopeOption(id=tag, label=tag) for tag in seen)
    return options


def _zero_projections() -> list[Projection]:
    return [Projection(months=m, value=0.0) for m in PROJECTION_MONTHS]


def compute_performance(
    scope: PerformanceScope,
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    window: TimeWindow,
    target_currency: Currency,
    usd_to_cop_rate: float,
    now: datetime,
    project_start: datetime,
) -> PerformanceStats:
    """
    Compute returns and projections for one scope and window.

    Args:
        scope: Which accounts to include (all, one group, one tag)
        accounts: The full account set
        transactions: The full transaction ledger
        window: Lookback window; ALL starts at project_start
        target_currency: Currency every figure is reported in
        usd_to_cop_rate: Current rate, used to value present balances
        now: Evaluation time
        project_start: Start of the ALL window

    Returns:
        PerformanceStats with percentages for both returns
    """
    now = ensure_utc(now)
    in_scope = accounts_in_scope(scope, accounts)
    by_id = {account.id: account for account in in_scope}
    scoped_txs = [t for t in transactions if t.account_id in by_id]

    if not in_scope and not scoped_txs:
        return PerformanceStats()

    start = window_start(window, now, project_start)
    current_val = net_value(in_scope, target_currency, usd_to_cop_rate)

    windowed = [t for t in scoped_txs if t.timestamp >= start]
    if not windowed:
        return PerformanceStats(
            current_val=current_val,
            start_val=current_val,
            projections=_zero_projections(),
            window_start=start,
        )

    converter = CurrencyConverter(usd_to_cop_rate)
    start_val = current_val
    for transaction in sorted(windowed, key=lambda t: t.timestamp):
        account = by_id[transaction.account_id]
        delta = converted_amount(transaction, account, target_currency, converter)
        # Credit deltas move debt, which enters the valuation negated
        start_val -= -delta if account.is_credit else delta

    normal, annualized = _returns(current_val, start_val, window_years(start, now))
    monthly_rate = (1 + annualized) ** (1 / 12) - 1

    projections = [
        Projection(months=m, value=current_val * (1 + monthly_rate) ** m)
        for m in PROJECTION_MONTHS
    ]

    return PerformanceStats(
        normal_return=normal * 100,
        annualized_return=annualized * 100,
        projections=projections,
        current_val=current_val,
        start_val=start_val,
        window_start=start,
    )


def _returns(current_val: float, start_val: float, years: float) -> tuple[float, float]:
    """(normal, annualized) as fractions."""
    if start_val == 0:
        return 0.0, 0.0
    ratio = current_val / start_val
    normal = ratio - 1
    if ratio < 0:
        # No real-valued compounding rate exists for a sign flip
        return normal, 0.0
    return normal, ratio ** (1 / years) - 1
