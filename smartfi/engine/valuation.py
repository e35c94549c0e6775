"""
Valuation Aggregator

Folds the account set into the dashboard's headline numbers.
Pure function of (accounts, target currency, rate).
"""

from typing import Iterable

from smartfi.engine.currency import CurrencyConverter
from smartfi.models.ledger import Account, Currency
from smartfi.models.metrics import Valuation


def compute_valuation(
    accounts: Iterable[Account],
    target_currency: Currency,
    usd_to_cop_rate: float,
) -> Valuation:
    """
    Compute the current aggregate valuation.

    - CREDIT balances are liabilities, every other balance is an asset
    - Only assets count as liquidity
    - Buying power adds unused credit on top of liquidity
    """
    converter = CurrencyConverter(usd_to_cop_rate)

    total_assets = 0.0
    total_liabilities = 0.0
    credit_limit_total = 0.0

    for account in accounts:
        value = converter.convert(account.balance, account.currency, target_currency)
        if account.is_credit:
            total_liabilities += value
            if account.credit_limit:
                credit_limit_total += converter.convert(
                    account.credit_limit, account.currency, target_currency
                )
        else:
            total_assets += value

    liquidity = total_assets
    return Valuation(
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        net_worth=total_assets - total_liabilities,
        liquidity=liquidity,
        buying_power=liquidity + (credit_limit_total - total_liabilities),
        credit_limit_total=credit_limit_total,
    )


def net_value(
    accounts: Iterable[Account],
    target_currency: Currency,
    usd_to_cop_rate: float,
) -> float:
    """Assets minus liabilities for an arbitrary subset of accounts."""
    converter = CurrencyConverter(usd_to_cop_rate)
    total = 0.0
    for account in accounts:
        value = converter.convert(account.balance, account.currency, target_currency)
        total += -value if account.is_credit else value
    return total
