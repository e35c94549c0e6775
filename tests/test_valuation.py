"""Tests for the valuation aggregator."""

import pytest

from smartfi.engine.valuation import compute_valuation, net_value
from smartfi.models.ledger import AccountType, Currency
from tests.factories import make_account


def test_single_debit_account():
    account = make_account(balance=1_000_000)

    valuation = compute_valuation([account], Currency.COP, 4000.0)

    assert valuation.net_worth == 1_000_000
    assert valuation.liquidity == 1_000_000
    assert valuation.buying_power == 1_000_000
    assert valuation.total_liabilities == 0


def test_single_credit_account():
    card = make_account(
        "Visa", balance=200_000, account_type=AccountType.CREDIT, credit_limit=1_000_000
    )

    valuation = compute_valuation([card], Currency.COP, 4000.0)

    assert valuation.net_worth == -200_000
    assert valuation.liquidity == 0
    assert valuation.credit_limit_total == 1_000_000
    assert valuation.buying_power == 800_000


def test_mixed_currencies_convert_to_target():
    accounts = [
        make_account("COP savings", balance=1_000_000),
        make_account("USD savings", balance=100, currency=Currency.USD),
        make_account(
            "USD card",
            balance=50,
            currency=Currency.USD,
            account_type=AccountType.CREDIT,
            credit_limit=500,
        ),
    ]

    valuation = compute_valuation(accounts, Currency.COP, 4000.0)

    assert valuation.total_assets == 1_400_000
    assert valuation.total_liabilities == 200_000
    assert valuation.net_worth == valuation.total_assets - valuation.total_liabilities
    assert valuation.credit_limit_total == 2_000_000
    assert valuation.buying_power == 1_400_000 + 2_000_000 - 200_000


def test_report_in_usd():
    valuation = compute_valuation([make_account(balance=400_000)], Currency.USD, 4000.0)
    assert valuation.net_worth == pytest.approx(100.0)


def test_credit_account_without_limit():
    card = make_account("Card", balance=10_000, account_type=AccountType.CREDIT)
    valuation = compute_valuation([card], Currency.COP, 4000.0)
    assert valuation.credit_limit_total == 0
    assert valuation.buying_power == -10_000


def test_empty_account_set():
    valuation = compute_valuation([], Currency.COP, 4000.0)
    assert valuation.net_worth == 0
    assert valuation.buying_power == 0


def test_net_value_subtracts_debt():
    accounts = [
        make_account(balance=500_000),
        make_account("Card", balance=120_000, account_type=AccountType.CREDIT),
    ]
    assert net_value(accounts, Currency.COP, 4000.0) == 380_000
