"""Tests for the ledger reconstructor."""

from datetime import datetime, timedelta, timezone

from smartfi.engine.history import day_count, reconstruct_history, start_of_day
from smartfi.engine.valuation import compute_valuation
from smartfi.models.ledger import AccountType, Currency
from tests.factories import NOW, make_account, make_transaction


def test_day_count_is_at_least_one():
    assert day_count(NOW, NOW) == 1
    assert day_count(NOW - timedelta(hours=1), NOW) == 1
    assert day_count(NOW - timedelta(days=3), NOW) == 3
    assert day_count(NOW - timedelta(days=3, hours=1), NOW) == 4


def test_start_of_day_keeps_timezone():
    assert start_of_day(NOW, 0) == datetime(2026, 3, 15, tzinfo=timezone.utc)
    assert start_of_day(NOW, 2) == datetime(2026, 3, 13, tzinfo=timezone.utc)


def test_no_transactions_gives_flat_series():
    account = make_account(balance=1_000_000)

    points = reconstruct_history([account], [], NOW - timedelta(days=5), NOW, 4000.0)

    assert len(points) == 5
    assert all(p.net_worth == 1_000_000 for p in points)
    assert all(p.liquidity == 1_000_000 for p in points)


def test_points_are_ascending_by_date():
    points = reconstruct_history([], [], NOW - timedelta(days=4), NOW, 4000.0)
    dates = [p.date for p in points]
    assert dates == sorted(dates)
    assert dates[-1] == datetime(2026, 3, 15, tzinfo=timezone.utc)


def test_last_point_matches_current_net_worth():
    account = make_account(balance=1_500_000)
    card = make_account("Card", balance=300_000, account_type=AccountType.CREDIT, credit_limit=1_000_000)
    transactions = [
        make_transaction(account, 500_000, NOW - timedelta(days=2)),
        make_transaction(card, 100_000, NOW - timedelta(days=3)),
    ]

    points = reconstruct_history([account, card], transactions, NOW - timedelta(days=10), NOW, 4000.0)
    current = compute_valuation([account, card], Currency.COP, 4000.0)

    assert points[-1].net_worth == current.net_worth
    assert points[-1].buying_power == current.buying_power


def test_transaction_is_undone_before_its_day():
    account = make_account(balance=1_500_000)
    deposit = make_transaction(account, 500_000, NOW - timedelta(days=1))

    points = reconstruct_history([account], [deposit], NOW - timedelta(days=2), NOW, 4000.0)

    assert [p.net_worth for p in points] == [1_000_000, 1_500_000]


def test_todays_transaction_is_undone_in_todays_point():
    account = make_account(balance=1_500_000)
    deposit = make_transaction(account, 500_000, NOW - timedelta(hours=2))

    points = reconstruct_history([account], [deposit], NOW - timedelta(days=1), NOW, 4000.0)

    assert [p.net_worth for p in points] == [1_000_000]


def test_each_transaction_applied_once():
    account = make_account(balance=1_000_000)
    transactions = [
        make_transaction(account, 100_000, NOW - timedelta(days=3, hours=1)),
        make_transaction(account, 200_000, NOW - timedelta(days=3, hours=2)),
        make_transaction(account, -50_000, NOW - timedelta(days=1)),
    ]

    points = reconstruct_history([account], transactions, NOW - timedelta(days=6), NOW, 4000.0)

    assert points[-1].net_worth == 1_000_000
    assert points[-2].net_worth == 1_050_000
    assert points[0].net_worth == 750_000


def test_credit_transaction_moves_liabilities():
    card = make_account("Card", balance=300_000, account_type=AccountType.CREDIT, credit_limit=1_000_000)
    purchase = make_transaction(card, 100_000, NOW - timedelta(days=1))

    points = reconstruct_history([card], [purchase], NOW - timedelta(days=2), NOW, 4000.0)

    before, after = points
    assert before.net_worth == -200_000
    assert before.liquidity == 0
    assert before.buying_power == 800_000
    assert after.net_worth == -300_000


def test_usd_transaction_uses_recorded_rate():
    account = make_account("Dollars", balance=200, currency=Currency.USD)
    deposit = make_transaction(account, 100, NOW - timedelta(days=1), rate=3500.0)

    points = reconstruct_history([account], [deposit], NOW - timedelta(days=2), NOW, 4000.0)

    assert points[-1].net_worth == 800_000
    assert points[0].net_worth == 800_000 - 350_000


def test_transaction_of_deleted_account_is_undone_from_liquidity():
    account = make_account(balance=1_000_000)
    ghost = make_account("Deleted", balance=999)
    orphan = make_transaction(ghost, 999, NOW - timedelta(days=1), rate=None)

    points = reconstruct_history([account], [orphan], NOW - timedelta(days=3), NOW, 4000.0)

    assert points[-1].liquidity == 1_000_000
    assert points[0].liquidity == 999_001
    assert points[0].net_worth == 999_001


def test_deleted_account_transaction_in_usd_target():
    account = make_account(balance=1_000_000)
    ghost = make_account("Deleted")
    orphan = make_transaction(ghost, 400_000, NOW - timedelta(days=1), rate=4000.0)

    points = reconstruct_history(
        [account], [orphan], NOW - timedelta(days=2), NOW, 4000.0, Currency.USD
    )

    assert points[-1].liquidity == 250
    assert points[0].liquidity == 150


def test_naive_dates_are_read_as_utc():
    account = make_account(balance=100)
    points = reconstruct_history(
        [account], [], datetime(2026, 3, 13), datetime(2026, 3, 15, 12), 4000.0
    )
    assert points[-1].date.tzinfo is not None
    assert len(points) == 3
