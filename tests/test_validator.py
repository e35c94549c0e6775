"""Tests for boundary validation."""

import math

import pytest

from smartfi.models.ledger import AccountType
from smartfi.validation import LedgerValidationError, LedgerValidator
from tests.factories import make_account


@pytest.fixture
def validator():
    return LedgerValidator()


class TestAccountValidation:

    def test_valid_debit_account(self, validator):
        result = validator.validate_account("Savings", AccountType.DEBIT, 1000)
        assert result.is_valid
        assert result.issues == []

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_name_required(self, validator, name):
        result = validator.validate_account(name, AccountType.DEBIT, 0)
        assert not result.is_valid
        assert result.issues[0].issue_type == "missing"

    def test_name_too_long(self, validator):
        result = validator.validate_account("x" * 101, AccountType.DEBIT, 0)
        assert not result.is_valid

    def test_non_finite_balance(self, validator):
        result = validator.validate_account("Cash", AccountType.DEBIT, math.nan)
        assert not result.is_valid
        assert result.issues[0].field == "balance"

    def test_credit_limit_only_on_credit(self, validator):
        result = validator.validate_account("Cash", AccountType.DEBIT, 0, credit_limit=100)
        assert not result.is_valid
        assert result.issues[0].issue_type == "not_allowed"

    def test_negative_credit_limit(self, validator):
        result = validator.validate_account("Visa", AccountType.CREDIT, 0, credit_limit=-1)
        assert not result.is_valid

    def test_debt_over_limit_is_a_warning(self, validator):
        result = validator.validate_account("Visa", AccountType.CREDIT, 1500, credit_limit=1000)
        assert result.is_valid
        assert [i.severity for i in result.issues] == ["warning"]

    def test_negative_debt_is_a_warning(self, validator):
        result = validator.validate_account("Visa", AccountType.CREDIT, -5)
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"


class TestBalanceAdjustment:

    def test_uses_existing_limit(self, validator):
        card = make_account("Visa", balance=100, account_type=AccountType.CREDIT, credit_limit=500)
        result = validator.validate_balance_adjustment(card, 600)
        assert result.is_valid
        assert result.issues[0].severity == "warning"

    def test_new_limit_on_debit_rejected(self, validator):
        result = validator.validate_balance_adjustment(make_account(), 10, new_credit_limit=50)
        assert not result.is_valid


class TestExchangeRate:

    @pytest.mark.parametrize("rate", [None, 0, -4000, math.inf, math.nan])
    def test_must_be_positive(self, validator, rate):
        result = validator.validate_exchange_rate(rate)
        assert not result.is_valid
        assert result.issues[0].message == "Exchange rate must be a positive number"

    def test_large_jump_warns(self, validator):
        result = validator.validate_exchange_rate(40000, current_rate=4000)
        assert result.is_valid
        assert result.issues[0].severity == "warning"

    def test_small_move_is_clean(self, validator):
        assert validator.validate_exchange_rate(4100, current_rate=4000).issues == []


def test_error_carries_result(validator):
    result = validator.validate_group("")
    error = LedgerValidationError(result)
    assert error.result is result
    assert str(error) == "Invalid group: Name is required"


def test_user_friendly_summary(validator):
    assert "passed" in validator.get_user_friendly_summary(
        validator.validate_group("Banks")
    )
    summary = validator.get_user_friendly_summary(validator.validate_group(""))
    assert "Name is required" in summary
    assert "Enter a name" in summary
