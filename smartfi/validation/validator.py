"""
Boundary Validation

DESIGN DECISION: Validation happens in two stages, before anything
reaches the store or the engine:

STAGE 1 - SCHEMA VALIDATION:
- Required values present (names)
- Numbers are finite
- Credit limits only on CREDIT accounts
- Exchange rates strictly positive

STAGE 2 - SEMANTIC VALIDATION:
- Negative debt on a CREDIT account
- Debt above the credit limit
- Exchange rate jumps that look like typos

Stage 2 only runs when stage 1 passed, and only ever produces warnings.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the flows refuse to write when there are errors.
"""

import math
from typing import Optional

from smartfi.models.ledger import Account, AccountType
from smartfi.models.validation import ValidationIssue, ValidationResult

# A manual rate further than this from the current one is flagged
RATE_JUMP_WARNING_RATIO = 0.2
NAME_MAX_LENGTH = 100


class LedgerValidationError(Exception):
    """Raised by the flows when a draft has error-level issues."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Invalid {result.subject}: {messages}")


def _result(subject: str, issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        subject=subject,
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


def _check_name(field: str, name: Optional[str]) -> list[ValidationIssue]:
    if name is None or not name.strip():
        return [ValidationIssue(
            field=field,
            issue_type="missing",
            message="Name is required",
            severity="error",
            suggested_fix="Enter a name",
        )]
    if len(name.strip()) > NAME_MAX_LENGTH:
        return [ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"Name must be at most {NAME_MAX_LENGTH} characters",
            severity="error",
        )]
    return []


def _check_finite(field: str, value: Optional[float]) -> list[ValidationIssue]:
    if value is None or math.isfinite(value):
        return []
    return [ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=f"{field} must be a finite number",
        severity="error",
    )]


class LedgerValidator:
    """
    Validates user drafts for accounts, groups, balance adjustments
    and exchange rates.
    """

    def validate_account(
        self,
        name: Optional[str],
        account_type: AccountType,
        balance: float,
        credit_limit: Optional[float] = None,
    ) -> ValidationResult:
        """
        Validate a new or edited account.

        Args:
            name: Display name
            account_type: DEBIT or CREDIT
            balance: Current balance (debt for CREDIT accounts)
            credit_limit: Only allowed for CREDIT accounts

        Returns:
            ValidationResult with all issues found
        """
        issues = _check_name("name", name)
        issues += _check_finite("balance", balance)
        issues += _check_finite("credit_limit", credit_limit)
        issues += self._check_credit_limit(account_type, credit_limit)

        if not any(issue.severity == "error" for issue in issues):
            issues += self._check_debt(account_type, balance, credit_limit)

        return _result("account", issues)

    def validate_group(self, name: Optional[str]) -> ValidationResult:
        return _result("group", _check_name("name", name))

    def validate_balance_adjustment(
        self,
        account: Account,
        new_balance: float,
        new_credit_limit: Optional[float] = None,
    ) -> ValidationResult:
        """Validate setting `account` to a new balance (and optionally limit)."""
        issues = _check_finite("new_balance", new_balance)
        issues += _check_finite("credit_limit", new_credit_limit)
        issues += self._check_credit_limit(account.type, new_credit_limit)

        if not any(issue.severity == "error" for issue in issues):
            limit = new_credit_limit if new_credit_limit is not None else account.credit_limit
            issues += self._check_debt(account.type, new_balance, limit)

        return _result("balance_adjustment", issues)

    def validate_exchange_rate(
        self,
        rate: Optional[float],
        current_rate: Optional[float] = None,
    ) -> ValidationResult:
        """
        Validate a USD→COP rate before it replaces the current one.

        Non-positive or non-finite rates are errors. A rate that moves more
        than RATE_JUMP_WARNING_RATIO away from the current one is a warning.
        """
        issues = []
        if rate is None or not math.isfinite(rate) or rate <= 0:
            issues.append(ValidationIssue(
                field="usd_to_cop_rate",
                issue_type="invalid_value",
                message="Exchange rate must be a positive number",
                severity="error",
                suggested_fix="Enter how many COP one USD buys",
            ))
        elif current_rate and abs(rate - current_rate) / current_rate > RATE_JUMP_WARNING_RATIO:
            issues.append(ValidationIssue(
                field="usd_to_cop_rate",
                issue_type="suspicious_value",
                message=(
                    f"Rate {rate:,.2f} differs from the current {current_rate:,.2f} "
                    f"by more than {RATE_JUMP_WARNING_RATIO:.0%}"
                ),
                severity="warning",
                suggested_fix="Please verify the rate",
            ))
        return _result("exchange_rate", issues)

    def _check_credit_limit(
        self,
        account_type: AccountType,
        credit_limit: Optional[float],
    ) -> list[ValidationIssue]:
        if credit_limit is None:
            return []
        if account_type != AccountType.CREDIT:
            return [ValidationIssue(
                field="credit_limit",
                issue_type="not_allowed",
                message="Credit limit is only allowed on CREDIT accounts",
                severity="error",
                suggested_fix="Remove the credit limit or change the account type",
            )]
        if credit_limit < 0:
            return [ValidationIssue(
                field="credit_limit",
                issue_type="invalid_value",
                message="Credit limit cannot be negative",
                severity="error",
            )]
        return []

    def _check_debt(
        self,
        account_type: AccountType,
        balance: float,
        credit_limit: Optional[float],
    ) -> list[ValidationIssue]:
        if account_type != AccountType.CREDIT:
            return []
        if balance < 0:
            return [ValidationIssue(
                field="balance",
                issue_type="suspicious_value",
                message="A CREDIT balance is owed debt and is normally not negative",
                severity="warning",
                suggested_fix="Enter the debt as a positive amount",
            )]
        if credit_limit is not None and balance > credit_limit:
            return [ValidationIssue(
                field="balance",
                issue_type="suspicious_value",
                message=f"Debt ({balance:,.2f}) exceeds the credit limit ({credit_limit:,.2f})",
                severity="warning",
            )]
        return []

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per issue, for display next to a form."""
        if result.is_valid and not result.issues:
            return "✅ All checks passed."
        lines = []
        for issue in result.issues:
            icon = "❌" if issue.severity == "error" else "⚠️"
            line = f"{icon} {issue.message}"
            if issue.suggested_fix:
                line += f" ({issue.suggested_fix})"
            lines.append(line)
        return "\n".join(lines)
