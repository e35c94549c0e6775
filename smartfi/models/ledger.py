"""
Core Ledger Models for SmartFi

These models define the schemas for everything the store hands to the
computation engine: accounts, groups, transactions and the exchange-rate
setting. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is carried as float. The engine compounds returns
with fractional exponents and converts through a floating exchange rate,
so Decimal would be cast away at every step anyway.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class Currency(str, Enum):
    """Supported currencies. Cross-currency math goes through USD→COP."""
    COP = "COP"
    USD = "USD"


class AccountType(str, Enum):
    """
    Account kinds.

    DEBIT accounts hold money (cash, savings, investments).
    CREDIT accounts hold debt (credit cards); their balance is what is owed.
    """
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Group(BaseModel):
    """A named bucket of accounts, ordered among all groups by sort_order."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Account(BaseModel):
    """
    A single tracked account.

    The balance is a signed magnitude in the account's own currency.
    For CREDIT accounts it is the owed debt and stays non-negative
    by convention (the validator flags it, the model does not forbid it).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: Optional[UUID] = Field(
        default=None,
        description="Owning group; None means ungrouped"
    )
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: AccountType = Field(default=AccountType.DEBIT)
    currency: Currency = Field(default=Currency.COP)
    balance: float = Field(default=0.0)
    credit_limit: Optional[float] = Field(
        default=None,
        ge=0,
        description="Only meaningful for CREDIT accounts"
    )
    initial_balance: float = Field(
        default=0.0,
        description="Balance at creation time"
    )
    created_at: datetime = Field(default_factory=utc_now)
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Free-text tag used to scope performance stats"
    )
    sort_order: int = Field(
        default=0,
        description="Unique within the ungrouped set or within its group"
    )

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator('category')
    @classmethod
    def blank_category_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_credit_limit(self) -> 'Account':
        """Credit limits only exist on CREDIT accounts."""
        if self.credit_limit is not None and self.type != AccountType.CREDIT:
            raise ValueError("Credit limit is only allowed on CREDIT accounts")
        return self

    @property
    def is_credit(self) -> bool:
        return self.type == AccountType.CREDIT


class Transaction(BaseModel):
    """
    A balance change on one account.

    CRITICAL: Transactions are append-only. They disappear only when the
    owning account is deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    amount: float = Field(
        ...,
        description="Signed delta in the account's native currency"
    )
    new_balance: float = Field(
        ...,
        description="Account balance right after applying the delta"
    )
    timestamp: datetime = Field(default_factory=utc_now)
    exchange_rate_used: Optional[float] = Field(
        default=None,
        ge=0,
        description="COP per USD when the transaction was recorded"
    )
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def previous_balance(self) -> float:
        return self.new_balance - self.amount


class LedgerSettings(BaseModel):
    """The single mutable exchange-rate setting."""

    usd_to_cop_rate: float = Field(
        default=4000.0,
        gt=0,
        description="COP per USD used for every conversion"
    )
    updated_at: datetime = Field(default_factory=utc_now)


class LedgerSnapshot(BaseModel):
    """Everything the store holds for the active user, read in one go."""

    accounts: list[Account] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    settings: LedgerSettings = Field(default_factory=LedgerSettings)

    def account_by_id(self) -> dict[UUID, Account]:
        return {account.id: account for account in self.accounts}

    def accounts_in_group(self, group_id: Optional[UUID]) -> list[Account]:
        """Accounts of one sibling scope, in display order."""
        siblings = [a for a in self.accounts if a.group_id == group_id]
        return sorted(siblings, key=lambda a: (a.sort_order, a.created_at))

    def ordered_groups(self) -> list[Group]:
        return sorted(self.groups, key=lambda g: (g.sort_order, str(g.id)))

    def tags(self) -> list[str]:
        """Distinct account tags, in first-seen order."""
        seen: list[str] = []
        for account in self.accounts:
            if account.category and account.category not in seen:
                seen.append(account.category)
        return seen
