"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the computation engine decoupled from persistence

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs. Ownership and access control are
the backend's concern; every method works on the active user's data.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from smartfi.models.audit import AuditEvent
from smartfi.models.ledger import (
    Account,
    Group,
    LedgerSettings,
    LedgerSnapshot,
    Transaction,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for account, group, transaction and settings storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        pass

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> bool:
        """
        Persist a new account.

        Raises:
            DuplicateError: If an account with the same ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> bool:
        """
        Replace a stored account with the given one.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> int:
        """
        Delete an account and, by cascade, its transactions.

        Returns:
            Number of transactions removed with it

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        pass

    @abstractmethod
    async def get_group(self, group_id: UUID) -> Optional[Group]:
        pass

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        pass

    @abstractmethod
    async def update_group(self, group: Group) -> bool:
        pass

    @abstractmethod
    async def delete_group(self, group_id: UUID) -> list[Account]:
        """
        Delete a group, detaching (never deleting) its accounts.

        Detached accounts get group_id None and a sort key after every
        already-ungrouped account, keeping their relative order.

        Returns:
            The detached accounts as stored afterwards

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        pass

    @abstractmethod
    async def apply_transaction(
        self,
        transaction: Transaction,
        credit_limit: Optional[float] = None,
    ) -> Account:
        """
        Append a transaction and set its account's balance, as one unit.

        The account's balance becomes transaction.new_balance, and its credit
        limit becomes `credit_limit` when one is given, in the same account
        write. No caller may observe the transaction without the account
        change or vice versa.

        Returns:
            The updated account

        Raises:
            NotFoundError: If the account doesn't exist
            StorageError: If either write fails
        """
        pass

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_settings(self) -> LedgerSettings:
        pass

    @abstractmethod
    async def save_settings(self, settings: LedgerSettings) -> bool:
        pass

    async def load_snapshot(self) -> LedgerSnapshot:
        """Read everything the engine needs in one call."""
        return LedgerSnapshot(
            accounts=await self.list_accounts(),
            groups=await self.list_groups(),
            transactions=await self.list_transactions(),
            settings=await self.get_settings(),
        )


class AuditStorageInterface(ABC):
    """
    Append-only store for audit events. Events are never edited or removed.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Every event of one user action, oldest first."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """The history of one account, group or setting, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Up to `limit` events, newest first."""
        pass


class StorageError(Exception):
    """A store read or write failed."""


class NotFoundError(StorageError):
    """The account, group or row does not exist."""


class DuplicateError(StorageError):
    """An entity with the same id is already stored."""


class ConnectionError(StorageError):
    """The backend could not be reached or authenticated."""
