"""
In-Memory Storage Implementation

Used for tests and for running the app without Google Sheets configured.
Data lives for the life of the process only.

Every read returns copies so callers can never mutate stored state
behind the store's back.
"""

from typing import Optional
from uuid import UUID

from smartfi.engine.ordering import account_sort_key, next_sort_order
from smartfi.models.audit import AuditEvent
from smartfi.models.ledger import (
    Account,
    Group,
    LedgerSettings,
    LedgerSnapshot,
    Transaction,
)
from smartfi.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


def _account_changes(transaction: Transaction, credit_limit: Optional[float]) -> dict:
    changes = {"balance": transaction.new_balance}
    if credit_limit is not None:
        changes["credit_limit"] = credit_limit
    return changes


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        snapshot = snapshot or LedgerSnapshot()
        self._accounts: dict[UUID, Account] = {a.id: a for a in snapshot.accounts}
        self._groups: dict[UUID, Group] = {g.id: g for g in snapshot.groups}
        self._transactions: list[Transaction] = list(snapshot.transactions)
        self._settings = snapshot.settings

    # Accounts

    async def list_accounts(self) -> list[Account]:
        return [a.model_copy() for a in self._accounts.values()]

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy() if account else None

    async def save_account(self, account: Account) -> bool:
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts[account.id] = account.model_copy()
        return True

    async def update_account(self, account: Account) -> bool:
        if account.id not in self._accounts:
            raise NotFoundError(f"Account not found: {account.id}")
        self._accounts[account.id] = account.model_copy()
        return True

    async def delete_account(self, account_id: UUID) -> int:
        if account_id not in self._accounts:
            raise NotFoundError(f"Account not found: {account_id}")
        del self._accounts[account_id]
        before = len(self._transactions)
        self._transactions = [t for t in self._transactions if t.account_id != account_id]
        return before - len(self._transactions)

    # Groups

    async def list_groups(self) -> list[Group]:
        return [g.model_copy() for g in self._groups.values()]

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy() if group else None

    async def save_group(self, group: Group) -> bool:
        if group.id in self._groups:
            raise DuplicateError(f"Group already exists: {group.id}")
        self._groups[group.id] = group.model_copy()
        return True

    async def update_group(self, group: Group) -> bool:
        if group.id not in self._groups:
            raise NotFoundError(f"Group not found: {group.id}")
        self._groups[group.id] = group.model_copy()
        return True

    async def delete_group(self, group_id: UUID) -> list[Account]:
        if group_id not in self._groups:
            raise NotFoundError(f"Group not found: {group_id}")
        del self._groups[group_id]

        ungrouped = [a for a in self._accounts.values() if a.group_id is None]
        members = sorted(
            (a for a in self._accounts.values() if a.group_id == group_id),
            key=account_sort_key,
        )
        order = next_sort_order(ungrouped)
        detached = []
        for offset, account in enumerate(members):
            moved = account.model_copy(update={"group_id": None, "sort_order": order + offset})
            self._accounts[account.id] = moved
            detached.append(moved.model_copy())
        return detached

    # Transactions

    async def list_transactions(self) -> list[Transaction]:
        return [t.model_copy() for t in self._transactions]

    async def apply_transaction(
        self,
        transaction: Transaction,
        credit_limit: Optional[float] = None,
    ) -> Account:
        account = self._accounts.get(transaction.account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {transaction.account_id}")
        updated = account.model_copy(update=_account_changes(transaction, credit_limit))
        # Both writes happen with no await in between
        self._transactions.append(transaction.model_copy())
        self._accounts[account.id] = updated
        return updated.model_copy()

    # Settings

    async def get_settings(self) -> LedgerSettings:
        return self._settings.model_copy()

    async def save_settings(self, settings: LedgerSettings) -> bool:
        self._settings = settings.model_copy()
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
