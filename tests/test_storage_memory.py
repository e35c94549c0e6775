"""Tests for the in-memory store."""

from datetime import timedelta
from uuid import uuid4

import pytest

from smartfi.models.audit import AuditEventBuilder
from smartfi.models.ledger import AccountType, Group, LedgerSettings, Transaction
from smartfi.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
)
from tests.factories import NOW, make_account, make_transaction


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


class TestAccounts:

    @pytest.mark.asyncio
    async def test_save_and_get(self, storage):
        account = make_account(balance=100)
        await storage.save_account(account)
        assert await storage.get_account(account.id) == account
        assert await storage.get_account(uuid4()) is None

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, storage):
        account = make_account()
        await storage.save_account(account)
        with pytest.raises(DuplicateError):
            await storage.save_account(account)

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, storage):
        account = make_account(balance=100)
        await storage.save_account(account)

        fetched = await storage.get_account(account.id)
        fetched.balance = 999

        assert (await storage.get_account(account.id)).balance == 100

    @pytest.mark.asyncio
    async def test_update_missing_account(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_account(make_account())

    @pytest.mark.asyncio
    async def test_delete_cascades_transactions(self, storage):
        doomed = make_account("Doomed", balance=10)
        kept = make_account("Kept", balance=10)
        await storage.save_account(doomed)
        await storage.save_account(kept)
        await storage.apply_transaction(make_transaction(doomed, 5, NOW, new_balance=15))
        await storage.apply_transaction(make_transaction(doomed, 5, NOW, new_balance=20))
        await storage.apply_transaction(make_transaction(kept, 5, NOW, new_balance=15))

        removed = await storage.delete_account(doomed.id)

        assert removed == 2
        remaining = await storage.list_transactions()
        assert [t.account_id for t in remaining] == [kept.id]


class TestGroups:

    @pytest.mark.asyncio
    async def test_delete_group_detaches_accounts(self, storage):
        group = Group(name="Banks")
        await storage.save_group(group)
        loose = make_account("Loose", sort_order=4)
        first = make_account("First", balance=100, group_id=group.id, sort_order=0)
        second = make_account("Second", balance=200, group_id=group.id, sort_order=1)
        for account in (loose, first, second):
            await storage.save_account(account)

        detached = await storage.delete_group(group.id)

        assert [a.name for a in detached] == ["First", "Second"]
        assert [a.sort_order for a in detached] == [5, 6]
        assert await storage.get_group(group.id) is None
        stored = {a.id: a for a in await storage.list_accounts()}
        assert stored[first.id].group_id is None
        assert stored[first.id].balance == 100
        assert stored[second.id].balance == 200

    @pytest.mark.asyncio
    async def test_delete_missing_group(self, storage):
        with pytest.raises(NotFoundError):
            await storage.delete_group(uuid4())


class TestTransactions:

    @pytest.mark.asyncio
    async def test_apply_transaction_sets_balance(self, storage):
        account = make_account(balance=100)
        await storage.save_account(account)
        transaction = Transaction(account_id=account.id, amount=50, new_balance=150)

        updated = await storage.apply_transaction(transaction)

        assert updated.balance == 150
        assert (await storage.get_account(account.id)).balance == 150
        assert await storage.list_transactions() == [transaction]

    @pytest.mark.asyncio
    async def test_apply_transaction_with_credit_limit(self, storage):
        card = make_account("Visa", balance=200, account_type=AccountType.CREDIT, credit_limit=1000)
        await storage.save_account(card)
        transaction = Transaction(account_id=card.id, amount=100, new_balance=300)

        updated = await storage.apply_transaction(transaction, credit_limit=5000)

        stored = await storage.get_account(card.id)
        assert (stored.balance, stored.credit_limit) == (300, 5000)
        assert updated == stored

    @pytest.mark.asyncio
    async def test_apply_transaction_unknown_account(self, storage):
        transaction = Transaction(account_id=uuid4(), amount=50, new_balance=150)
        with pytest.raises(NotFoundError):
            await storage.apply_transaction(transaction)
        assert await storage.list_transactions() == []


class TestSettingsAndSnapshot:

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, storage):
        assert (await storage.get_settings()).usd_to_cop_rate == 4000.0
        await storage.save_settings(LedgerSettings(usd_to_cop_rate=4150.5))
        assert (await storage.get_settings()).usd_to_cop_rate == 4150.5

    @pytest.mark.asyncio
    async def test_load_snapshot(self, storage):
        account = make_account()
        group = Group(name="G")
        await storage.save_account(account)
        await storage.save_group(group)

        snapshot = await storage.load_snapshot()

        assert snapshot.accounts == [account]
        assert snapshot.groups == [group]
        assert snapshot.transactions == []


class TestAuditStorage:

    @pytest.mark.asyncio
    async def test_query_events(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        account_id = uuid4()
        first = AuditEventBuilder.account_created(account_id, "A", "DEBIT", "COP", correlation_id)
        second = AuditEventBuilder.account_updated(account_id, {"name": "B"}, correlation_id)
        second.timestamp = first.timestamp + timedelta(seconds=1)
        other = AuditEventBuilder.group_created(uuid4(), "G", uuid4())
        for event in (second, first, other):
            await storage.append_event(event)

        assert await storage.get_events_by_correlation_id(correlation_id) == [first, second]
        assert await storage.get_events_by_entity("account", account_id) == [first, second]
        recent = await storage.get_recent_events(limit=2)
        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp
