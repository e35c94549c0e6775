"""
Main Orchestrator for SmartFi

This module ties the store, the engine, validation and auditing
together into the flows the UI calls:
1. Ledger edits (accounts, groups, ordering, balance adjustments)
2. Dashboard reads (valuation, history, performance)
3. Exchange rate upkeep (periodic refresh, manual override)
4. AI analysis

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing boundary validation
- Every ledger change is audited under one correlation id per user action
- The engine only ever receives an explicit rate and an explicit "now"
"""

import asyncio
from datetime import datetime
from typing import NamedTuple, Optional, Sequence
from uuid import UUID

import structlog
from pydantic import ValidationError

from smartfi.agents import AnalysisResult, FinancialAnalysisAgent
from smartfi.audit import AuditLogger, create_correlation_id
from smartfi.config import get_settings
from smartfi.config.settings import AppSettings, ExchangeRateSettings
from smartfi.engine import (
    MoveDirection,
    available_scope_filters,
    compute_performance,
    compute_valuation,
    move_account,
    move_group,
    next_sort_order,
    reconstruct_history,
)
from smartfi.models.audit import AuditEventBuilder
from smartfi.models.ledger import (
    Account,
    AccountType,
    Currency,
    Group,
    LedgerSettings,
    LedgerSnapshot,
    Transaction,
    utc_now,
)
from smartfi.models.metrics import (
    HistoryPoint,
    PerformanceScope,
    PerformanceStats,
    ScopeDimension,
    ScopeOption,
    TimeWindow,
    Valuation,
)
from smartfi.models.validation import ValidationResult
from smartfi.services.rates import ExchangeRateService
from smartfi.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from smartfi.validation import LedgerValidationError, LedgerValidator

logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates every write to accounts, groups and balances.

    Balance changes always go through adjust_balance, which turns the
    requested balance into a transaction. The stored balance and the
    ledger can therefore never disagree.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def _require_valid(self, result: ValidationResult, correlation_id: UUID) -> None:
        if result.is_valid:
            return
        await self._audit_logger.log_validation_failed(
            subject=result.subject,
            issues=[issue.model_dump() for issue in result.issues],
            correlation_id=correlation_id,
        )
        raise LedgerValidationError(result)

    async def _require_account(self, account_id: UUID) -> Account:
        account = await self._storage.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def _require_group(self, group_id: UUID) -> Group:
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    async def _siblings(self, group_id: Optional[UUID]) -> list[Account]:
        return [a for a in await self._storage.list_accounts() if a.group_id == group_id]

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        account_type: AccountType = AccountType.DEBIT,
        currency: Currency = Currency.COP,
        balance: float = 0.0,
        credit_limit: Optional[float] = None,
        group_id: Optional[UUID] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Create an account at the end of its sibling scope.

        Raises:
            LedgerValidationError: If the draft has errors
            NotFoundError: If group_id names a missing group
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._require_valid(
            self._validator.validate_account(name, account_type, balance, credit_limit),
            correlation_id,
        )
        if group_id is not None:
            await self._require_group(group_id)

        account = Account(
            group_id=group_id,
            name=name,
            description=description,
            type=account_type,
            currency=currency,
            balance=balance,
            credit_limit=credit_limit,
            initial_balance=balance,
            category=category,
            sort_order=next_sort_order(await self._siblings(group_id)),
        )
        await self._storage.save_account(account)

        await self._audit_logger.log(AuditEventBuilder.account_created(
            account_id=account.id,
            name=account.name,
            account_type=account.type.value,
            currency=account.currency.value,
            correlation_id=correlation_id,
        ))
        return account

    async def update_account(
        self,
        account_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Edit an account's descriptive fields.

        Balance and credit limit are changed through adjust_balance,
        the group through set_account_group.
        """
        correlation_id = correlation_id or create_correlation_id()
        account = await self._require_account(account_id)

        changes = {}
        if name is not None and name != account.name:
            await self._require_valid(
                self._validator.validate_account(
                    name, account.type, account.balance, account.credit_limit
                ),
                correlation_id,
            )
            changes["name"] = name
        if description is not None and description != (account.description or ""):
            changes["description"] = description or None
        if category is not None and category != (account.category or ""):
            changes["category"] = category or None
        if not changes:
            return account

        updated = Account.model_validate({**account.model_dump(), **changes})
        await self._storage.update_account(updated)
        await self._audit_logger.log(AuditEventBuilder.account_updated(
            account_id=account_id,
            changes=changes,
            correlation_id=correlation_id,
        ))
        return updated

    async def set_account_group(
        self,
        account_id: UUID,
        group_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """Move an account into another group (or out of all groups), at the end."""
        correlation_id = correlation_id or create_correlation_id()
        account = await self._require_account(account_id)
        if account.group_id == group_id:
            return account
        if group_id is not None:
            await self._require_group(group_id)

        updated = account.model_copy(update={
            "group_id": group_id,
            "sort_order": next_sort_order(await self._siblings(group_id)),
        })
        await self._storage.update_account(updated)
        await self._audit_logger.log(AuditEventBuilder.account_updated(
            account_id=account_id,
            changes={
                "group_id": str(group_id) if group_id else None,
                "sort_order": updated.sort_order,
            },
            correlation_id=correlation_id,
        ))
        return updated

    async def delete_account(
        self,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Delete an account and its transactions. Returns how many were removed."""
        correlation_id = correlation_id or create_correlation_id()
        account = await self._require_account(account_id)
        removed = await self._storage.delete_account(account_id)
        await self._audit_logger.log(AuditEventBuilder.account_deleted(
            account_id=account_id,
            name=account.name,
            removed_transactions=removed,
            correlation_id=correlation_id,
        ))
        return removed

    async def move_account(
        self,
        account_id: UUID,
        direction: MoveDirection,
        correlation_id: Optional[UUID] = None,
    ) -> dict[UUID, int]:
        """
        Swap an account with its neighbour inside its group.

        Returns:
            The sort keys that changed; empty when the move was out of range
        """
        correlation_id = correlation_id or create_correlation_id()
        accounts = await self._storage.list_accounts()
        orders = move_account(accounts, account_id, direction)
        if not orders:
            return orders

        by_id = {a.id: a for a in accounts}
        for moved_id, order in orders.items():
            await self._storage.update_account(
                by_id[moved_id].model_copy(update={"sort_order": order})
            )
        await self._audit_logger.log(AuditEventBuilder.item_moved(
            entity_type="account",
            entity_id=account_id,
            direction=direction.value,
            new_orders={str(k): v for k, v in orders.items()},
            correlation_id=correlation_id,
        ))
        return orders

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def create_group(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Group:
        correlation_id = correlation_id or create_correlation_id()
        await self._require_valid(self._validator.validate_group(name), correlation_id)

        group = Group(
            name=name,
            sort_order=next_sort_order(await self._storage.list_groups()),
        )
        await self._storage.save_group(group)
        await self._audit_logger.log(AuditEventBuilder.group_created(
            group_id=group.id,
            name=group.name,
            correlation_id=correlation_id,
        ))
        return group

    async def rename_group(
        self,
        group_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Group:
        correlation_id = correlation_id or create_correlation_id()
        await self._require_valid(self._validator.validate_group(name), correlation_id)
        group = await self._require_group(group_id)

        updated = group.model_copy(update={"name": name.strip()})
        await self._storage.update_group(updated)
        await self._audit_logger.log(AuditEventBuilder.group_updated(
            group_id=group_id,
            name=updated.name,
            correlation_id=correlation_id,
        ))
        return updated

    async def delete_group(
        self,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[Account]:
        """
        Delete a group. Its accounts survive, ungrouped, balances untouched.

        Returns:
            The detached accounts
        """
        correlation_id = correlation_id or create_correlation_id()
        group = await self._require_group(group_id)
        detached = await self._storage.delete_group(group_id)
        await self._audit_logger.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            name=group.name,
            detached_accounts=len(detached),
            correlation_id=correlation_id,
        ))
        return detached

    async def move_group(
        self,
        group_id: UUID,
        direction: MoveDirection,
        correlation_id: Optional[UUID] = None,
    ) -> dict[UUID, int]:
        correlation_id = correlation_id or create_correlation_id()
        groups = await self._storage.list_groups()
        orders = move_group(groups, group_id, direction)
        if not orders:
            return orders

        by_id = {g.id: g for g in groups}
        for moved_id, order in orders.items():
            await self._storage.update_group(
                by_id[moved_id].model_copy(update={"sort_order": order})
            )
        await self._audit_logger.log(AuditEventBuilder.item_moved(
            entity_type="group",
            entity_id=group_id,
            direction=direction.value,
            new_orders={str(k): v for k, v in orders.items()},
            correlation_id=correlation_id,
        ))
        return orders

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    async def adjust_balance(
        self,
        account_id: UUID,
        new_balance: float,
        new_credit_limit: Optional[float] = None,
        reason: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Transaction]:
        """
        Set an account to a new balance by recording the difference.

        The transaction stores the exchange rate in effect right now.
        A changed credit limit (CREDIT accounts only) is written in the same
        account update as the balance, so neither lands without the other.

        Returns:
            The recorded transaction, or None when the balance didn't change

        Raises:
            NotFoundError: If the account doesn't exist
            LedgerValidationError: If the new values are invalid
        """
        correlation_id = correlation_id or create_correlation_id()
        account = await self._require_account(account_id)
        await self._require_valid(
            self._validator.validate_balance_adjustment(account, new_balance, new_credit_limit),
            correlation_id,
        )

        limit_changed = (
            new_credit_limit is not None and new_credit_limit != account.credit_limit
        )
        limit_event = AuditEventBuilder.credit_limit_updated(
            account_id=account_id,
            old_limit=account.credit_limit,
            new_limit=new_credit_limit,
            correlation_id=correlation_id,
        ) if limit_changed else None

        diff = new_balance - account.balance
        if diff == 0:
            if limit_changed:
                await self._storage.update_account(
                    account.model_copy(update={"credit_limit": new_credit_limit})
                )
                await self._audit_logger.log(limit_event)
            return None

        settings = await self._storage.get_settings()
        transaction = Transaction(
            account_id=account_id,
            amount=diff,
            new_balance=new_balance,
            timestamp=timestamp or utc_now(),
            exchange_rate_used=settings.usd_to_cop_rate,
            reason=reason,
        )
        await self._storage.apply_transaction(
            transaction,
            credit_limit=new_credit_limit if limit_changed else None,
        )
        if limit_event is not None:
            await self._audit_logger.log(limit_event)

        await self._audit_logger.log(AuditEventBuilder.balance_adjusted(
            account_id=account_id,
            transaction_id=transaction.id,
            amount=diff,
            new_balance=new_balance,
            exchange_rate=settings.usd_to_cop_rate,
            correlation_id=correlation_id,
        ))
        return transaction


class DashboardFlow:
    """
    Read side: loads the ledger and runs the engine over it.

    The rate is always the one persisted in the store's settings.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        app_settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._app_settings = app_settings or get_settings().app

    @property
    def project_start(self) -> datetime:
        return self._app_settings.project_start_date

    @property
    def base_currency(self) -> Currency:
        return self._app_settings.base_currency

    async def load_snapshot(self) -> LedgerSnapshot:
        """Load the ledger, dropping transactions older than the project start if configured."""
        snapshot = await self._storage.load_snapshot()
        if self._app_settings.load_transactions_since_project_start:
            start = self.project_start
            snapshot = snapshot.model_copy(update={
                "transactions": [t for t in snapshot.transactions if t.timestamp >= start],
            })
        return snapshot

    def valuation(self, snapshot: LedgerSnapshot) -> Valuation:
        return compute_valuation(
            snapshot.accounts,
            self.base_currency,
            snapshot.settings.usd_to_cop_rate,
        )

    def history(
        self,
        snapshot: LedgerSnapshot,
        now: Optional[datetime] = None,
    ) -> list[HistoryPoint]:
        return reconstruct_history(
            snapshot.accounts,
            snapshot.transactions,
            start_date=self.project_start,
            now=now or utc_now(),
            usd_to_cop_rate=snapshot.settings.usd_to_cop_rate,
            target_currency=self.base_currency,
        )

    def performance(
        self,
        snapshot: LedgerSnapshot,
        scope: PerformanceScope,
        window: TimeWindow,
        now: Optional[datetime] = None,
    ) -> PerformanceStats:
        return compute_performance(
            scope,
            snapshot.accounts,
            snapshot.transactions,
            window,
            target_currency=self.base_currency,
            usd_to_cop_rate=snapshot.settings.usd_to_cop_rate,
            now=now or utc_now(),
            project_start=self.project_start,
        )

    def scope_options(
        self,
        snapshot: LedgerSnapshot,
        dimension: ScopeDimension,
    ) -> list[ScopeOption]:
        return available_scope_filters(dimension, snapshot.accounts, snapshot.groups)


class ExchangeRateFlow:
    """
    Sole writer of the USD→COP rate.

    Refreshes from the rate service (on demand or every
    refresh_interval_seconds) and accepts manual overrides. A failed fetch
    keeps the current rate; the next interval is the only retry.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        rate_service: Optional[ExchangeRateService] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ExchangeRateSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().exchange_rate
        self._rate_service = rate_service or ExchangeRateService(self._settings)
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._lock = asyncio.Lock()
        self._last_refresh: Optional[datetime] = None

    async def current_rate(self) -> float:
        settings = await self._storage.get_settings()
        return settings.usd_to_cop_rate

    async def _store_rate(self, rate: float, source: str, correlation_id: Optional[UUID]) -> float:
        old_rate = await self.current_rate()
        if rate == old_rate:
            return rate
        await self._storage.save_settings(LedgerSettings(usd_to_cop_rate=rate))
        await self._audit_logger.log_exchange_rate_updated(
            old_rate=old_rate,
            new_rate=rate,
            source=source,
            correlation_id=correlation_id,
        )
        return rate

    async def refresh(self, correlation_id: Optional[UUID] = None) -> float:
        """
        Fetch the latest rate and store it.

        Returns:
            The rate in effect afterwards (the old one if the fetch failed)
        """
        async with self._lock:
            fetched = await self._rate_service.fetch_usd_to_cop()
            self._last_refresh = utc_now()
            if fetched is None:
                retained = await self.current_rate()
                await self._audit_logger.log_exchange_rate_fetch_failed(
                    error_message="Rate source unavailable or returned no COP rate",
                    retained_rate=retained,
                    correlation_id=correlation_id,
                )
                return retained
            return await self._store_rate(fetched, "api", correlation_id)

    async def refresh_if_stale(self, now: Optional[datetime] = None) -> float:
        """Refresh only when no refresh happened within the last interval."""
        now = now or utc_now()
        interval = self._settings.refresh_interval_seconds
        if self._last_refresh is not None and (now - self._last_refresh).total_seconds() < interval:
            return await self.current_rate()
        return await self.refresh()

    async def set_manual_rate(
        self,
        rate: float,
        correlation_id: Optional[UUID] = None,
    ) -> float:
        """
        Override the rate by hand.

        Raises:
            LedgerValidationError: If the rate is not a positive number
        """
        correlation_id = correlation_id or create_correlation_id()
        async with self._lock:
            result = self._validator.validate_exchange_rate(rate, await self.current_rate())
            if not result.is_valid:
                await self._audit_logger.log_validation_failed(
                    subject=result.subject,
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
                raise LedgerValidationError(result)
            return await self._store_rate(round(rate, 2), "manual", correlation_id)

    async def run_periodic(
        self,
        stop: Optional[asyncio.Event] = None,
        max_refreshes: Optional[int] = None,
    ) -> int:
        """
        Refresh immediately, then every refresh_interval_seconds.

        Runs until `stop` is set or `max_refreshes` refreshes have happened.

        Returns:
            Number of refreshes performed
        """
        stop = stop or asyncio.Event()
        interval = self._settings.refresh_interval_seconds
        done = 0
        while not stop.is_set():
            try:
                await self.refresh()
            except StorageError as e:
                # Keep the loop alive; the next interval tries again
                await self._audit_logger.log_error(
                    error_type="exchange_rate_refresh",
                    error_message=str(e),
                )
            done += 1
            if max_refreshes is not None and done >= max_refreshes:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        return done


class AnalysisFlow:
    """
    Runs the AI advisor for a scope and audits the outcome.

    The agent is created on first use, so the rest of the app works
    without Gemini configured.
    """

    def __init__(
        self,
        agent: Optional[FinancialAnalysisAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger or AuditLogger()

    async def analyze(
        self,
        scope: str,
        name: str,
        accounts: Sequence[Account],
        transactions: Sequence[Transaction],
        currency: Currency,
        total_balance: float,
        correlation_id: Optional[UUID] = None,
    ) -> AnalysisResult:
        correlation_id = correlation_id or create_correlation_id()
        account_ids = {a.id for a in accounts}
        scoped = [t for t in transactions if t.account_id in account_ids]

        if self._agent is None:
            try:
                self._agent = FinancialAnalysisAgent()
            except ValidationError as e:
                await self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=f"Gemini not configured: {e.error_count()} settings missing",
                    correlation_id=correlation_id,
                )
                return AnalysisResult.fallback()

        result = await self._agent.analyze(
            scope, name, accounts, scoped, currency, total_balance
        )
        await self._audit_logger.log(AuditEventBuilder.analysis_generated(
            scope=scope,
            name=name,
            used_fallback=result.used_fallback,
            correlation_id=correlation_id,
        ))
        return result


class AppComponents(NamedTuple):
    ledger: LedgerFlow
    dashboard: DashboardFlow
    rates: ExchangeRateFlow
    analysis: AnalysisFlow
    uses_google_sheets: bool


def create_app_components(
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                     Set to False (or leave Sheets unconfigured) to run
                     on in-memory storage.
    """
    ledger_storage: Optional[LedgerStorageInterface] = None
    audit_storage = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except ValidationError as e:
            logger.warning("storage_not_configured", error_count=e.error_count())

    uses_google_sheets = ledger_storage is not None
    if ledger_storage is None:
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    return AppComponents(
        ledger=LedgerFlow(ledger_storage, audit_logger=audit_logger),
        dashboard=DashboardFlow(ledger_storage),
        rates=ExchangeRateFlow(ledger_storage, audit_logger=audit_logger),
        analysis=AnalysisFlow(audit_logger=audit_logger),
        uses_google_sheets=uses_google_sheets,
    )
