"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The user can open and read their ledger directly in Sheets
2. No database setup required
3. Backups come for free with the Google account

TRADEOFFS:
- No transactions. apply_transaction appends the ledger row first and
  removes it again if the balance write fails
- Every query reads the full worksheet and filters in Python

One worksheet per entity (Accounts, Groups, Transactions, Settings,
AuditLog). Row 1 of every worksheet is the header.
"""

import json
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smartfi.config import get_settings
from smartfi.config.settings import GoogleSheetsSettings
from smartfi.engine.ordering import account_sort_key, next_sort_order
from smartfi.models.audit import AuditEvent, AuditEventType, AuditSeverity
from smartfi.models.ledger import (
    Account,
    AccountType,
    Currency,
    Group,
    LedgerSettings,
    Transaction,
)
from smartfi.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)

sheets_retry = retry(
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


ACCOUNT_COLUMNS = [
    "id",
    "group_id",
    "name",
    "description",
    "type",
    "currency",
    "balance",
    "credit_limit",
    "initial_balance",
    "created_at",
    "category",
    "sort_order",
]

GROUP_COLUMNS = [
    "id",
    "name",
    "sort_order",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "account_id",
    "amount",
    "new_balance",
    "timestamp",
    "exchange_rate_used",
    "reason",
]

SETTINGS_COLUMNS = [
    "key",
    "value",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_float(value: str) -> Optional[float]:
    return float(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and hands out worksheets, creating any
    missing one with its header row.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @sheets_retry
    def connect(self) -> gspread.Client:
        """Authenticate with the service account credentials."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title)
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def accounts_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS)

    def groups_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def transactions_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000
        )

    def settings_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.settings_sheet_name, SETTINGS_COLUMNS, rows=10)

    def audit_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


# =============================================================================
# ROW CONVERSION
# =============================================================================

def account_to_row(account: Account) -> list:
    return [
        str(account.id),
        str(account.group_id) if account.group_id else "",
        account.name,
        account.description or "",
        account.type.value,
        account.currency.value,
        account.balance,
        account.credit_limit if account.credit_limit is not None else "",
        account.initial_balance,
        account.created_at.isoformat(),
        account.category or "",
        account.sort_order,
    ]


def row_to_account(row: list) -> Account:
    return Account(
        id=UUID(_cell(row, 0)),
        group_id=UUID(_cell(row, 1)) if _cell(row, 1) else None,
        name=_cell(row, 2),
        description=_cell(row, 3) or None,
        type=AccountType(_cell(row, 4, AccountType.DEBIT.value)),
        currency=Currency(_cell(row, 5, Currency.COP.value)),
        balance=float(_cell(row, 6, "0")),
        credit_limit=_optional_float(_cell(row, 7)),
        initial_balance=float(_cell(row, 8, "0")),
        created_at=datetime.fromisoformat(_cell(row, 9)),
        category=_cell(row, 10) or None,
        sort_order=int(_cell(row, 11, "0")),
    )


def group_to_row(group: Group) -> list:
    return [
        str(group.id),
        group.name,
        group.sort_order,
        group.created_at.isoformat(),
    ]


def row_to_group(row: list) -> Group:
    return Group(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        sort_order=int(_cell(row, 2, "0")),
        created_at=datetime.fromisoformat(_cell(row, 3)),
    )


def transaction_to_row(transaction: Transaction) -> list:
    return [
        str(transaction.id),
        str(transaction.account_id),
        transaction.amount,
        transaction.new_balance,
        transaction.timestamp.isoformat(),
        transaction.exchange_rate_used if transaction.exchange_rate_used is not None else "",
        transaction.reason or "",
    ]


def row_to_transaction(row: list) -> Transaction:
    return Transaction(
        id=UUID(_cell(row, 0)),
        account_id=UUID(_cell(row, 1)),
        amount=float(_cell(row, 2)),
        new_balance=float(_cell(row, 3)),
        timestamp=datetime.fromisoformat(_cell(row, 4)),
        exchange_rate_used=_optional_float(_cell(row, 5)),
        reason=_cell(row, 6) or None,
    )


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_cell(row, 0)),
        timestamp=datetime.fromisoformat(_cell(row, 1)),
        event_type=AuditEventType(_cell(row, 2)),
        severity=AuditSeverity(_cell(row, 3)),
        entity_type=_cell(row, 4) or None,
        entity_id=UUID(_cell(row, 5)) if _cell(row, 5) else None,
        correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
        description=_cell(row, 7),
        details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
        error_message=_cell(row, 9) or None,
        is_user_action=_cell(row, 10).lower() == "true",
    )


def _parse_rows(rows: list[list], parse: Callable, entity: str) -> list:
    """Parse data rows, skipping (and logging) malformed ones."""
    parsed = []
    for index, row in enumerate(rows, start=2):
        if not row or not row[0]:
            continue
        try:
            parsed.append(parse(row))
        except (ValueError, TypeError) as e:
            logger.warning("malformed_row_skipped", entity=entity, row=index, error=str(e))
    return parsed


def _find_row(sheet: gspread.Worksheet, entity_id: UUID) -> Optional[int]:
    """1-based sheet row index of the entity, or None."""
    for index, row in enumerate(sheet.get_all_values()[1:], start=2):
        if row and row[0] == str(entity_id):
            return index
    return None


def _write_row(sheet: gspread.Worksheet, index: int, row: list) -> None:
    sheet.update(range_name=f"A{index}", values=[row], value_input_option="RAW")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each account, group and transaction is one row. The settings sheet
    holds key/value rows.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @sheets_retry
    async def list_accounts(self) -> list[Account]:
        try:
            rows = self._client.accounts_sheet().get_all_values()[1:]
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to list accounts: {e}") from e
        return _parse_rows(rows, row_to_account, "account")

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        for account in await self.list_accounts():
            if account.id == account_id:
                return account
        return None

    @sheets_retry
    async def save_account(self, account: Account) -> bool:
        try:
            sheet = self._client.accounts_sheet()
            if _find_row(sheet, account.id) is not None:
                raise DuplicateError(f"Account already exists: {account.id}")
            sheet.append_row(account_to_row(account), value_input_option="RAW")
            return True
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to save account: {e}") from e

    @sheets_retry
    async def update_account(self, account: Account) -> bool:
        try:
            sheet = self._client.accounts_sheet()
            index = _find_row(sheet, account.id)
            if index is None:
                raise NotFoundError(f"Account not found: {account.id}")
            _write_row(sheet, index, account_to_row(account))
            return True
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to update account: {e}") from e

    async def delete_account(self, account_id: UUID) -> int:
        try:
            sheet = self._client.accounts_sheet()
            index = _find_row(sheet, account_id)
            if index is None:
                raise NotFoundError(f"Account not found: {account_id}")

            tx_sheet = self._client.transactions_sheet()
            doomed = [
                i for i, row in enumerate(tx_sheet.get_all_values()[1:], start=2)
                if len(row) > 1 and row[1] == str(account_id)
            ]
            # Bottom-up so earlier indices stay valid
            for tx_index in reversed(doomed):
                tx_sheet.delete_rows(tx_index)
            sheet.delete_rows(index)
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to delete account: {e}") from e

        logger.info("account_rows_deleted", account_id=str(account_id), transactions=len(doomed))
        return len(doomed)

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @sheets_retry
    async def list_groups(self) -> list[Group]:
        try:
            rows = self._client.groups_sheet().get_all_values()[1:]
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to list groups: {e}") from e
        return _parse_rows(rows, row_to_group, "group")

    async def get_group(self, group_id: UUID) -> Optional[Group]:
        for group in await self.list_groups():
            if group.id == group_id:
                return group
        return None

    @sheets_retry
    async def save_group(self, group: Group) -> bool:
        try:
            sheet = self._client.groups_sheet()
            if _find_row(sheet, group.id) is not None:
                raise DuplicateError(f"Group already exists: {group.id}")
            sheet.append_row(group_to_row(group), value_input_option="RAW")
            return True
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to save group: {e}") from e

    @sheets_retry
    async def update_group(self, group: Group) -> bool:
        try:
            sheet = self._client.groups_sheet()
            index = _find_row(sheet, group.id)
            if index is None:
                raise NotFoundError(f"Group not found: {group.id}")
            _write_row(sheet, index, group_to_row(group))
            return True
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to update group: {e}") from e

    async def delete_group(self, group_id: UUID) -> list[Account]:
        try:
            sheet = self._client.groups_sheet()
            index = _find_row(sheet, group_id)
            if index is None:
                raise NotFoundError(f"Group not found: {group_id}")

            accounts = await self.list_accounts()
            ungrouped = [a for a in accounts if a.group_id is None]
            members = sorted(
                (a for a in accounts if a.group_id == group_id),
                key=account_sort_key,
            )
            order = next_sort_order(ungrouped)
            detached = [
                account.model_copy(update={"group_id": None, "sort_order": order + offset})
                for offset, account in enumerate(members)
            ]
            # Accounts first: a half-finished delete leaves an empty group, never orphans
            for account in detached:
                await self.update_account(account)
            sheet.delete_rows(index)
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to delete group: {e}") from e
        return detached

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @sheets_retry
    async def list_transactions(self) -> list[Transaction]:
        try:
            rows = self._client.transactions_sheet().get_all_values()[1:]
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to list transactions: {e}") from e
        return _parse_rows(rows, row_to_transaction, "transaction")

    async def apply_transaction(
        self,
        transaction: Transaction,
        credit_limit: Optional[float] = None,
    ) -> Account:
        account = await self.get_account(transaction.account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {transaction.account_id}")

        tx_sheet = self._client.transactions_sheet()
        try:
            tx_sheet.append_row(transaction_to_row(transaction), value_input_option="RAW")
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to append transaction: {e}") from e

        changes = {"balance": transaction.new_balance}
        if credit_limit is not None:
            changes["credit_limit"] = credit_limit
        updated = account.model_copy(update=changes)
        try:
            await self.update_account(updated)
        except StorageError:
            # Roll the ledger row back so the pair stays consistent
            index = _find_row(tx_sheet, transaction.id)
            if index is not None:
                tx_sheet.delete_rows(index)
            logger.error("transaction_rolled_back", transaction_id=str(transaction.id))
            raise
        return updated

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @sheets_retry
    async def get_settings(self) -> LedgerSettings:
        try:
            rows = self._client.settings_sheet().get_all_values()[1:]
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to read settings: {e}") from e

        values = {row[0]: row[1] for row in rows if len(row) > 1 and row[0]}
        if "usd_to_cop_rate" not in values:
            return LedgerSettings()
        try:
            return LedgerSettings(
                usd_to_cop_rate=float(values["usd_to_cop_rate"]),
                updated_at=datetime.fromisoformat(values["updated_at"]),
            )
        except (KeyError, ValueError) as e:
            logger.warning("malformed_settings_ignored", error=str(e))
            return LedgerSettings()

    @sheets_retry
    async def save_settings(self, settings: LedgerSettings) -> bool:
        try:
            sheet = self._client.settings_sheet()
            sheet.update(
                range_name="A2",
                values=[
                    ["usd_to_cop_rate", settings.usd_to_cop_rate],
                    ["updated_at", settings.updated_at.isoformat()],
                ],
                value_input_option="RAW",
            )
            return True
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to save settings: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            await self._append_row(event.to_sheets_row())
            return True
        except (StorageError, gspread.exceptions.APIError) as e:
            # Audit logging must not break the main flow
            logger.warning("audit_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    @sheets_retry
    async def _append_row(self, row: list) -> None:
        self._client.audit_sheet().append_row(row, value_input_option="RAW")

    @sheets_retry
    async def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.audit_sheet().get_all_values()[1:]
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        return _parse_rows(rows, row_to_event, "audit_event")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in await self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
