"""
Audit Models for SmartFi

Every user action that changes the ledger is logged for audit purposes.
This provides:
1. Complete traceability of balance changes
2. Debugging information when things go wrong
3. A record of every exchange rate that was in effect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from smartfi.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    ACCOUNT_MOVED = "account_moved"

    # Groups
    GROUP_CREATED = "group_created"
    GROUP_UPDATED = "group_updated"
    GROUP_DELETED = "group_deleted"
    GROUP_MOVED = "group_moved"

    # Balances
    BALANCE_ADJUSTED = "balance_adjusted"
    CREDIT_LIMIT_UPDATED = "credit_limit_updated"

    # Exchange rate
    EXCHANGE_RATE_UPDATED = "exchange_rate_updated"
    EXCHANGE_RATE_FETCH_FAILED = "exchange_rate_fetch_failed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Analysis
    ANALYSIS_GENERATED = "analysis_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'group', 'settings')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one balance update)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, name, correlation_id)
        event = AuditEventBuilder.balance_adjusted(...)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        name: str,
        account_type: str,
        currency: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created: {name}",
            details={
                "name": name,
                "type": account_type,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def account_updated(
        account_id: UUID,
        changes: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account updated: {', '.join(sorted(changes)) or 'no fields'}",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        account_id: UUID,
        name: str,
        removed_transactions: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account deleted: {name}",
            details={
                "name": name,
                "removed_transactions": removed_transactions,
            },
            is_user_action=True,
        )

    @staticmethod
    def item_moved(
        entity_type: str,
        entity_id: UUID,
        direction: str,
        new_orders: dict[str, int],
        correlation_id: UUID
    ) -> AuditEvent:
        event_type = (
            AuditEventType.ACCOUNT_MOVED
            if entity_type == "account"
            else AuditEventType.GROUP_MOVED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} moved {direction}",
            details={
                "direction": direction,
                "new_orders": new_orders,
            },
            is_user_action=True,
        )

    @staticmethod
    def group_created(
        group_id: UUID,
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def group_updated(
        group_id: UUID,
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_UPDATED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group renamed: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def group_deleted(
        group_id: UUID,
        name: str,
        detached_accounts: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group deleted: {name} ({detached_accounts} accounts detached)",
            details={
                "name": name,
                "detached_accounts": detached_accounts,
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_adjusted(
        account_id: UUID,
        transaction_id: UUID,
        amount: float,
        new_balance: float,
        exchange_rate: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {amount:,.2f} to {new_balance:,.2f}",
            details={
                "transaction_id": str(transaction_id),
                "amount": amount,
                "new_balance": new_balance,
                "exchange_rate_used": exchange_rate,
            },
            is_user_action=True,
        )

    @staticmethod
    def credit_limit_updated(
        account_id: UUID,
        old_limit: Optional[float],
        new_limit: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_LIMIT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Credit limit set to {new_limit:,.2f}",
            details={
                "old_limit": old_limit,
                "new_limit": new_limit,
            },
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_updated(
        old_rate: float,
        new_rate: float,
        source: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_UPDATED,
            entity_type="settings",
            correlation_id=correlation_id,
            description=f"USD→COP rate {old_rate:,.2f} → {new_rate:,.2f} ({source})",
            details={
                "old_rate": old_rate,
                "new_rate": new_rate,
                "source": source,
            },
            is_user_action=source == "manual",
        )

    @staticmethod
    def exchange_rate_fetch_failed(
        error_message: str,
        retained_rate: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="settings",
            correlation_id=correlation_id,
            description="Exchange rate fetch failed, keeping previous rate",
            error_message=error_message,
            details={"retained_rate": retained_rate},
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"Validation of {subject} failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def analysis_generated(
        scope: str,
        name: str,
        used_fallback: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_GENERATED,
            severity=AuditSeverity.WARNING if used_fallback else AuditSeverity.INFO,
            entity_type="analysis",
            correlation_id=correlation_id,
            description=f"Financial analysis for {scope}: {name}",
            details={
                "scope": scope,
                "name": name,
                "used_fallback": used_fallback,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
