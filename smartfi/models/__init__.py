"""
Data Models Package

This package contains all Pydantic models used in SmartFi.
All data flowing between the store, the engine and the UI
must conform to these schemas.
"""

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
    Projection,
    ScopeDimension,
    ScopeOption,
    TimeWindow,
    Valuation,
)
from smartfi.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from smartfi.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "Currency",
    "Group",
    "LedgerSettings",
    "LedgerSnapshot",
    "Transaction",
    "utc_now",
    # Metrics
    "HistoryPoint",
    "PerformanceScope",
    "PerformanceStats",
    "Projection",
    "ScopeDimension",
    "ScopeOption",
    "TimeWindow",
    "Valuation",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
