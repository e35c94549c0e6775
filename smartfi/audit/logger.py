"""
Audit Logger

DESIGN DECISION: Every change to the ledger and every exchange rate
update is logged. This provides:
1. A trace of how each balance got where it is
2. Debugging capability when a fetch or a write fails
3. A record of which rate was in effect when

The audit logger:
- Is async so it sits naturally inside the flows
- Never raises when persisting fails (the ledger write already happened)
- Supports correlation IDs to tie together the events of one user action
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from smartfi.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from smartfi.services.storage import AuditStorageInterface, StorageError


def configure_logging(json_output: bool = True) -> None:
    """
    Configure structlog for the whole process.

    JSON lines by default; the console renderer is easier to read
    while developing.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Writes audit events to the structured log and, when configured,
    to the audit store.
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("smartfi.audit")

    @property
    def persists(self) -> bool:
        return self._storage is not None

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the audit store rejected the write.
        """
        emit = getattr(self._logger, _LEVELS.get(event.severity, "info"))
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except StorageError as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    # Shortcuts for events raised outside a single ledger write

    async def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> bool:
        return await self.log(
            AuditEventBuilder.validation_failed(subject, issues, correlation_id)
        )

    async def log_exchange_rate_updated(
        self,
        old_rate: float,
        new_rate: float,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """`source` is "api" or "manual"."""
        return await self.log(
            AuditEventBuilder.exchange_rate_updated(old_rate, new_rate, source, correlation_id)
        )

    async def log_exchange_rate_fetch_failed(
        self,
        error_message: str,
        retained_rate: float,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        return await self.log(
            AuditEventBuilder.exchange_rate_fetch_failed(
                error_message, retained_rate, correlation_id
            )
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        return await self.log(
            AuditEventBuilder.system_error(error_type, error_message, details, correlation_id)
        )

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        return await self.log(
            AuditEventBuilder.external_service_error(service, error_message, correlation_id)
        )


def create_correlation_id() -> UUID:
    """A fresh id shared by every event of one user action."""
    return uuid4()
