"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of balances
2. Debugging capability
3. User can see history of their deposits and withdrawals
4. A record of rejected withdrawals

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from savings_tracker.models.audit import AuditEvent, AuditEventBuilder
from savings_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(debug: bool = False) -> None:
    """Let package logs through the stdlib filter: INFO, or DEBUG in debug mode."""
    logging.basicConfig(format="%(message)s")
    logging.getLogger("savings_tracker").setLevel(logging.DEBUG if debug else logging.INFO)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_deposit(
        self,
        user_id: str,
        month: str,
        amount: Decimal,
        new_total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a deposit."""
        event = AuditEventBuilder.deposit_recorded(
            user_id=user_id,
            month=month,
            amount=amount,
            new_total=new_total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_target_set(
        self,
        user_id: str,
        month: str,
        target_field: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a monthly or saving target change."""
        event = AuditEventBuilder.target_set(
            user_id=user_id,
            month=month,
            target_field=target_field,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_updated(
        self,
        user_id: str,
        month: str,
        before: dict,
        after: dict,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.monthly_entry_updated(
            user_id=user_id,
            month=month,
            before=before,
            after=after,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_deleted(
        self,
        user_id: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.monthly_entry_deleted(
            user_id=user_id,
            month=month,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_withdrawal_committed(
        self,
        user_id: str,
        withdrawal_id: UUID,
        month: str,
        amount: Decimal,
        balance_before: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful withdrawal."""
        event = AuditEventBuilder.withdrawal_committed(
            user_id=user_id,
            withdrawal_id=withdrawal_id,
            month=month,
            amount=amount,
            balance_before=balance_before,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_withdrawal_rejected(
        self,
        user_id: str,
        amount: str,
        reason: str,
        error_code: str,
        available: Optional[Decimal] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a withdrawal that was refused before or inside the transaction."""
        event = AuditEventBuilder.withdrawal_rejected(
            user_id=user_id,
            amount=amount,
            reason=reason,
            error_code=error_code,
            available=available,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_withdrawal_updated(
        self,
        user_id: str,
        withdrawal_id: UUID,
        before: dict,
        after: dict,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.withdrawal_updated(
            user_id=user_id,
            withdrawal_id=withdrawal_id,
            before=before,
            after=after,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_withdrawal_deleted(
        self,
        user_id: str,
        withdrawal_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.withdrawal_deleted(
            user_id=user_id,
            withdrawal_id=withdrawal_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_no_changes(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.no_changes(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage backend failure."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a withdrawal).
    Pass it through all subsequent operations.
    """
    return uuid4()
