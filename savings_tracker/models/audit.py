"""
Audit Models for Savings Tracker

Every ledger mutation is logged for audit purposes.
This provides:
1. Complete traceability of deposits, targets and withdrawals
2. Debugging information when things go wrong
3. A record of rejected withdrawals, which leave no other trace
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from savings_tracker.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"

    # Ledger store
    DEPOSIT_RECORDED = "deposit_recorded"
    MONTHLY_TARGET_SET = "monthly_target_set"
    SAVING_TARGET_SET = "saving_target_set"
    MONTHLY_ENTRY_UPDATED = "monthly_entry_updated"
    MONTHLY_ENTRY_DELETED = "monthly_entry_deleted"

    # Withdrawal log
    WITHDRAWAL_COMMITTED = "withdrawal_committed"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    WITHDRAWAL_UPDATED = "withdrawal_updated"
    WITHDRAWAL_DELETED = "withdrawal_deleted"

    # Edits that changed nothing
    NO_CHANGES = "no_changes"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


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
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which user and entity is this about?
    user_id: Optional[str] = Field(
        default=None,
        description="Account the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'monthly_entry', 'withdrawal')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (withdrawal UUID or month key)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one user action"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

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
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
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
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
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
        event = AuditEventBuilder.deposit_recorded(user_id, month, amount, total)
        event = AuditEventBuilder.withdrawal_rejected(user_id, amount, reason, ...)

    Amounts go into details as strings so Decimal survives JSON.
    """

    @staticmethod
    def account_created(
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            user_id=user_id,
            entity_type="account",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Account created for {user_id}",
        )

    @staticmethod
    def deposit_recorded(
        user_id: str,
        month: str,
        amount: Decimal,
        new_total: Decimal,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_RECORDED,
            user_id=user_id,
            entity_type="monthly_entry",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Deposit of {amount} recorded for {month}",
            details={
                "amount": str(amount),
                "deposit_total": str(new_total),
            },
            is_user_action=True,
        )

    @staticmethod
    def target_set(
        user_id: str,
        month: str,
        target_field: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.MONTHLY_TARGET_SET
            if target_field == "monthly_target"
            else AuditEventType.SAVING_TARGET_SET
        )
        label = target_field.replace("_", " ")
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="monthly_entry",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"{label.capitalize()} set to {amount} for {month}",
            details={
                "field": target_field,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def monthly_entry_updated(
        user_id: str,
        month: str,
        before: dict,
        after: dict,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTHLY_ENTRY_UPDATED,
            user_id=user_id,
            entity_type="monthly_entry",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Monthly entry {month} edited",
            details={
                "before": before,
                "after": after,
            },
            is_user_action=True,
        )

    @staticmethod
    def monthly_entry_deleted(
        user_id: str,
        month: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTHLY_ENTRY_DELETED,
            user_id=user_id,
            entity_type="monthly_entry",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Monthly entry {month} deleted",
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_committed(
        user_id: str,
        withdrawal_id: UUID,
        month: str,
        amount: Decimal,
        balance_before: Decimal,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_COMMITTED,
            user_id=user_id,
            entity_type="withdrawal",
            entity_id=str(withdrawal_id),
            correlation_id=correlation_id,
            description=f"Withdrawal of {amount} committed for {month}",
            details={
                "month": month,
                "amount": str(amount),
                "balance_before": str(balance_before),
                "balance_after": str(balance_before - amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_rejected(
        user_id: str,
        amount: str,
        reason: str,
        error_code: str,
        available: Optional[Decimal] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        details = {
            "requested": amount,
        }
        if available is not None:
            details["available"] = str(available)
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="withdrawal",
            correlation_id=correlation_id,
            description=f"Withdrawal of {amount} rejected",
            details=details,
            error_code=error_code,
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_updated(
        user_id: str,
        withdrawal_id: UUID,
        before: dict,
        after: dict,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_UPDATED,
            user_id=user_id,
            entity_type="withdrawal",
            entity_id=str(withdrawal_id),
            correlation_id=correlation_id,
            description="Withdrawal edited",
            details={
                "before": before,
                "after": after,
            },
            is_user_action=True,
        )

    @staticmethod
    def withdrawal_deleted(
        user_id: str,
        withdrawal_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_DELETED,
            user_id=user_id,
            entity_type="withdrawal",
            entity_id=str(withdrawal_id),
            correlation_id=correlation_id,
            description="Withdrawal deleted",
            is_user_action=True,
        )

    @staticmethod
    def no_changes(
        user_id: str,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NO_CHANGES,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Edit of {entity_type} {entity_id} submitted with no changes",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
