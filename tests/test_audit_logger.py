"""Tests for the audit logger."""

import pytest
from decimal import Decimal
from uuid import uuid4

from savings_tracker.audit import AuditLogger, create_correlation_id
from savings_tracker.models.audit import AuditEventBuilder, AuditEventType
from savings_tracker.services.storage import AuditStorageInterface


class FailingAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_events_by_user(self, user_id, limit=100):
        return []


class TestAuditLogger:
    """Audit logging never breaks the main flow."""

    @pytest.mark.asyncio
    async def test_logs_without_storage(self):
        logger = AuditLogger()
        await logger.log_account_created(user_id="u1")

    @pytest.mark.asyncio
    async def test_persists_events(self, audit_storage):
        logger = AuditLogger(storage=audit_storage)
        correlation_id = create_correlation_id()

        await logger.log_deposit(
            user_id="u1",
            month="2024-03",
            amount=Decimal("10"),
            new_total=Decimal("10"),
            correlation_id=correlation_id,
        )
        await logger.log_withdrawal_committed(
            user_id="u1",
            withdrawal_id=uuid4(),
            month="2024-03",
            amount=Decimal("4"),
            balance_before=Decimal("10"),
            correlation_id=correlation_id,
        )

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.DEPOSIT_RECORDED,
            AuditEventType.WITHDRAWAL_COMMITTED,
        ]

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self):
        logger = AuditLogger(storage=FailingAuditStorage())
        event_logged = await logger.log(AuditEventBuilder.account_created(user_id="u1"))
        assert event_logged is False

    @pytest.mark.asyncio
    async def test_events_by_user(self, audit_storage):
        logger = AuditLogger(storage=audit_storage)
        await logger.log_entry_deleted(user_id="u1", month="2024-01")
        await logger.log_entry_deleted(user_id="u1", month="2024-02")
        await logger.log_storage_error(operation="withdraw", error_message="x", user_id="u2")

        events = await audit_storage.get_events_by_user("u1")
        assert sorted(e.entity_id for e in events) == ["2024-01", "2024-02"]
        assert len(await audit_storage.get_events_by_user("u1", limit=1)) == 1
