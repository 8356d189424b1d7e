"""Tests for component wiring."""

import logging
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from savings_tracker.config import get_settings
from savings_tracker.models.audit import AuditEventType
from savings_tracker.orchestrator import create_app_components, sign_in


@pytest.fixture
def components():
    return create_app_components(
        backend="memory",
        clock=lambda: datetime(2024, 3, 15, tzinfo=timezone.utc),
    )


class TestCreateAppComponents:
    """create_app_components wires one backend end to end."""

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_app_components(backend="postgres")

    def test_default_backend_from_settings(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        get_settings.cache_clear()
        try:
            assert create_app_components().backend == "memory"
        finally:
            get_settings.cache_clear()

    @pytest.mark.parametrize("debug, level", [("true", logging.DEBUG), ("false", logging.INFO)])
    def test_debug_mode_sets_log_level(self, monkeypatch, debug, level):
        monkeypatch.setenv("DEBUG_MODE", debug)
        get_settings.cache_clear()
        package_logger = logging.getLogger("savings_tracker")
        previous = package_logger.level
        try:
            create_app_components(backend="memory")
            assert package_logger.level == level
        finally:
            package_logger.setLevel(previous)
            get_settings.cache_clear()

    @pytest.mark.asyncio
    async def test_sign_in_then_deposit_and_withdraw(self, components):
        account = await sign_in(components, "u1", name="Ana")
        assert account.name == "Ana"

        await components.mutator.deposit("u1", "1000")
        await components.mutator.withdraw("u1", "300", "rent")

        views = await components.balances.get_month_views("u1")
        assert [(v.month, v.net_deposit) for v in views] == [("2024-03", Decimal("700.00"))]

        events = await components.audit_storage.get_events_by_user("u1")
        assert {e.event_type for e in events} == {
            AuditEventType.ACCOUNT_CREATED,
            AuditEventType.DEPOSIT_RECORDED,
            AuditEventType.WITHDRAWAL_COMMITTED,
        }

    @pytest.mark.asyncio
    async def test_sign_in_is_idempotent(self, components):
        await sign_in(components, "u1", name="Ana")
        account = await sign_in(components, "u1", name="Changed")
        assert account.name == "Ana"
