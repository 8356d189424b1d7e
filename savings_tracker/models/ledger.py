"""
Core Data Models for Savings Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep the stored ledger and the derived balance view apart

DESIGN DECISION: Deposits are stored gross on the monthly entry.
Withdrawals live in their own log and the net balance is DERIVED.
There is no withdrawal total on MonthlyEntry, so there is nothing to drift.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ZERO = Decimal("0")
DEFAULT_REASON = "-"


# =============================================================================
# MONTH KEYS - Canonical "YYYY-MM" bucketing
# =============================================================================

MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_key(value: datetime) -> str:
    """
    Truncate a timestamp to its month key.

    The same rule is used for storage keys and for bucketing
    withdrawals, so a withdrawal always lands on the entry it was
    validated against.
    """
    value = as_utc(value)
    return f"{value.year:04d}-{value.month:02d}"


def current_month_key(now: Optional[datetime] = None) -> str:
    return month_key(now or utc_now())


def is_valid_month_key(value: object) -> bool:
    return isinstance(value, str) and MONTH_KEY_PATTERN.match(value) is not None


# =============================================================================
# LEDGER STORE MODELS
# =============================================================================

class MonthlyEntry(BaseModel):
    """
    One month of the ledger: gross deposits plus the two targets.

    Entries are immutable values. Every change produces a new entry
    and the account's full entry list is written back.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    month: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Month key (YYYY-MM); legacy rows may hold other text"
    )
    deposit_amount: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Gross deposits for the month (never reduced by withdrawals)"
    )
    saving_target: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Saving target for the month"
    )
    monthly_target: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Monthly savings target"
    )

    @property
    def has_valid_month(self) -> bool:
        return is_valid_month_key(self.month)


class Account(BaseModel):
    """
    Account document, one per user.

    CRITICAL: at most one MonthlyEntry per month key.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Stable identifier from the identity provider"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Display name (informational only)"
    )
    photo: Optional[str] = Field(
        default=None,
        description="Profile photo URL (informational only)"
    )
    monthly_entries: list[MonthlyEntry] = Field(default_factory=list)

    # Bumped on every committed write; used for optimistic concurrency
    version: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_unique_months(self) -> 'Account':
        """Reject duplicate month keys."""
        seen = set()
        for entry in self.monthly_entries:
            if entry.month in seen:
                raise ValueError(f"Duplicate monthly entry for {entry.month}")
            seen.add(entry.month)
        return self

    def get_entry(self, month: str) -> Optional[MonthlyEntry]:
        for entry in self.monthly_entries:
            if entry.month == month:
                return entry
        return None

    @property
    def valid_entries(self) -> list[MonthlyEntry]:
        """Entries whose month key is well formed."""
        return [entry for entry in self.monthly_entries if entry.has_valid_month]


class EntryPatch(BaseModel):
    """
    Partial update for a monthly entry.

    Fields left as None are not touched.
    """

    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    saving_target: Optional[Decimal] = Field(default=None, ge=0)
    monthly_target: Optional[Decimal] = Field(default=None, ge=0)

    @property
    def is_empty(self) -> bool:
        return (
            self.deposit_amount is None
            and self.saving_target is None
            and self.monthly_target is None
        )


class EntryUpdateResult(BaseModel):
    """Outcome of an administrative entry edit. changed=False means no-op."""

    entry: MonthlyEntry
    changed: bool


# =============================================================================
# WITHDRAWAL LOG MODELS
# =============================================================================

class WithdrawalRecord(BaseModel):
    """
    A single withdrawal.

    Owned by the user who created it. Only amount and reason may be
    edited afterwards; the timestamp never changes.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique withdrawal ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Owning account"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount withdrawn"
    )
    reason: str = Field(
        default=DEFAULT_REASON,
        max_length=500,
        description="Free text reason"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the withdrawal was made (UTC)"
    )

    @field_validator('reason', mode='before')
    @classmethod
    def default_blank_reason(cls, v: Optional[str]) -> str:
        """Blank reasons are stored as '-'."""
        if v is None:
            return DEFAULT_REASON
        v = str(v).strip()
        return v or DEFAULT_REASON

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def month(self) -> str:
        return month_key(self.timestamp)


class WithdrawalPatch(BaseModel):
    """Partial update for a withdrawal."""

    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    reason: Optional[str] = None

    @field_validator('reason')
    @classmethod
    def default_blank_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or DEFAULT_REASON


class WithdrawalUpdateResult(BaseModel):
    """Outcome of a withdrawal edit. changed=False means no-op."""

    record: WithdrawalRecord
    changed: bool


# =============================================================================
# DERIVED VIEW MODELS (never persisted)
# =============================================================================

class MonthView(BaseModel):
    """
    Per-month breakdown derived from the ledger and the withdrawal log.

    net_deposit may be negative for historical months whose entries were
    edited after the fact.
    """
    model_config = ConfigDict(frozen=True)

    month: str
    deposit_amount: Decimal = ZERO
    saving_target: Decimal = ZERO
    monthly_target: Decimal = ZERO
    withdrawals_total: Decimal = ZERO

    @property
    def net_deposit(self) -> Decimal:
        return self.deposit_amount - self.withdrawals_total

    @property
    def is_empty(self) -> bool:
        """No activity in any dimension; such months are not shown."""
        return (
            self.net_deposit <= 0
            and self.saving_target == 0
            and self.monthly_target == 0
            and self.withdrawals_total == 0
        )

    def breakdown(self) -> dict[str, Decimal]:
        """Slices for chart layers. Net deposit is clamped at zero."""
        return {
            "Net Deposit": max(self.net_deposit, ZERO),
            "Saving Target": self.saving_target,
            "Monthly Target": self.monthly_target,
            "Withdrawals": self.withdrawals_total,
        }
