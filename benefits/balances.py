"""
Benefit allowance arithmetic.

Pure functions over plain dataclasses: no ORM access, no clock reads unless
``today`` is omitted. Services convert model rows into ``BenefitGrant`` /
``UsageEntry`` and pass the branch-local date in.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from django.utils import timezone


DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
UNLIMITED = "unlimited"
PER_MEMBERSHIP = "per_membership"

FREQUENCIES = (DAILY, WEEKLY, MONTHLY, UNLIMITED, PER_MEMBERSHIP)


@dataclass(frozen=True)
class BenefitGrant:
    benefit_type: str
    frequency: str
    limit_count: int | None
    description: str = ""

    @property
    def is_unlimited(self) -> bool:
        return self.frequency == UNLIMITED or self.limit_count is None

    @classmethod
    def from_plan_benefit(cls, row) -> "BenefitGrant":
        return cls(
            benefit_type=row.benefit_type,
            frequency=row.frequency,
            limit_count=row.limit_count,
            description=row.description or "",
        )


@dataclass(frozen=True)
class UsageEntry:
    benefit_type: str
    usage_date: date
    usage_count: int | None = 1

    @classmethod
    def from_usage(cls, row) -> "UsageEntry":
        return cls(
            benefit_type=row.benefit_type,
            usage_date=row.usage_date,
            usage_count=row.usage_count,
        )


@dataclass(frozen=True)
class BenefitBalance:
    benefit_type: str
    frequency: str
    limit_count: int | None
    description: str
    used: int
    remaining: int | None
    is_unlimited: bool


def start_of_week(day: date) -> date:
    # Weeks start on Sunday.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def period_start(frequency: str, today: date, membership_start: date | None) -> date | None:
    """First date counted towards the current window; None means no lower bound."""
    if frequency == DAILY:
        return today
    if frequency == WEEKLY:
        return start_of_week(today)
    if frequency == MONTHLY:
        return today.replace(day=1)
    if frequency == PER_MEMBERSHIP:
        return membership_start
    return None


def _entry_count(entry: UsageEntry) -> int:
    return int(entry.usage_count or 1)


def calculate_benefit_balances(
    benefits: Iterable[BenefitGrant],
    usage_records: Iterable[UsageEntry],
    membership_start_date: date | None,
    *,
    today: date | None = None,
) -> list[BenefitBalance]:
    if today is None:
        today = timezone.localdate()
    usage = list(usage_records)

    balances = []
    for grant in benefits:
        relevant = [u for u in usage if u.benefit_type == grant.benefit_type]

        since = period_start(grant.frequency, today, membership_start_date)
        if since is not None:
            relevant = [u for u in relevant if u.usage_date >= since]

        used = sum(_entry_count(u) for u in relevant)
        is_unlimited = grant.is_unlimited
        remaining = None if is_unlimited else max(0, int(grant.limit_count) - used)

        balances.append(BenefitBalance(
            benefit_type=grant.benefit_type,
            frequency=grant.frequency,
            limit_count=grant.limit_count,
            description=grant.description,
            used=used,
            remaining=remaining,
            is_unlimited=is_unlimited,
        ))
    return balances


def find_balance(balances: Iterable[BenefitBalance], benefit_type: str) -> BenefitBalance | None:
    for balance in balances:
        if balance.benefit_type == benefit_type:
            return balance
    return None
