from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from core.http import parse_uuid
from memberships.models import Membership

from .balances import (
    BenefitBalance,
    BenefitGrant,
    UsageEntry,
    calculate_benefit_balances,
    find_balance,
)
from .models import BenefitBooking, BenefitPackage, BenefitUsage, MemberBenefitCredits


logger = logging.getLogger(__name__)

SOURCE_PLAN = BenefitBooking.Source.PLAN
SOURCE_CREDITS = BenefitBooking.Source.CREDITS


@dataclass
class UsageValidation:
    valid: bool
    message: str = ""
    remaining: int | None = None


@dataclass(frozen=True)
class TotalBenefitBalance:
    benefit_type: str
    plan_balance: int | None
    purchased_credits: int
    total_available: int | None
    is_unlimited: bool


def _get_membership(membership_id, *, for_update: bool = False) -> Membership | None:
    if isinstance(membership_id, Membership):
        membership_id = membership_id.pk
    pk = parse_uuid(membership_id)
    if pk is None:
        return None
    qs = Membership.objects.select_related("plan", "branch")
    if for_update:
        qs = qs.select_for_update()
    return qs.filter(pk=pk).first()


def fetch_membership_with_benefits(member, *, today=None) -> Membership | None:
    """The member's newest active membership covering today, with plan grants prefetched."""
    if today is None:
        today = member.branch.local_today()
    return (
        Membership.objects
        .select_related("plan", "branch")
        .prefetch_related("plan__benefits")
        .filter(
            member=member,
            status=Membership.Status.ACTIVE,
            start_date__lte=today,
            end_date__gte=today,
        )
        .order_by("-end_date", "-created_at")
        .first()
    )


def fetch_benefit_usage(membership) -> list[BenefitUsage]:
    return list(BenefitUsage.objects.filter(membership=membership).order_by("usage_date", "id"))


def fetch_benefit_usage_history(membership, benefit_type=None, limit: int = 50) -> list[BenefitUsage]:
    qs = (
        BenefitUsage.objects
        .select_related("recorded_by")
        .filter(membership=membership)
        .order_by("-usage_date", "-created_at")
    )
    if benefit_type:
        qs = qs.filter(benefit_type=benefit_type)
    return list(qs[: max(1, int(limit))])


def get_member_benefit_balances(membership, *, today=None) -> list[BenefitBalance]:
    if today is None:
        today = membership.branch.local_today()
    grants = [BenefitGrant.from_plan_benefit(b) for b in membership.plan.benefits.all()]
    usage = [UsageEntry.from_usage(u) for u in fetch_benefit_usage(membership)]
    return calculate_benefit_balances(grants, usage, membership.start_date, today=today)


def _validate(membership: Membership | None, benefit_type: str) -> UsageValidation:
    if membership is None:
        return UsageValidation(valid=False, message="Membership not found")

    grant = membership.plan.benefits.filter(benefit_type=benefit_type).first()
    if grant is None:
        return UsageValidation(valid=False, message="Benefit not included in plan")

    if BenefitGrant.from_plan_benefit(grant).is_unlimited:
        return UsageValidation(valid=True, message="Unlimited", remaining=None)

    balance = find_balance(get_member_benefit_balances(membership), benefit_type)
    remaining = balance.remaining if balance else 0
    if not remaining:
        return UsageValidation(valid=False, message="Benefit limit reached for this period", remaining=0)
    return UsageValidation(valid=True, message=f"{remaining} remaining", remaining=remaining)


def validate_benefit_usage(membership_id, benefit_type: str) -> UsageValidation:
    """
    Check whether one more unit of ``benefit_type`` may be used right now.

    Always recomputed from the usage log; a denial is a result, not an error.
    """
    return _validate(_get_membership(membership_id), benefit_type)


def record_benefit_usage(
    membership_id,
    benefit_type: str,
    *,
    recorded_by,
    usage_count: int = 1,
    notes: str = "",
) -> BenefitUsage:
    """Append a usage row dated branch-local today. Does not re-validate."""
    if int(usage_count) < 1:
        raise ValidationError("Usage count must be positive")

    membership = _get_membership(membership_id)
    if membership is None:
        raise Membership.DoesNotExist("Membership not found")

    usage = BenefitUsage.objects.create(
        membership=membership,
        benefit_type=benefit_type,
        usage_date=membership.branch.local_today(),
        usage_count=int(usage_count),
        recorded_by=recorded_by if getattr(recorded_by, "pk", None) else None,
        notes=notes or "",
    )
    logger.info(
        "Recorded %s x%s for membership %s",
        benefit_type, usage.usage_count, membership.pk,
    )
    return usage


def get_member_credits(member, benefit_type=None) -> list[MemberBenefitCredits]:
    qs = MemberBenefitCredits.objects.filter(
        member=member,
        credits_remaining__gt=0,
        expires_at__gt=timezone.now(),
    )
    if benefit_type:
        qs = qs.filter(benefit_type=benefit_type)
    return list(qs.order_by("expires_at", "id"))


def _credits_sum(member, benefit_type) -> int:
    total = (
        MemberBenefitCredits.objects
        .filter(
            member=member,
            benefit_type=benefit_type,
            credits_remaining__gt=0,
            expires_at__gt=timezone.now(),
        )
        .aggregate(total=Sum("credits_remaining"))
        .get("total")
    )
    return int(total or 0)


@transaction.atomic
def purchase_benefit_credits(member, package: BenefitPackage, membership=None) -> MemberBenefitCredits:
    if not package.is_active:
        raise ValidationError("Package is not available")
    if int(package.quantity or 0) < 1:
        raise ValidationError("Package quantity must be positive")

    now = timezone.now()
    credits = MemberBenefitCredits.objects.create(
        member=member,
        membership=membership,
        benefit_type=package.benefit_type,
        package=package,
        source=MemberBenefitCredits.Source.PURCHASE,
        credits_total=package.quantity,
        credits_remaining=package.quantity,
        purchased_at=now,
        expires_at=now + timedelta(days=int(package.validity_days or 0)),
    )
    logger.info("Member %s bought %s x%s", member.member_code, package.benefit_type, package.quantity)
    return credits


def get_total_benefit_balance(member, membership, benefit_type: str) -> TotalBenefitBalance:
    """Plan allowance left plus unexpired purchased credits."""
    balance = None
    if membership is not None:
        balance = find_balance(get_member_benefit_balances(membership), benefit_type)

    purchased = _credits_sum(member, benefit_type)
    if balance is not None and balance.is_unlimited:
        return TotalBenefitBalance(
            benefit_type=benefit_type,
            plan_balance=None,
            purchased_credits=purchased,
            total_available=None,
            is_unlimited=True,
        )

    plan_balance = balance.remaining if balance is not None else 0
    return TotalBenefitBalance(
        benefit_type=benefit_type,
        plan_balance=plan_balance,
        purchased_credits=purchased,
        total_available=plan_balance + purchased,
        is_unlimited=False,
    )


def _take_credits(member, benefit_type: str, count: int) -> bool:
    rows = list(
        MemberBenefitCredits.objects
        .select_for_update()
        .filter(
            member=member,
            benefit_type=benefit_type,
            credits_remaining__gt=0,
            expires_at__gt=timezone.now(),
        )
        .order_by("expires_at", "id")
    )
    if sum(r.credits_remaining for r in rows) < count:
        return False

    left = count
    for row in rows:
        if left <= 0:
            break
        part = min(row.credits_remaining, left)
        row.credits_remaining -= part
        row.save(update_fields=["credits_remaining"])
        left -= part
    return True


@transaction.atomic
def consume_benefit(
    membership_id,
    benefit_type: str,
    *,
    recorded_by,
    usage_count: int = 1,
    notes: str = "",
    allow_credits: bool = True,
) -> tuple[UsageValidation, str | None]:
    """
    Validate and record one use under a lock on the membership row.

    Falls back to purchased credits (earliest expiry first) once the plan
    allowance is spent. Returns the validation and where the unit came from
    (``plan``, ``credits`` or None when denied).
    """
    if int(usage_count) < 1:
        raise ValidationError("Usage count must be positive")

    membership = _get_membership(membership_id, for_update=True)
    validation = _validate(membership, benefit_type)

    if validation.valid and (validation.remaining is None or validation.remaining >= usage_count):
        record_benefit_usage(
            membership.pk,
            benefit_type,
            recorded_by=recorded_by,
            usage_count=usage_count,
            notes=notes,
        )
        if validation.remaining is not None:
            validation.remaining -= usage_count
        return validation, SOURCE_PLAN

    if membership is None or not allow_credits:
        return validation, None

    if _take_credits(membership.member, benefit_type, usage_count):
        left = _credits_sum(membership.member, benefit_type)
        logger.info("Membership %s used purchased %s credits", membership.pk, benefit_type)
        return UsageValidation(valid=True, message="Used purchased credits", remaining=left), SOURCE_CREDITS

    if validation.valid:
        validation = UsageValidation(valid=False, message="Benefit limit reached for this period", remaining=0)
    logger.info("Membership %s denied %s: %s", membership.pk, benefit_type, validation.message)
    return validation, None
