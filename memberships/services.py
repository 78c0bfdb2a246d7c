from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time

from django.db import transaction
from django.utils import timezone

from core.models import Branch

from .models import Member, MemberAttendance, Membership


logger = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    valid: bool
    reason: str = ""
    message: str = ""
    plan_name: str = ""
    days_remaining: int | None = None
    membership: Membership | None = None
    attendance: MemberAttendance | None = None


def _start_of_local_day(branch, day):
    return datetime.combine(day, time.min, tzinfo=branch.tzinfo())


def fetch_active_membership(member: Member, *, today=None) -> Membership | None:
    """Newest active membership of the member that covers ``today``."""
    if today is None:
        today = member.branch.local_today()
    return (
        Membership.objects
        .select_related("plan", "branch")
        .filter(
            member=member,
            status=Membership.Status.ACTIVE,
            start_date__lte=today,
            end_date__gte=today,
        )
        .order_by("-end_date", "-created_at")
        .first()
    )


def open_attendance_today(member: Member, branch) -> MemberAttendance | None:
    since = _start_of_local_day(branch, branch.local_today())
    return (
        MemberAttendance.objects
        .filter(member=member, check_in__gte=since, check_out__isnull=True)
        .order_by("-check_in")
        .first()
    )


def validate_member_checkin(member: Member, branch) -> CheckInResult:
    """
    Decide whether a member may check in at ``branch`` today.

    Reasons: member_inactive, expired, frozen, no_membership,
    already_checked_in. Denials are results, never exceptions.
    """
    if member.status != Member.Status.ACTIVE:
        return CheckInResult(
            valid=False,
            reason="member_inactive",
            message=f"Member account is {member.get_status_display().lower()}",
        )

    today = branch.local_today()
    membership = fetch_active_membership(member, today=today)
    if membership is None:
        current = Membership.objects.filter(member=member, start_date__lte=today, end_date__gte=today)
        if current.filter(status=Membership.Status.FROZEN).exists():
            return CheckInResult(valid=False, reason="frozen", message="Membership is frozen")

        lapsed = Membership.objects.filter(
            member=member,
            status__in=[Membership.Status.ACTIVE, Membership.Status.EXPIRED],
            end_date__lt=today,
        )
        if lapsed.exists():
            return CheckInResult(valid=False, reason="expired", message="Membership has expired")
        return CheckInResult(valid=False, reason="no_membership", message="No active membership")

    if open_attendance_today(member, branch) is not None:
        return CheckInResult(
            valid=False,
            reason="already_checked_in",
            message="Already checked in today",
            plan_name=membership.plan.name,
            days_remaining=membership.days_remaining(today),
            membership=membership,
        )

    return CheckInResult(
        valid=True,
        message="Check-in allowed",
        plan_name=membership.plan.name,
        days_remaining=membership.days_remaining(today),
        membership=membership,
    )


@transaction.atomic
def member_check_in(member: Member, branch, *, method: str = MemberAttendance.Method.MANUAL) -> CheckInResult:
    # Serialize check-ins of one member so two terminals cannot both insert.
    Member.objects.select_for_update().filter(pk=member.pk).first()

    result = validate_member_checkin(member, branch)
    if not result.valid:
        return result

    result.attendance = MemberAttendance.objects.create(
        member=member,
        branch=branch,
        membership=result.membership,
        check_in=timezone.now(),
        check_in_method=method,
    )
    result.message = "Checked in"
    logger.info("Member %s checked in at branch %s via %s", member.member_code, branch.code, method)
    return result


@transaction.atomic
def member_check_out(member: Member) -> MemberAttendance | None:
    attendance = (
        MemberAttendance.objects
        .select_for_update()
        .filter(member=member, check_out__isnull=True)
        .order_by("-check_in")
        .first()
    )
    if attendance is None:
        return None
    attendance.check_out = timezone.now()
    attendance.save(update_fields=["check_out"])
    return attendance


def expire_memberships(*, today=None) -> int:
    """
    Flip active memberships whose end date has passed to expired.

    The day boundary is each branch's own; ``today`` overrides it for
    every branch at once.
    """
    expired = 0
    for branch in Branch.objects.filter(memberships__status=Membership.Status.ACTIVE).distinct():
        branch_today = today if today is not None else branch.local_today()
        count = (
            Membership.objects
            .filter(branch=branch, status=Membership.Status.ACTIVE, end_date__lt=branch_today)
            .update(status=Membership.Status.EXPIRED, updated_at=timezone.now())
        )
        if count:
            logger.info("Expired %s memberships at branch %s (day %s)", count, branch.code, branch_today)
        expired += count
    return expired
