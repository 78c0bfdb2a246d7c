from __future__ import annotations

import logging
from datetime import datetime, time, timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.http import parse_uuid
from core.telegram_notify import notify_slot_booked
from memberships.models import Member, Membership

from .exceptions import BookingError, NoBalanceError, NotFoundError, SlotFullError
from .models import BenefitBooking, BenefitSettings, BenefitSlot, MemberBenefitCredits
from .services import consume_benefit


logger = logging.getLogger(__name__)


def _slot_label(slot: BenefitSlot) -> str:
    return f"{slot.get_benefit_type_display()} {slot.slot_date:%Y-%m-%d} {slot.start_time:%H:%M}"


def _check_daily_limit(slot: BenefitSlot, member: Member) -> None:
    limits = BenefitSettings.objects.filter(branch_id=slot.branch_id, benefit_type=slot.benefit_type).first()
    if limits is None or not limits.max_bookings_per_day:
        return
    taken = BenefitBooking.objects.filter(
        member=member,
        slot__benefit_type=slot.benefit_type,
        slot__slot_date=slot.slot_date,
        status__in=BenefitBooking.ACTIVE_STATUSES,
    ).count()
    if taken >= limits.max_bookings_per_day:
        raise BookingError("Daily booking limit reached")


def book_slot(slot_id, member_id, membership_id, *, booked_by, notes: str = "") -> BenefitBooking:
    """
    Reserve a seat in a slot and consume one unit of the benefit.

    The seat is taken with a conditional update so concurrent bookings
    never push ``booked_count`` past ``capacity``. A missing allowance
    rolls the seat back with the rest of the transaction.
    """
    with transaction.atomic():
        slot = BenefitSlot.objects.select_related("branch").filter(pk=slot_id, is_active=True).first()
        if slot is None:
            raise NotFoundError("Slot not found")

        member_pk = parse_uuid(member_id)
        member = Member.objects.filter(pk=member_pk).first() if member_pk else None
        if member is None:
            raise NotFoundError("Member not found")

        membership_pk = parse_uuid(membership_id)
        membership = (
            Membership.objects.filter(pk=membership_pk, member=member).first()
            if membership_pk else None
        )
        if membership is None:
            raise NotFoundError("Membership not found")

        if BenefitBooking.objects.filter(
            slot=slot, member=member, status__in=BenefitBooking.ACTIVE_STATUSES
        ).exists():
            raise BookingError("Slot already booked by this member")
        _check_daily_limit(slot, member)

        taken = (
            BenefitSlot.objects
            .filter(pk=slot.pk, is_active=True, booked_count__lt=F("capacity"))
            .update(booked_count=F("booked_count") + 1)
        )
        if not taken:
            raise SlotFullError("Slot is fully booked")

        validation, source = consume_benefit(
            membership.pk,
            slot.benefit_type,
            recorded_by=booked_by,
            notes=f"Slot booking {_slot_label(slot)}",
        )
        if not validation.valid:
            raise NoBalanceError(validation.message)

        booking = BenefitBooking.objects.create(
            slot=slot,
            member=member,
            membership=membership,
            status=BenefitBooking.Status.BOOKED,
            consumed_from=source,
            notes=notes or "",
        )
        slot.refresh_from_db(fields=["booked_count"])

    logger.info("Member %s booked %s (%s)", member.member_code, _slot_label(slot), source)
    notify_slot_booked(member=member, slot=slot)
    return booking


def _refund_expiry(membership: Membership):
    end_of_membership = datetime.combine(membership.end_date, time.max, tzinfo=membership.branch.tzinfo())
    return max(end_of_membership, timezone.now() + timedelta(days=1))


def _check_cancellation_deadline(slot: BenefitSlot) -> None:
    limits = BenefitSettings.objects.filter(branch_id=slot.branch_id, benefit_type=slot.benefit_type).first()
    if limits is None or not limits.cancellation_deadline_minutes:
        return
    starts_at = datetime.combine(slot.slot_date, slot.start_time, tzinfo=slot.branch.tzinfo())
    if timezone.now() > starts_at - timedelta(minutes=limits.cancellation_deadline_minutes):
        raise BookingError("Cancellation deadline has passed")


def cancel_booking(
    booking_id,
    *,
    reason: str = "",
    cancelled_by=None,
    enforce_deadline: bool = True,
) -> BenefitBooking:
    """
    Cancel a booking and free its seat.

    Cancelling an already cancelled booking changes nothing. Past the
    branch's cancellation deadline the booking stays unless
    ``enforce_deadline`` is off (desk override). The consumed unit stays
    spent unless ``BENEFIT_REFUND_ON_CANCEL`` is on, in which case one
    credit is issued back to the member.
    """
    with transaction.atomic():
        booking = (
            BenefitBooking.objects
            .select_for_update()
            .select_related("slot", "slot__branch", "membership", "membership__branch", "member")
            .filter(pk=booking_id)
            .first()
        )
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.status == BenefitBooking.Status.CANCELLED:
            return booking
        if not booking.is_active:
            raise BookingError("Only upcoming bookings can be cancelled")
        if enforce_deadline:
            _check_cancellation_deadline(booking.slot)

        booking.status = BenefitBooking.Status.CANCELLED
        booking.cancelled_at = timezone.now()
        booking.cancellation_reason = (reason or "")[:255]
        booking.save(update_fields=["status", "cancelled_at", "cancellation_reason"])

        BenefitSlot.objects.filter(pk=booking.slot_id, booked_count__gt=0).update(
            booked_count=F("booked_count") - 1
        )

        if getattr(settings, "BENEFIT_REFUND_ON_CANCEL", False):
            MemberBenefitCredits.objects.create(
                member=booking.member,
                membership=booking.membership,
                benefit_type=booking.slot.benefit_type,
                source=MemberBenefitCredits.Source.REFUND,
                credits_total=1,
                credits_remaining=1,
                expires_at=_refund_expiry(booking.membership),
            )

    logger.info(
        "Booking %s cancelled by %s: %s",
        booking.pk, getattr(cancelled_by, "username", None) or "system", reason or "-",
    )
    return booking


@transaction.atomic
def mark_attendance(booking_id, attended: bool) -> BenefitBooking:
    booking = BenefitBooking.objects.select_for_update().filter(pk=booking_id).first()
    if booking is None:
        raise NotFoundError("Booking not found")
    if not booking.is_active:
        raise BookingError("Booking is not active")

    now = timezone.now()
    if attended:
        booking.status = BenefitBooking.Status.ATTENDED
        booking.check_in_at = now
        booking.save(update_fields=["status", "check_in_at"])
    else:
        booking.status = BenefitBooking.Status.NO_SHOW
        booking.no_show_marked_at = now
        booking.save(update_fields=["status", "no_show_marked_at"])
    return booking


def get_available_slots(branch, benefit_type: str, slot_date) -> list[BenefitSlot]:
    qs = BenefitSlot.objects.filter(
        branch=branch,
        benefit_type=benefit_type,
        slot_date=slot_date,
        is_active=True,
        booked_count__lt=F("capacity"),
    )
    now = branch.local_now()
    if slot_date == now.date():
        qs = qs.filter(start_time__gt=now.time())
    return list(qs.order_by("start_time"))


def get_slot_bookings(slot) -> list[BenefitBooking]:
    return list(
        BenefitBooking.objects
        .select_related("member", "membership")
        .filter(slot=slot)
        .exclude(status=BenefitBooking.Status.CANCELLED)
        .order_by("booked_at")
    )


def get_member_bookings(member, statuses=None) -> list[BenefitBooking]:
    qs = BenefitBooking.objects.select_related("slot", "slot__branch").filter(member=member)
    if statuses:
        qs = qs.filter(status__in=list(statuses))
    return list(qs.order_by("-slot__slot_date", "-slot__start_time"))


def generate_daily_slots(branch, benefit_type: str, slot_date, benefit_settings: BenefitSettings) -> list[BenefitSlot]:
    """Split operating hours into slot-sized windows; only windows that end by closing time."""
    duration = timedelta(minutes=int(benefit_settings.slot_duration_minutes or 0))
    if duration <= timedelta(0):
        return []
    gap = timedelta(minutes=int(benefit_settings.buffer_between_sessions_minutes or 0))

    current = datetime.combine(slot_date, benefit_settings.operating_hours_start)
    closing = datetime.combine(slot_date, benefit_settings.operating_hours_end)

    slots = []
    while current + duration <= closing:
        slots.append(BenefitSlot(
            branch=branch,
            benefit_type=benefit_type,
            slot_date=slot_date,
            start_time=current.time(),
            end_time=(current + duration).time(),
            capacity=max(1, int(benefit_settings.capacity_per_slot or 1)),
        ))
        current += duration + gap
    return BenefitSlot.objects.bulk_create(slots)


def ensure_slots_for_date_range(branch, start_date, end_date) -> int:
    """Generate slots for every bookable benefit and day that has none yet."""
    created = 0
    enabled = BenefitSettings.objects.filter(branch=branch, is_slot_booking_enabled=True)
    for benefit_settings in enabled:
        day = start_date
        while day <= end_date:
            exists = BenefitSlot.objects.filter(
                branch=branch,
                benefit_type=benefit_settings.benefit_type,
                slot_date=day,
            ).exists()
            if not exists:
                created += len(generate_daily_slots(branch, benefit_settings.benefit_type, day, benefit_settings))
            day += timedelta(days=1)
    return created
