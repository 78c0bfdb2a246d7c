from datetime import date, time, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from core.models import Branch
from memberships.models import Member, Membership, Plan, PlanBenefit

from .balances import BenefitGrant, UsageEntry, calculate_benefit_balances, start_of_week
from .bookings import (
    book_slot,
    cancel_booking,
    ensure_slots_for_date_range,
    generate_daily_slots,
    get_available_slots,
    mark_attendance,
)
from .exceptions import BookingError, NoBalanceError, NotFoundError, SlotFullError
from .models import (
    BenefitBooking,
    BenefitPackage,
    BenefitSettings,
    BenefitSlot,
    BenefitUsage,
    MemberBenefitCredits,
)
from .services import (
    consume_benefit,
    get_member_benefit_balances,
    get_total_benefit_balance,
    purchase_benefit_credits,
    record_benefit_usage,
    validate_benefit_usage,
)


class BalanceEngineTests(SimpleTestCase):
    today = date(2024, 5, 15)

    def test_unlimited_grants_ignore_usage(self):
        grants = [
            BenefitGrant("gym_access", "unlimited", None),
            BenefitGrant("locker", "monthly", None),
        ]
        usage = [UsageEntry("gym_access", self.today, 40), UsageEntry("locker", self.today, 12)]

        balances = calculate_benefit_balances(grants, usage, date(2024, 1, 1), today=self.today)

        for balance in balances:
            self.assertTrue(balance.is_unlimited)
            self.assertIsNone(balance.remaining)

    def test_remaining_never_negative(self):
        grants = [BenefitGrant("towel", "daily", 2)]
        usage = [UsageEntry("towel", self.today, 3), UsageEntry("towel", self.today, 1)]

        [balance] = calculate_benefit_balances(grants, usage, date(2024, 5, 1), today=self.today)

        self.assertEqual(balance.used, 4)
        self.assertEqual(balance.remaining, 0)
        self.assertFalse(balance.is_unlimited)

    def test_monthly_window_excludes_last_month(self):
        grants = [BenefitGrant("sauna_session", "monthly", 4)]
        usage = [
            UsageEntry("sauna_session", date(2024, 4, 1), 1),
            UsageEntry("sauna_session", date(2024, 4, 1), 1),
            UsageEntry("sauna_session", date(2024, 4, 1), 1),
            UsageEntry("sauna_session", date(2024, 5, 2), 1),
        ]

        [balance] = calculate_benefit_balances(grants, usage, date(2024, 3, 1), today=self.today)

        self.assertEqual(balance.used, 1)
        self.assertEqual(balance.remaining, 3)

    def test_per_membership_counts_whole_lifetime(self):
        start = self.today - timedelta(days=90)
        grants = [BenefitGrant("pt_sessions", "per_membership", 5)]
        usage = [UsageEntry("pt_sessions", start + timedelta(days=d), 1) for d in (0, 20, 40, 60, 89)]

        [balance] = calculate_benefit_balances(grants, usage, start, today=self.today)

        self.assertEqual(balance.used, 5)
        self.assertEqual(balance.remaining, 0)

    def test_daily_window_excludes_yesterday(self):
        grants = [BenefitGrant("towel", "daily", 2)]
        usage = [
            UsageEntry("towel", self.today - timedelta(days=1), 2),
            UsageEntry("towel", self.today, 1),
        ]

        [balance] = calculate_benefit_balances(grants, usage, date(2024, 5, 1), today=self.today)

        self.assertEqual(balance.used, 1)
        self.assertEqual(balance.remaining, 1)

    def test_per_membership_ignores_usage_before_start(self):
        start = date(2024, 5, 1)
        grants = [BenefitGrant("pt_sessions", "per_membership", 4)]
        usage = [
            UsageEntry("pt_sessions", date(2024, 4, 30), 3),
            UsageEntry("pt_sessions", start, 1),
            UsageEntry("pt_sessions", date(2024, 5, 10), 1),
        ]

        [balance] = calculate_benefit_balances(grants, usage, start, today=self.today)

        self.assertEqual(balance.used, 2)
        self.assertEqual(balance.remaining, 2)

    def test_weekly_window_starts_on_sunday(self):
        # 2024-05-15 is a Wednesday.
        self.assertEqual(start_of_week(self.today), date(2024, 5, 12))
        self.assertEqual(start_of_week(date(2024, 5, 12)), date(2024, 5, 12))

        grants = [BenefitGrant("steam_access", "weekly", 3)]
        usage = [
            UsageEntry("steam_access", date(2024, 5, 11), 1),
            UsageEntry("steam_access", date(2024, 5, 12), 1),
        ]
        [balance] = calculate_benefit_balances(grants, usage, date(2024, 1, 1), today=self.today)

        self.assertEqual(balance.used, 1)
        self.assertEqual(balance.remaining, 2)

    def test_missing_usage_count_counts_as_one(self):
        grants = [BenefitGrant("ice_bath", "daily", 3)]
        usage = [UsageEntry("ice_bath", self.today, None), UsageEntry("other", self.today, 5)]

        [balance] = calculate_benefit_balances(grants, usage, None, today=self.today)

        self.assertEqual(balance.used, 1)
        self.assertEqual(balance.remaining, 2)


class BenefitFixtureMixin:
    def setUp(self):
        self.branch = Branch.objects.create(name="Indiranagar", code="BLR1", timezone="Asia/Kolkata")
        self.desk = get_user_model().objects.create_user(username="desk", password="pass12345")
        self.today = self.branch.local_today()

        self.plan = Plan.objects.create(name="Gold", branch=self.branch, duration_days=30, price=Decimal("4999.00"))
        PlanBenefit.objects.create(
            plan=self.plan,
            benefit_type="sauna_session",
            frequency=PlanBenefit.Frequency.MONTHLY,
            limit_count=2,
        )
        PlanBenefit.objects.create(
            plan=self.plan,
            benefit_type="gym_access",
            frequency=PlanBenefit.Frequency.UNLIMITED,
        )
        self.member, self.membership = self.make_member("M-001")

    def make_member(self, code):
        member = Member.objects.create(branch=self.branch, member_code=code, full_name=f"Member {code}")
        membership = Membership.objects.create(
            member=member,
            plan=self.plan,
            branch=self.branch,
            start_date=self.today - timedelta(days=5),
            end_date=self.today + timedelta(days=25),
        )
        return member, membership

    def make_slot(self, *, capacity=2, booked_count=0, benefit_type="sauna_session", start=time(10, 0)):
        return BenefitSlot.objects.create(
            branch=self.branch,
            benefit_type=benefit_type,
            slot_date=self.today + timedelta(days=1),
            start_time=start,
            end_time=time(start.hour, 30),
            capacity=capacity,
            booked_count=booked_count,
        )


class UsageValidationTests(BenefitFixtureMixin, TestCase):
    def test_unknown_membership(self):
        result = validate_benefit_usage("5b0f8b8e-0000-4000-8000-000000000000", "sauna_session")
        self.assertFalse(result.valid)
        self.assertEqual(result.message, "Membership not found")

        result = validate_benefit_usage("not-a-uuid", "sauna_session")
        self.assertFalse(result.valid)
        self.assertEqual(result.message, "Membership not found")

    def test_benefit_outside_plan(self):
        result = validate_benefit_usage(self.membership.pk, "pool_access")
        self.assertFalse(result.valid)
        self.assertEqual(result.message, "Benefit not included in plan")

    def test_unlimited_benefit_is_always_valid(self):
        for _ in range(5):
            record_benefit_usage(self.membership.pk, "gym_access", recorded_by=self.desk)
        result = validate_benefit_usage(self.membership.pk, "gym_access")
        self.assertTrue(result.valid)
        self.assertIsNone(result.remaining)

    def test_bounded_benefit_is_gated_once_exhausted(self):
        result = validate_benefit_usage(self.membership.pk, "sauna_session")
        self.assertTrue(result.valid)
        self.assertEqual(result.remaining, 2)

        record_benefit_usage(self.membership.pk, "sauna_session", recorded_by=self.desk)
        result = validate_benefit_usage(self.membership.pk, "sauna_session")
        self.assertTrue(result.valid)
        self.assertEqual(result.remaining, 1)

        record_benefit_usage(self.membership.pk, "sauna_session", recorded_by=self.desk)
        result = validate_benefit_usage(self.membership.pk, "sauna_session")
        self.assertFalse(result.valid)
        self.assertEqual(result.remaining, 0)
        self.assertEqual(result.message, "Benefit limit reached for this period")

    def test_record_usage_uses_branch_date_and_principal(self):
        usage = record_benefit_usage(
            self.membership.pk, "sauna_session", recorded_by=self.desk, usage_count=2, notes="walk-in"
        )
        self.assertEqual(usage.usage_date, self.today)
        self.assertEqual(usage.recorded_by, self.desk)
        self.assertEqual(usage.usage_count, 2)

        [sauna] = [b for b in get_member_benefit_balances(self.membership) if b.benefit_type == "sauna_session"]
        self.assertEqual(sauna.remaining, 0)

    def test_record_usage_rejects_non_positive_count(self):
        from django.core.exceptions import ValidationError

        with self.assertRaises(ValidationError):
            record_benefit_usage(self.membership.pk, "sauna_session", recorded_by=self.desk, usage_count=0)
        self.assertEqual(BenefitUsage.objects.count(), 0)


class ConsumeAndCreditsTests(BenefitFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.package = BenefitPackage.objects.create(
            branch=self.branch,
            name="Sauna x2",
            benefit_type="sauna_session",
            quantity=2,
            price=Decimal("800.00"),
            validity_days=30,
        )

    def test_consume_spends_plan_then_denies(self):
        first, source = consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)
        self.assertTrue(first.valid)
        self.assertEqual(source, "plan")
        self.assertEqual(first.remaining, 1)

        consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)
        denied, source = consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)

        self.assertFalse(denied.valid)
        self.assertIsNone(source)
        self.assertEqual(BenefitUsage.objects.filter(membership=self.membership).count(), 2)

    def test_consume_falls_back_to_credits(self):
        purchase_benefit_credits(self.member, self.package, membership=self.membership)
        consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)
        consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)

        result, source = consume_benefit(self.membership.pk, "sauna_session", recorded_by=self.desk)

        self.assertTrue(result.valid)
        self.assertEqual(source, "credits")
        self.assertEqual(result.remaining, 1)
        self.assertEqual(BenefitUsage.objects.filter(membership=self.membership).count(), 2)

    def test_total_balance_adds_credits(self):
        purchase_benefit_credits(self.member, self.package)
        total = get_total_benefit_balance(self.member, self.membership, "sauna_session")

        self.assertEqual(total.plan_balance, 2)
        self.assertEqual(total.purchased_credits, 2)
        self.assertEqual(total.total_available, 4)
        self.assertFalse(total.is_unlimited)

        unlimited = get_total_benefit_balance(self.member, self.membership, "gym_access")
        self.assertTrue(unlimited.is_unlimited)
        self.assertIsNone(unlimited.total_available)

    def test_inactive_package_cannot_be_bought(self):
        from django.core.exceptions import ValidationError

        self.package.is_active = False
        self.package.save(update_fields=["is_active"])
        with self.assertRaises(ValidationError):
            purchase_benefit_credits(self.member, self.package)


class SlotBookingTests(BenefitFixtureMixin, TestCase):
    def test_last_seat_then_full(self):
        slot = self.make_slot(capacity=3, booked_count=2)
        other_member, other_membership = self.make_member("M-002")

        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        slot.refresh_from_db()
        self.assertEqual(slot.booked_count, 3)
        self.assertEqual(booking.status, BenefitBooking.Status.BOOKED)
        self.assertEqual(booking.consumed_from, "plan")

        with self.assertRaises(SlotFullError):
            book_slot(slot.pk, other_member.pk, other_membership.pk, booked_by=self.desk)
        slot.refresh_from_db()
        self.assertEqual(slot.booked_count, 3)
        self.assertEqual(BenefitUsage.objects.filter(membership=other_membership).count(), 0)

    def test_no_balance_rolls_back_seat(self):
        first = self.make_slot(start=time(9, 0))
        second = self.make_slot(start=time(11, 0))
        third = self.make_slot(start=time(13, 0))
        book_slot(first.pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        book_slot(second.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        with self.assertRaises(NoBalanceError):
            book_slot(third.pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        third.refresh_from_db()
        self.assertEqual(third.booked_count, 0)
        self.assertFalse(BenefitBooking.objects.filter(slot=third).exists())

    def test_missing_slot_or_membership(self):
        slot = self.make_slot()
        with self.assertRaises(NotFoundError):
            book_slot(999999, self.member.pk, self.membership.pk, booked_by=self.desk)

        other_member, other_membership = self.make_member("M-002")
        with self.assertRaises(NotFoundError):
            book_slot(slot.pk, self.member.pk, other_membership.pk, booked_by=self.desk)

    def test_same_member_cannot_double_book(self):
        slot = self.make_slot()
        book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        with self.assertRaises(BookingError):
            book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

    def test_daily_limit_from_settings(self):
        BenefitSettings.objects.create(branch=self.branch, benefit_type="sauna_session", max_bookings_per_day=1)
        book_slot(self.make_slot(start=time(9, 0)).pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        with self.assertRaises(BookingError):
            book_slot(self.make_slot(start=time(12, 0)).pk, self.member.pk, self.membership.pk, booked_by=self.desk)

    def test_cancel_frees_one_seat_once(self):
        slot = self.make_slot()
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        cancelled = cancel_booking(booking.pk, reason="Changed plans", cancelled_by=self.desk)
        slot.refresh_from_db()
        self.assertEqual(cancelled.status, BenefitBooking.Status.CANCELLED)
        self.assertIsNotNone(cancelled.cancelled_at)
        self.assertEqual(slot.booked_count, 0)

        cancel_booking(booking.pk)
        slot.refresh_from_db()
        self.assertEqual(slot.booked_count, 0)
        self.assertEqual(MemberBenefitCredits.objects.count(), 0)

    def test_cancel_never_goes_below_zero(self):
        slot = self.make_slot()
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)
        BenefitSlot.objects.filter(pk=slot.pk).update(booked_count=0)

        cancel_booking(booking.pk)
        slot.refresh_from_db()
        self.assertEqual(slot.booked_count, 0)

    def test_cancel_after_deadline_is_refused(self):
        # Two days' notice is impossible for a slot starting tomorrow.
        BenefitSettings.objects.create(
            branch=self.branch,
            benefit_type="sauna_session",
            cancellation_deadline_minutes=2 * 24 * 60,
        )
        slot = self.make_slot()
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        with self.assertRaises(BookingError):
            cancel_booking(booking.pk)
        booking.refresh_from_db()
        slot.refresh_from_db()
        self.assertEqual(booking.status, BenefitBooking.Status.BOOKED)
        self.assertEqual(slot.booked_count, 1)

        cancel_booking(booking.pk, reason="Desk override", enforce_deadline=False)
        slot.refresh_from_db()
        self.assertEqual(slot.booked_count, 0)

    def test_cancel_before_deadline_is_allowed(self):
        BenefitSettings.objects.create(
            branch=self.branch,
            benefit_type="sauna_session",
            cancellation_deadline_minutes=30,
        )
        slot = self.make_slot(start=time(23, 0))
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        self.assertEqual(cancel_booking(booking.pk).status, BenefitBooking.Status.CANCELLED)

    @override_settings(BENEFIT_REFUND_ON_CANCEL=True)
    def test_cancel_refund_issues_credit(self):
        slot = self.make_slot()
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        cancel_booking(booking.pk)

        credit = MemberBenefitCredits.objects.get(member=self.member)
        self.assertEqual(credit.source, MemberBenefitCredits.Source.REFUND)
        self.assertEqual(credit.credits_remaining, 1)
        self.assertEqual(credit.benefit_type, "sauna_session")

    def test_mark_attendance(self):
        slot = self.make_slot()
        booking = book_slot(slot.pk, self.member.pk, self.membership.pk, booked_by=self.desk)

        attended = mark_attendance(booking.pk, True)
        self.assertEqual(attended.status, BenefitBooking.Status.ATTENDED)
        self.assertIsNotNone(attended.check_in_at)

        with self.assertRaises(BookingError):
            cancel_booking(booking.pk)

    def test_full_slots_are_not_listed(self):
        open_slot = self.make_slot(start=time(9, 0))
        self.make_slot(start=time(11, 0), capacity=1, booked_count=1)

        slots = get_available_slots(self.branch, "sauna_session", self.today + timedelta(days=1))
        self.assertEqual([s.pk for s in slots], [open_slot.pk])


class SlotGenerationTests(BenefitFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.settings_row = BenefitSettings.objects.create(
            branch=self.branch,
            benefit_type="sauna_session",
            slot_duration_minutes=30,
            buffer_between_sessions_minutes=15,
            operating_hours_start=time(6, 0),
            operating_hours_end=time(8, 0),
            capacity_per_slot=4,
        )

    def test_windows_end_by_closing_time(self):
        day = self.today + timedelta(days=3)
        slots = generate_daily_slots(self.branch, "sauna_session", day, self.settings_row)

        self.assertEqual(
            [(s.start_time, s.end_time) for s in slots],
            [(time(6, 0), time(6, 30)), (time(6, 45), time(7, 15)), (time(7, 30), time(8, 0))],
        )
        self.assertTrue(all(s.capacity == 4 for s in slots))

    def test_range_generation_skips_days_with_slots(self):
        start = self.today + timedelta(days=1)
        end = start + timedelta(days=1)

        self.assertEqual(ensure_slots_for_date_range(self.branch, start, end), 6)
        self.assertEqual(ensure_slots_for_date_range(self.branch, start, end), 0)
