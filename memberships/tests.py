from datetime import date, datetime, timedelta, timezone as dt_timezone
from unittest import mock

from django.test import TestCase

from core.models import Branch
from memberships.models import Member, MemberAttendance, Membership, Plan
from memberships.services import (
    expire_memberships,
    member_check_in,
    member_check_out,
    validate_member_checkin,
)


class MemberCheckInTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Koramangala", code="BLR2", timezone="Asia/Kolkata")
        self.today = self.branch.local_today()
        self.plan = Plan.objects.create(name="Monthly", duration_days=30)
        self.member = Member.objects.create(branch=self.branch, member_code="K-100", full_name="Asha Rao")

    def _membership(self, **kwargs):
        data = {
            "member": self.member,
            "plan": self.plan,
            "branch": self.branch,
            "start_date": self.today - timedelta(days=3),
            "end_date": self.today + timedelta(days=27),
        }
        data.update(kwargs)
        return Membership.objects.create(**data)

    def test_active_membership_is_valid(self):
        self._membership()
        result = validate_member_checkin(self.member, self.branch)

        self.assertTrue(result.valid)
        self.assertEqual(result.plan_name, "Monthly")
        self.assertEqual(result.days_remaining, 27)

    def test_no_membership(self):
        result = validate_member_checkin(self.member, self.branch)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "no_membership")

    def test_expired_membership(self):
        self._membership(start_date=self.today - timedelta(days=40), end_date=self.today - timedelta(days=10))
        result = validate_member_checkin(self.member, self.branch)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "expired")

    def test_frozen_membership(self):
        membership = self._membership()
        membership.freeze()

        result = validate_member_checkin(self.member, self.branch)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "frozen")

        membership.unfreeze()
        self.assertTrue(validate_member_checkin(self.member, self.branch).valid)

    def test_inactive_member(self):
        self._membership()
        self.member.status = Member.Status.SUSPENDED
        self.member.save(update_fields=["status"])

        result = validate_member_checkin(self.member, self.branch)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "member_inactive")

    def test_check_in_then_already_checked_in(self):
        self._membership()
        first = member_check_in(self.member, self.branch, method=MemberAttendance.Method.BIOMETRIC)
        self.assertTrue(first.valid)
        self.assertEqual(first.attendance.check_in_method, "biometric")

        second = member_check_in(self.member, self.branch)
        self.assertFalse(second.valid)
        self.assertEqual(second.reason, "already_checked_in")
        self.assertEqual(MemberAttendance.objects.filter(member=self.member).count(), 1)

    def test_check_out_closes_open_visit(self):
        self._membership()
        member_check_in(self.member, self.branch)

        attendance = member_check_out(self.member)
        self.assertIsNotNone(attendance.check_out)
        self.assertIsNone(member_check_out(self.member))
        self.assertTrue(validate_member_checkin(self.member, self.branch).valid)


class MembershipExpiryTests(TestCase):
    def test_expire_memberships_only_touches_lapsed_active(self):
        branch = Branch.objects.create(name="Whitefield", code="BLR3")
        plan = Plan.objects.create(name="Quarterly", duration_days=90)
        member = Member.objects.create(branch=branch, member_code="W-1")
        today = branch.local_today()

        lapsed = Membership.objects.create(
            member=member, plan=plan, branch=branch,
            start_date=today - timedelta(days=100), end_date=today - timedelta(days=1),
        )
        current = Membership.objects.create(
            member=member, plan=plan, branch=branch,
            start_date=today, end_date=today + timedelta(days=89),
        )

        self.assertEqual(expire_memberships(today=today), 1)
        lapsed.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(lapsed.status, Membership.Status.EXPIRED)
        self.assertEqual(current.status, Membership.Status.ACTIVE)

    def test_expiry_uses_each_branch_day(self):
        # 20:00 UTC on 31 March is already 1 April in Kolkata.
        moment = datetime(2024, 3, 31, 20, 0, tzinfo=dt_timezone.utc)
        plan = Plan.objects.create(name="Monthly", duration_days=30)
        memberships = {}
        for code, zone in (("PNQ9", "Asia/Kolkata"), ("LON9", "Europe/London")):
            branch = Branch.objects.create(name=code, code=code, timezone=zone)
            member = Member.objects.create(branch=branch, member_code=f"{code}-1")
            memberships[code] = Membership.objects.create(
                member=member, plan=plan, branch=branch,
                start_date=date(2024, 3, 1), end_date=date(2024, 3, 31),
            )

        with mock.patch("django.utils.timezone.now", return_value=moment):
            self.assertEqual(expire_memberships(), 1)

        for m in memberships.values():
            m.refresh_from_db()
        self.assertEqual(memberships["PNQ9"].status, Membership.Status.EXPIRED)
        self.assertEqual(memberships["LON9"].status, Membership.Status.ACTIVE)

    def test_cancel_is_terminal(self):
        branch = Branch.objects.create(name="Hebbal", code="BLR4")
        plan = Plan.objects.create(name="Monthly", duration_days=30)
        member = Member.objects.create(branch=branch, member_code="H-1")
        today = branch.local_today()
        membership = Membership.objects.create(
            member=member, plan=plan, branch=branch, start_date=today, end_date=today + timedelta(days=29),
        )

        membership.cancel()
        membership.freeze()
        membership.refresh_from_db()
        self.assertEqual(membership.status, Membership.Status.CANCELLED)
