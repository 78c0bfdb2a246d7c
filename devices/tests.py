import json
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from core.models import Branch
from memberships.models import Member, MemberAttendance, Membership, Plan
from staff.models import Employee, StaffAttendance

from .models import AccessDevice, BiometricSyncQueue, DeviceAccessEvent
from .services import decide_access, queue_person_sync


class DeviceFixtureMixin:
    def setUp(self):
        self.branch = Branch.objects.create(name="Bandra", code="BOM2", timezone="Asia/Kolkata")
        self.other_branch = Branch.objects.create(name="Powai", code="BOM3", timezone="Asia/Kolkata")
        self.device = AccessDevice.objects.create(branch=self.branch, device_name="Main door", relay_delay=7)
        self.today = self.branch.local_today()
        self.plan = Plan.objects.create(name="Annual", duration_days=365)

        self.member = Member.objects.create(branch=self.branch, member_code="B-1", full_name="Asha Rao")
        self.membership = Membership.objects.create(
            member=self.member,
            plan=self.plan,
            branch=self.branch,
            start_date=self.today - timedelta(days=10),
            end_date=self.today + timedelta(days=20),
        )

    def post_event(self, person_uuid, **extra):
        payload = {"device_id": str(self.device.pk), "person_uuid": str(person_uuid), "confidence": 0.97}
        payload.update(extra)
        return self.client.post(
            reverse("devices:access_event"),
            data=json.dumps(payload),
            content_type="application/json",
        )


class AccessDecisionTests(DeviceFixtureMixin, TestCase):
    def test_valid_member_is_welcomed_and_checked_in(self):
        resp = self.post_event(self.member.pk, photo_base64="QUJD" * 60)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()

        self.assertEqual(data["action"], "OPEN")
        self.assertEqual(data["message"], "Welcome, Asha Rao!")
        self.assertEqual(data["led_color"], "GREEN")
        self.assertEqual(data["relay_delay"], 7)
        self.assertEqual(data["plan_name"], "Annual")
        self.assertEqual(data["days_remaining"], 20)
        self.assertEqual(MemberAttendance.objects.filter(member=self.member).count(), 1)

        event = DeviceAccessEvent.objects.get()
        self.assertTrue(event.access_granted)
        self.assertEqual(event.member, self.member)
        self.assertEqual(event.response_sent, "OPEN")
        self.assertTrue(event.photo_url.startswith("data:image/jpeg;base64,"))

    def test_second_recognition_is_welcomed_back(self):
        self.post_event(self.member.pk)
        resp = self.post_event(self.member.pk)
        data = resp.json()

        self.assertEqual(data["action"], "OPEN")
        self.assertEqual(data["message"], "Welcome back, Asha Rao!")
        self.assertEqual(data["relay_delay"], 7)
        self.assertEqual(MemberAttendance.objects.filter(member=self.member).count(), 1)
        self.assertEqual(DeviceAccessEvent.objects.filter(member=self.member).count(), 2)

    def test_member_of_another_branch_is_denied(self):
        visitor = Member.objects.create(branch=self.other_branch, member_code="P-1", full_name="Dev Shah")
        Membership.objects.create(
            member=visitor,
            plan=self.plan,
            branch=self.other_branch,
            start_date=self.today,
            end_date=self.today + timedelta(days=30),
        )

        data = self.post_event(visitor.pk).json()

        self.assertEqual(data["action"], "DENIED")
        self.assertEqual(data["message"], "Wrong Branch")
        self.assertEqual(data["led_color"], "RED")
        self.assertEqual(data["relay_delay"], 0)
        event = DeviceAccessEvent.objects.get(member=visitor)
        self.assertEqual(event.denial_reason, "wrong_branch")
        self.assertFalse(MemberAttendance.objects.filter(member=visitor).exists())

    def test_membership_denials(self):
        self.membership.freeze()
        self.assertEqual(self.post_event(self.member.pk).json()["message"], "Membership Frozen")

        self.membership.status = Membership.Status.ACTIVE
        self.membership.end_date = self.today - timedelta(days=1)
        self.membership.save()
        self.assertEqual(self.post_event(self.member.pk).json()["message"], "Membership Expired - See Reception")

        fresh = Member.objects.create(branch=self.branch, member_code="B-2", full_name="New Joiner")
        self.assertEqual(self.post_event(fresh.pk).json()["message"], "No Active Plan")

        self.assertEqual(DeviceAccessEvent.objects.filter(access_granted=False).count(), 3)

    def test_inactive_member_gets_validation_message(self):
        self.member.status = Member.Status.BLACKLISTED
        self.member.save(update_fields=["status"])

        data = self.post_event(self.member.pk).json()
        self.assertEqual(data["action"], "DENIED")
        self.assertEqual(data["message"], "Member account is blacklisted")

    def test_staff_access(self):
        employee = Employee.objects.create(branch=self.branch, employee_code="E-7", full_name="Ravi Kumar")
        data = self.post_event(employee.pk).json()
        self.assertEqual(data["action"], "OPEN")
        self.assertEqual(data["message"], "Welcome, Ravi Kumar!")
        self.assertEqual(StaffAttendance.objects.filter(employee=employee).count(), 1)

        employee.is_active = False
        employee.save(update_fields=["is_active"])
        data = self.post_event(employee.pk).json()
        self.assertEqual(data["message"], "Account Inactive")

        outsider = Employee.objects.create(branch=self.other_branch, employee_code="E-8", full_name="Meera")
        data = self.post_event(outsider.pk).json()
        self.assertEqual(data["message"], "Wrong Branch")

    def test_unknown_person(self):
        data = self.post_event("3f2504e0-4f89-11d3-9a0c-0305e82c3301").json()
        self.assertEqual(data["action"], "DENIED")
        self.assertEqual(data["message"], "Not Registered")
        self.assertEqual(DeviceAccessEvent.objects.get().denial_reason, "not_found")

    def test_bad_requests(self):
        url = reverse("devices:access_event")
        self.assertEqual(self.client.post(url, data="{", content_type="application/json").status_code, 400)
        self.assertEqual(
            self.client.post(url, data=json.dumps({"device_id": str(self.device.pk)}), content_type="application/json").status_code,
            400,
        )
        missing = {"device_id": "3f2504e0-4f89-11d3-9a0c-0305e82c3301", "person_uuid": str(self.member.pk)}
        self.assertEqual(
            self.client.post(url, data=json.dumps(missing), content_type="application/json").status_code,
            404,
        )

    def test_failure_rolls_back_and_returns_500(self):
        with mock.patch("devices.services.member_check_in", side_effect=RuntimeError("db down")):
            resp = self.post_event(self.member.pk)

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Internal server error"})
        self.assertFalse(DeviceAccessEvent.objects.exists())

    def test_impossible_timestamp_falls_back_to_now(self):
        resp = self.post_event(self.member.pk, timestamp="2024-02-30T10:00:00")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["action"], "OPEN")
        event = DeviceAccessEvent.objects.get()
        self.assertTrue(event.access_granted)
        self.assertEqual(event.processed_at.year, timezone.now().year)

    def test_terminal_timestamp_is_kept(self):
        self.post_event(self.member.pk, timestamp="2024-03-01T10:00:00")

        event = DeviceAccessEvent.objects.get()
        self.assertEqual(timezone.localtime(event.processed_at, self.branch.tzinfo()).hour, 10)

    def test_default_relay_delay(self):
        self.device.relay_delay = 0
        self.device.save(update_fields=["relay_delay"])

        decision = decide_access(self.device, self.member.pk, 0.9)
        self.assertEqual(decision.relay_delay, 5)
        self.assertIsNotNone(decision.event.pk)


class DeviceSyncTests(DeviceFixtureMixin, TestCase):
    def test_enrolment_queues_sync_items(self):
        item = BiometricSyncQueue.objects.get(member=self.member)
        self.assertEqual(item.sync_type, "add")
        self.assertEqual(item.device, self.device)

        Member.objects.create(branch=self.other_branch, member_code="P-9")
        self.assertEqual(BiometricSyncQueue.objects.count(), 1)

        queue_person_sync(self.member, "delete")
        self.assertEqual(BiometricSyncQueue.objects.filter(sync_type="delete").count(), 1)

    def test_heartbeat_reports_pending_syncs(self):
        resp = self.client.post(
            reverse("devices:heartbeat"),
            data=json.dumps({"device_id": str(self.device.pk), "ip_address": "10.0.0.5", "firmware_version": "2.1"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["has_pending_syncs"])

        self.device.refresh_from_db()
        self.assertTrue(self.device.is_online)
        self.assertEqual(self.device.ip_address, "10.0.0.5")
        self.assertEqual(self.device.firmware_version, "2.1")

    def test_heartbeat_unknown_device(self):
        resp = self.client.post(
            reverse("devices:heartbeat"),
            data=json.dumps({"device_id": "3f2504e0-4f89-11d3-9a0c-0305e82c3301"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 404)

    def test_incremental_sync_hands_out_items_once(self):
        url = reverse("devices:sync")
        data = self.client.get(url, {"device_id": str(self.device.pk)}).json()
        self.assertEqual(data["count"], 1)
        self.assertEqual(data["items"][0]["person_uuid"], str(self.member.pk))
        self.assertEqual(data["items"][0]["action"], "add")
        self.assertEqual(BiometricSyncQueue.objects.get().status, "syncing")

        again = self.client.get(url, {"device_id": str(self.device.pk)}).json()
        self.assertEqual(again["count"], 0)
        self.device.refresh_from_db()
        self.assertIsNotNone(self.device.last_sync)

    def test_full_sync_returns_roster(self):
        lapsed = Member.objects.create(branch=self.branch, member_code="B-3", full_name="Lapsed")
        Employee.objects.create(branch=self.branch, employee_code="E-1", full_name="Coach")

        data = self.client.get(reverse("devices:sync"), {"device_id": str(self.device.pk), "mode": "full"}).json()
        people = {p["person_uuid"]: p for p in data["items"]}

        self.assertTrue(people[str(self.member.pk)]["access_allowed"])
        self.assertFalse(people[str(lapsed.pk)]["access_allowed"])
        self.assertEqual(sum(1 for p in data["items"] if p["person_type"] == "staff"), 1)

    def test_unknown_sync_mode(self):
        resp = self.client.get(reverse("devices:sync"), {"device_id": str(self.device.pk), "mode": "delta"})
        self.assertEqual(resp.status_code, 400)


class TriggerRelayTests(DeviceFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse("devices:trigger_relay")
        self.body = json.dumps({"device_id": str(self.device.pk)})
        user_model = get_user_model()
        self.staff_user = user_model.objects.create_user(username="manager", password="pass12345", is_staff=True)
        self.client_user = user_model.objects.create_user(username="client", password="pass12345")

    def test_requires_staff(self):
        resp = self.client.post(self.url, data=self.body, content_type="application/json")
        self.assertEqual(resp.status_code, 401)

        self.client.force_login(self.client_user)
        resp = self.client.post(self.url, data=self.body, content_type="application/json")
        self.assertEqual(resp.status_code, 403)

    def test_offline_device(self):
        self.client.force_login(self.staff_user)
        resp = self.client.post(self.url, data=self.body, content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Device is offline")

    def test_trigger_logs_manual_event(self):
        self.device.is_online = True
        self.device.save(update_fields=["is_online"])
        self.client.force_login(self.staff_user)

        resp = self.client.post(self.url, data=self.body, content_type="application/json")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["duration"], 7)
        event = DeviceAccessEvent.objects.get()
        self.assertEqual(event.event_type, "manual_trigger")
        self.assertTrue(event.access_granted)
