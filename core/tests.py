from datetime import datetime, timezone as dt_timezone
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.http import JsonResponse
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings

from benefits.models import BenefitSlot
from devices.models import AccessDevice
from memberships.models import Member, Membership

from .http import client_ip, parse_json_body, parse_uuid, staff_json_required
from .models import Branch
from .telegram_notify import occupancy_line, tg_send


class BranchTimezoneTests(TestCase):
    def test_unknown_timezone_is_rejected(self):
        branch = Branch(name="Nowhere", code="X1", timezone="Mars/Olympus")
        with self.assertRaises(ValidationError):
            branch.full_clean()

    @override_settings(TIME_ZONE="UTC")
    def test_empty_timezone_uses_server_default(self):
        branch = Branch.objects.create(name="Default", code="D1")
        self.assertEqual(str(branch.tzinfo()), "UTC")

    def test_local_today_follows_branch_zone(self):
        # 20:00 UTC is already the next day in Kolkata (UTC+5:30).
        moment = datetime(2024, 3, 31, 20, 0, tzinfo=dt_timezone.utc)
        kolkata = Branch.objects.create(name="Pune", code="PNQ1", timezone="Asia/Kolkata")
        london = Branch.objects.create(name="London", code="LON1", timezone="Europe/London")

        with mock.patch("django.utils.timezone.now", return_value=moment):
            self.assertEqual(kolkata.local_today().isoformat(), "2024-04-01")
            self.assertEqual(london.local_today().isoformat(), "2024-03-31")


class HttpHelpersTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_parse_uuid(self):
        self.assertIsNone(parse_uuid(None))
        self.assertIsNone(parse_uuid("not-a-uuid"))
        self.assertEqual(
            str(parse_uuid(" 3f2504e0-4f89-11d3-9a0c-0305e82c3301 ")),
            "3f2504e0-4f89-11d3-9a0c-0305e82c3301",
        )

    def test_parse_json_body(self):
        ok = self.factory.post("/", data='{"a": 1}', content_type="application/json")
        self.assertEqual(parse_json_body(ok), {"a": 1})

        for raw in ("{oops", "[1, 2]"):
            with self.assertRaises(ValueError):
                parse_json_body(self.factory.post("/", data=raw, content_type="application/json"))

    def test_client_ip_prefers_forwarded_header(self):
        request = self.factory.get("/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", REMOTE_ADDR="10.0.0.1")
        self.assertEqual(client_ip(request), "203.0.113.7")
        self.assertEqual(client_ip(self.factory.get("/", REMOTE_ADDR="10.0.0.9")), "10.0.0.9")


class StaffJsonRequiredTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.view = staff_json_required(lambda request: JsonResponse({"ok": True}))
        user_model = get_user_model()
        self.staff = user_model.objects.create_user(username="desk", password="pass12345", is_staff=True)
        self.member = user_model.objects.create_user(username="member", password="pass12345")

    def call(self, user):
        request = self.factory.post("/")
        request.user = user
        return self.view(request)

    def test_anonymous_gets_401(self):
        self.assertEqual(self.call(AnonymousUser()).status_code, 401)

    def test_non_staff_gets_403(self):
        self.assertEqual(self.call(self.member).status_code, 403)

    def test_staff_passes(self):
        self.assertEqual(self.call(self.staff).status_code, 200)


class TelegramNotifyTests(SimpleTestCase):
    @override_settings(TELEGRAM_NOTIFICATIONS=False, TELEGRAM_BOT_TOKEN="t", TELEGRAM_CHAT_ID="c")
    @mock.patch("core.telegram_notify.requests.post")
    def test_disabled_sends_nothing(self, post):
        tg_send("hello")
        post.assert_not_called()

    @override_settings(TELEGRAM_NOTIFICATIONS=True, TELEGRAM_BOT_TOKEN="t", TELEGRAM_CHAT_ID="c")
    @mock.patch("core.telegram_notify.requests.post")
    def test_enabled_posts_message(self, post):
        tg_send("hello")
        _, kwargs = post.call_args
        self.assertEqual(kwargs["json"]["chat_id"], "c")
        self.assertEqual(kwargs["json"]["parse_mode"], "HTML")

    def test_occupancy_line(self):
        self.assertIn("3 / 10", occupancy_line(3, 10))
        self.assertNotIn("/", occupancy_line(3, None))


class SeedDemoTests(TestCase):
    def test_seed_is_repeatable(self):
        call_command("seed_demo", "--days", "2", stdout=StringIO())
        call_command("seed_demo", "--days", "2", stdout=StringIO())

        branch = Branch.objects.get(code="DEMO1")
        self.assertEqual(AccessDevice.objects.filter(branch=branch).count(), 1)
        self.assertEqual(Member.objects.filter(branch=branch).count(), 1)
        self.assertEqual(Membership.objects.filter(branch=branch).count(), 1)
        self.assertTrue(BenefitSlot.objects.filter(branch=branch).exists())
