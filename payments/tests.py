import base64
import hashlib
import hmac
import json
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from billing.models import Invoice, Payment
from core.models import Branch
from memberships.models import Member

from .gateways import PhonePeGateway, RazorpayGateway, from_minor_units
from .models import IntegrationSetting, PaymentTransaction, PaymentWebhookLog


WEBHOOK_SECRET = "whsec_test_123"


def razorpay_event(order_id, *, event="payment.captured", amount=250000, payment_id="pay_001"):
    return {
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "entity": "payment",
                    "amount": amount,
                    "currency": "INR",
                    "order_id": order_id,
                    "method": "upi",
                },
            },
        },
    }


class PaymentsFixtureMixin:
    def setUp(self):
        self.branch = Branch.objects.create(name="Jubilee Hills", code="HYD1")
        self.member = Member.objects.create(branch=self.branch, member_code="J-1", full_name="Kiran Reddy")
        self.invoice = Invoice.objects.create(
            branch=self.branch,
            member=self.member,
            invoice_number="INV-2001",
            total_amount=Decimal("2500.00"),
        )
        self.razorpay = IntegrationSetting.objects.create(
            branch=self.branch,
            provider="razorpay",
            credentials={"key_id": "rzp_test_key", "key_secret": "rzp_secret", "webhook_secret": WEBHOOK_SECRET},
        )
        self.url = f"/payments/webhook/?gateway=razorpay&branch_id={self.branch.pk}"

    def sign(self, body: bytes) -> str:
        return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()

    def post_webhook(self, body: bytes, url=None, **headers):
        return self.client.post(url or self.url, data=body, content_type="application/json", **headers)


class RazorpayWebhookTests(PaymentsFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        PaymentTransaction.objects.create(
            branch=self.branch,
            invoice=self.invoice,
            gateway="razorpay",
            gateway_order_id="order_A1",
            amount=Decimal("2500.00"),
        )

    def test_missing_signature_is_rejected(self):
        body = json.dumps(razorpay_event("order_A1")).encode()
        resp = self.post_webhook(body)

        self.assertEqual(resp.status_code, 401)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PENDING)
        self.assertFalse(PaymentWebhookLog.objects.exists())

    def test_wrong_signature_is_rejected(self):
        body = json.dumps(razorpay_event("order_A1")).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(b"something else"))

        self.assertEqual(resp.status_code, 401)
        self.assertFalse(Payment.objects.exists())

    def test_captured_payment_settles_invoice_once(self):
        body = json.dumps(razorpay_event("order_A1")).encode()

        first = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))
        second = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))

        self.assertEqual(first.json(), {"status": "success"})
        self.assertEqual(second.json(), {"status": "success"})
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(self.invoice.amount_paid, Decimal("2500.00"))

        payment = Payment.objects.get(invoice=self.invoice)
        self.assertEqual(payment.amount, Decimal("2500.00"))
        self.assertEqual(payment.payment_method, "online")
        self.assertEqual(payment.transaction_id, "pay_001")

        txn = PaymentTransaction.objects.get(gateway_order_id="order_A1")
        self.assertEqual(txn.status, "captured")
        self.assertEqual(txn.gateway_payment_id, "pay_001")
        self.assertEqual(PaymentWebhookLog.objects.count(), 2)

    def test_status_mapping_and_no_regression(self):
        for event, expected in (
            ("payment.authorized", "authorized"),
            ("payment.failed", "failed"),
            ("order.paid", "created"),
        ):
            body = json.dumps(razorpay_event("order_A1", event=event)).encode()
            self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))
            self.assertEqual(PaymentTransaction.objects.get(gateway_order_id="order_A1").status, expected)

        captured = json.dumps(razorpay_event("order_A1")).encode()
        self.post_webhook(captured, HTTP_X_RAZORPAY_SIGNATURE=self.sign(captured))
        late = json.dumps(razorpay_event("order_A1", event="payment.authorized")).encode()
        self.post_webhook(late, HTTP_X_RAZORPAY_SIGNATURE=self.sign(late))

        self.assertEqual(PaymentTransaction.objects.get(gateway_order_id="order_A1").status, "captured")
        self.assertEqual(Payment.objects.count(), 1)

    def test_unknown_order_is_recorded(self):
        body = json.dumps(razorpay_event("order_new", amount=99950)).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))

        self.assertEqual(resp.status_code, 200)
        txn = PaymentTransaction.objects.get(gateway_order_id="order_new")
        self.assertEqual(txn.amount, Decimal("999.50"))
        self.assertEqual(txn.branch, self.branch)
        self.assertIsNone(txn.invoice)
        self.assertFalse(Payment.objects.exists())

    def test_non_finite_amount_is_treated_as_zero(self):
        body = json.dumps(razorpay_event("order_inf", event="payment.failed", amount="Infinity")).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))

        self.assertEqual(resp.status_code, 200)
        txn = PaymentTransaction.objects.get(gateway_order_id="order_inf")
        self.assertEqual(txn.amount, Decimal("0.00"))
        self.assertEqual(txn.status, "failed")

    def test_parse_failure_returns_json_500(self):
        body = json.dumps(razorpay_event("order_A1")).encode()
        with mock.patch.object(RazorpayGateway, "parse_notification", side_effect=ArithmeticError("bad amount")):
            resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Internal server error"})
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PENDING)

    def test_event_without_payment_is_ignored(self):
        body = json.dumps({"event": "order.paid", "payload": {}}).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))
        self.assertEqual(resp.json(), {"status": "ignored"})

    def test_no_secret_skips_verification(self):
        self.razorpay.credentials = {"key_id": "rzp_test_key"}
        self.razorpay.save(update_fields=["credentials"])

        body = json.dumps(razorpay_event("order_A1")).encode()
        resp = self.post_webhook(body)
        self.assertEqual(resp.status_code, 200)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)


class WebhookRequestValidationTests(PaymentsFixtureMixin, TestCase):
    def test_unsupported_gateway(self):
        resp = self.post_webhook(b"{}", url=f"/payments/webhook/?gateway=paypal&branch_id={self.branch.pk}")
        self.assertEqual(resp.status_code, 400)

    def test_branch_id_validation(self):
        self.assertEqual(self.post_webhook(b"{}", url="/payments/webhook/?gateway=razorpay").status_code, 400)
        self.assertEqual(
            self.post_webhook(b"{}", url="/payments/webhook/?gateway=razorpay&branch_id=not-a-uuid").status_code,
            400,
        )
        self.assertEqual(
            self.post_webhook(
                b"{}", url="/payments/webhook/?gateway=razorpay&branch_id=3f2504e0-4f89-11d3-9a0c-0305e82c3301"
            ).status_code,
            404,
        )

    @override_settings(PAYMENT_WEBHOOK_MAX_BODY=64)
    def test_oversized_body(self):
        body = json.dumps(razorpay_event("order_A1")).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))
        self.assertEqual(resp.status_code, 413)

    def test_malformed_json(self):
        self.assertEqual(self.post_webhook(b"{not json").status_code, 400)

    def test_inactive_integration(self):
        self.razorpay.is_active = False
        self.razorpay.save(update_fields=["is_active"])
        body = json.dumps(razorpay_event("order_A1")).encode()
        resp = self.post_webhook(body, HTTP_X_RAZORPAY_SIGNATURE=self.sign(body))
        self.assertEqual(resp.status_code, 400)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class PhonePeWebhookTests(PaymentsFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        IntegrationSetting.objects.create(
            branch=self.branch,
            provider="phonepe",
            credentials={"merchant_id": "MERCH1", "salt_key": "salt-xyz", "salt_index": "2"},
        )
        PaymentTransaction.objects.create(
            branch=self.branch,
            invoice=self.invoice,
            gateway="phonepe",
            gateway_order_id="ORD-1",
            amount=Decimal("2500.00"),
        )
        self.url = f"/payments/webhook/?gateway=phonepe&branch_id={self.branch.pk}"

    def x_verify(self, body: bytes) -> str:
        to_sign = base64.b64encode(body).decode() + "/pg/v1/status/" + "salt-xyz"
        return hashlib.sha256(to_sign.encode()).hexdigest() + "###2"

    def test_completed_state_captures(self):
        body = json.dumps({
            "success": True,
            "data": {
                "merchantId": "MERCH1",
                "merchantTransactionId": "ORD-1",
                "transactionId": "T2401",
                "amount": 250000,
                "state": "COMPLETED",
            },
        }).encode()

        resp = self.post_webhook(body, HTTP_X_VERIFY=self.x_verify(body))

        self.assertEqual(resp.status_code, 200)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(PaymentTransaction.objects.get(gateway_order_id="ORD-1").status, "captured")

    def test_bad_checksum(self):
        body = json.dumps({"data": {"merchantTransactionId": "ORD-1", "state": "COMPLETED"}}).encode()
        resp = self.post_webhook(body, HTTP_X_VERIFY="deadbeef###2")
        self.assertEqual(resp.status_code, 401)

    def test_state_mapping(self):
        gateway = PhonePeGateway({"salt_key": "s"})
        for state, expected in (("COMPLETED", "captured"), ("FAILED", "failed"), ("PENDING", "authorized"), ("X", "created")):
            note = gateway.parse_notification({"data": {"merchantTransactionId": "o", "state": state, "amount": 100}})
            self.assertEqual(note.status, expected)
            self.assertEqual(note.amount, Decimal("1.00"))


class CreatePaymentOrderTests(PaymentsFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.staff_user = get_user_model().objects.create_user(username="cashier", password="pass12345", is_staff=True)
        self.client.force_login(self.staff_user)

    def post_order(self, **data):
        body = {"invoice_id": self.invoice.pk, "gateway": "razorpay", "branch_id": str(self.branch.pk)}
        body.update(data)
        return self.client.post("/payments/orders/", data=json.dumps(body), content_type="application/json")

    @mock.patch("payments.gateways.requests.post")
    def test_razorpay_order_is_recorded_as_pending(self, post):
        post.return_value.json.return_value = {"id": "order_RZ1", "status": "created"}

        resp = self.post_order()

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["gateway_order_id"], "order_RZ1")
        self.assertEqual(data["razorpay_key"], "rzp_test_key")
        self.assertEqual(data["amount"], "2500.00")

        _, kwargs = post.call_args
        self.assertEqual(kwargs["json"]["amount"], 250000)
        self.assertEqual(kwargs["json"]["receipt"], "INV-2001")
        self.assertEqual(kwargs["auth"], ("rzp_test_key", "rzp_secret"))

        txn = PaymentTransaction.objects.get(gateway_order_id="order_RZ1")
        self.assertEqual(txn.status, "pending")
        self.assertEqual(txn.invoice, self.invoice)

    @mock.patch("payments.gateways.requests.post")
    def test_gateway_failure(self, post):
        import requests

        post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        resp = self.post_order()
        self.assertEqual(resp.status_code, 502)
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_phonepe_returns_checkout_url(self):
        IntegrationSetting.objects.create(
            branch=self.branch,
            provider="phonepe",
            credentials={"merchant_id": "MERCH1", "salt_key": "salt-xyz"},
        )
        resp = self.post_order(gateway="phonepe")

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["checkout_url"].endswith("/MERCH1"))
        self.assertTrue(PaymentTransaction.objects.filter(gateway_order_id=data["gateway_order_id"]).exists())

    def test_paid_invoice_is_rejected(self):
        self.invoice.amount_paid = self.invoice.total_amount
        self.invoice.save(update_fields=["amount_paid"])
        resp = self.post_order()
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Invoice already paid")

    def test_unconfigured_gateway(self):
        resp = self.post_order(gateway="phonepe")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Payment gateway not configured")

    def test_requires_staff(self):
        self.client.logout()
        self.assertEqual(self.post_order().status_code, 401)


class SignatureHelpersTests(TestCase):
    def test_razorpay_signature(self):
        gateway = RazorpayGateway({"webhook_secret": "s3cr3t"})
        body = b'{"event":"payment.captured"}'
        good = hmac.new(b"s3cr3t", body, hashlib.sha256).hexdigest()

        self.assertTrue(gateway.verify_signature(body, good))
        self.assertFalse(gateway.verify_signature(body, "0" * 64))
        self.assertFalse(gateway.verify_signature(body, ""))

    def test_minor_units_conversion(self):
        self.assertEqual(from_minor_units(99950), Decimal("999.50"))
        self.assertEqual(from_minor_units(None), Decimal("0.00"))
        for bad in ("Infinity", "-Infinity", "NaN", "abc"):
            self.assertEqual(from_minor_units(bad), Decimal("0.00"))
