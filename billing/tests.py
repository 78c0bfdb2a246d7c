from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from core.models import Branch
from memberships.models import Member

from .models import Invoice, Payment
from .services import mark_invoice_paid


class MarkInvoicePaidTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Salt Lake", code="CCU1")
        self.member = Member.objects.create(branch=self.branch, member_code="S-1", full_name="Rina Das")
        self.invoice = Invoice.objects.create(
            branch=self.branch,
            member=self.member,
            invoice_number="INV-0001",
            total_amount=Decimal("3000.00"),
        )

    def test_partial_then_paid(self):
        mark_invoice_paid(self.invoice, Decimal("1000"), payment_method=Payment.Method.CASH)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PARTIAL)
        self.assertEqual(self.invoice.amount_due, Decimal("2000.00"))

        payment = mark_invoice_paid(self.invoice, "2000.00", transaction_id="pay_1")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(self.invoice.amount_paid, Decimal("3000.00"))
        self.assertEqual(payment.payment_method, "online")
        self.assertEqual(payment.member, self.member)
        self.assertEqual(Payment.objects.filter(invoice=self.invoice).count(), 2)

    def test_rejects_bad_amount_and_cancelled_invoice(self):
        with self.assertRaises(ValidationError):
            mark_invoice_paid(self.invoice, 0)

        self.invoice.status = Invoice.Status.CANCELLED
        self.invoice.save(update_fields=["status"])
        with self.assertRaises(ValidationError):
            mark_invoice_paid(self.invoice, 100)
        self.assertFalse(Payment.objects.exists())
