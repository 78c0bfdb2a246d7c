from decimal import Decimal

from django.db import models
from django.utils import timezone


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        PARTIAL = "partial", "Partially paid"
        OVERDUE = "overdue", "Overdue"
        CANCELLED = "cancelled", "Cancelled"
        REFUNDED = "refunded", "Refunded"

    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="invoices")
    member = models.ForeignKey("memberships.Member", on_delete=models.PROTECT, related_name="invoices")
    membership = models.ForeignKey(
        "memberships.Membership",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
    )

    invoice_number = models.CharField("Invoice #", max_length=32, unique=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    due_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.invoice_number} ({self.status})"

    @property
    def amount_due(self) -> Decimal:
        return (self.total_amount or Decimal("0.00")) - (self.amount_paid or Decimal("0.00"))


class Payment(models.Model):
    class Method(models.TextChoices):
        CASH = "cash", "Cash"
        CARD = "card", "Card"
        UPI = "upi", "UPI"
        ONLINE = "online", "Online gateway"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="payments")
    member = models.ForeignKey("memberships.Member", on_delete=models.PROTECT, related_name="payments")
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, null=True, blank=True, related_name="payments")

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=Method.choices, default=Method.CASH)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.COMPLETED)
    transaction_id = models.CharField(max_length=128, blank=True, default="", db_index=True)
    payment_date = models.DateTimeField(default=timezone.now)
    notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ["-payment_date"]

    def __str__(self) -> str:
        return f"{self.amount} {self.payment_method} ({self.status})"
