from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import transaction

from .models import Invoice, Payment


logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


@transaction.atomic
def mark_invoice_paid(
    invoice: Invoice,
    amount,
    *,
    payment_method: str = Payment.Method.ONLINE,
    transaction_id: str = "",
    notes: str = "",
) -> Payment:
    """Add a completed payment to the invoice and move it to paid or partial."""
    amount = _money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
    if locked.status in (Invoice.Status.CANCELLED, Invoice.Status.REFUNDED):
        raise ValidationError(f"Invoice {locked.invoice_number} is {locked.status}")

    locked.amount_paid = _money(locked.amount_paid) + amount
    if locked.amount_paid >= _money(locked.total_amount):
        locked.status = Invoice.Status.PAID
    else:
        locked.status = Invoice.Status.PARTIAL
    locked.save(update_fields=["amount_paid", "status", "updated_at"])

    payment = Payment.objects.create(
        branch_id=locked.branch_id,
        member_id=locked.member_id,
        invoice=locked,
        amount=amount,
        payment_method=payment_method,
        status=Payment.Status.COMPLETED,
        transaction_id=transaction_id or "",
        notes=notes or "",
    )
    logger.info("Invoice %s received %s via %s", locked.invoice_number, amount, payment_method)

    invoice.amount_paid = locked.amount_paid
    invoice.status = locked.status
    return payment
