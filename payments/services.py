from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from billing.models import Invoice, Payment
from billing.services import mark_invoice_paid

from .gateways import GatewayConfigError, GatewayError, GatewayNotification, get_gateway
from .models import IntegrationSetting, PaymentTransaction


logger = logging.getLogger(__name__)


class PaymentOrderError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def get_active_integration(branch, provider: str) -> IntegrationSetting | None:
    return IntegrationSetting.objects.filter(
        branch=branch,
        integration_type=IntegrationSetting.IntegrationType.PAYMENT_GATEWAY,
        provider=provider,
        is_active=True,
    ).first()


@transaction.atomic
def reconcile_notification(branch, gateway: str, note: GatewayNotification) -> tuple[PaymentTransaction, Payment | None]:
    """
    Upsert the gateway transaction by order id and settle its invoice on capture.

    The transaction row is locked, so a repeated captured delivery sees the
    captured status and settles nothing twice.
    """
    txn = None
    if note.gateway_order_id:
        txn = (
            PaymentTransaction.objects
            .select_for_update()
            .filter(gateway=gateway, gateway_order_id=note.gateway_order_id)
            .order_by("created_at")
            .first()
        )

    if txn is None:
        txn = PaymentTransaction.objects.create(
            branch=branch,
            gateway=gateway,
            gateway_order_id=note.gateway_order_id,
            gateway_payment_id=note.gateway_payment_id,
            amount=note.amount,
            currency=settings.PAYMENT_CURRENCY,
            status=note.status,
            webhook_data=note.payload,
        )
        logger.info("Recorded %s transaction %s (%s) without a local order", gateway, note.gateway_order_id, note.status)
        return txn, None

    was_captured = txn.status == PaymentTransaction.Status.CAPTURED
    if note.gateway_payment_id:
        txn.gateway_payment_id = note.gateway_payment_id
    # A late authorized/created event does not roll a captured payment back.
    if not was_captured:
        txn.status = note.status
    txn.webhook_data = note.payload
    txn.save(update_fields=["gateway_payment_id", "status", "webhook_data", "updated_at"])

    payment = None
    if note.status == PaymentTransaction.Status.CAPTURED and not was_captured and txn.invoice_id:
        try:
            payment = mark_invoice_paid(
                txn.invoice,
                note.amount,
                payment_method=Payment.Method.ONLINE,
                transaction_id=note.gateway_payment_id,
                notes=f"{gateway} order {note.gateway_order_id}",
            )
        except ValidationError as exc:
            logger.warning("Captured %s order %s not applied to invoice: %s", gateway, note.gateway_order_id, exc)
    logger.info("Updated %s transaction %s -> %s", gateway, note.gateway_order_id, txn.status)
    return txn, payment


def create_payment_order(invoice: Invoice, gateway: str, branch) -> dict:
    """Open a gateway order for the amount still due and record it as pending."""
    amount_due = invoice.amount_due
    if amount_due <= 0:
        raise PaymentOrderError("Invoice already paid")

    integration = get_active_integration(branch, gateway)
    if integration is None:
        raise PaymentOrderError("Payment gateway not configured")

    currency = settings.PAYMENT_CURRENCY
    try:
        client = get_gateway(gateway, integration.credentials)
        order = client.create_order(
            amount=amount_due,
            currency=currency,
            receipt=invoice.invoice_number,
            notes={"invoice_id": str(invoice.pk), "branch_id": str(branch.pk)},
        )
    except GatewayConfigError as exc:
        raise PaymentOrderError(str(exc))
    except GatewayError as exc:
        logger.warning("Order for invoice %s via %s failed: %s", invoice.invoice_number, gateway, exc)
        raise PaymentOrderError(f"Failed to create {gateway} order", 502)

    PaymentTransaction.objects.create(
        branch=branch,
        invoice=invoice,
        gateway=gateway,
        gateway_order_id=order["gateway_order_id"],
        amount=amount_due,
        currency=currency,
        status=PaymentTransaction.Status.PENDING,
    )
    logger.info("Opened %s order %s for invoice %s", gateway, order["gateway_order_id"], invoice.invoice_number)

    return {
        "order_id": order["gateway_order_id"],
        "amount": str(amount_due),
        "currency": currency,
        "invoice_id": invoice.pk,
        "gateway": gateway,
        **order,
    }
