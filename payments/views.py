import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.models import Invoice
from core.http import json_error, parse_json_body, parse_uuid, staff_json_required
from core.models import Branch
from core.telegram_notify import notify_payment_captured

from .gateways import get_gateway
from .models import PaymentWebhookLog
from .services import PaymentOrderError, create_payment_order, get_active_integration, reconcile_notification


logger = logging.getLogger(__name__)


def _declared_length(request: HttpRequest) -> int:
    try:
        return int(request.META.get("CONTENT_LENGTH") or 0)
    except ValueError:
        return 0


@csrf_exempt
@require_POST
def payment_webhook(request: HttpRequest):
    gateway_name = (request.GET.get("gateway") or "").strip().lower()
    if gateway_name not in settings.PAYMENT_GATEWAYS:
        return json_error("Unsupported gateway", 400)

    branch_id = parse_uuid(request.GET.get("branch_id"))
    if branch_id is None:
        return json_error("branch_id must be a valid UUID", 400)
    branch = Branch.objects.filter(pk=branch_id).first()
    if branch is None:
        return json_error("Branch not found", 404)

    max_body = settings.PAYMENT_WEBHOOK_MAX_BODY
    if _declared_length(request) > max_body:
        return json_error("Payload too large", 413)
    body = request.body
    if len(body) > max_body:
        return json_error("Payload too large", 413)

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return json_error("Malformed JSON body", 400)
    if not isinstance(payload, dict):
        return json_error("Malformed JSON body", 400)

    integration = get_active_integration(branch, gateway_name)
    if integration is None:
        logger.warning("Webhook for branch %s: no active %s integration", branch.code, gateway_name)
        return json_error("Integration not configured", 400)

    gateway = get_gateway(gateway_name, integration.credentials)
    if gateway.secret:
        provided = request.META.get(gateway.signature_header)
        if not provided or not gateway.verify_signature(body, provided):
            logger.warning("Rejected %s webhook for branch %s: bad signature", gateway_name, branch.code)
            return json_error("Invalid signature", 401)

    PaymentWebhookLog.objects.create(gateway=gateway_name, branch=branch, payload=payload)

    try:
        note = gateway.parse_notification(payload)
        if note is None:
            return JsonResponse({"status": "ignored"})
        txn, payment = reconcile_notification(branch, gateway_name, note)
    except Exception:
        logger.exception("Webhook reconciliation failed for %s branch %s", gateway_name, branch.code)
        return json_error("Internal server error", 500)

    if payment is not None:
        notify_payment_captured(
            invoice=txn.invoice,
            amount=payment.amount,
            gateway=gateway_name,
            payment_id=note.gateway_payment_id,
        )
    logger.info("Processed %s webhook %s (%s)", gateway_name, note.gateway_payment_id or note.gateway_order_id, txn.status)
    return JsonResponse({"status": "success"})


@require_POST
@staff_json_required
def create_order(request: HttpRequest):
    try:
        data = parse_json_body(request)
    except ValueError:
        return json_error("Malformed JSON body", 400)

    gateway_name = str(data.get("gateway") or "").strip().lower()
    invoice_id = data.get("invoice_id")
    branch_id = parse_uuid(data.get("branch_id"))
    if not invoice_id or not gateway_name or branch_id is None:
        return json_error("Missing required fields", 400)
    if gateway_name not in settings.PAYMENT_GATEWAYS:
        return json_error("Unsupported gateway", 400)

    branch = Branch.objects.filter(pk=branch_id).first()
    if branch is None:
        return json_error("Branch not found", 404)
    try:
        invoice = Invoice.objects.select_related("member").filter(pk=int(invoice_id)).first()
    except (TypeError, ValueError):
        invoice = None
    if invoice is None:
        return json_error("Invoice not found", 404)

    try:
        order = create_payment_order(invoice, gateway_name, branch)
    except PaymentOrderError as exc:
        return json_error(str(exc), exc.status)
    return JsonResponse(order)
