import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings


class GatewayError(Exception):
    pass


class GatewayConfigError(GatewayError):
    pass


@dataclass
class GatewayNotification:
    gateway_order_id: str
    gateway_payment_id: str
    amount: Decimal
    status: str
    payload: dict


def from_minor_units(value) -> Decimal:
    # Both gateways report amounts in paise.
    try:
        minor = Decimal(str(value or 0))
    except ArithmeticError:
        minor = Decimal("0")
    if not minor.is_finite():
        minor = Decimal("0")
    return (minor / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RazorpayGateway:
    name = "razorpay"
    signature_header = "HTTP_X_RAZORPAY_SIGNATURE"

    STATUS_BY_EVENT = {
        "payment.captured": "captured",
        "payment.authorized": "authorized",
        "payment.failed": "failed",
    }

    def __init__(self, credentials: dict | None = None):
        credentials = credentials or {}
        self.key_id = credentials.get("key_id") or settings.RAZORPAY_KEY_ID
        self.key_secret = credentials.get("key_secret") or settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = credentials.get("webhook_secret") or ""
        self.base_url = settings.RAZORPAY_API_BASE_URL.rstrip("/")

    @property
    def secret(self) -> str:
        return self.webhook_secret

    def expected_signature(self, body: bytes) -> str:
        return hmac.new(self.webhook_secret.encode(), body, hashlib.sha256).hexdigest()

    def verify_signature(self, body: bytes, provided: str) -> bool:
        if not provided:
            return False
        return hmac.compare_digest(self.expected_signature(body), provided.strip())

    def parse_notification(self, payload: dict) -> GatewayNotification | None:
        """None when the event carries no payment entity (nothing to reconcile)."""
        entity = ((payload.get("payload") or {}).get("payment") or {}).get("entity")
        if not isinstance(entity, dict):
            return None
        return GatewayNotification(
            gateway_order_id=str(entity.get("order_id") or ""),
            gateway_payment_id=str(entity.get("id") or ""),
            amount=from_minor_units(entity.get("amount")),
            status=self.STATUS_BY_EVENT.get(payload.get("event"), "created"),
            payload=payload,
        )

    def create_order(self, *, amount, currency: str, receipt: str, notes: dict) -> dict:
        if not self.key_id or not self.key_secret:
            raise GatewayConfigError("Razorpay credentials not configured")

        r = requests.post(
            f"{self.base_url}/orders",
            json={
                "amount": to_minor_units(amount),
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            },
            auth=(self.key_id, self.key_secret),
            timeout=15,
        )
        try:
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            text = (getattr(r, "text", "") or "").strip()[:300]
            raise GatewayError(f"Failed to create Razorpay order: {text or exc}") from exc

        order_id = body.get("id") if isinstance(body, dict) else None
        if not order_id:
            raise GatewayError("Razorpay order response has no id")
        return {"gateway_order_id": order_id, "razorpay_key": self.key_id}


class PhonePeGateway:
    name = "phonepe"
    signature_header = "HTTP_X_VERIFY"
    status_path = "/pg/v1/status/"

    STATUS_BY_STATE = {
        "COMPLETED": "captured",
        "FAILED": "failed",
        "PENDING": "authorized",
    }

    def __init__(self, credentials: dict | None = None):
        credentials = credentials or {}
        self.merchant_id = credentials.get("merchant_id") or settings.PHONEPE_MERCHANT_ID
        self.salt_key = credentials.get("salt_key") or settings.PHONEPE_SALT_KEY
        self.salt_index = str(credentials.get("salt_index") or settings.PHONEPE_SALT_INDEX or "1")

    @property
    def secret(self) -> str:
        return self.salt_key

    def expected_signature(self, body: bytes) -> str:
        to_sign = base64.b64encode(body).decode() + self.status_path + self.salt_key
        return hashlib.sha256(to_sign.encode()).hexdigest() + "###" + self.salt_index

    def verify_signature(self, body: bytes, provided: str) -> bool:
        if not provided:
            return False
        return hmac.compare_digest(self.expected_signature(body), provided.strip())

    def parse_notification(self, payload: dict) -> GatewayNotification | None:
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        return GatewayNotification(
            gateway_order_id=str(data.get("merchantTransactionId") or ""),
            gateway_payment_id=str(data.get("transactionId") or ""),
            amount=from_minor_units(data.get("amount")),
            status=self.STATUS_BY_STATE.get(data.get("state"), "created"),
            payload=payload,
        )

    def create_order(self, *, amount, currency: str, receipt: str, notes: dict) -> dict:
        if not self.merchant_id or not self.salt_key:
            raise GatewayConfigError("PhonePe credentials not configured")
        base = settings.PHONEPE_CHECKOUT_BASE_URL.rstrip("/")
        return {
            "gateway_order_id": f"ORD-{int(time.time() * 1000)}",
            "checkout_url": f"{base}/{self.merchant_id}",
        }


GATEWAYS = {
    RazorpayGateway.name: RazorpayGateway,
    PhonePeGateway.name: PhonePeGateway,
}


def get_gateway(name: str, credentials: dict | None = None):
    try:
        cls = GATEWAYS[name]
    except KeyError:
        raise GatewayError(f"Unsupported gateway: {name}")
    return cls(credentials)
