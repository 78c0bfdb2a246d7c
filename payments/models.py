from decimal import Decimal

from django.db import models


class IntegrationSetting(models.Model):
    """Per-branch credentials of an external provider."""

    class IntegrationType(models.TextChoices):
        PAYMENT_GATEWAY = "payment_gateway", "Payment gateway"

    class Provider(models.TextChoices):
        RAZORPAY = "razorpay", "Razorpay"
        PHONEPE = "phonepe", "PhonePe"

    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="integrations")
    integration_type = models.CharField(
        max_length=32,
        choices=IntegrationType.choices,
        default=IntegrationType.PAYMENT_GATEWAY,
    )
    provider = models.CharField(max_length=32, choices=Provider.choices)
    # key_id, key_secret, webhook_secret (razorpay); merchant_id, salt_key, salt_index (phonepe)
    credentials = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Integration"
        verbose_name_plural = "Integrations"
        constraints = [
            models.UniqueConstraint(
                fields=["branch", "integration_type", "provider"],
                name="uniq_integration_branch_type_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.branch}: {self.get_provider_display()}"


class PaymentTransaction(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CREATED = "created", "Created"
        AUTHORIZED = "authorized", "Authorized"
        CAPTURED = "captured", "Captured"
        FAILED = "failed", "Failed"

    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="payment_transactions")
    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="gateway_transactions",
    )

    gateway = models.CharField(max_length=32, choices=IntegrationSetting.Provider.choices)
    gateway_order_id = models.CharField(max_length=128, blank=True, default="", db_index=True)
    gateway_payment_id = models.CharField(max_length=128, blank=True, default="")
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    webhook_data = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Gateway transaction"
        verbose_name_plural = "Gateway transactions"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.gateway} {self.gateway_order_id or '—'} {self.amount} ({self.status})"


class PaymentWebhookLog(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    gateway = models.CharField(max_length=32, blank=True, default="")
    branch = models.ForeignKey(
        "core.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_webhooks",
    )
    payload = models.JSONField()

    class Meta:
        verbose_name = "Webhook log"
        verbose_name_plural = "Webhook logs"
        ordering = ["-created_at"]
