from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

PROVIDER_CHOICES = [("razorpay", "Razorpay"), ("phonepe", "PhonePe")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("billing", "0001_initial"),
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="IntegrationSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("integration_type", models.CharField(choices=[("payment_gateway", "Payment gateway")], default="payment_gateway", max_length=32)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, max_length=32)),
                ("credentials", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="integrations", to="core.branch")),
            ],
            options={
                "verbose_name": "Integration",
                "verbose_name_plural": "Integrations",
            },
        ),
        migrations.AddConstraint(
            model_name="integrationsetting",
            constraint=models.UniqueConstraint(fields=("branch", "integration_type", "provider"), name="uniq_integration_branch_type_provider"),
        ),
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("gateway", models.CharField(choices=PROVIDER_CHOICES, max_length=32)),
                ("gateway_order_id", models.CharField(blank=True, db_index=True, default="", max_length=128)),
                ("gateway_payment_id", models.CharField(blank=True, default="", max_length=128)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("created", "Created"), ("authorized", "Authorized"), ("captured", "Captured"), ("failed", "Failed")], db_index=True, default="pending", max_length=16)),
                ("webhook_data", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payment_transactions", to="core.branch")),
                ("invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="gateway_transactions", to="billing.invoice")),
            ],
            options={
                "verbose_name": "Gateway transaction",
                "verbose_name_plural": "Gateway transactions",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentWebhookLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("gateway", models.CharField(blank=True, default="", max_length=32)),
                ("payload", models.JSONField()),
                ("branch", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payment_webhooks", to="core.branch")),
            ],
            options={
                "verbose_name": "Webhook log",
                "verbose_name_plural": "Webhook logs",
                "ordering": ["-created_at"],
            },
        ),
    ]
