from django.contrib import admin

from .models import IntegrationSetting, PaymentTransaction, PaymentWebhookLog


@admin.register(IntegrationSetting)
class IntegrationSettingAdmin(admin.ModelAdmin):
    list_display = ("id", "branch", "integration_type", "provider", "is_active", "updated_at")
    list_filter = ("provider", "is_active", "branch")


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "gateway", "gateway_order_id", "gateway_payment_id", "invoice", "amount", "status", "updated_at")
    list_filter = ("gateway", "status", "branch")
    search_fields = ("gateway_order_id", "gateway_payment_id", "invoice__invoice_number")
    readonly_fields = ("webhook_data", "created_at", "updated_at")


@admin.register(PaymentWebhookLog)
class PaymentWebhookLogAdmin(admin.ModelAdmin):
    list_display = ("id", "gateway", "branch", "created_at")
    list_filter = ("gateway",)
