from django.contrib import admin

from .models import Invoice, Payment


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("amount", "payment_method", "status", "transaction_id", "payment_date")
    readonly_fields = fields
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "member", "branch", "total_amount", "amount_paid", "status", "created_at")
    list_filter = ("status", "branch")
    search_fields = ("invoice_number", "member__member_code", "member__full_name")
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice", "member", "amount", "payment_method", "status", "transaction_id", "payment_date")
    list_filter = ("status", "payment_method", "branch")
    search_fields = ("transaction_id", "invoice__invoice_number", "member__member_code")
