from django.contrib import admin

from .models import (
    BenefitBooking,
    BenefitPackage,
    BenefitSettings,
    BenefitSlot,
    BenefitUsage,
    MemberBenefitCredits,
)


@admin.register(BenefitUsage)
class BenefitUsageAdmin(admin.ModelAdmin):
    list_display = ("id", "membership", "benefit_type", "usage_date", "usage_count", "recorded_by", "created_at")
    list_filter = ("benefit_type", "usage_date")
    search_fields = ("membership__member__member_code", "membership__member__full_name", "notes")
    ordering = ("-usage_date", "-created_at")

    # Usage is append-only.
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BenefitSettings)
class BenefitSettingsAdmin(admin.ModelAdmin):
    list_display = (
        "branch",
        "benefit_type",
        "is_slot_booking_enabled",
        "slot_duration_minutes",
        "operating_hours_start",
        "operating_hours_end",
        "capacity_per_slot",
        "max_bookings_per_day",
    )
    list_filter = ("branch", "benefit_type", "is_slot_booking_enabled")


@admin.register(BenefitSlot)
class BenefitSlotAdmin(admin.ModelAdmin):
    list_display = ("id", "branch", "benefit_type", "slot_date", "start_time", "end_time", "booked_count", "capacity", "is_active")
    list_filter = ("branch", "benefit_type", "is_active")
    date_hierarchy = "slot_date"
    readonly_fields = ("booked_count",)


@admin.register(BenefitBooking)
class BenefitBookingAdmin(admin.ModelAdmin):
    list_display = ("id", "slot", "member", "status", "consumed_from", "booked_at", "cancelled_at")
    list_filter = ("status", "consumed_from", "slot__benefit_type")
    search_fields = ("member__member_code", "member__full_name")
    ordering = ("-booked_at",)


@admin.register(BenefitPackage)
class BenefitPackageAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "branch", "benefit_type", "quantity", "price", "validity_days", "is_active", "display_order")
    list_filter = ("branch", "benefit_type", "is_active")
    list_editable = ("is_active", "display_order")
    search_fields = ("name",)


@admin.register(MemberBenefitCredits)
class MemberBenefitCreditsAdmin(admin.ModelAdmin):
    list_display = ("id", "member", "benefit_type", "source", "credits_remaining", "credits_total", "expires_at")
    list_filter = ("benefit_type", "source")
    search_fields = ("member__member_code", "member__full_name")
