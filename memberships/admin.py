from django.contrib import admin

from .models import Member, MemberAttendance, Membership, Plan, PlanBenefit


class PlanBenefitInline(admin.TabularInline):
    model = PlanBenefit
    extra = 0


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "branch", "duration_days", "price", "is_active")
    list_filter = ("is_active", "branch")
    search_fields = ("name",)
    inlines = [PlanBenefitInline]


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ("member_code", "display_name", "branch", "status", "created_at")
    list_filter = ("status", "branch")
    search_fields = ("member_code", "full_name", "user__full_name", "user__phone")
    autocomplete_fields = ("user",)


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "member",
        "plan",
        "branch",
        "start_date",
        "end_date",
        "status",
        "created_at",
    )
    list_filter = ("status", "branch", "plan")
    search_fields = ("member__member_code", "member__full_name", "plan__name")
    ordering = ("-created_at",)


@admin.register(MemberAttendance)
class MemberAttendanceAdmin(admin.ModelAdmin):
    list_display = ("id", "member", "branch", "check_in", "check_out", "check_in_method")
    list_filter = ("branch", "check_in_method")
    search_fields = ("member__member_code", "member__full_name")
    ordering = ("-check_in",)
