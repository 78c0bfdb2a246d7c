from django.contrib import admin

from .models import Employee, StaffAttendance


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("employee_code", "display_name", "branch", "position", "is_active")
    list_filter = ("is_active", "branch")
    search_fields = ("employee_code", "full_name", "user__full_name")
    autocomplete_fields = ("user",)


@admin.register(StaffAttendance)
class StaffAttendanceAdmin(admin.ModelAdmin):
    list_display = ("id", "employee", "branch", "check_in", "check_out", "check_in_method")
    list_filter = ("branch", "check_in_method")
    ordering = ("-check_in",)
