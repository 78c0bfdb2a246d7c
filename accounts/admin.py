from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (
        ("Profile", {"fields": ("full_name", "phone")}),
    )
    list_display = ("id", "username", "full_name", "phone", "email", "is_staff")
    search_fields = ("username", "full_name", "phone", "email")
