from django.contrib import admin

from .models import AccessDevice, BiometricSyncQueue, DeviceAccessEvent


@admin.register(AccessDevice)
class AccessDeviceAdmin(admin.ModelAdmin):
    list_display = ("device_name", "branch", "ip_address", "is_online", "last_heartbeat", "last_sync", "relay_delay")
    list_filter = ("branch", "is_online")
    search_fields = ("device_name", "ip_address")
    readonly_fields = ("id", "last_heartbeat", "last_sync")


@admin.register(DeviceAccessEvent)
class DeviceAccessEventAdmin(admin.ModelAdmin):
    list_display = ("processed_at", "device", "member", "staff", "event_type", "response_sent", "device_message")
    list_filter = ("branch", "event_type", "access_granted")
    search_fields = ("member__member_code", "staff__employee_code", "device_message")
    ordering = ("-processed_at",)

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(BiometricSyncQueue)
class BiometricSyncQueueAdmin(admin.ModelAdmin):
    list_display = ("queued_at", "device", "person_name", "sync_type", "status")
    list_filter = ("status", "sync_type", "device")
    search_fields = ("person_name",)
