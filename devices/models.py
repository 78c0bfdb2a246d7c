import uuid

from django.db import models
from django.utils import timezone


class AccessDevice(models.Model):
    """Face-recognition terminal with a door relay."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="access_devices")

    device_name = models.CharField("Name", max_length=160)
    ip_address = models.GenericIPAddressField("IP address", null=True, blank=True)
    relay_delay = models.PositiveIntegerField("Relay open time, s", default=5)
    firmware_version = models.CharField(max_length=64, blank=True, default="")

    is_online = models.BooleanField(default=False)
    last_heartbeat = models.DateTimeField(null=True, blank=True)
    last_sync = models.DateTimeField(null=True, blank=True)
    config = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Access device"
        verbose_name_plural = "Access devices"
        ordering = ["branch", "device_name"]

    def __str__(self) -> str:
        return f"{self.device_name} ({self.branch})"


class DeviceAccessEvent(models.Model):
    class EventType(models.TextChoices):
        FACE_RECOGNIZED = "face_recognized", "Face recognized"
        MANUAL_TRIGGER = "manual_trigger", "Manual trigger"

    class Response(models.TextChoices):
        OPEN = "OPEN", "Open"
        DENIED = "DENIED", "Denied"

    device = models.ForeignKey(AccessDevice, on_delete=models.CASCADE, related_name="events")
    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="access_events")
    member = models.ForeignKey(
        "memberships.Member",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="access_events",
    )
    staff = models.ForeignKey(
        "staff.Employee",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="access_events",
    )

    event_type = models.CharField(max_length=32, choices=EventType.choices, default=EventType.FACE_RECOGNIZED)
    confidence_score = models.FloatField(null=True, blank=True)
    photo_url = models.TextField(blank=True, default="")

    access_granted = models.BooleanField(default=False)
    denial_reason = models.CharField(max_length=64, blank=True, default="")
    response_sent = models.CharField(max_length=8, choices=Response.choices)
    device_message = models.CharField(max_length=255, blank=True, default="")

    processed_at = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Access event"
        verbose_name_plural = "Access events"
        ordering = ["-processed_at"]
        indexes = [
            models.Index(fields=["branch", "processed_at"], name="access_branch_proc_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.device_id} {self.response_sent} {self.device_message}"


class BiometricSyncQueue(models.Model):
    class SyncType(models.TextChoices):
        ADD = "add", "Add"
        UPDATE = "update", "Update"
        DELETE = "delete", "Delete"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SYNCING = "syncing", "Syncing"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    device = models.ForeignKey(AccessDevice, on_delete=models.CASCADE, related_name="sync_queue")
    member = models.ForeignKey(
        "memberships.Member",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="biometric_syncs",
    )
    staff = models.ForeignKey(
        "staff.Employee",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="biometric_syncs",
    )

    person_uuid = models.UUIDField()
    person_name = models.CharField(max_length=255, blank=True, default="")
    photo_url = models.CharField(max_length=500, blank=True, default="")
    sync_type = models.CharField(max_length=16, choices=SyncType.choices, default=SyncType.ADD)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)

    queued_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Biometric sync item"
        verbose_name_plural = "Biometric sync queue"
        ordering = ["queued_at"]
        indexes = [
            models.Index(fields=["device", "status", "queued_at"], name="sync_dev_status_queued_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.sync_type} {self.person_name or self.person_uuid} → {self.device_id} ({self.status})"
