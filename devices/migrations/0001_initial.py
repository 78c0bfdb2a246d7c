import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
        ("memberships", "0001_initial"),
        ("staff", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AccessDevice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("device_name", models.CharField(max_length=160, verbose_name="Name")),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True, verbose_name="IP address")),
                ("relay_delay", models.PositiveIntegerField(default=5, verbose_name="Relay open time, s")),
                ("firmware_version", models.CharField(blank=True, default="", max_length=64)),
                ("is_online", models.BooleanField(default=False)),
                ("last_heartbeat", models.DateTimeField(blank=True, null=True)),
                ("last_sync", models.DateTimeField(blank=True, null=True)),
                ("config", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_devices", to="core.branch")),
            ],
            options={
                "verbose_name": "Access device",
                "verbose_name_plural": "Access devices",
                "ordering": ["branch", "device_name"],
            },
        ),
        migrations.CreateModel(
            name="DeviceAccessEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(choices=[("face_recognized", "Face recognized"), ("manual_trigger", "Manual trigger")], default="face_recognized", max_length=32)),
                ("confidence_score", models.FloatField(blank=True, null=True)),
                ("photo_url", models.TextField(blank=True, default="")),
                ("access_granted", models.BooleanField(default=False)),
                ("denial_reason", models.CharField(blank=True, default="", max_length=64)),
                ("response_sent", models.CharField(choices=[("OPEN", "Open"), ("DENIED", "Denied")], max_length=8)),
                ("device_message", models.CharField(blank=True, default="", max_length=255)),
                ("processed_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_events", to="core.branch")),
                ("device", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="events", to="devices.accessdevice")),
                ("member", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="access_events", to="memberships.member")),
                ("staff", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="access_events", to="staff.employee")),
            ],
            options={
                "verbose_name": "Access event",
                "verbose_name_plural": "Access events",
                "ordering": ["-processed_at"],
            },
        ),
        migrations.AddIndex(
            model_name="deviceaccessevent",
            index=models.Index(fields=["branch", "processed_at"], name="access_branch_proc_idx"),
        ),
        migrations.CreateModel(
            name="BiometricSyncQueue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("person_uuid", models.UUIDField()),
                ("person_name", models.CharField(blank=True, default="", max_length=255)),
                ("photo_url", models.CharField(blank=True, default="", max_length=500)),
                ("sync_type", models.CharField(choices=[("add", "Add"), ("update", "Update"), ("delete", "Delete")], default="add", max_length=16)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("syncing", "Syncing"), ("completed", "Completed"), ("failed", "Failed")], db_index=True, default="pending", max_length=16)),
                ("queued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("device", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sync_queue", to="devices.accessdevice")),
                ("member", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="biometric_syncs", to="memberships.member")),
                ("staff", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="biometric_syncs", to="staff.employee")),
            ],
            options={
                "verbose_name": "Biometric sync item",
                "verbose_name_plural": "Biometric sync queue",
                "ordering": ["queued_at"],
            },
        ),
        migrations.AddIndex(
            model_name="biometricsyncqueue",
            index=models.Index(fields=["device", "status", "queued_at"], name="sync_dev_status_queued_idx"),
        ),
    ]
