import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Employee",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("employee_code", models.CharField(max_length=32, unique=True, verbose_name="Employee code")),
                ("full_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Full name")),
                ("position", models.CharField(blank=True, default="", max_length=120, verbose_name="Position")),
                ("is_active", models.BooleanField(default=True)),
                ("photo_url", models.CharField(blank=True, default="", max_length=500, verbose_name="Photo URL")),
                ("wiegand_code", models.CharField(blank=True, default="", max_length=32, verbose_name="Wiegand code")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="employees", to="core.branch")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="employee_profiles", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Employee",
                "verbose_name_plural": "Employees",
                "ordering": ["employee_code"],
            },
        ),
        migrations.CreateModel(
            name="StaffAttendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("check_in", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("check_out", models.DateTimeField(blank=True, null=True)),
                ("check_in_method", models.CharField(choices=[("manual", "Manual"), ("biometric", "Biometric")], default="manual", max_length=16)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="staff_attendance", to="core.branch")),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="attendance", to="staff.employee")),
            ],
            options={
                "verbose_name": "Staff check-in",
                "verbose_name_plural": "Staff check-ins",
                "ordering": ["-check_in"],
            },
        ),
        migrations.AddIndex(
            model_name="staffattendance",
            index=models.Index(fields=["employee", "check_in"], name="staff_att_emp_checkin_idx"),
        ),
    ]
