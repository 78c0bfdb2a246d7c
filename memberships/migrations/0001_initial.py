import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

BENEFIT_TYPE_CHOICES = [
    ("gym_access", "Gym Access"),
    ("group_classes", "Group Classes"),
    ("pt_sessions", "PT Sessions"),
    ("pool_access", "Swimming Pool"),
    ("sauna_session", "Sauna Session"),
    ("sauna_access", "Sauna Access"),
    ("steam_access", "Steam Access"),
    ("ice_bath", "Ice Bath"),
    ("spa_access", "Spa Access"),
    ("locker", "Locker"),
    ("towel", "Towel Service"),
    ("parking", "Parking"),
    ("guest_pass", "Guest Pass"),
    ("other", "Other"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Member",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("member_code", models.CharField(max_length=32, unique=True, verbose_name="Member code")),
                ("full_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Full name")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("suspended", "Suspended"), ("blacklisted", "Blacklisted")], db_index=True, default="active", max_length=16)),
                ("photo_url", models.CharField(blank=True, default="", max_length=500, verbose_name="Photo URL")),
                ("wiegand_code", models.CharField(blank=True, default="", max_length=32, verbose_name="Wiegand code")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="members", to="core.branch")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="member_profiles", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Member",
                "verbose_name_plural": "Members",
                "ordering": ["member_code"],
            },
        ),
        migrations.CreateModel(
            name="Plan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=160, verbose_name="Name")),
                ("duration_days", models.PositiveIntegerField(default=30, verbose_name="Duration, days")),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("branch", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="plans", to="core.branch")),
            ],
            options={
                "verbose_name": "Plan",
                "verbose_name_plural": "Plans",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="PlanBenefit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, max_length=32)),
                ("frequency", models.CharField(choices=[("daily", "Per Day"), ("weekly", "Per Week"), ("monthly", "Per Month"), ("unlimited", "Unlimited"), ("per_membership", "Total for Membership")], default="monthly", max_length=16)),
                ("limit_count", models.PositiveIntegerField(blank=True, help_text="Empty means unlimited.", null=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefits", to="memberships.plan")),
            ],
            options={
                "verbose_name": "Plan benefit",
                "verbose_name_plural": "Plan benefits",
            },
        ),
        migrations.AddConstraint(
            model_name="planbenefit",
            constraint=models.UniqueConstraint(fields=("plan", "benefit_type"), name="uniq_plan_benefit_type"),
        ),
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("active", "Active"), ("frozen", "Frozen"), ("expired", "Expired"), ("cancelled", "Cancelled")], db_index=True, default="active", max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="memberships", to="core.branch")),
                ("member", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="memberships", to="memberships.member")),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="memberships", to="memberships.plan")),
            ],
            options={
                "verbose_name": "Membership",
                "verbose_name_plural": "Memberships",
                "ordering": ["-end_date"],
            },
        ),
        migrations.AddIndex(
            model_name="membership",
            index=models.Index(fields=["member", "status", "end_date"], name="ms_member_status_end_idx"),
        ),
        migrations.CreateModel(
            name="MemberAttendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("check_in", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("check_out", models.DateTimeField(blank=True, null=True)),
                ("check_in_method", models.CharField(choices=[("manual", "Manual"), ("biometric", "Biometric"), ("qr", "QR code")], default="manual", max_length=16)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="member_attendance", to="core.branch")),
                ("member", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="attendance", to="memberships.member")),
                ("membership", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="attendance", to="memberships.membership")),
            ],
            options={
                "verbose_name": "Member check-in",
                "verbose_name_plural": "Member check-ins",
                "ordering": ["-check_in"],
            },
        ),
        migrations.AddIndex(
            model_name="memberattendance",
            index=models.Index(fields=["member", "check_in"], name="att_member_checkin_idx"),
        ),
        migrations.AddIndex(
            model_name="memberattendance",
            index=models.Index(fields=["branch", "check_in"], name="att_branch_checkin_idx"),
        ),
    ]
