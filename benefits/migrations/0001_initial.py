import datetime

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
        ("memberships", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BenefitUsage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, db_index=True, max_length=32)),
                ("usage_date", models.DateField(db_index=True)),
                ("usage_count", models.PositiveIntegerField(default=1)),
                ("notes", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("membership", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="benefit_usage", to="memberships.membership")),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="recorded_benefit_usage", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Benefit usage",
                "verbose_name_plural": "Benefit usage",
                "ordering": ("-usage_date", "-created_at"),
            },
        ),
        migrations.AddConstraint(
            model_name="benefitusage",
            constraint=models.CheckConstraint(condition=models.Q(("usage_count__gte", 1)), name="benefit_usage_count_positive"),
        ),
        migrations.AddIndex(
            model_name="benefitusage",
            index=models.Index(fields=["membership", "benefit_type", "usage_date"], name="usage_ms_type_date_idx"),
        ),
        migrations.CreateModel(
            name="BenefitSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, max_length=32)),
                ("is_slot_booking_enabled", models.BooleanField(default=True)),
                ("slot_duration_minutes", models.PositiveIntegerField(default=30)),
                ("buffer_between_sessions_minutes", models.PositiveIntegerField(default=0)),
                ("operating_hours_start", models.TimeField(default=datetime.time(6, 0))),
                ("operating_hours_end", models.TimeField(default=datetime.time(22, 0))),
                ("capacity_per_slot", models.PositiveIntegerField(default=1)),
                ("cancellation_deadline_minutes", models.PositiveIntegerField(default=60)),
                ("max_bookings_per_day", models.PositiveIntegerField(default=1)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefit_settings", to="core.branch")),
            ],
            options={
                "verbose_name": "Benefit settings",
                "verbose_name_plural": "Benefit settings",
            },
        ),
        migrations.AddConstraint(
            model_name="benefitsettings",
            constraint=models.UniqueConstraint(fields=("branch", "benefit_type"), name="uniq_benefit_settings_branch_type"),
        ),
        migrations.CreateModel(
            name="BenefitSlot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, max_length=32)),
                ("slot_date", models.DateField(db_index=True)),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("capacity", models.PositiveIntegerField(default=1)),
                ("booked_count", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefit_slots", to="core.branch")),
            ],
            options={
                "verbose_name": "Benefit slot",
                "verbose_name_plural": "Benefit slots",
                "ordering": ("slot_date", "start_time"),
            },
        ),
        migrations.AddConstraint(
            model_name="benefitslot",
            constraint=models.CheckConstraint(condition=models.Q(("booked_count__lte", models.F("capacity"))), name="benefit_slot_not_overbooked"),
        ),
        migrations.AddIndex(
            model_name="benefitslot",
            index=models.Index(fields=["branch", "benefit_type", "slot_date"], name="slot_branch_type_date_idx"),
        ),
        migrations.CreateModel(
            name="BenefitBooking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("booked", "Booked"), ("confirmed", "Confirmed"), ("cancelled", "Cancelled"), ("attended", "Attended"), ("no_show", "No show")], db_index=True, default="booked", max_length=16)),
                ("consumed_from", models.CharField(choices=[("plan", "Plan allowance"), ("credits", "Purchased credits")], default="plan", max_length=16)),
                ("booked_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, default="", max_length=255)),
                ("check_in_at", models.DateTimeField(blank=True, null=True)),
                ("no_show_marked_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.CharField(blank=True, default="", max_length=255)),
                ("member", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefit_bookings", to="memberships.member")),
                ("membership", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="benefit_bookings", to="memberships.membership")),
                ("slot", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bookings", to="benefits.benefitslot")),
            ],
            options={
                "verbose_name": "Benefit booking",
                "verbose_name_plural": "Benefit bookings",
                "ordering": ("-booked_at",),
            },
        ),
        migrations.AddIndex(
            model_name="benefitbooking",
            index=models.Index(fields=["member", "status"], name="bbook_member_status_idx"),
        ),
        migrations.AddIndex(
            model_name="benefitbooking",
            index=models.Index(fields=["slot", "status"], name="bbook_slot_status_idx"),
        ),
        migrations.CreateModel(
            name="BenefitPackage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=160)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, max_length=32)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("validity_days", models.PositiveIntegerField(default=30)),
                ("is_active", models.BooleanField(default=True)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefit_packages", to="core.branch")),
            ],
            options={
                "verbose_name": "Benefit package",
                "verbose_name_plural": "Benefit packages",
                "ordering": ("display_order", "name"),
            },
        ),
        migrations.CreateModel(
            name="MemberBenefitCredits",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("benefit_type", models.CharField(choices=BENEFIT_TYPE_CHOICES, db_index=True, max_length=32)),
                ("source", models.CharField(choices=[("purchase", "Purchase"), ("refund", "Cancellation refund")], default="purchase", max_length=16)),
                ("credits_total", models.PositiveIntegerField()),
                ("credits_remaining", models.PositiveIntegerField()),
                ("purchased_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField(db_index=True)),
                ("member", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="benefit_credits", to="memberships.member")),
                ("membership", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="benefit_credits", to="memberships.membership")),
                ("package", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="credits", to="benefits.benefitpackage")),
            ],
            options={
                "verbose_name": "Member benefit credits",
                "verbose_name_plural": "Member benefit credits",
                "ordering": ("expires_at", "id"),
            },
        ),
        migrations.AddIndex(
            model_name="memberbenefitcredits",
            index=models.Index(fields=["member", "benefit_type", "expires_at"], name="credits_member_type_exp_idx"),
        ),
    ]
