from datetime import time

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from memberships.models import BenefitType


class BenefitUsage(models.Model):
    """Append-only usage log; the source of truth for allowance balances."""

    membership = models.ForeignKey(
        "memberships.Membership",
        on_delete=models.PROTECT,
        related_name="benefit_usage",
    )
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices, db_index=True)
    usage_date = models.DateField(db_index=True)
    usage_count = models.PositiveIntegerField(default=1)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_benefit_usage",
    )
    notes = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Benefit usage"
        verbose_name_plural = "Benefit usage"
        ordering = ("-usage_date", "-created_at")
        constraints = [
            models.CheckConstraint(condition=Q(usage_count__gte=1), name="benefit_usage_count_positive"),
        ]
        indexes = [
            models.Index(fields=["membership", "benefit_type", "usage_date"], name="usage_ms_type_date_idx"),
        ]

    def __str__(self):
        return f"{self.membership_id} {self.benefit_type} x{self.usage_count} on {self.usage_date}"


class BenefitSettings(models.Model):
    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="benefit_settings")
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices)

    is_slot_booking_enabled = models.BooleanField(default=True)
    slot_duration_minutes = models.PositiveIntegerField(default=30)
    buffer_between_sessions_minutes = models.PositiveIntegerField(default=0)
    operating_hours_start = models.TimeField(default=time(6, 0))
    operating_hours_end = models.TimeField(default=time(22, 0))
    capacity_per_slot = models.PositiveIntegerField(default=1)
    cancellation_deadline_minutes = models.PositiveIntegerField(default=60)
    max_bookings_per_day = models.PositiveIntegerField(default=1)

    class Meta:
        verbose_name = "Benefit settings"
        verbose_name_plural = "Benefit settings"
        constraints = [
            models.UniqueConstraint(fields=["branch", "benefit_type"], name="uniq_benefit_settings_branch_type"),
        ]

    def __str__(self):
        return f"{self.branch}: {self.get_benefit_type_display()}"


class BenefitSlot(models.Model):
    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="benefit_slots")
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices)
    slot_date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    capacity = models.PositiveIntegerField(default=1)
    booked_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Benefit slot"
        verbose_name_plural = "Benefit slots"
        ordering = ("slot_date", "start_time")
        constraints = [
            models.CheckConstraint(condition=Q(booked_count__lte=F("capacity")), name="benefit_slot_not_overbooked"),
        ]
        indexes = [
            models.Index(fields=["branch", "benefit_type", "slot_date"], name="slot_branch_type_date_idx"),
        ]

    def __str__(self):
        return (
            f"{self.get_benefit_type_display()} {self.slot_date:%d.%m} "
            f"{self.start_time:%H:%M}–{self.end_time:%H:%M} ({self.booked_count}/{self.capacity})"
        )

    @property
    def seats_left(self) -> int:
        return max(0, int(self.capacity) - int(self.booked_count))


class BenefitBooking(models.Model):
    class Status(models.TextChoices):
        BOOKED = "booked", "Booked"
        CONFIRMED = "confirmed", "Confirmed"
        CANCELLED = "cancelled", "Cancelled"
        ATTENDED = "attended", "Attended"
        NO_SHOW = "no_show", "No show"

    class Source(models.TextChoices):
        PLAN = "plan", "Plan allowance"
        CREDITS = "credits", "Purchased credits"

    ACTIVE_STATUSES = (Status.BOOKED, Status.CONFIRMED)

    slot = models.ForeignKey(BenefitSlot, on_delete=models.CASCADE, related_name="bookings")
    member = models.ForeignKey("memberships.Member", on_delete=models.CASCADE, related_name="benefit_bookings")
    membership = models.ForeignKey(
        "memberships.Membership",
        on_delete=models.PROTECT,
        related_name="benefit_bookings",
    )
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.BOOKED, db_index=True)
    consumed_from = models.CharField(max_length=16, choices=Source.choices, default=Source.PLAN)

    booked_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True, default="")
    check_in_at = models.DateTimeField(null=True, blank=True)
    no_show_marked_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "Benefit booking"
        verbose_name_plural = "Benefit bookings"
        ordering = ("-booked_at",)
        indexes = [
            models.Index(fields=["member", "status"], name="bbook_member_status_idx"),
            models.Index(fields=["slot", "status"], name="bbook_slot_status_idx"),
        ]

    def __str__(self):
        return f"{self.member} → {self.slot} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES


class BenefitPackage(models.Model):
    """Add-on pack of benefit units sold on top of a plan."""

    branch = models.ForeignKey("core.Branch", on_delete=models.CASCADE, related_name="benefit_packages")
    name = models.CharField(max_length=160)
    description = models.CharField(max_length=255, blank=True, default="")
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    validity_days = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Benefit package"
        verbose_name_plural = "Benefit packages"
        ordering = ("display_order", "name")

    def __str__(self):
        return f"{self.name} ({self.quantity} × {self.get_benefit_type_display()})"


class MemberBenefitCredits(models.Model):
    class Source(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        REFUND = "refund", "Cancellation refund"

    member = models.ForeignKey("memberships.Member", on_delete=models.CASCADE, related_name="benefit_credits")
    membership = models.ForeignKey(
        "memberships.Membership",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="benefit_credits",
    )
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices, db_index=True)
    package = models.ForeignKey(
        BenefitPackage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credits",
    )
    source = models.CharField(max_length=16, choices=Source.choices, default=Source.PURCHASE)
    credits_total = models.PositiveIntegerField()
    credits_remaining = models.PositiveIntegerField()
    purchased_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        verbose_name = "Member benefit credits"
        verbose_name_plural = "Member benefit credits"
        ordering = ("expires_at", "id")
        indexes = [
            models.Index(fields=["member", "benefit_type", "expires_at"], name="credits_member_type_exp_idx"),
        ]

    def __str__(self):
        return (
            f"Credits({self.member_id}) {self.benefit_type} "
            f"{self.credits_remaining}/{self.credits_total} exp={self.expires_at:%Y-%m-%d}"
        )
