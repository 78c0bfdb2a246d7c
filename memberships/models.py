import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class BenefitType(models.TextChoices):
    GYM_ACCESS = "gym_access", "Gym Access"
    GROUP_CLASSES = "group_classes", "Group Classes"
    PT_SESSIONS = "pt_sessions", "PT Sessions"
    POOL_ACCESS = "pool_access", "Swimming Pool"
    SAUNA_SESSION = "sauna_session", "Sauna Session"
    SAUNA_ACCESS = "sauna_access", "Sauna Access"
    STEAM_ACCESS = "steam_access", "Steam Access"
    ICE_BATH = "ice_bath", "Ice Bath"
    SPA_ACCESS = "spa_access", "Spa Access"
    LOCKER = "locker", "Locker"
    TOWEL = "towel", "Towel Service"
    PARKING = "parking", "Parking"
    GUEST_PASS = "guest_pass", "Guest Pass"
    OTHER = "other", "Other"


class Member(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        SUSPENDED = "suspended", "Suspended"
        BLACKLISTED = "blacklisted", "Blacklisted"

    # Also the person UUID enrolled on biometric terminals.
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="member_profiles",
    )
    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="members")

    member_code = models.CharField("Member code", max_length=32, unique=True)
    full_name = models.CharField("Full name", max_length=255, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    photo_url = models.CharField("Photo URL", max_length=500, blank=True, default="")
    wiegand_code = models.CharField("Wiegand code", max_length=32, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Member"
        verbose_name_plural = "Members"
        ordering = ["member_code"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.member_code})"

    @property
    def display_name(self) -> str:
        if self.user_id:
            name = (self.user.get_full_name() or "").strip()
            if name:
                return name
        return (self.full_name or "").strip() or "Member"


class Plan(models.Model):
    name = models.CharField("Name", max_length=160)
    # Empty branch means the plan is sold at every branch.
    branch = models.ForeignKey(
        "core.Branch",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="plans",
    )
    duration_days = models.PositiveIntegerField("Duration, days", default=30)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Plan"
        verbose_name_plural = "Plans"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class PlanBenefit(models.Model):
    class Frequency(models.TextChoices):
        DAILY = "daily", "Per Day"
        WEEKLY = "weekly", "Per Week"
        MONTHLY = "monthly", "Per Month"
        UNLIMITED = "unlimited", "Unlimited"
        PER_MEMBERSHIP = "per_membership", "Total for Membership"

    plan = models.ForeignKey(Plan, on_delete=models.CASCADE, related_name="benefits")
    benefit_type = models.CharField(max_length=32, choices=BenefitType.choices)
    frequency = models.CharField(max_length=16, choices=Frequency.choices, default=Frequency.MONTHLY)
    limit_count = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Empty means unlimited.",
    )
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "Plan benefit"
        verbose_name_plural = "Plan benefits"
        constraints = [
            models.UniqueConstraint(fields=["plan", "benefit_type"], name="uniq_plan_benefit_type"),
        ]

    def __str__(self) -> str:
        limit = "∞" if self.limit_count is None else self.limit_count
        return f"{self.plan}: {self.get_benefit_type_display()} {limit} {self.get_frequency_display()}"


class Membership(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACTIVE = "active", "Active"
        FROZEN = "frozen", "Frozen"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    member = models.ForeignKey(Member, on_delete=models.PROTECT, related_name="memberships")
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name="memberships")
    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="memberships")

    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Membership"
        verbose_name_plural = "Memberships"
        ordering = ["-end_date"]
        indexes = [
            models.Index(fields=["member", "status", "end_date"], name="ms_member_status_end_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.member} — {self.plan} ({self.status})"

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def days_remaining(self, today) -> int:
        return max(0, (self.end_date - today).days)

    def freeze(self) -> None:
        if self.status == self.Status.ACTIVE:
            self.status = self.Status.FROZEN
            self.save(update_fields=["status", "updated_at"])

    def unfreeze(self) -> None:
        if self.status == self.Status.FROZEN:
            self.status = self.Status.ACTIVE
            self.save(update_fields=["status", "updated_at"])

    def cancel(self) -> None:
        if self.status not in (self.Status.CANCELLED, self.Status.EXPIRED):
            self.status = self.Status.CANCELLED
            self.save(update_fields=["status", "updated_at"])


class MemberAttendance(models.Model):
    class Method(models.TextChoices):
        MANUAL = "manual", "Manual"
        BIOMETRIC = "biometric", "Biometric"
        QR = "qr", "QR code"

    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="attendance")
    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="member_attendance")
    membership = models.ForeignKey(
        Membership,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attendance",
    )

    check_in = models.DateTimeField(default=timezone.now, db_index=True)
    check_out = models.DateTimeField(null=True, blank=True)
    check_in_method = models.CharField(max_length=16, choices=Method.choices, default=Method.MANUAL)

    class Meta:
        verbose_name = "Member check-in"
        verbose_name_plural = "Member check-ins"
        ordering = ["-check_in"]
        indexes = [
            models.Index(fields=["member", "check_in"], name="att_member_checkin_idx"),
            models.Index(fields=["branch", "check_in"], name="att_branch_checkin_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.member} @ {timezone.localtime(self.check_in):%d.%m %H:%M}"
