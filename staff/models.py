import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Employee(models.Model):
    # Also the person UUID enrolled on biometric terminals.
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employee_profiles",
    )
    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="employees")

    employee_code = models.CharField("Employee code", max_length=32, unique=True)
    full_name = models.CharField("Full name", max_length=255, blank=True, default="")
    position = models.CharField("Position", max_length=120, blank=True, default="")
    is_active = models.BooleanField(default=True)

    photo_url = models.CharField("Photo URL", max_length=500, blank=True, default="")
    wiegand_code = models.CharField("Wiegand code", max_length=32, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Employee"
        verbose_name_plural = "Employees"
        ordering = ["employee_code"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.employee_code})"

    @property
    def display_name(self) -> str:
        if self.user_id:
            name = (self.user.get_full_name() or "").strip()
            if name:
                return name
        return (self.full_name or "").strip() or "Staff"


class StaffAttendance(models.Model):
    class Method(models.TextChoices):
        MANUAL = "manual", "Manual"
        BIOMETRIC = "biometric", "Biometric"

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="attendance")
    branch = models.ForeignKey("core.Branch", on_delete=models.PROTECT, related_name="staff_attendance")

    check_in = models.DateTimeField(default=timezone.now, db_index=True)
    check_out = models.DateTimeField(null=True, blank=True)
    check_in_method = models.CharField(max_length=16, choices=Method.choices, default=Method.MANUAL)

    class Meta:
        verbose_name = "Staff check-in"
        verbose_name_plural = "Staff check-ins"
        ordering = ["-check_in"]
        indexes = [
            models.Index(fields=["employee", "check_in"], name="staff_att_emp_checkin_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.employee} @ {timezone.localtime(self.check_in):%d.%m %H:%M}"
