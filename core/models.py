import uuid
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class Branch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField("Name", max_length=160)
    code = models.CharField("Code", max_length=32, unique=True)

    # Day/week windows for benefits and check-ins are computed in this zone.
    timezone = models.CharField(
        "Timezone",
        max_length=64,
        blank=True,
        default="",
        help_text="IANA name, e.g. Asia/Kolkata. Empty means the server default.",
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Branch"
        verbose_name_plural = "Branches"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def clean(self):
        super().clean()
        if self.timezone:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError({"timezone": f"Unknown timezone: {self.timezone}"})

    def tzinfo(self):
        return ZoneInfo(self.timezone or settings.TIME_ZONE)

    def local_now(self):
        return timezone.localtime(timezone=self.tzinfo())

    def local_today(self):
        return timezone.localdate(timezone=self.tzinfo())
