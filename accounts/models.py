from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    full_name = models.CharField("Full name", max_length=255, blank=True)
    phone = models.CharField("Phone", max_length=32, blank=True)

    def get_full_name(self):
        full_name = (self.full_name or "").strip()
        if full_name:
            return full_name

        legacy_full_name = " ".join(
            part.strip() for part in [self.first_name, self.last_name] if part and part.strip()
        ).strip()
        return legacy_full_name

    def get_short_name(self):
        full_name = self.get_full_name()
        if not full_name:
            return ""
        return full_name.split()[0]

    def __str__(self):
        return self.get_full_name() or self.phone or self.username or f"User #{self.pk}"
