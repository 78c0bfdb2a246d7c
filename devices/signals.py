from django.db.models.signals import post_save
from django.dispatch import receiver

from memberships.models import Member
from staff.models import Employee

from .services import queue_person_sync


TERMINAL_FIELDS = {"full_name", "photo_url", "wiegand_code", "user"}


def _enroll(instance, created, update_fields):
    if created:
        queue_person_sync(instance, "add")
    elif update_fields is None or TERMINAL_FIELDS & set(update_fields):
        queue_person_sync(instance, "update")


@receiver(post_save, sender=Member)
def enroll_member_on_devices(sender, instance, created, update_fields=None, **kwargs):
    _enroll(instance, created, update_fields)


@receiver(post_save, sender=Employee)
def enroll_employee_on_devices(sender, instance, created, update_fields=None, **kwargs):
    _enroll(instance, created, update_fields)
