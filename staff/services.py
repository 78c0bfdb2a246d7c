import logging

from django.db import transaction
from django.utils import timezone

from .models import Employee, StaffAttendance


logger = logging.getLogger(__name__)


@transaction.atomic
def staff_check_in(employee: Employee, branch, *, method: str = StaffAttendance.Method.MANUAL) -> StaffAttendance:
    attendance = StaffAttendance.objects.create(
        employee=employee,
        branch=branch,
        check_in=timezone.now(),
        check_in_method=method,
    )
    logger.info("Employee %s checked in at branch %s via %s", employee.employee_code, branch.code, method)
    return attendance


@transaction.atomic
def staff_check_out(employee: Employee) -> StaffAttendance | None:
    attendance = (
        StaffAttendance.objects
        .select_for_update()
        .filter(employee=employee, check_out__isnull=True)
        .order_by("-check_in")
        .first()
    )
    if attendance is None:
        return None
    attendance.check_out = timezone.now()
    attendance.save(update_fields=["check_out"])
    return attendance
