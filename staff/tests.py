from django.contrib.auth import get_user_model
from django.test import TestCase

from core.models import Branch

from .models import Employee, StaffAttendance
from .services import staff_check_in, staff_check_out


class StaffAttendanceTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Andheri", code="BOM1")
        self.employee = Employee.objects.create(branch=self.branch, employee_code="E-1", full_name="Ravi Kumar")

    def test_display_name_prefers_user(self):
        user = get_user_model().objects.create_user(username="ravi", password="pass12345", full_name="Ravi K.")
        self.employee.user = user
        self.employee.save(update_fields=["user"])
        self.assertEqual(self.employee.display_name, "Ravi K.")

    def test_check_in_and_out(self):
        attendance = staff_check_in(self.employee, self.branch, method=StaffAttendance.Method.BIOMETRIC)
        self.assertEqual(attendance.check_in_method, "biometric")
        self.assertIsNone(attendance.check_out)

        closed = staff_check_out(self.employee)
        self.assertEqual(closed.pk, attendance.pk)
        self.assertIsNotNone(closed.check_out)
        self.assertIsNone(staff_check_out(self.employee))
