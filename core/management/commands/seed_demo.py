from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from benefits.bookings import ensure_slots_for_date_range
from benefits.models import BenefitPackage, BenefitSettings
from core.models import Branch
from devices.models import AccessDevice
from memberships.models import BenefitType, Member, Membership, Plan, PlanBenefit
from payments.models import IntegrationSetting
from staff.models import Employee


class Command(BaseCommand):
    help = "Seed demo data (safe to re-run)"

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=7, help="How many days of benefit slots to generate")

    @transaction.atomic
    def handle(self, *args, **options):
        branch, _ = Branch.objects.get_or_create(
            code="DEMO1",
            defaults={"name": "Demo Branch", "timezone": "Asia/Kolkata"},
        )
        today = branch.local_today()

        AccessDevice.objects.get_or_create(
            branch=branch,
            device_name="Main entrance",
            defaults={"relay_delay": 5},
        )

        plan, _ = Plan.objects.get_or_create(
            name="Gold Monthly",
            branch=branch,
            defaults={"duration_days": 30, "price": Decimal("2500.00")},
        )
        grants = [
            (BenefitType.GYM_ACCESS, PlanBenefit.Frequency.UNLIMITED, None),
            (BenefitType.SAUNA_SESSION, PlanBenefit.Frequency.MONTHLY, 4),
            (BenefitType.PT_SESSIONS, PlanBenefit.Frequency.PER_MEMBERSHIP, 2),
            (BenefitType.TOWEL, PlanBenefit.Frequency.DAILY, 1),
        ]
        for benefit_type, frequency, limit in grants:
            PlanBenefit.objects.get_or_create(
                plan=plan,
                benefit_type=benefit_type,
                defaults={"frequency": frequency, "limit_count": limit},
            )

        BenefitSettings.objects.get_or_create(
            branch=branch,
            benefit_type=BenefitType.SAUNA_SESSION,
            defaults={"slot_duration_minutes": 30, "buffer_between_sessions_minutes": 15, "capacity_per_slot": 4},
        )
        BenefitPackage.objects.get_or_create(
            branch=branch,
            name="Sauna x5",
            defaults={"benefit_type": BenefitType.SAUNA_SESSION, "quantity": 5, "price": Decimal("900.00")},
        )

        member, _ = Member.objects.get_or_create(
            member_code="DEMO-0001",
            defaults={"branch": branch, "full_name": "Demo Member"},
        )
        if not Membership.objects.filter(member=member, status=Membership.Status.ACTIVE).exists():
            Membership.objects.create(
                member=member,
                plan=plan,
                branch=branch,
                start_date=today,
                end_date=today + timedelta(days=plan.duration_days),
            )

        Employee.objects.get_or_create(
            employee_code="EMP-0001",
            defaults={"branch": branch, "full_name": "Front Desk", "position": "Reception"},
        )

        IntegrationSetting.objects.get_or_create(
            branch=branch,
            integration_type=IntegrationSetting.IntegrationType.PAYMENT_GATEWAY,
            provider=IntegrationSetting.Provider.RAZORPAY,
            defaults={"credentials": {"key_id": "", "key_secret": "", "webhook_secret": ""}, "is_active": False},
        )

        created = ensure_slots_for_date_range(branch, today, today + timedelta(days=max(options["days"], 1) - 1))

        self.stdout.write(self.style.SUCCESS(f"Demo data ensured for branch {branch.pk} ({created} new slots)"))
