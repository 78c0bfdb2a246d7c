from django.core.management.base import BaseCommand

from memberships.services import expire_memberships


class Command(BaseCommand):
    help = "Mark active memberships past their end date as expired (safe to re-run)"

    def handle(self, *args, **options):
        count = expire_memberships()
        self.stdout.write(self.style.SUCCESS(f"Expired memberships: {count}"))
