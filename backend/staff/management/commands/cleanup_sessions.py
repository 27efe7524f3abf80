from django.core.management.base import BaseCommand

from staff.tasks import run_session_cleanup


class Command(BaseCommand):
    help = "Revoke expired staff sessions and deactivate expired customer sessions"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be cleaned up without making changes",
        )

    def handle(self, *args, **options):
        if options["dry_run"]:
            from customers.models import CustomerSession
            from staff.models import StaffSession

            self.stdout.write(self.style.WARNING("DRY RUN MODE - No changes will be made"))
            staff_count = StaffSession.objects.expired().count()
            customer_count = CustomerSession.objects.expired().count()
            self.stdout.write(
                self.style.WARNING(
                    f"DRY RUN: Would clean up {staff_count} staff and {customer_count} customer sessions"
                )
            )
            return

        result = run_session_cleanup()
        self.stdout.write(
            self.style.SUCCESS(
                f"Cleaned up {result['staff']} staff and {result['customer']} customer sessions"
            )
        )
