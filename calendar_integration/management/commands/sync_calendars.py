"""Django management command for pulling coach calendars on demand."""

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from calendar_integration.exceptions import CalendarIntegrationError
from calendar_integration.models import CalendarIntegration


class Command(BaseCommand):
    help = "Sync busy times from the connected calendars of coaches"  # noqa: A003

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--coach-id",
            type=int,
            help="Coach ID to sync (optional, syncs every connected coach if not specified)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the calendars that would be synced",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        coach_id = options.get("coach_id")
        dry_run = options["dry_run"]

        integrations_qs = CalendarIntegration.objects.enabled().select_related("coach")
        if coach_id:
            integrations_qs = integrations_qs.filter(coach_id=coach_id)

        integrations = list(integrations_qs.order_by("coach_id"))
        if not integrations:
            self.stdout.write(self.style.WARNING("No connected calendars to sync"))
            return

        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE - No changes will be made"))
            for integration in integrations:
                self.stdout.write(
                    f"  → Would sync {integration.coach.display_name} "
                    f"({integration.sync_state}, last synced {integration.last_synced_at})"
                )
            return

        from di_core.containers import container

        sync_engine = container.sync_engine()

        failed_count = 0
        for integration in integrations:
            try:
                result = sync_engine.sync_incremental(integration.coach_id)
            except CalendarIntegrationError as e:
                self.stdout.write(
                    self.style.ERROR(f"  ✗ {integration.coach.display_name}: {e}")
                )
                failed_count += 1
                continue
            self.stdout.write(
                self.style.SUCCESS(
                    f"  ✓ {integration.coach.display_name}: {result.status} "
                    f"({result.upserted} upserted, {result.removed} removed)"
                )
            )

        self.stdout.write(
            self.style.SUCCESS(f"Synced {len(integrations) - failed_count} calendars")
        )
        if failed_count > 0:
            self.stdout.write(self.style.ERROR(f"Failed to sync {failed_count} calendars"))
