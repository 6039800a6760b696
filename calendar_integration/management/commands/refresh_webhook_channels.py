"""Django management command for renewing Google Calendar push channels."""

import datetime
from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from calendar_integration.exceptions import CalendarIntegrationError
from calendar_integration.models import CalendarIntegration


class Command(BaseCommand):
    """Management command for renewing expiring webhook channels."""

    help = "Renew webhook channels that expire soon"  # noqa: A003

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--coach-id",
            type=int,
            help="Coach ID to renew channels for (optional, renews all if not specified)",
        )
        parser.add_argument(
            "--hours-before-expiry",
            type=int,
            default=24,
            help="Renew channels expiring within this many hours (default: 24)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be renewed without actually renewing",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        coach_id = options.get("coach_id")
        hours_before_expiry = options["hours_before_expiry"]
        dry_run = options["dry_run"]

        integrations_qs = CalendarIntegration.objects.needing_webhook_channel(
            datetime.timedelta(hours=hours_before_expiry)
        )
        if coach_id:
            integrations_qs = integrations_qs.filter(coach_id=coach_id)

        integrations = list(
            integrations_qs.select_related("coach")
            .prefetch_related("coach__webhook_channels")
            .order_by("coach_id")
        )
        if not integrations:
            self.stdout.write(self.style.SUCCESS("No webhook channels need renewing"))
            return

        self.stdout.write(
            f"Found {len(integrations)} coaches without a webhook channel lasting "
            f"{hours_before_expiry} hours"
        )

        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE - No changes will be made"))
            for integration in integrations:
                channels = list(integration.coach.webhook_channels.all())
                if not channels:
                    self.stdout.write(
                        f"  → Would register a channel for {integration.coach.display_name}"
                        " - no channel registered"
                    )
                for channel in channels:
                    self.stdout.write(
                        f"  → Would renew channel {channel.channel_id} of "
                        f"{integration.coach.display_name} - expires {channel.expires_at}"
                    )
            return

        from di_core.containers import container

        webhook_channel_manager = container.webhook_channel_manager()

        renewed_count = 0
        failed_count = 0
        # registering a channel replaces every channel of the coach
        for integration in integrations:
            renew_coach_id = integration.coach_id
            try:
                channel = webhook_channel_manager.register_channel(renew_coach_id)
            except CalendarIntegrationError as e:
                self.stdout.write(self.style.ERROR(f"  ✗ Coach {renew_coach_id}: {e}"))
                failed_count += 1
                continue
            self.stdout.write(
                self.style.SUCCESS(
                    f"  ✓ Coach {renew_coach_id} - new expiry: {channel.expires_at}"
                )
            )
            renewed_count += 1

        self.stdout.write(
            self.style.SUCCESS(f"Successfully renewed {renewed_count} webhook channels")
        )
        if failed_count > 0:
            self.stdout.write(self.style.ERROR(f"Failed to renew {failed_count} webhook channels"))
