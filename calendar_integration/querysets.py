import datetime

from django.db import models
from django.utils import timezone

from calendar_integration.constants import BusyIntervalOrigin
from common.models import TimeRangeQuerySet


class CalendarIntegrationQuerySet(models.QuerySet):
    def enabled(self):
        return self.filter(is_enabled=True)

    def needing_webhook_channel(self, lookahead: datetime.timedelta):
        """
        Enabled integrations without a push channel that outlives `lookahead`, including
        those whose last registration failed and left no channel at all.
        """
        return self.enabled().exclude(
            coach__webhook_channels__expires_at__gt=timezone.now() + lookahead
        )


class BusyIntervalQuerySet(TimeRangeQuerySet):
    def for_coach(self, coach_id: int):
        return self.filter(coach_id=coach_id)

    def external(self):
        return self.filter(origin=BusyIntervalOrigin.EXTERNAL_SYNC)

    def platform(self):
        return self.filter(origin=BusyIntervalOrigin.PLATFORM_BOOKING)


class WebhookChannelQuerySet(models.QuerySet):
    def active(self):
        return self.filter(expires_at__gt=timezone.now())
