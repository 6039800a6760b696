from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from encrypted_fields.fields import EncryptedCharField

from calendar_integration.constants import BusyIntervalOrigin, CalendarProvider, CalendarSyncState
from calendar_integration.querysets import (
    BusyIntervalQuerySet,
    CalendarIntegrationQuerySet,
    WebhookChannelQuerySet,
)
from common.models import BaseModel, TimeRangeModel


class CalendarIntegration(BaseModel):
    """
    A coach's connection to an external calendar. One per coach.
    """

    coach = models.OneToOneField(
        "bookings.Coach",
        on_delete=models.CASCADE,
        related_name="calendar_integration",
    )
    provider = models.CharField(
        _("provider"),
        max_length=32,
        choices=CalendarProvider.choices,
        default=CalendarProvider.GOOGLE,
    )
    external_calendar_id = models.CharField(
        _("external calendar id"), max_length=255, default="primary"
    )
    # the encrypted field stores empty values as NULL
    refresh_token = EncryptedCharField(
        _("refresh token"), max_length=512, null=True, blank=True
    )
    is_enabled = models.BooleanField(_("is enabled"), default=False)
    last_synced_at = models.DateTimeField(_("last synced at"), null=True, blank=True)
    sync_cursor = models.TextField(_("sync cursor"), null=True, blank=True)
    sync_state = models.CharField(
        _("sync state"),
        max_length=32,
        choices=CalendarSyncState.choices,
        default=CalendarSyncState.IDLE,
    )
    last_sync_error = models.TextField(_("last sync error"), blank=True)

    objects = CalendarIntegrationQuerySet.as_manager()

    def __str__(self):
        return f"{self.get_provider_display()} calendar of {self.coach}"

    @property
    def account_id(self) -> str:
        return f"coach-{self.coach_id}"


class BusyInterval(TimeRangeModel):
    """
    A range in which a coach cannot take a lesson, either because of a platform booking
    or because of an event in the coach's external calendar.

    A platform row doubles as the link between a booking and the provider event that
    mirrors it: `external_event_id` is the id EventMirror got back for the booking.
    """

    coach = models.ForeignKey(
        "bookings.Coach",
        on_delete=models.CASCADE,
        related_name="busy_intervals",
    )
    origin = models.CharField(_("origin"), max_length=32, choices=BusyIntervalOrigin.choices)
    external_event_id = models.CharField(
        _("external event id"), max_length=1024, null=True, blank=True
    )
    title = models.CharField(_("title"), max_length=1024, blank=True)
    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="busy_interval",
        null=True,
        blank=True,
    )

    objects = BusyIntervalQuerySet.as_manager()

    class Meta:
        ordering = ("start_time",)
        constraints = (
            models.UniqueConstraint(
                fields=("coach", "external_event_id"),
                condition=models.Q(external_event_id__isnull=False),
                name="unique_busy_interval_external_event_per_coach",
            ),
            models.UniqueConstraint(
                fields=("booking",),
                condition=models.Q(booking__isnull=False),
                name="unique_busy_interval_per_booking",
            ),
        )

    def __str__(self):
        return f"{self.get_origin_display()} {self.start_time} - {self.end_time}"


class WebhookChannel(BaseModel):
    """
    A push notification channel registered with the provider for a coach's calendar.
    """

    channel_id = models.CharField(_("channel id"), max_length=255, unique=True)
    coach = models.ForeignKey(
        "bookings.Coach",
        on_delete=models.CASCADE,
        related_name="webhook_channels",
    )
    resource_id = models.CharField(_("resource id"), max_length=255)
    expires_at = models.DateTimeField(_("expires at"), db_index=True)
    token = models.CharField(_("verification token"), max_length=255)
    callback_url = models.URLField(_("callback url"), max_length=1024)

    objects = WebhookChannelQuerySet.as_manager()

    def __str__(self):
        return f"Channel {self.channel_id} for {self.coach}"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()
