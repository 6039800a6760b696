import logging

from django.db import transaction

from bookings.constants import BookingStatus
from bookings.models import Booking
from calendar_integration.constants import BusyIntervalOrigin
from calendar_integration.models import BusyInterval
from common.types import Interval


logger = logging.getLogger(__name__)


class BusyIntervalStore:
    """
    Writes to the busy intervals of coaches.

    Rows are keyed by booking for platform bookings and by `(coach, external_event_id)`
    for everything that came from the provider. Every write is an upsert on one of
    those keys.
    """

    def upsert_platform_interval(self, booking: Booking) -> BusyInterval:
        busy_interval, _created = BusyInterval.objects.update_or_create(
            booking=booking,
            defaults={
                "coach_id": booking.coach_id,
                "origin": BusyIntervalOrigin.PLATFORM_BOOKING,
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "title": booking.summary,
            },
        )
        return busy_interval

    def get_link(self, booking: Booking) -> str | None:
        return (
            BusyInterval.objects.filter(booking=booking)
            .values_list("external_event_id", flat=True)
            .first()
        )

    @transaction.atomic
    def link_booking(self, booking: Booking, external_event_id: str) -> BusyInterval:
        # an external row for the same event would count the booking twice
        BusyInterval.objects.for_coach(booking.coach_id).external().filter(
            external_event_id=external_event_id
        ).delete()
        busy_interval, _created = BusyInterval.objects.update_or_create(
            booking=booking,
            defaults={
                "coach_id": booking.coach_id,
                "origin": BusyIntervalOrigin.PLATFORM_BOOKING,
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "title": booking.summary,
                "external_event_id": external_event_id,
            },
        )
        return busy_interval

    def unlink_booking(self, booking: Booking) -> None:
        BusyInterval.objects.filter(booking=booking).update(external_event_id=None)

    def remove_booking(self, booking: Booking) -> None:
        BusyInterval.objects.filter(booking=booking).delete()

    def relink_platform_event(self, coach_id: int, booking_id: int, external_event_id: str) -> bool:
        """
        Attach a provider event created by this platform to its booking's row when that
        row lost its link. Returns whether a row was updated.
        """
        updated = (
            BusyInterval.objects.for_coach(coach_id)
            .platform()
            .filter(booking_id=booking_id, external_event_id__isnull=True)
            .exclude(booking__status=BookingStatus.CANCELLED)
            .update(external_event_id=external_event_id)
        )
        return bool(updated)

    def upsert_external(
        self, coach_id: int, external_event_id: str, interval: Interval, title: str = ""
    ) -> BusyInterval | None:
        existing = (
            BusyInterval.objects.for_coach(coach_id)
            .filter(external_event_id=external_event_id)
            .first()
        )
        if existing is not None and existing.origin == BusyIntervalOrigin.PLATFORM_BOOKING:
            return None

        busy_interval, _created = BusyInterval.objects.update_or_create(
            coach_id=coach_id,
            external_event_id=external_event_id,
            defaults={
                "origin": BusyIntervalOrigin.EXTERNAL_SYNC,
                "start_time": interval.start,
                "end_time": interval.end,
                "title": title,
            },
        )
        return busy_interval

    def remove_external(self, coach_id: int, external_event_id: str) -> int:
        """
        Drop the row of a provider event that is gone or no longer blocks time.

        When the event mirrored a booking the booking still blocks its time, so only the
        link is cleared.
        """
        rows = BusyInterval.objects.for_coach(coach_id).filter(external_event_id=external_event_id)
        unlinked = rows.platform().update(external_event_id=None)
        if unlinked:
            logger.info(
                "Mirrored event %s was removed from the calendar of coach %s",
                external_event_id,
                coach_id,
            )
        removed, _ = rows.external().delete()
        return removed

    @transaction.atomic
    def replace_external(
        self, coach_id: int, intervals: dict[str, tuple[Interval, str]]
    ) -> tuple[int, int]:
        """
        Make the coach's external rows exactly `intervals`, keyed by external event id.
        Returns how many rows were upserted and how many were removed.
        """
        removed, _ = (
            BusyInterval.objects.for_coach(coach_id)
            .external()
            .exclude(external_event_id__in=list(intervals))
            .delete()
        )
        upserted = 0
        for external_event_id, (interval, title) in intervals.items():
            if self.upsert_external(coach_id, external_event_id, interval, title) is not None:
                upserted += 1
        return upserted, removed
