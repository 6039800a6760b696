import logging
from collections.abc import Callable

from bookings.models import Booking
from calendar_integration.constants import MirrorOperation
from calendar_integration.exceptions import (
    CalendarIntegrationError,
    IntegrationNotConnectedError,
    InvalidGrantError,
    TokenRevokedError,
)
from calendar_integration.services.availability_resolver import AvailabilityResolver
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.dataclasses import MirrorOutcome
from calendar_integration.services.event_mirror import EventMirror
from calendar_integration.services.token_manager import TokenManager
from common.exceptions import LockNotAcquiredError


logger = logging.getLogger(__name__)

# retrying cannot help until the coach reconnects
DISCONNECTED_ERRORS = (TokenRevokedError, IntegrationNotConnectedError, InvalidGrantError)

CONFLICT_WARNING = "The coach's calendar shows another event during this lesson."
DISCONNECTED_WARNING = "The coach's calendar is disconnected, the lesson was not added to it."


class BookingCalendarHooks:
    """
    Calendar side effects of booking changes. Never raises into the booking flow: failures
    end up in `calendar_sync_pending` / `calendar_sync_warning` of the booking.
    """

    def __init__(
        self,
        event_mirror: EventMirror,
        availability_resolver: AvailabilityResolver,
        token_manager: TokenManager,
        busy_interval_store: BusyIntervalStore,
    ):
        self.event_mirror = event_mirror
        self.availability_resolver = availability_resolver
        self.token_manager = token_manager
        self.busy_interval_store = busy_interval_store

    def on_booking_created(self, booking: Booking) -> MirrorOutcome:
        self.busy_interval_store.upsert_platform_interval(booking)
        if not self.token_manager.is_connected(booking.coach_id):
            return MirrorOutcome(
                booking_id=booking.pk, operation=MirrorOperation.CREATE, succeeded=True
            )

        warning = ""
        is_free = self.availability_resolver.is_range_free_on_provider(
            booking.coach_id, booking.start_time, booking.end_time
        )
        if is_free is False:
            logger.warning("Booking %s conflicts with the coach's calendar", booking.pk)
            warning = CONFLICT_WARNING

        return self._run(booking, MirrorOperation.CREATE, self.event_mirror.mirror_create, warning)

    def on_booking_updated(self, booking: Booking) -> MirrorOutcome:
        if booking.is_cancelled:
            return self.on_booking_cancelled(booking)

        self.busy_interval_store.upsert_platform_interval(booking)
        if not self.token_manager.is_connected(booking.coach_id):
            return MirrorOutcome(
                booking_id=booking.pk, operation=MirrorOperation.UPDATE, succeeded=True
            )
        return self._run(booking, MirrorOperation.UPDATE, self.event_mirror.mirror_update)

    def on_booking_cancelled(self, booking: Booking) -> MirrorOutcome:
        return self._run(booking, MirrorOperation.DELETE, self.event_mirror.mirror_delete)

    def reconcile_pending(self, limit: int = 100) -> list[MirrorOutcome]:
        """
        Replay the mirror operation of every booking flagged `calendar_sync_pending`.
        """
        outcomes = []
        bookings = Booking.objects.pending_calendar_sync().select_related("coach")[:limit]
        for booking in bookings:
            if booking.is_cancelled:
                outcomes.append(self.on_booking_cancelled(booking))
            elif self.busy_interval_store.get_link(booking):
                outcomes.append(
                    self._run(booking, MirrorOperation.UPDATE, self.event_mirror.mirror_update)
                )
            else:
                self.busy_interval_store.upsert_platform_interval(booking)
                outcomes.append(
                    self._run(booking, MirrorOperation.CREATE, self.event_mirror.mirror_create)
                )
        return outcomes

    def _run(
        self,
        booking: Booking,
        operation: MirrorOperation,
        mirror: Callable[[Booking], str | None],
        warning: str = "",
    ) -> MirrorOutcome:
        try:
            external_event_id = mirror(booking)
        except DISCONNECTED_ERRORS as e:
            logger.info("Calendar %s skipped for booking %s: %s", operation, booking.pk, e)
            self._mark(booking, pending=False, warning=DISCONNECTED_WARNING)
            return MirrorOutcome(
                booking_id=booking.pk,
                operation=operation,
                succeeded=False,
                warning=DISCONNECTED_WARNING,
            )
        except (CalendarIntegrationError, LockNotAcquiredError) as e:
            logger.warning("Calendar %s failed for booking %s: %s", operation, booking.pk, e)
            pending_warning = f"Calendar sync pending: {e}"
            self._mark(booking, pending=True, warning=pending_warning)
            return MirrorOutcome(
                booking_id=booking.pk,
                operation=operation,
                succeeded=False,
                warning=pending_warning,
            )

        self._mark(booking, pending=False, warning=warning)
        return MirrorOutcome(
            booking_id=booking.pk,
            operation=operation,
            succeeded=True,
            external_event_id=external_event_id,
            warning=warning,
        )

    def _mark(self, booking: Booking, pending: bool, warning: str) -> None:
        if booking.calendar_sync_pending == pending and booking.calendar_sync_warning == warning:
            return
        booking.calendar_sync_pending = pending
        booking.calendar_sync_warning = warning
        Booking.objects.filter(pk=booking.pk).update(
            calendar_sync_pending=pending, calendar_sync_warning=warning
        )
