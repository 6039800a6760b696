import hashlib
import logging
from collections.abc import Callable

from django.conf import settings

from bookings.models import Booking
from calendar_integration.constants import MIRROR_LOCK_KEY
from calendar_integration.exceptions import (
    CalendarIntegrationError,
    DuplicateMirrorError,
    ProviderConflictError,
    ProviderNotFoundError,
)
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.dataclasses import (
    CoachCredentials,
    PlatformEventTag,
    ProviderEventInput,
)
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from calendar_integration.services.token_manager import TokenManager
from common.redis import redis_lock


logger = logging.getLogger(__name__)

# booking meta key holding the event id of a cancelled booking whose provider delete failed
PENDING_DELETE_META_KEY = "calendar_pending_delete_event_id"


def mirror_event_id(booking_id: int) -> str:
    """
    Provider event id for a booking's mirror. Stable across retries so that a create
    that reached Google but timed out on our side conflicts instead of duplicating.
    Google accepts lowercase base32hex (a-v, 0-9), 5 to 1024 characters.
    """
    digest = hashlib.sha256(f"{settings.PLATFORM_EVENT_MARKER}:{booking_id}".encode()).hexdigest()
    return f"booking{booking_id}{digest[:24]}"


class EventMirror:
    """
    Keeps a provider event in the coach's calendar for every active booking.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        adapter_factory: Callable[[CoachCredentials], CalendarAdapter],
        busy_interval_store: BusyIntervalStore,
    ):
        self.token_manager = token_manager
        self.adapter_factory = adapter_factory
        self.busy_interval_store = busy_interval_store

    def _lock(self, booking: Booking):
        return redis_lock(
            MIRROR_LOCK_KEY.format(booking_id=booking.pk),
            timeout=settings.CALENDAR_MIRROR_LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.CALENDAR_MIRROR_LOCK_TIMEOUT_SECONDS,
        )

    def build_event_input(self, booking: Booking) -> ProviderEventInput:
        coach = booking.coach
        description_lines = [booking.description] if booking.description else []
        student = booking.student_name
        if booking.student_email:
            student = f"{student} ({booking.student_email})"
        description_lines.append(f"Student: {student}")
        if booking.location:
            description_lines.append(f"Location: {booking.location}")

        return ProviderEventInput(
            summary=booking.summary,
            description="\n".join(description_lines),
            location=booking.location,
            start_time=booking.start_time.astimezone(coach.tzinfo),
            end_time=booking.end_time.astimezone(coach.tzinfo),
            timezone=coach.timezone,
            tag=PlatformEventTag(booking_id=booking.pk),
            attendee_emails=[booking.student_email] if booking.student_email else [],
            event_id=mirror_event_id(booking.pk),
        )

    def _ensure_not_mirrored(self, booking: Booking) -> None:
        external_event_id = self.busy_interval_store.get_link(booking)
        if external_event_id:
            raise DuplicateMirrorError(booking.pk, external_event_id)

    def mirror_create(self, booking: Booking) -> str:
        with self._lock(booking):
            try:
                self._ensure_not_mirrored(booking)
            except DuplicateMirrorError as e:
                logger.info("%s, skipping create", e)
                return e.external_event_id

            event_input = self.build_event_input(booking)

            def create(credentials: CoachCredentials) -> str:
                adapter = self.adapter_factory(credentials)
                try:
                    return adapter.create_event(credentials.calendar_id, event_input).external_id
                except ProviderConflictError:
                    logger.info(
                        "Event %s already exists for booking %s, updating it",
                        event_input.event_id,
                        booking.pk,
                    )
                    return adapter.patch_event(
                        credentials.calendar_id, event_input.event_id, event_input
                    ).external_id

            external_event_id = self.token_manager.with_fresh_access_token(booking.coach_id, create)
            self.busy_interval_store.link_booking(booking, external_event_id)

        logger.info("Booking %s mirrored as event %s", booking.pk, external_event_id)
        return external_event_id

    def mirror_update(self, booking: Booking) -> str | None:
        with self._lock(booking):
            self.busy_interval_store.upsert_platform_interval(booking)
            external_event_id = self.busy_interval_store.get_link(booking)
            if not external_event_id:
                logger.warning("Booking %s has no mirrored event to update", booking.pk)
                return None

            event_input = self.build_event_input(booking)
            try:
                self.token_manager.with_fresh_access_token(
                    booking.coach_id,
                    lambda credentials: self.adapter_factory(credentials).patch_event(
                        credentials.calendar_id, external_event_id, event_input
                    ),
                )
            except ProviderNotFoundError:
                logger.warning(
                    "Mirrored event %s of booking %s no longer exists, unlinking",
                    external_event_id,
                    booking.pk,
                )
                self.busy_interval_store.unlink_booking(booking)
                return None

        return external_event_id

    def mirror_delete(self, booking: Booking) -> str | None:
        """
        Delete the booking's provider event and its busy interval. The interval goes first
        so the slot frees up even when the provider cannot be reached; the event id is then
        kept in the booking's meta for a later retry.
        """
        with self._lock(booking):
            external_event_id = self.busy_interval_store.get_link(booking) or booking.meta.get(
                PENDING_DELETE_META_KEY
            )
            self.busy_interval_store.remove_booking(booking)
            if not external_event_id:
                return None

            try:
                self.token_manager.with_fresh_access_token(
                    booking.coach_id,
                    lambda credentials: self.adapter_factory(credentials).delete_event(
                        credentials.calendar_id, external_event_id
                    ),
                )
            except ProviderNotFoundError:
                logger.info("Mirrored event %s was already deleted", external_event_id)
            except CalendarIntegrationError:
                booking.meta[PENDING_DELETE_META_KEY] = external_event_id
                booking.save(update_fields=["meta", "modified"])
                raise

            if PENDING_DELETE_META_KEY in booking.meta:
                booking.meta.pop(PENDING_DELETE_META_KEY)
                booking.save(update_fields=["meta", "modified"])

        return external_event_id
