import datetime
from unittest.mock import Mock

import pytest
from model_bakery import baker

from bookings.constants import BookingStatus
from bookings.models import Booking
from calendar_integration.constants import MirrorOperation
from calendar_integration.exceptions import (
    AccessTokenRejectedError,
    TokenRevokedError,
    TransientProviderError,
)
from calendar_integration.models import BusyInterval
from calendar_integration.services.availability_resolver import AvailabilityResolver
from calendar_integration.services.booking_calendar_hooks import (
    CONFLICT_WARNING,
    DISCONNECTED_WARNING,
    BookingCalendarHooks,
)
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.event_mirror import EventMirror
from calendar_integration.services.token_manager import TokenManager


@pytest.fixture
def event_mirror():
    mirror = Mock(spec=EventMirror)
    mirror.mirror_create.return_value = "evt-1"
    mirror.mirror_update.return_value = "evt-1"
    mirror.mirror_delete.return_value = "evt-1"
    return mirror


@pytest.fixture
def availability_resolver():
    resolver = Mock(spec=AvailabilityResolver)
    resolver.is_range_free_on_provider.return_value = True
    return resolver


@pytest.fixture
def hooks(event_mirror, availability_resolver):
    return BookingCalendarHooks(
        event_mirror=event_mirror,
        availability_resolver=availability_resolver,
        token_manager=TokenManager(),
        busy_interval_store=BusyIntervalStore(),
    )


class TestOnBookingCreated:
    def test_without_integration_only_blocks_slot(self, hooks, event_mirror, booking):
        outcome = hooks.on_booking_created(booking)

        assert outcome.succeeded
        event_mirror.mirror_create.assert_not_called()
        assert BusyInterval.objects.filter(booking=booking).exists()

    def test_mirrors_booking(self, hooks, event_mirror, integration, booking):
        outcome = hooks.on_booking_created(booking)

        assert outcome.succeeded
        assert outcome.operation == MirrorOperation.CREATE
        assert outcome.external_event_id == "evt-1"
        event_mirror.mirror_create.assert_called_once_with(booking)
        booking.refresh_from_db()
        assert not booking.calendar_sync_pending
        assert booking.calendar_sync_warning == ""

    def test_provider_conflict_is_a_warning(
        self, hooks, availability_resolver, event_mirror, integration, booking
    ):
        availability_resolver.is_range_free_on_provider.return_value = False

        outcome = hooks.on_booking_created(booking)

        assert outcome.succeeded
        assert outcome.warning == CONFLICT_WARNING
        event_mirror.mirror_create.assert_called_once()
        booking.refresh_from_db()
        assert booking.calendar_sync_warning == CONFLICT_WARNING

    def test_provider_failure_marks_booking_pending(
        self, hooks, event_mirror, integration, booking
    ):
        event_mirror.mirror_create.side_effect = TransientProviderError("HTTP 503")

        outcome = hooks.on_booking_created(booking)

        assert not outcome.succeeded
        booking.refresh_from_db()
        assert booking.calendar_sync_pending
        assert booking.calendar_sync_warning == "Calendar sync pending: HTTP 503"
        # the booking still blocks its slot
        assert BusyInterval.objects.filter(booking=booking).exists()

    def test_revoked_access_is_not_retried(self, hooks, event_mirror, integration, booking):
        event_mirror.mirror_create.side_effect = TokenRevokedError()

        outcome = hooks.on_booking_created(booking)

        assert not outcome.succeeded
        booking.refresh_from_db()
        assert not booking.calendar_sync_pending
        assert booking.calendar_sync_warning == DISCONNECTED_WARNING

    def test_rejected_token_keeps_booking_pending(
        self, hooks, event_mirror, integration, booking
    ):
        event_mirror.mirror_create.side_effect = AccessTokenRejectedError()

        outcome = hooks.on_booking_created(booking)

        assert not outcome.succeeded
        booking.refresh_from_db()
        assert booking.calendar_sync_pending
        assert booking.calendar_sync_warning.startswith("Calendar sync pending")
        assert booking.calendar_sync_warning != DISCONNECTED_WARNING


class TestOnBookingUpdated:
    def test_updates_mirror(self, hooks, event_mirror, integration, booking):
        outcome = hooks.on_booking_updated(booking)

        assert outcome.operation == MirrorOperation.UPDATE
        event_mirror.mirror_update.assert_called_once_with(booking)

    def test_cancelled_status_deletes_mirror(self, hooks, event_mirror, integration, booking):
        booking.status = BookingStatus.CANCELLED
        booking.save()

        outcome = hooks.on_booking_updated(booking)

        assert outcome.operation == MirrorOperation.DELETE
        event_mirror.mirror_delete.assert_called_once_with(booking)
        event_mirror.mirror_update.assert_not_called()


def test_on_booking_cancelled_clears_pending_flag(hooks, event_mirror, integration, booking):
    booking.calendar_sync_pending = True
    booking.calendar_sync_warning = "Calendar sync pending: HTTP 503"
    booking.save()

    outcome = hooks.on_booking_cancelled(booking)

    assert outcome.succeeded
    booking.refresh_from_db()
    assert not booking.calendar_sync_pending
    assert booking.calendar_sync_warning == ""


def test_reconcile_pending_replays_the_right_operation(hooks, event_mirror, integration, coach):
    start = datetime.datetime(2025, 6, 2, 14, tzinfo=datetime.UTC)
    end = start + datetime.timedelta(hours=1)
    cancelled = baker.make(
        Booking,
        coach=coach,
        status=BookingStatus.CANCELLED,
        calendar_sync_pending=True,
        start_time=start,
        end_time=end,
    )
    linked = baker.make(
        Booking, coach=coach, calendar_sync_pending=True, start_time=start, end_time=end
    )
    BusyIntervalStore().link_booking(linked, "evt-linked")
    unlinked = baker.make(
        Booking, coach=coach, calendar_sync_pending=True, start_time=start, end_time=end
    )
    baker.make(Booking, coach=coach, start_time=start, end_time=end)

    outcomes = hooks.reconcile_pending()

    assert {(outcome.booking_id, outcome.operation) for outcome in outcomes} == {
        (cancelled.pk, MirrorOperation.DELETE),
        (linked.pk, MirrorOperation.UPDATE),
        (unlinked.pk, MirrorOperation.CREATE),
    }
    assert not Booking.objects.pending_calendar_sync().exists()


def test_reconcile_pending_keeps_failures_flagged(hooks, event_mirror, integration, booking):
    booking.calendar_sync_pending = True
    booking.save()
    event_mirror.mirror_create.side_effect = TransientProviderError("HTTP 500")

    outcomes = hooks.reconcile_pending(limit=10)

    assert [outcome.succeeded for outcome in outcomes] == [False]
    booking.refresh_from_db()
    assert booking.calendar_sync_pending
