import datetime
from unittest.mock import Mock

import pytest
from model_bakery import baker

from bookings.constants import DayOfWeek
from bookings.models import Coach, WeeklyAvailability
from calendar_integration.constants import BusyIntervalOrigin
from calendar_integration.exceptions import TransientProviderError
from calendar_integration.models import BusyInterval
from calendar_integration.services.availability_resolver import (
    AvailabilityResolver,
    default_slot_template,
)
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.dataclasses import SlotTemplate
from calendar_integration.services.token_manager import TokenManager
from common.types import Interval


HOURLY_TEMPLATE = SlotTemplate(
    start_times=[datetime.time(hour) for hour in (9, 10, 11, 12, 13, 14)],
    duration=datetime.timedelta(minutes=60),
)


@pytest.fixture
def mock_adapter():
    return Mock()


@pytest.fixture
def resolver(mock_adapter):
    return AvailabilityResolver(
        token_manager=TokenManager(),
        adapter_factory=Mock(return_value=mock_adapter),
    )


@pytest.fixture
def lesson_date(booking):
    return booking.start_time.astimezone(booking.coach.tzinfo).date()


def at(coach, date, hour, minute=0):
    return datetime.datetime.combine(date, datetime.time(hour, minute), tzinfo=coach.tzinfo)


def make_external(coach, start, end, external_id="evt-1"):
    return baker.make(
        BusyInterval,
        coach=coach,
        origin=BusyIntervalOrigin.EXTERNAL_SYNC,
        external_event_id=external_id,
        start_time=start,
        end_time=end,
    )


def test_booking_and_external_event_block_their_slots(resolver, integration, booking, lesson_date):
    coach = booking.coach
    BusyIntervalStore().upsert_platform_interval(booking)
    make_external(coach, at(coach, lesson_date, 13), at(coach, lesson_date, 13, 30))

    slots = resolver.compute_available_slots(coach.pk, lesson_date, HOURLY_TEMPLATE)

    assert slots == [
        at(coach, lesson_date, 9),
        at(coach, lesson_date, 11),
        at(coach, lesson_date, 12),
        at(coach, lesson_date, 14),
    ]


def test_external_intervals_ignored_without_enabled_integration(
    resolver, integration, coach, lesson_date
):
    make_external(coach, at(coach, lesson_date, 9), at(coach, lesson_date, 10))
    integration.is_enabled = False
    integration.save()

    slots = resolver.compute_available_slots(coach.pk, lesson_date, HOURLY_TEMPLATE)

    assert at(coach, lesson_date, 9) in slots


def test_back_to_back_intervals_do_not_overlap(resolver, integration, coach, lesson_date):
    make_external(coach, at(coach, lesson_date, 8), at(coach, lesson_date, 9))
    make_external(coach, at(coach, lesson_date, 10), at(coach, lesson_date, 11), "evt-2")

    slots = resolver.compute_available_slots(coach.pk, lesson_date, HOURLY_TEMPLATE)

    assert at(coach, lesson_date, 9) in slots
    assert at(coach, lesson_date, 10) not in slots
    assert at(coach, lesson_date, 11) in slots


def test_unknown_coach(resolver, db):
    with pytest.raises(Coach.DoesNotExist):
        resolver.compute_available_slots(999999, datetime.date(2025, 6, 2))


class TestSlotTemplate:
    def test_default_template_without_weekly_availability(self, resolver, coach):
        template = resolver.slot_template_for(coach, datetime.date(2025, 6, 2))

        assert template == default_slot_template()
        assert template.duration == datetime.timedelta(minutes=60)

    def test_weekly_availability_windows(self, resolver, coach):
        baker.make(
            WeeklyAvailability,
            coach=coach,
            day_of_week=DayOfWeek.MONDAY,
            start_time=datetime.time(8),
            end_time=datetime.time(10, 30),
        )
        baker.make(
            WeeklyAvailability,
            coach=coach,
            day_of_week=DayOfWeek.MONDAY,
            start_time=datetime.time(15),
            end_time=datetime.time(16),
            is_available=False,
        )
        baker.make(
            WeeklyAvailability,
            coach=coach,
            day_of_week=DayOfWeek.TUESDAY,
            start_time=datetime.time(12),
            end_time=datetime.time(13),
        )

        # 2025-06-02 is a Monday
        template = resolver.slot_template_for(coach, datetime.date(2025, 6, 2))

        assert template.start_times == [datetime.time(8), datetime.time(9)]

    def test_day_without_windows_has_no_slots(self, resolver, coach):
        baker.make(
            WeeklyAvailability,
            coach=coach,
            day_of_week=DayOfWeek.TUESDAY,
            start_time=datetime.time(12),
            end_time=datetime.time(13),
        )

        assert resolver.compute_available_slots(coach.pk, datetime.date(2025, 6, 2)) == []


class TestProviderFreeBusy:
    def test_busy_range(self, resolver, mock_adapter, integration, cached_access_token):
        start = datetime.datetime(2025, 6, 2, 14, tzinfo=datetime.UTC)
        mock_adapter.query_free_busy.return_value = [
            Interval(start + datetime.timedelta(minutes=30), start + datetime.timedelta(hours=2))
        ]

        assert (
            resolver.is_range_free_on_provider(
                integration.coach_id, start, start + datetime.timedelta(hours=1)
            )
            is False
        )

    def test_free_range(self, resolver, mock_adapter, integration, cached_access_token):
        start = datetime.datetime(2025, 6, 2, 14, tzinfo=datetime.UTC)
        mock_adapter.query_free_busy.return_value = []

        assert resolver.is_range_free_on_provider(
            integration.coach_id, start, start + datetime.timedelta(hours=1)
        )

    def test_unanswerable(self, resolver, mock_adapter, integration, cached_access_token):
        mock_adapter.query_free_busy.side_effect = TransientProviderError()
        start = datetime.datetime(2025, 6, 2, 14, tzinfo=datetime.UTC)

        assert (
            resolver.is_range_free_on_provider(
                integration.coach_id, start, start + datetime.timedelta(hours=1)
            )
            is None
        )
