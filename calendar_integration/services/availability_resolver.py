import datetime
import logging
from collections.abc import Callable

from django.conf import settings

from bookings.models import Coach
from calendar_integration.exceptions import CalendarIntegrationError
from calendar_integration.models import BusyInterval, CalendarIntegration
from calendar_integration.services.dataclasses import CoachCredentials, SlotTemplate
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from calendar_integration.services.token_manager import TokenManager
from common.types import Interval


logger = logging.getLogger(__name__)


def default_slot_template() -> SlotTemplate:
    return SlotTemplate(
        start_times=[datetime.time.fromisoformat(t) for t in settings.DEFAULT_SLOT_TEMPLATE_TIMES],
        duration=datetime.timedelta(minutes=settings.DEFAULT_SLOT_DURATION_MINUTES),
    )


class AvailabilityResolver:
    """
    Computes which lesson slots of a coach are free, from stored busy intervals only.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        adapter_factory: Callable[[CoachCredentials], CalendarAdapter],
    ):
        self.token_manager = token_manager
        self.adapter_factory = adapter_factory

    def slot_template_for(self, coach: Coach, date: datetime.date) -> SlotTemplate:
        """
        Lesson-long steps inside the coach's available windows for the weekday of `date`.
        Coaches that never set weekly availability get the default template.
        """
        windows = list(coach.weekly_availabilities.all())
        if not windows:
            return default_slot_template()

        duration = datetime.timedelta(minutes=coach.lesson_duration_minutes)
        start_times: list[datetime.time] = []
        for window in windows:
            if window.day_of_week != date.weekday() or not window.is_available:
                continue
            cursor = datetime.datetime.combine(date, window.start_time)
            window_end = datetime.datetime.combine(date, window.end_time)
            while cursor + duration <= window_end:
                start_times.append(cursor.time())
                cursor += duration

        return SlotTemplate(start_times=sorted(set(start_times)), duration=duration)

    def compute_available_slots(
        self,
        coach_id: int,
        date: datetime.date,
        slot_template: SlotTemplate | None = None,
    ) -> list[datetime.datetime]:
        coach = Coach.objects.get(pk=coach_id)
        tz = coach.tzinfo
        template = slot_template or self.slot_template_for(coach, date)

        candidates = [
            Interval(start, start + template.duration)
            for start in (
                datetime.datetime.combine(date, start_time, tzinfo=tz)
                for start_time in sorted(template.start_times)
            )
        ]
        if not candidates:
            return []

        busy_rows = BusyInterval.objects.for_coach(coach_id).overlapping(
            min(c.start for c in candidates), max(c.end for c in candidates)
        )
        if not CalendarIntegration.objects.enabled().filter(coach_id=coach_id).exists():
            busy_rows = busy_rows.platform()
        busy = [Interval(row.start_time, row.end_time) for row in busy_rows]

        return [
            candidate.start
            for candidate in candidates
            if not any(candidate.overlaps(interval) for interval in busy)
        ]

    def is_range_free_on_provider(
        self, coach_id: int, start: datetime.datetime, end: datetime.datetime
    ) -> bool | None:
        """
        Live free/busy check against the coach's calendar. None when it cannot be answered.
        """
        try:
            busy = self.token_manager.with_fresh_access_token(
                coach_id,
                lambda credentials: self.adapter_factory(credentials).query_free_busy(
                    credentials.calendar_id, start, end
                ),
            )
        except CalendarIntegrationError as e:
            logger.info("Free/busy check unavailable for coach %s: %s", coach_id, e)
            return None

        requested = Interval(start, end)
        return not any(requested.overlaps(interval) for interval in busy)
