import datetime
from typing import Protocol

from calendar_integration.services.dataclasses import (
    ChannelRegistration,
    CoachCredentials,
    EventsPage,
    ProviderEvent,
    ProviderEventInput,
)
from common.types import Interval


class CalendarAdapter(Protocol):
    provider: str

    def __init__(self, credentials: CoachCredentials):
        ...

    def create_event(self, calendar_id: str, event_data: ProviderEventInput) -> ProviderEvent:
        """
        Create a new event in the calendar.
        :param calendar_id: External id of the calendar.
        :param event_data: Event details, including the platform tag.
        :return: The created event.
        """
        ...

    def patch_event(
        self, calendar_id: str, event_id: str, event_data: ProviderEventInput
    ) -> ProviderEvent:
        """
        Update time, summary, description and location of an existing event.
        :raises ProviderNotFoundError: if the event no longer exists.
        """
        ...

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event.
        :raises ProviderNotFoundError: if the event is already gone.
        """
        ...

    def get_event(self, calendar_id: str, event_id: str) -> ProviderEvent:
        """
        Retrieve a single event.
        """
        ...

    def list_events(
        self,
        calendar_id: str,
        sync_token: str | None = None,
        time_min: datetime.datetime | None = None,
    ) -> EventsPage:
        """
        Retrieve every page of events, either changed since `sync_token` or starting at
        `time_min` for a full pull.
        :raises SyncCursorInvalidError: if the sync token is no longer accepted.
        """
        ...

    def query_free_busy(
        self, calendar_id: str, start: datetime.datetime, end: datetime.datetime
    ) -> list[Interval]:
        """
        Busy ranges of the calendar between start and end.
        """
        ...

    def watch_events(
        self, calendar_id: str, channel_id: str, token: str, callback_url: str, ttl_seconds: int
    ) -> ChannelRegistration:
        """
        Ask the provider to push change notifications for the calendar to callback_url.
        """
        ...

    def stop_channel(self, channel_id: str, resource_id: str) -> None:
        """
        Stop a push notification channel.
        """
        ...
