import datetime
import zoneinfo
from dataclasses import dataclass
from dataclasses import field as dataclass_field

from calendar_integration.constants import MirrorOperation, SyncResultStatus
from common.types import Interval


@dataclass(frozen=True)
class CoachCredentials:
    """Everything the adapter needs to act for one coach. Never holds the refresh token."""

    access_token: str
    account_id: str
    calendar_id: str = "primary"


@dataclass
class OAuthCredentials:
    access_token: str
    refresh_token: str | None
    expires_at: datetime.datetime | None = None


@dataclass(frozen=True)
class PlatformEventTag:
    """Marker found in the private extended properties of events this platform created."""

    booking_id: int


@dataclass
class ProviderEventInput:
    summary: str
    description: str
    location: str
    start_time: datetime.datetime
    end_time: datetime.datetime
    timezone: str
    tag: PlatformEventTag
    attendee_emails: list[str] = dataclass_field(default_factory=list)
    event_id: str | None = None


@dataclass
class ProviderEvent:
    external_id: str
    status: str
    title: str = ""
    start_time: datetime.datetime | None = None
    end_time: datetime.datetime | None = None
    start_date: datetime.date | None = None
    end_date: datetime.date | None = None
    is_cancelled: bool = False
    is_transparent: bool = False
    platform_tag: PlatformEventTag | None = None

    @property
    def is_all_day(self) -> bool:
        return self.start_date is not None

    @property
    def blocks_time(self) -> bool:
        return not self.is_cancelled and not self.is_transparent

    def to_interval(self, tz: zoneinfo.ZoneInfo) -> Interval | None:
        """
        Busy range covered by the event. All-day events cover whole days in `tz`,
        their end date is exclusive.
        """
        if self.start_time is not None and self.end_time is not None:
            return Interval(self.start_time, self.end_time)
        if self.start_date is not None:
            end_date = self.end_date or self.start_date + datetime.timedelta(days=1)
            return Interval(
                datetime.datetime.combine(self.start_date, datetime.time.min, tzinfo=tz),
                datetime.datetime.combine(end_date, datetime.time.min, tzinfo=tz),
            )
        return None


@dataclass
class EventsPage:
    events: list[ProviderEvent]
    next_sync_token: str | None


@dataclass
class ChannelRegistration:
    channel_id: str
    resource_id: str
    expires_at: datetime.datetime


@dataclass
class SyncResult:
    coach_id: int
    status: SyncResultStatus
    upserted: int = 0
    removed: int = 0
    skipped: int = 0
    synced_at: datetime.datetime | None = None


@dataclass
class MirrorOutcome:
    booking_id: int
    operation: MirrorOperation
    succeeded: bool
    external_event_id: str | None = None
    warning: str = ""


@dataclass
class SlotTemplate:
    start_times: list[datetime.time]
    duration: datetime.timedelta
