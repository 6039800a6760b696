import datetime
import functools
import logging
import zoneinfo
from typing import Any, Literal

from django.conf import settings

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pyrate_limiter import Duration, Limiter, Rate, RedisBucket

from calendar_integration.constants import (
    GOOGLE_EVENT_STATUS_CANCELLED,
    GOOGLE_MAX_RESULTS_PER_PAGE,
    GOOGLE_TRANSPARENCY_TRANSPARENT,
    CalendarProvider,
)
from calendar_integration.exceptions import (
    AccessTokenRejectedError,
    CalendarProviderError,
    ProviderConflictError,
    ProviderNotFoundError,
    ProviderRequestError,
    SyncCursorInvalidError,
    TransientProviderError,
)
from calendar_integration.services.dataclasses import (
    ChannelRegistration,
    CoachCredentials,
    EventsPage,
    PlatformEventTag,
    ProviderEvent,
    ProviderEventInput,
)
from calendar_integration.services.decorators import with_provider_retry
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from common.redis import redis_connection
from common.types import Interval


logger = logging.getLogger(__name__)

RATE_LIMITED_REASONS = (b"rateLimitExceeded", b"userRateLimitExceeded")


@functools.cache
def get_read_quota_limiter() -> Limiter:
    return Limiter(
        RedisBucket.init(
            [
                Rate(240, Duration.MINUTE),  # 240 requests per minute
            ],
            redis=redis_connection,
            bucket_key="google_calendar_read_limiter",
        ),
        raise_when_fail=False,
        max_delay=1000,  # Allow a maximum delay of 1 second for read operations
    )


@functools.cache
def get_write_quota_limiter() -> Limiter:
    return Limiter(
        RedisBucket.init(
            [
                Rate(120, Duration.MINUTE),  # 120 requests per minute
            ],
            redis=redis_connection,
            bucket_key="google_calendar_write_limiter",
        ),
        raise_when_fail=False,
        max_delay=2000,  # Allow a maximum delay of 2 seconds for write operations
    )


def parse_platform_tag(private_properties: dict[str, str] | None) -> PlatformEventTag | None:
    """
    Return the platform tag stored in an event's private extended properties, or None when
    the event was not created by this platform.
    """
    if not private_properties:
        return None
    if private_properties.get("bookingSystem") != settings.PLATFORM_EVENT_MARKER:
        return None
    try:
        return PlatformEventTag(booking_id=int(private_properties["bookingId"]))
    except (KeyError, TypeError, ValueError):
        return None


def _parse_datetime(value: str, timezone_name: str | None = None) -> datetime.datetime:
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zoneinfo.ZoneInfo(timezone_name or "UTC"))
    return parsed


class GoogleCalendarAdapter(CalendarAdapter):
    """
    Google Calendar v3 client acting for a single coach.

    Every request goes through `_execute`, which applies the per-account rate limit,
    maps `HttpError`s to the calendar integration errors and retries transient ones.
    """

    provider = CalendarProvider.GOOGLE

    def __init__(self, credentials: CoachCredentials):
        self.account_id = credentials.account_id
        http = AuthorizedHttp(
            Credentials(token=credentials.access_token),
            http=httplib2.Http(timeout=settings.CALENDAR_PROVIDER_TIMEOUT_SECONDS),
        )
        self.client = build("calendar", "v3", http=http, cache_discovery=False)

    def _acquire_quota(self, kind: Literal["read", "write"]) -> None:
        if not settings.CALENDAR_PROVIDER_RATE_LIMIT_ENABLED:
            return
        if kind == "write":
            get_write_quota_limiter().try_acquire(f"google_calendar_write_{self.account_id}")
        else:
            get_read_quota_limiter().try_acquire(f"google_calendar_read_{self.account_id}")

    @staticmethod
    def _map_http_error(
        error: HttpError, gone_error: type[CalendarProviderError] | type[SyncCursorInvalidError]
    ) -> Exception:
        status = error.resp.status
        if status == 410:
            return gone_error()
        if status == 404:
            return ProviderNotFoundError()
        if status == 409:
            return ProviderConflictError()
        if status == 401:
            return AccessTokenRejectedError()
        if status == 429 or status >= 500:
            return TransientProviderError(f"Google Calendar returned HTTP {status}")
        if status == 403 and any(reason in (error.content or b"") for reason in RATE_LIMITED_REASONS):
            return TransientProviderError("Google Calendar rate limit exceeded")
        return ProviderRequestError(f"Google Calendar returned HTTP {status}")

    @with_provider_retry
    def _execute(
        self,
        request: Any,
        kind: Literal["read", "write"] = "read",
        gone_error: type[CalendarProviderError] | type[SyncCursorInvalidError] = ProviderNotFoundError,
    ) -> Any:
        self._acquire_quota(kind)
        try:
            return request.execute()
        except HttpError as e:
            raise self._map_http_error(e, gone_error) from e
        except (TimeoutError, ConnectionError, httplib2.HttpLib2Error) as e:
            logger.warning("Google Calendar request failed for %s: %s", self.account_id, e)
            raise TransientProviderError(str(e)) from e

    @staticmethod
    def _build_event_body(event_data: ProviderEventInput) -> dict[str, Any]:
        return {
            "summary": event_data.summary,
            "description": event_data.description,
            "location": event_data.location,
            "start": {
                "dateTime": event_data.start_time.isoformat(),
                "timeZone": event_data.timezone,
            },
            "end": {
                "dateTime": event_data.end_time.isoformat(),
                "timeZone": event_data.timezone,
            },
            "extendedProperties": {
                "private": {
                    "bookingSystem": settings.PLATFORM_EVENT_MARKER,
                    "bookingId": str(event_data.tag.booking_id),
                }
            },
        }

    def _convert_google_calendar_event(self, event: dict[str, Any]) -> ProviderEvent:
        start = event.get("start", {})
        end = event.get("end", {})
        converted = ProviderEvent(
            external_id=event["id"],
            status=event.get("status", "confirmed"),
            title=event.get("summary", ""),
            is_cancelled=event.get("status") == GOOGLE_EVENT_STATUS_CANCELLED,
            is_transparent=event.get("transparency") == GOOGLE_TRANSPARENCY_TRANSPARENT,
            platform_tag=parse_platform_tag(
                event.get("extendedProperties", {}).get("private")
            ),
        )
        if "dateTime" in start and "dateTime" in end:
            converted.start_time = _parse_datetime(start["dateTime"], start.get("timeZone"))
            converted.end_time = _parse_datetime(end["dateTime"], end.get("timeZone"))
        elif "date" in start:
            converted.start_date = datetime.date.fromisoformat(start["date"])
            if "date" in end:
                converted.end_date = datetime.date.fromisoformat(end["date"])
        return converted

    def create_event(self, calendar_id: str, event_data: ProviderEventInput) -> ProviderEvent:
        body = self._build_event_body(event_data)
        if event_data.event_id:
            body["id"] = event_data.event_id
        if event_data.attendee_emails:
            body["attendees"] = [{"email": email} for email in event_data.attendee_emails]

        created_event = self._execute(
            self.client.events().insert(calendarId=calendar_id, body=body, sendUpdates="none"),
            kind="write",
        )
        return self._convert_google_calendar_event(created_event)

    def patch_event(
        self, calendar_id: str, event_id: str, event_data: ProviderEventInput
    ) -> ProviderEvent:
        body = self._build_event_body(event_data)
        # restores the event if the coach had deleted it
        body["status"] = "confirmed"
        patched_event = self._execute(
            self.client.events().patch(
                calendarId=calendar_id, eventId=event_id, body=body, sendUpdates="none"
            ),
            kind="write",
        )
        return self._convert_google_calendar_event(patched_event)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._execute(
            self.client.events().delete(calendarId=calendar_id, eventId=event_id),
            kind="write",
        )

    def get_event(self, calendar_id: str, event_id: str) -> ProviderEvent:
        event = self._execute(self.client.events().get(calendarId=calendar_id, eventId=event_id))
        return self._convert_google_calendar_event(event)

    def list_events(
        self,
        calendar_id: str,
        sync_token: str | None = None,
        time_min: datetime.datetime | None = None,
    ) -> EventsPage:
        extra_kwargs: dict[str, Any] = {
            "maxResults": GOOGLE_MAX_RESULTS_PER_PAGE,
            "singleEvents": True,
        }
        if sync_token:
            extra_kwargs["syncToken"] = sync_token
            extra_kwargs["showDeleted"] = True
        elif time_min:
            extra_kwargs["timeMin"] = time_min.isoformat()

        events: list[ProviderEvent] = []
        page_token = None
        while True:
            current_extra_kwargs = extra_kwargs.copy()
            if page_token:
                current_extra_kwargs["pageToken"] = page_token

            events_result = self._execute(
                self.client.events().list(calendarId=calendar_id, **current_extra_kwargs),
                gone_error=SyncCursorInvalidError,
            )
            events.extend(
                self._convert_google_calendar_event(event)
                for event in events_result.get("items", [])
            )

            page_token = events_result.get("nextPageToken")
            if not page_token:
                return EventsPage(events=events, next_sync_token=events_result.get("nextSyncToken"))

    def query_free_busy(
        self, calendar_id: str, start: datetime.datetime, end: datetime.datetime
    ) -> list[Interval]:
        body = {
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "items": [{"id": calendar_id}],
        }
        result = self._execute(self.client.freebusy().query(body=body))
        busy = result.get("calendars", {}).get(calendar_id, {}).get("busy", [])
        return [Interval(_parse_datetime(b["start"]), _parse_datetime(b["end"])) for b in busy]

    def watch_events(
        self, calendar_id: str, channel_id: str, token: str, callback_url: str, ttl_seconds: int
    ) -> ChannelRegistration:
        body = {
            "id": channel_id,
            "type": "web_hook",
            "address": callback_url,
            "token": token,
            "params": {
                "ttl": str(ttl_seconds),
            },
        }
        response = self._execute(
            self.client.events().watch(calendarId=calendar_id, body=body), kind="write"
        )

        # Google reports expiration in milliseconds since the epoch
        expiration = response.get("expiration")
        if expiration:
            expires_at = datetime.datetime.fromtimestamp(int(expiration) / 1000, tz=datetime.UTC)
        else:
            expires_at = datetime.datetime.now(tz=datetime.UTC) + datetime.timedelta(
                seconds=ttl_seconds
            )
        return ChannelRegistration(
            channel_id=response.get("id", channel_id),
            resource_id=response["resourceId"],
            expires_at=expires_at,
        )

    def stop_channel(self, channel_id: str, resource_id: str) -> None:
        self._execute(
            self.client.channels().stop(body={"id": channel_id, "resourceId": resource_id}),
            kind="write",
        )
