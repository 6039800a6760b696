import datetime
import logging
import zoneinfo
from collections.abc import Callable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from calendar_integration.constants import SYNC_LOCK_KEY, CalendarSyncState, SyncResultStatus
from calendar_integration.exceptions import (
    IntegrationNotConnectedError,
    SyncCursorInvalidError,
    SyncInProgressError,
)
from calendar_integration.models import CalendarIntegration
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.dataclasses import (
    CoachCredentials,
    EventsPage,
    ProviderEvent,
    SyncResult,
)
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from calendar_integration.services.single_flight import SingleFlight
from calendar_integration.services.token_manager import TokenManager
from common.exceptions import LockNotAcquiredError
from common.redis import redis_lock
from common.types import Interval


logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Pulls changes from each coach's external calendar into the coach's busy intervals.

    Per coach the state moves `idle -> syncing -> idle`, or to `full_resync_required`
    when the provider invalidates the cursor; the next pull from that state is a full one
    that replaces every external row of the coach.

    Syncs of one coach never overlap: callers in this process share the leader's result,
    other processes wait on a Redis lock and skip the pull when a sync that started after
    their request already finished.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        adapter_factory: Callable[[CoachCredentials], CalendarAdapter],
        busy_interval_store: BusyIntervalStore,
        single_flight: SingleFlight,
    ):
        self.token_manager = token_manager
        self.adapter_factory = adapter_factory
        self.busy_interval_store = busy_interval_store
        self.single_flight = single_flight

    def sync_incremental(
        self, coach_id: int, requested_at: datetime.datetime | None = None
    ) -> SyncResult:
        requested_at = requested_at or timezone.now()
        return self.single_flight.run(
            coach_id, lambda: self._sync_serialized(coach_id, requested_at)
        )

    def sync_all_enabled(self) -> list[SyncResult]:
        results = []
        coach_ids = CalendarIntegration.objects.enabled().values_list("coach_id", flat=True)
        for coach_id in list(coach_ids):
            try:
                results.append(self.sync_incremental(coach_id))
            except Exception:
                logger.exception("Calendar sync failed for coach %s", coach_id)
        return results

    def _sync_serialized(self, coach_id: int, requested_at: datetime.datetime) -> SyncResult:
        try:
            with redis_lock(
                SYNC_LOCK_KEY.format(coach_id=coach_id),
                timeout=settings.CALENDAR_SYNC_LOCK_TIMEOUT_SECONDS,
                blocking_timeout=settings.CALENDAR_SYNC_LOCK_WAIT_SECONDS,
            ):
                return self._sync_locked(coach_id, requested_at)
        except LockNotAcquiredError as e:
            raise SyncInProgressError() from e

    def _sync_locked(self, coach_id: int, requested_at: datetime.datetime) -> SyncResult:
        integration = (
            CalendarIntegration.objects.select_related("coach").filter(coach_id=coach_id).first()
        )
        if integration is None or not integration.is_enabled:
            raise IntegrationNotConnectedError()

        if integration.last_synced_at and integration.last_synced_at >= requested_at:
            logger.debug("Sync for coach %s coalesced into an earlier one", coach_id)
            return SyncResult(
                coach_id=coach_id,
                status=SyncResultStatus.COALESCED,
                synced_at=integration.last_synced_at,
            )

        full = (
            integration.sync_state == CalendarSyncState.FULL_RESYNC_REQUIRED
            or not integration.sync_cursor
        )
        self._set_state(integration, CalendarSyncState.SYNCING)

        try:
            if full:
                return self._full_resync(integration)
            try:
                return self._incremental(integration)
            except SyncCursorInvalidError:
                logger.warning("Sync cursor of coach %s invalidated, running full resync", coach_id)
                full = True
                self._set_state(
                    integration, CalendarSyncState.FULL_RESYNC_REQUIRED, clear_cursor=True
                )
                return self._full_resync(integration)
        except Exception as e:
            failed_state = (
                CalendarSyncState.FULL_RESYNC_REQUIRED if full else CalendarSyncState.IDLE
            )
            CalendarIntegration.objects.filter(pk=integration.pk).update(
                sync_state=failed_state,
                last_sync_error=str(e),
                modified=timezone.now(),
            )
            raise

    def _set_state(
        self, integration: CalendarIntegration, state: CalendarSyncState, clear_cursor=False
    ) -> None:
        fields: dict = {"sync_state": state}
        if clear_cursor:
            fields["sync_cursor"] = None
        CalendarIntegration.objects.filter(pk=integration.pk).update(
            modified=timezone.now(), **fields
        )

    def _pull(
        self,
        integration: CalendarIntegration,
        sync_token: str | None = None,
        time_min: datetime.datetime | None = None,
    ) -> EventsPage:
        return self.token_manager.with_fresh_access_token(
            integration.coach_id,
            lambda credentials: self.adapter_factory(credentials).list_events(
                credentials.calendar_id, sync_token=sync_token, time_min=time_min
            ),
        )

    def _incremental(self, integration: CalendarIntegration) -> SyncResult:
        pull_started_at = timezone.now()
        page = self._pull(integration, sync_token=integration.sync_cursor)
        return self._store(integration, page, pull_started_at, full=False)

    def _full_resync(self, integration: CalendarIntegration) -> SyncResult:
        pull_started_at = timezone.now()
        time_min = pull_started_at - datetime.timedelta(
            days=settings.CALENDAR_FULL_SYNC_LOOKBACK_DAYS
        )
        page = self._pull(integration, time_min=time_min)
        return self._store(integration, page, pull_started_at, full=True)

    def _store(
        self,
        integration: CalendarIntegration,
        page: EventsPage,
        pull_started_at: datetime.datetime,
        full: bool,
    ) -> SyncResult:
        coach_id = integration.coach_id
        tz = integration.coach.tzinfo

        with transaction.atomic():
            locked = CalendarIntegration.objects.select_for_update().get(pk=integration.pk)
            if not locked.is_enabled:
                # disconnected while we were pulling
                logger.info("Discarding sync result of disconnected coach %s", coach_id)
                locked.sync_state = CalendarSyncState.IDLE
                locked.save(update_fields=["sync_state", "modified"])
                return SyncResult(coach_id=coach_id, status=SyncResultStatus.DISCARDED)

            if full:
                result = self._replace_external(coach_id, page.events, tz)
            else:
                result = self._apply_changes(coach_id, page.events, tz)

            locked.sync_cursor = page.next_sync_token
            locked.last_synced_at = pull_started_at
            locked.sync_state = CalendarSyncState.IDLE
            locked.last_sync_error = ""
            locked.save(
                update_fields=[
                    "sync_cursor",
                    "last_synced_at",
                    "sync_state",
                    "last_sync_error",
                    "modified",
                ]
            )

        result.synced_at = pull_started_at
        logger.info(
            "Calendar of coach %s synced (%s): %s upserted, %s removed, %s skipped",
            coach_id,
            result.status,
            result.upserted,
            result.removed,
            result.skipped,
        )
        return result

    def _apply_changes(
        self, coach_id: int, events: list[ProviderEvent], tz: zoneinfo.ZoneInfo
    ) -> SyncResult:
        result = SyncResult(coach_id=coach_id, status=SyncResultStatus.SYNCED)
        for event in events:
            if event.platform_tag is not None and not event.is_cancelled:
                self.busy_interval_store.relink_platform_event(
                    coach_id, event.platform_tag.booking_id, event.external_id
                )
                result.skipped += 1
                continue

            if not event.blocks_time:
                result.removed += self.busy_interval_store.remove_external(
                    coach_id, event.external_id
                )
                continue

            interval = event.to_interval(tz)
            if interval is None:
                result.skipped += 1
                continue
            if self.busy_interval_store.upsert_external(
                coach_id, event.external_id, interval, event.title
            ):
                result.upserted += 1
            else:
                result.skipped += 1
        return result

    def _replace_external(
        self, coach_id: int, events: list[ProviderEvent], tz: zoneinfo.ZoneInfo
    ) -> SyncResult:
        result = SyncResult(coach_id=coach_id, status=SyncResultStatus.FULL_RESYNC)
        wanted: dict[str, tuple[Interval, str]] = {}
        for event in events:
            if not event.blocks_time:
                continue
            if event.platform_tag is not None:
                self.busy_interval_store.relink_platform_event(
                    coach_id, event.platform_tag.booking_id, event.external_id
                )
                result.skipped += 1
                continue
            interval = event.to_interval(tz)
            if interval is None:
                result.skipped += 1
                continue
            wanted[event.external_id] = (interval, event.title)

        result.upserted, result.removed = self.busy_interval_store.replace_external(
            coach_id, wanted
        )
        return result
