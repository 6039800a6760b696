import logging
from typing import Annotated

from dependency_injector.wiring import Provide, inject

from calendar_integration.exceptions import (
    CalendarIntegrationError,
    IntegrationNotConnectedError,
    SyncInProgressError,
)
from calendar_integration.services.booking_calendar_hooks import BookingCalendarHooks
from calendar_integration.services.sync_engine import SyncEngine
from calendar_integration.services.webhook_channel_manager import WebhookChannelManager
from golf_lessons_api.celery import app


logger = logging.getLogger(__name__)


@app.task
@inject
def sync_coach_calendar_task(
    coach_id: int,
    sync_engine: Annotated[SyncEngine, Provide["sync_engine"]],
) -> str | None:
    """
    Celery task to pull the latest changes of a coach's calendar.
    Enqueued by webhook notifications and after the coach connects the calendar.
    """
    try:
        result = sync_engine.sync_incremental(coach_id)
    except (IntegrationNotConnectedError, SyncInProgressError) as e:
        logger.info("Calendar sync skipped for coach %s: %s", coach_id, e)
        return None
    except CalendarIntegrationError:
        logger.exception("Calendar sync failed for coach %s", coach_id)
        return None
    return result.status


@app.task
@inject
def register_webhook_channel_task(
    coach_id: int,
    webhook_channel_manager: Annotated[
        WebhookChannelManager, Provide["webhook_channel_manager"]
    ],
) -> str | None:
    try:
        channel = webhook_channel_manager.register_channel(coach_id)
    except CalendarIntegrationError:
        logger.exception("Could not register webhook channel for coach %s", coach_id)
        return None
    return channel.channel_id


@app.task
@inject
def renew_webhook_channels_task(
    webhook_channel_manager: Annotated[
        WebhookChannelManager, Provide["webhook_channel_manager"]
    ],
) -> dict[str, int]:
    """
    Celery beat task re-registering push channels close to expiry.
    """
    renewed, failed = webhook_channel_manager.renew_expiring_channels()
    logger.info("Webhook channels renewed: %s, failed: %s", renewed, failed)
    return {"renewed": renewed, "failed": failed}


@app.task
@inject
def reconcile_pending_mirrors_task(
    booking_calendar_hooks: Annotated[BookingCalendarHooks, Provide["booking_calendar_hooks"]],
    limit: int = 100,
) -> dict[str, int]:
    """
    Celery beat task retrying calendar mirroring of bookings flagged as pending.
    """
    outcomes = booking_calendar_hooks.reconcile_pending(limit=limit)
    succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
    return {"succeeded": succeeded, "failed": len(outcomes) - succeeded}


@app.task
@inject
def sync_all_calendars_task(
    sync_engine: Annotated[SyncEngine, Provide["sync_engine"]],
) -> int:
    """
    Celery beat safety net for notifications that never arrived.
    """
    return len(sync_engine.sync_all_enabled())
