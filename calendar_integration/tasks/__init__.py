from .calendar_sync_tasks import (
    reconcile_pending_mirrors_task,
    register_webhook_channel_task,
    renew_webhook_channels_task,
    sync_all_calendars_task,
    sync_coach_calendar_task,
)


__all__ = [
    "reconcile_pending_mirrors_task",
    "register_webhook_channel_task",
    "renew_webhook_channels_task",
    "sync_all_calendars_task",
    "sync_coach_calendar_task",
]
