from celery.schedules import crontab  # type: ignore


CELERYBEAT_SCHEDULE = {
    "renew_webhook_channels": {
        "schedule": crontab(minute=0),
        "task": "calendar_integration.tasks.calendar_sync_tasks.renew_webhook_channels_task",
    },
    "reconcile_pending_mirrors": {
        "schedule": crontab(minute="*/10"),
        "task": "calendar_integration.tasks.calendar_sync_tasks.reconcile_pending_mirrors_task",
    },
    # Safety net for missed push notifications
    "sync_all_calendars": {
        "schedule": crontab(minute="*/30"),
        "task": "calendar_integration.tasks.calendar_sync_tasks.sync_all_calendars_task",
    },
}
