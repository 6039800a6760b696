"""Django admin interface for calendar integrations, busy intervals and webhook channels."""

import datetime
from typing import ClassVar

from django.contrib import admin
from django.http import HttpRequest
from django.utils import timezone
from django.utils.html import format_html

from calendar_integration.models import BusyInterval, CalendarIntegration, WebhookChannel
from calendar_integration.tasks import register_webhook_channel_task, sync_coach_calendar_task


@admin.register(CalendarIntegration)
class CalendarIntegrationAdmin(admin.ModelAdmin):
    """Admin interface for coach calendar integrations."""

    list_display = (
        "id",
        "coach",
        "provider",
        "is_enabled",
        "sync_state",
        "last_synced_at",
    )
    list_filter = ("provider", "is_enabled", "sync_state")
    search_fields = ("coach__display_name", "external_calendar_id")
    # never render the refresh token
    exclude = ("refresh_token",)
    readonly_fields = ("sync_cursor", "last_synced_at", "last_sync_error")

    actions: ClassVar = ["sync_now", "register_channels"]

    @admin.action(description="Sync selected calendars now")
    def sync_now(self, request: HttpRequest, queryset):
        count = 0
        for integration in queryset.filter(is_enabled=True):
            sync_coach_calendar_task.delay(integration.coach_id)  # type: ignore
            count += 1
        self.message_user(request, f"Enqueued {count} calendar syncs.")

    @admin.action(description="Register new webhook channels")
    def register_channels(self, request: HttpRequest, queryset):
        count = 0
        for integration in queryset.filter(is_enabled=True):
            register_webhook_channel_task.delay(integration.coach_id)  # type: ignore
            count += 1
        self.message_user(request, f"Enqueued {count} webhook channel registrations.")


@admin.register(BusyInterval)
class BusyIntervalAdmin(admin.ModelAdmin):
    list_display = ("id", "coach", "origin", "start_time", "end_time", "external_event_id")
    list_filter = ("origin",)
    search_fields = ("coach__display_name", "external_event_id", "title")
    raw_id_fields = ("booking",)


@admin.register(WebhookChannel)
class WebhookChannelAdmin(admin.ModelAdmin):
    """Admin interface for push notification channels."""

    list_display = ("channel_id", "coach", "resource_id", "expires_at", "health_status")
    search_fields = ("channel_id", "resource_id", "coach__display_name")
    exclude = ("token",)

    @admin.display(description="Health Status")
    def health_status(self, obj: WebhookChannel) -> str:
        """Display expiry status with colored indicators."""
        now = timezone.now()
        if obj.expires_at < now:
            return format_html('<span style="color: red;">⚠ Expired</span>')
        if obj.expires_at < now + datetime.timedelta(hours=24):
            return format_html('<span style="color: orange;">⚠ Expiring Soon</span>')
        return format_html('<span style="color: green;">✓ Healthy</span>')
