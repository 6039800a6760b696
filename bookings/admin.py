from typing import ClassVar

from django.contrib import admin, messages
from django.http import HttpRequest

from bookings.models import Booking, Coach, WeeklyAvailability


class WeeklyAvailabilityInline(admin.TabularInline):
    model = WeeklyAvailability
    extra = 0


@admin.register(Coach)
class CoachAdmin(admin.ModelAdmin):
    list_display = ("id", "display_name", "timezone", "lesson_duration_minutes")
    search_fields = ("display_name", "user__email")
    inlines = (WeeklyAvailabilityInline,)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for bookings. Saving a booking mirrors it to the coach's calendar."""

    list_display = (
        "id",
        "coach",
        "student_name",
        "start_time",
        "end_time",
        "status",
        "calendar_sync_pending",
    )
    list_filter = ("status", "calendar_sync_pending")
    search_fields = ("student_name", "student_email", "coach__display_name")
    readonly_fields = ("calendar_sync_pending", "calendar_sync_warning")

    actions: ClassVar = ["retry_calendar_sync"]

    def save_model(self, request: HttpRequest, obj: Booking, form, change: bool) -> None:
        super().save_model(request, obj, form, change)

        from di_core.containers import container

        booking_calendar_hooks = container.booking_calendar_hooks()
        if not change:
            outcome = booking_calendar_hooks.on_booking_created(obj)
        elif obj.is_cancelled:
            outcome = booking_calendar_hooks.on_booking_cancelled(obj)
        else:
            outcome = booking_calendar_hooks.on_booking_updated(obj)

        if outcome.warning:
            self.message_user(request, outcome.warning, level=messages.WARNING)

    @admin.action(description="Retry calendar sync")
    def retry_calendar_sync(self, request: HttpRequest, queryset):
        from di_core.containers import container

        booking_calendar_hooks = container.booking_calendar_hooks()
        failed = 0
        for booking in queryset.select_related("coach"):
            outcome = booking_calendar_hooks.on_booking_updated(booking)
            if not outcome.succeeded:
                failed += 1
        self.message_user(
            request,
            f"Calendar sync retried for {queryset.count()} bookings, {failed} still pending.",
        )
