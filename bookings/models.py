import zoneinfo

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from bookings.constants import BookingStatus, DayOfWeek
from common.models import BaseModel, TimeRangeModel, TimeRangeQuerySet


class Coach(BaseModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="coach",
    )
    display_name = models.CharField(_("display name"), max_length=255)
    timezone = models.CharField(_("timezone"), max_length=64, default="UTC")
    lesson_duration_minutes = models.PositiveIntegerField(
        _("lesson duration (minutes)"), default=60
    )

    def __str__(self):
        return self.display_name

    @property
    def tzinfo(self) -> zoneinfo.ZoneInfo:
        return zoneinfo.ZoneInfo(self.timezone)


class WeeklyAvailability(BaseModel):
    coach = models.ForeignKey(
        Coach,
        on_delete=models.CASCADE,
        related_name="weekly_availabilities",
    )
    day_of_week = models.PositiveSmallIntegerField(_("day of week"), choices=DayOfWeek.choices)
    start_time = models.TimeField(_("start time"))
    end_time = models.TimeField(_("end time"))
    is_available = models.BooleanField(_("is available"), default=True)

    class Meta:
        ordering = ("day_of_week", "start_time")
        verbose_name_plural = "weekly availabilities"

    def __str__(self):
        return f"{self.get_day_of_week_display()} {self.start_time}-{self.end_time}"


class BookingQuerySet(TimeRangeQuerySet):
    def active(self):
        return self.exclude(status=BookingStatus.CANCELLED)

    def pending_calendar_sync(self):
        return self.filter(calendar_sync_pending=True)


class Booking(TimeRangeModel):
    coach = models.ForeignKey(Coach, on_delete=models.CASCADE, related_name="bookings")
    student_name = models.CharField(_("student name"), max_length=255)
    student_email = models.EmailField(_("student email"), blank=True)
    title = models.CharField(_("title"), max_length=255, blank=True)
    description = models.TextField(_("description"), blank=True)
    location = models.CharField(_("location"), max_length=255, blank=True)
    status = models.CharField(
        _("status"),
        max_length=16,
        choices=BookingStatus.choices,
        default=BookingStatus.CONFIRMED,
    )
    calendar_sync_pending = models.BooleanField(_("calendar sync pending"), default=False)
    calendar_sync_warning = models.TextField(_("calendar sync warning"), blank=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        ordering = ("start_time",)

    def __str__(self):
        return f"{self.student_name} with {self.coach} at {self.start_time}"

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def summary(self) -> str:
        return self.title or f"Golf lesson with {self.student_name}"
