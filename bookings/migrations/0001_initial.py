import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import model_utils.fields


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Coach",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("display_name", models.CharField(max_length=255, verbose_name="display name")),
                ("timezone", models.CharField(default="UTC", max_length=64, verbose_name="timezone")),
                ("lesson_duration_minutes", models.PositiveIntegerField(default=60, verbose_name="lesson duration (minutes)")),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="coach", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="WeeklyAvailability",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("day_of_week", models.PositiveSmallIntegerField(choices=[(0, "Monday"), (1, "Tuesday"), (2, "Wednesday"), (3, "Thursday"), (4, "Friday"), (5, "Saturday"), (6, "Sunday")], verbose_name="day of week")),
                ("start_time", models.TimeField(verbose_name="start time")),
                ("end_time", models.TimeField(verbose_name="end time")),
                ("is_available", models.BooleanField(default=True, verbose_name="is available")),
                ("coach", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="weekly_availabilities", to="bookings.coach")),
            ],
            options={
                "verbose_name_plural": "weekly availabilities",
                "ordering": ("day_of_week", "start_time"),
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("start_time", models.DateTimeField(db_index=True, verbose_name="start time")),
                ("end_time", models.DateTimeField(db_index=True, verbose_name="end time")),
                ("student_name", models.CharField(max_length=255, verbose_name="student name")),
                ("student_email", models.EmailField(blank=True, max_length=254, verbose_name="student email")),
                ("title", models.CharField(blank=True, max_length=255, verbose_name="title")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("location", models.CharField(blank=True, max_length=255, verbose_name="location")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("confirmed", "Confirmed"), ("cancelled", "Cancelled")], default="confirmed", max_length=16, verbose_name="status")),
                ("calendar_sync_pending", models.BooleanField(default=False, verbose_name="calendar sync pending")),
                ("calendar_sync_warning", models.TextField(blank=True, verbose_name="calendar sync warning")),
                ("coach", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bookings", to="bookings.coach")),
            ],
            options={
                "ordering": ("start_time",),
            },
        ),
    ]
