import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import encrypted_fields.fields
import model_utils.fields


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CalendarIntegration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("provider", models.CharField(choices=[("google", "Google Calendar")], default="google", max_length=32, verbose_name="provider")),
                ("external_calendar_id", models.CharField(default="primary", max_length=255, verbose_name="external calendar id")),
                ("refresh_token", encrypted_fields.fields.EncryptedCharField(blank=True, max_length=512, verbose_name="refresh token")),
                ("is_enabled", models.BooleanField(default=False, verbose_name="is enabled")),
                ("last_synced_at", models.DateTimeField(blank=True, null=True, verbose_name="last synced at")),
                ("sync_cursor", models.TextField(blank=True, null=True, verbose_name="sync cursor")),
                ("sync_state", models.CharField(choices=[("idle", "Idle"), ("syncing", "Syncing"), ("full_resync_required", "Full Resync Required")], default="idle", max_length=32, verbose_name="sync state")),
                ("last_sync_error", models.TextField(blank=True, verbose_name="last sync error")),
                ("coach", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="calendar_integration", to="bookings.coach")),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="BusyInterval",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("start_time", models.DateTimeField(db_index=True, verbose_name="start time")),
                ("end_time", models.DateTimeField(db_index=True, verbose_name="end time")),
                ("origin", models.CharField(choices=[("platform_booking", "Platform Booking"), ("external_sync", "External Sync")], max_length=32, verbose_name="origin")),
                ("external_event_id", models.CharField(blank=True, max_length=1024, null=True, verbose_name="external event id")),
                ("title", models.CharField(blank=True, max_length=1024, verbose_name="title")),
                ("booking", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="busy_interval", to="bookings.booking")),
                ("coach", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="busy_intervals", to="bookings.coach")),
            ],
            options={
                "ordering": ("start_time",),
            },
        ),
        migrations.AddConstraint(
            model_name="busyinterval",
            constraint=models.UniqueConstraint(
                condition=models.Q(("external_event_id__isnull", False)),
                fields=("coach", "external_event_id"),
                name="unique_busy_interval_external_event_per_coach",
            ),
        ),
        migrations.AddConstraint(
            model_name="busyinterval",
            constraint=models.UniqueConstraint(
                condition=models.Q(("booking__isnull", False)),
                fields=("booking",),
                name="unique_busy_interval_per_booking",
            ),
        ),
        migrations.CreateModel(
            name="WebhookChannel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                ("channel_id", models.CharField(max_length=255, unique=True, verbose_name="channel id")),
                ("resource_id", models.CharField(max_length=255, verbose_name="resource id")),
                ("expires_at", models.DateTimeField(db_index=True, verbose_name="expires at")),
                ("token", models.CharField(max_length=255, verbose_name="verification token")),
                ("callback_url", models.URLField(max_length=1024, verbose_name="callback url")),
                ("coach", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="webhook_channels", to="bookings.coach")),
            ],
            options={
                "abstract": False,
            },
        ),
    ]
