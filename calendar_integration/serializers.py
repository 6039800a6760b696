import datetime

from rest_framework import serializers

from calendar_integration.constants import SyncResultStatus
from calendar_integration.models import CalendarIntegration


class CalendarIntegrationStatusSerializer(serializers.ModelSerializer):
    is_connected = serializers.SerializerMethodField()
    channel_expires_at = serializers.SerializerMethodField()

    class Meta:
        model = CalendarIntegration
        fields = (
            "is_connected",
            "provider",
            "external_calendar_id",
            "is_enabled",
            "last_synced_at",
            "sync_state",
            "last_sync_error",
            "channel_expires_at",
        )
        read_only_fields = fields

    def get_is_connected(self, obj: CalendarIntegration) -> bool:
        return obj.pk is not None and obj.is_enabled

    def get_channel_expires_at(self, obj: CalendarIntegration) -> datetime.datetime | None:
        if obj.pk is None:
            return None
        channel = obj.coach.webhook_channels.order_by("-expires_at").first()
        return channel.expires_at if channel else None


class SyncResultSerializer(serializers.Serializer):
    coach_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=SyncResultStatus.choices)
    upserted = serializers.IntegerField()
    removed = serializers.IntegerField()
    skipped = serializers.IntegerField()
    synced_at = serializers.DateTimeField(allow_null=True)


class OAuthCallbackQuerySerializer(serializers.Serializer):
    code = serializers.CharField(required=False)
    state = serializers.CharField()
    error = serializers.CharField(required=False)

    def validate(self, attrs):
        if attrs.get("error"):
            raise serializers.ValidationError(
                {"non_field_errors": [f"Calendar authorization was not granted: {attrs['error']}"]}
            )
        if not attrs.get("code"):
            raise serializers.ValidationError({"code": ["This field is required."]})
        return attrs


class AvailableTimesQuerySerializer(serializers.Serializer):
    date = serializers.DateField(input_formats=["%Y-%m-%d"])


class AvailableTimesSerializer(serializers.Serializer):
    coach_id = serializers.IntegerField()
    date = serializers.DateField()
    timezone = serializers.CharField()
    slots = serializers.ListField(
        child=serializers.CharField(),
        help_text="Slot start times, ISO 8601 in the coach's timezone",
    )
