import datetime
import logging
import secrets
import uuid
from collections.abc import Callable

from django.conf import settings
from django.urls import reverse

from calendar_integration.constants import GoogleResourceState
from calendar_integration.exceptions import (
    CalendarIntegrationError,
    ProviderNotFoundError,
    WebhookIgnoredError,
)
from calendar_integration.models import CalendarIntegration, WebhookChannel
from calendar_integration.services.dataclasses import CoachCredentials
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from calendar_integration.services.token_manager import TokenManager


logger = logging.getLogger(__name__)


class WebhookChannelManager:
    def __init__(
        self,
        token_manager: TokenManager,
        adapter_factory: Callable[[CoachCredentials], CalendarAdapter],
    ):
        self.token_manager = token_manager
        self.adapter_factory = adapter_factory

    @staticmethod
    def callback_url() -> str:
        return settings.CALENDAR_WEBHOOK_BASE_URL.rstrip("/") + reverse(
            "calendar_integration:google_webhook"
        )

    def register_channel(self, coach_id: int) -> WebhookChannel:
        """
        Replace the coach's push channels with a fresh one.
        """
        self.teardown(coach_id)

        channel_id = str(uuid.uuid4())
        token = secrets.token_urlsafe(32)
        callback_url = self.callback_url()
        registration = self.token_manager.with_fresh_access_token(
            coach_id,
            lambda credentials: self.adapter_factory(credentials).watch_events(
                credentials.calendar_id,
                channel_id=channel_id,
                token=token,
                callback_url=callback_url,
                ttl_seconds=settings.CALENDAR_WEBHOOK_CHANNEL_TTL_SECONDS,
            ),
        )

        channel = WebhookChannel.objects.create(
            channel_id=registration.channel_id,
            coach_id=coach_id,
            resource_id=registration.resource_id,
            expires_at=registration.expires_at,
            token=token,
            callback_url=callback_url,
        )
        logger.info(
            "Webhook channel %s registered for coach %s, expires at %s",
            channel.channel_id,
            coach_id,
            channel.expires_at,
        )
        return channel

    def renew_expiring_channels(
        self, lookahead: datetime.timedelta | None = None
    ) -> tuple[int, int]:
        if lookahead is None:
            lookahead = datetime.timedelta(hours=settings.CALENDAR_WEBHOOK_RENEWAL_LOOKAHEAD_HOURS)

        coach_ids = list(
            CalendarIntegration.objects.needing_webhook_channel(lookahead)
            .order_by("coach_id")
            .values_list("coach_id", flat=True)
        )
        renewed = failed = 0
        for coach_id in coach_ids:
            try:
                self.register_channel(coach_id)
            except CalendarIntegrationError:
                logger.exception("Could not renew webhook channel of coach %s", coach_id)
                failed += 1
            else:
                renewed += 1
        return renewed, failed

    def _get_notified_channel(
        self, channel_id: str, resource_id: str, resource_state: str, token: str | None
    ) -> WebhookChannel:
        channel = WebhookChannel.objects.filter(channel_id=channel_id).first()
        if channel is None:
            raise WebhookIgnoredError(f"Unknown channel {channel_id}")
        if channel.is_expired:
            raise WebhookIgnoredError(f"Channel {channel_id} expired at {channel.expires_at}")
        if channel.resource_id != resource_id:
            raise WebhookIgnoredError(f"Resource id mismatch on channel {channel_id}")
        if not secrets.compare_digest(channel.token.encode(), (token or "").encode()):
            raise WebhookIgnoredError(f"Token mismatch on channel {channel_id}")
        if resource_state == GoogleResourceState.SYNC:
            raise WebhookIgnoredError(f"Sync handshake on channel {channel_id}")
        return channel

    def on_notification(
        self, channel_id: str, resource_id: str, resource_state: str, token: str | None
    ) -> bool:
        """
        Enqueue a sync for the coach behind a valid change notification.
        Returns False for notifications that are acknowledged but ignored.
        """
        from calendar_integration.tasks import sync_coach_calendar_task

        try:
            channel = self._get_notified_channel(channel_id, resource_id, resource_state, token)
        except WebhookIgnoredError as e:
            logger.info("Ignoring calendar notification: %s", e)
            return False

        sync_coach_calendar_task.delay(channel.coach_id)  # type: ignore
        return True

    def teardown(self, coach_id: int) -> int:
        channels = list(WebhookChannel.objects.filter(coach_id=coach_id))
        for channel in channels:
            try:
                self.token_manager.with_fresh_access_token(
                    coach_id,
                    lambda credentials, channel=channel: self.adapter_factory(
                        credentials
                    ).stop_channel(channel.channel_id, channel.resource_id),
                )
            except ProviderNotFoundError:
                logger.info("Webhook channel %s was already stopped", channel.channel_id)
            except CalendarIntegrationError as e:
                # Google drops the channel on its own once it expires
                logger.warning("Could not stop webhook channel %s: %s", channel.channel_id, e)

        WebhookChannel.objects.filter(pk__in=[channel.pk for channel in channels]).delete()
        return len(channels)
