import datetime
from unittest.mock import Mock, patch

from django.utils import timezone

import pytest
from model_bakery import baker

from calendar_integration.exceptions import (
    IntegrationNotConnectedError,
    ProviderNotFoundError,
    TransientProviderError,
)
from calendar_integration.models import WebhookChannel
from calendar_integration.services.dataclasses import ChannelRegistration
from calendar_integration.services.token_manager import TokenManager
from calendar_integration.services.webhook_channel_manager import WebhookChannelManager


@pytest.fixture
def mock_adapter():
    adapter = Mock()
    adapter.watch_events.side_effect = lambda calendar_id, channel_id, **kwargs: (
        ChannelRegistration(
            channel_id=channel_id,
            resource_id="resource-1",
            expires_at=timezone.now() + datetime.timedelta(days=7),
        )
    )
    return adapter


@pytest.fixture
def manager(mock_adapter):
    return WebhookChannelManager(
        token_manager=TokenManager(),
        adapter_factory=Mock(return_value=mock_adapter),
    )


@pytest.fixture
def channel(integration):
    """An active channel of the coach."""
    return baker.make(
        WebhookChannel,
        coach=integration.coach,
        channel_id="channel-1",
        resource_id="resource-1",
        token="channel-token",  # noqa: S106
        expires_at=timezone.now() + datetime.timedelta(days=3),
        callback_url="https://test-golf.example.com/integrations/calendar/webhook/",
    )


def test_callback_url():
    assert (
        WebhookChannelManager.callback_url()
        == "https://test-golf.example.com/integrations/calendar/webhook/"
    )


class TestRegisterChannel:
    def test_registers_channel(self, manager, mock_adapter, integration, cached_access_token):
        channel = manager.register_channel(integration.coach_id)

        _, kwargs = mock_adapter.watch_events.call_args
        assert kwargs["channel_id"] == channel.channel_id
        assert kwargs["token"] == channel.token
        assert kwargs["callback_url"] == WebhookChannelManager.callback_url()
        assert channel.resource_id == "resource-1"
        assert WebhookChannel.objects.filter(coach=integration.coach).count() == 1

    def test_replaces_existing_channels(
        self, manager, mock_adapter, channel, cached_access_token
    ):
        new_channel = manager.register_channel(channel.coach_id)

        mock_adapter.stop_channel.assert_called_once_with("channel-1", "resource-1")
        assert list(WebhookChannel.objects.values_list("channel_id", flat=True)) == [
            new_channel.channel_id
        ]

    def test_requires_connected_calendar(self, manager, coach):
        with pytest.raises(IntegrationNotConnectedError):
            manager.register_channel(coach.pk)


class TestRenewExpiringChannels:
    def test_renews_only_expiring_channels(
        self, manager, mock_adapter, channel, cached_access_token
    ):
        channel.expires_at = timezone.now() + datetime.timedelta(hours=2)
        channel.save()

        renewed, failed = manager.renew_expiring_channels(datetime.timedelta(hours=24))

        assert (renewed, failed) == (1, 0)
        assert not WebhookChannel.objects.filter(channel_id="channel-1").exists()

    def test_channels_far_from_expiry_are_kept(self, manager, mock_adapter, channel):
        renewed, failed = manager.renew_expiring_channels(datetime.timedelta(hours=24))

        assert (renewed, failed) == (0, 0)
        mock_adapter.watch_events.assert_not_called()

    def test_failures_are_counted(self, manager, mock_adapter, channel, cached_access_token):
        channel.expires_at = timezone.now() + datetime.timedelta(hours=2)
        channel.save()
        mock_adapter.watch_events.side_effect = TransientProviderError()

        assert manager.renew_expiring_channels(datetime.timedelta(hours=24)) == (0, 1)

    def test_failed_renewal_is_retried_on_next_sweep(
        self, manager, mock_adapter, channel, cached_access_token
    ):
        channel.expires_at = timezone.now() + datetime.timedelta(hours=2)
        channel.save()
        register = mock_adapter.watch_events.side_effect
        mock_adapter.watch_events.side_effect = TransientProviderError()

        assert manager.renew_expiring_channels() == (0, 1)
        assert not WebhookChannel.objects.exists()

        mock_adapter.watch_events.side_effect = register
        assert manager.renew_expiring_channels() == (1, 0)
        assert WebhookChannel.objects.filter(coach=channel.coach).active().count() == 1

    def test_connected_coach_without_channel_gets_one(
        self, manager, mock_adapter, integration, cached_access_token
    ):
        assert manager.renew_expiring_channels() == (1, 0)
        assert WebhookChannel.objects.filter(coach=integration.coach).exists()

    def test_disabled_integrations_are_skipped(self, manager, mock_adapter, channel):
        channel.coach.calendar_integration.is_enabled = False
        channel.coach.calendar_integration.save()
        channel.expires_at = timezone.now() + datetime.timedelta(hours=2)
        channel.save()

        assert manager.renew_expiring_channels() == (0, 0)
        mock_adapter.watch_events.assert_not_called()


class TestOnNotification:
    @pytest.fixture
    def mock_sync_task(self):
        with patch("calendar_integration.tasks.sync_coach_calendar_task") as mock_task:
            yield mock_task

    def test_valid_notification_enqueues_sync(self, manager, channel, mock_sync_task):
        assert manager.on_notification("channel-1", "resource-1", "exists", "channel-token")

        mock_sync_task.delay.assert_called_once_with(channel.coach_id)

    @pytest.mark.parametrize(
        ("channel_id", "resource_id", "resource_state", "token"),
        [
            ("unknown", "resource-1", "exists", "channel-token"),
            ("channel-1", "other-resource", "exists", "channel-token"),
            ("channel-1", "resource-1", "exists", "wrong-token"),
            ("channel-1", "resource-1", "exists", None),
            ("channel-1", "resource-1", "exists", "tökën-ñ"),
            ("channel-1", "resource-1", "sync", "channel-token"),
        ],
    )
    def test_ignored_notifications(
        self, manager, channel, mock_sync_task, channel_id, resource_id, resource_state, token
    ):
        assert not manager.on_notification(channel_id, resource_id, resource_state, token)

        mock_sync_task.delay.assert_not_called()

    def test_expired_channel_is_ignored(self, manager, channel, mock_sync_task):
        channel.expires_at = timezone.now() - datetime.timedelta(minutes=1)
        channel.save()

        assert not manager.on_notification("channel-1", "resource-1", "exists", "channel-token")

        mock_sync_task.delay.assert_not_called()


class TestTeardown:
    def test_stops_and_deletes_channels(self, manager, mock_adapter, channel, cached_access_token):
        assert manager.teardown(channel.coach_id) == 1

        mock_adapter.stop_channel.assert_called_once_with("channel-1", "resource-1")
        assert not WebhookChannel.objects.exists()

    def test_provider_errors_do_not_block_teardown(
        self, manager, mock_adapter, channel, cached_access_token
    ):
        mock_adapter.stop_channel.side_effect = ProviderNotFoundError()

        assert manager.teardown(channel.coach_id) == 1
        assert not WebhookChannel.objects.exists()

    def test_disconnected_coach_channels_are_dropped(self, manager, mock_adapter, channel):
        channel.coach.calendar_integration.is_enabled = False
        channel.coach.calendar_integration.save()

        assert manager.teardown(channel.coach_id) == 1
        mock_adapter.stop_channel.assert_not_called()
        assert not WebhookChannel.objects.exists()
