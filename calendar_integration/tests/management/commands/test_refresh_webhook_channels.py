"""Tests for the refresh_webhook_channels management command."""

import datetime
from io import StringIO
from unittest.mock import Mock

from django.core.management import call_command
from django.utils import timezone

import pytest
from model_bakery import baker

from calendar_integration.exceptions import TransientProviderError
from calendar_integration.models import WebhookChannel


@pytest.fixture
def mock_webhook_channel_manager(di_container):
    webhook_channel_manager = Mock()
    webhook_channel_manager.register_channel.return_value = Mock(
        expires_at=timezone.now() + datetime.timedelta(days=7)
    )
    with di_container.webhook_channel_manager.override(webhook_channel_manager):
        yield webhook_channel_manager


@pytest.fixture
def expiring_channel(integration):
    return baker.make(
        WebhookChannel,
        coach=integration.coach,
        expires_at=timezone.now() + datetime.timedelta(hours=3),
    )


@pytest.mark.django_db
def test_nothing_to_renew(mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", stdout=out)

    assert "No webhook channels need renewing" in out.getvalue()
    mock_webhook_channel_manager.register_channel.assert_not_called()


def test_renews_expiring_channels(expiring_channel, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", stdout=out)

    output = out.getvalue()
    assert "Found 1 coaches without a webhook channel lasting 24 hours" in output
    assert "Successfully renewed 1 webhook channels" in output
    mock_webhook_channel_manager.register_channel.assert_called_once_with(
        expiring_channel.coach_id
    )


def test_dry_run(expiring_channel, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", dry_run=True, stdout=out)

    output = out.getvalue()
    assert "DRY RUN MODE" in output
    assert expiring_channel.channel_id in output
    mock_webhook_channel_manager.register_channel.assert_not_called()


def test_hours_before_expiry(expiring_channel, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", hours_before_expiry=1, stdout=out)

    assert "No webhook channels need renewing" in out.getvalue()


def test_coach_filter(expiring_channel, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", coach_id=expiring_channel.coach_id + 1, stdout=out)

    assert "No webhook channels need renewing" in out.getvalue()


def test_failures_are_reported(expiring_channel, mock_webhook_channel_manager):
    mock_webhook_channel_manager.register_channel.side_effect = TransientProviderError("HTTP 503")

    out = StringIO()
    call_command("refresh_webhook_channels", stdout=out)

    assert "Failed to renew 1 webhook channels" in out.getvalue()


def test_registers_missing_channels(integration, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", stdout=out)

    assert "Successfully renewed 1 webhook channels" in out.getvalue()
    mock_webhook_channel_manager.register_channel.assert_called_once_with(integration.coach_id)


def test_dry_run_lists_missing_channels(integration, mock_webhook_channel_manager):
    out = StringIO()
    call_command("refresh_webhook_channels", dry_run=True, stdout=out)

    assert "Would register a channel for Pat Coach" in out.getvalue()
    mock_webhook_channel_manager.register_channel.assert_not_called()
