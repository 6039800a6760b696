"""Tests for the sync_calendars management command."""

from io import StringIO
from unittest.mock import Mock

from django.core.management import call_command

import pytest

from calendar_integration.constants import SyncResultStatus
from calendar_integration.exceptions import TokenRevokedError
from calendar_integration.services.dataclasses import SyncResult


@pytest.fixture
def mock_sync_engine(di_container):
    sync_engine = Mock()
    with di_container.sync_engine.override(sync_engine):
        yield sync_engine


@pytest.mark.django_db
def test_no_connected_calendars(mock_sync_engine):
    out = StringIO()
    call_command("sync_calendars", stdout=out)

    assert "No connected calendars to sync" in out.getvalue()
    mock_sync_engine.sync_incremental.assert_not_called()


def test_syncs_connected_calendars(integration, mock_sync_engine):
    mock_sync_engine.sync_incremental.return_value = SyncResult(
        coach_id=integration.coach_id, status=SyncResultStatus.SYNCED, upserted=3
    )

    out = StringIO()
    call_command("sync_calendars", stdout=out)

    output = out.getvalue()
    assert "Pat Coach: synced (3 upserted, 0 removed)" in output
    assert "Synced 1 calendars" in output
    mock_sync_engine.sync_incremental.assert_called_once_with(integration.coach_id)


def test_dry_run(integration, mock_sync_engine):
    out = StringIO()
    call_command("sync_calendars", dry_run=True, stdout=out)

    assert "Would sync Pat Coach" in out.getvalue()
    mock_sync_engine.sync_incremental.assert_not_called()


def test_failures_are_reported(integration, mock_sync_engine):
    mock_sync_engine.sync_incremental.side_effect = TokenRevokedError()

    out = StringIO()
    call_command("sync_calendars", coach_id=integration.coach_id, stdout=out)

    assert "Failed to sync 1 calendars" in out.getvalue()
