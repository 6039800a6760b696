import datetime
from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.utils import timezone

import pytest
from model_bakery import baker
from rest_framework.test import APIClient


DEFAULT_TEST_USER_PASSWORD = "test-password-123"  # noqa: S105


@pytest.fixture(autouse=True)
def redis_locks():
    """Replace the Redis connection behind `common.redis.redis_lock` with a mock."""
    with patch("common.redis.redis_connection") as mock_connection:
        lock = MagicMock()
        lock.acquire.return_value = True
        mock_connection.lock.return_value = lock
        yield mock_connection


@pytest.fixture(autouse=True)
def clear_cache():
    """Cached access tokens must not leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user_password():
    return DEFAULT_TEST_USER_PASSWORD


@pytest.fixture
def user(db, user_password):
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(
        username="coach@example.com",
        email="coach@example.com",
        password=user_password,
    )


@pytest.fixture
def coach(user):
    """Create a coach in a fixed timezone."""
    from bookings.models import Coach

    return baker.make(
        Coach,
        user=user,
        display_name="Pat Coach",
        timezone="America/New_York",
        lesson_duration_minutes=60,
    )


@pytest.fixture
def integration(coach):
    """Create an enabled Google Calendar integration for the coach."""
    from calendar_integration.models import CalendarIntegration

    return baker.make(
        CalendarIntegration,
        coach=coach,
        refresh_token="stored-refresh-token",  # noqa: S106
        is_enabled=True,
        sync_cursor="cursor-1",
    )


@pytest.fixture
def cached_access_token(integration):
    """Put a valid access token in the cache so no refresh is attempted."""
    from calendar_integration.constants import ACCESS_TOKEN_CACHE_KEY

    cache.set(ACCESS_TOKEN_CACHE_KEY.format(coach_id=integration.coach_id), "cached-token", 3600)
    return "cached-token"


@pytest.fixture
def booking(coach):
    """Create a confirmed one hour booking tomorrow at 10:00 in the coach's timezone."""
    from bookings.models import Booking

    tomorrow = timezone.now().astimezone(coach.tzinfo).date() + datetime.timedelta(days=1)
    start = datetime.datetime.combine(tomorrow, datetime.time(10), tzinfo=coach.tzinfo)
    return baker.make(
        Booking,
        coach=coach,
        student_name="Sam Student",
        student_email="sam@example.com",
        location="Range 3",
        start_time=start,
        end_time=start + datetime.timedelta(hours=1),
    )


@pytest.fixture
def auth_client(user, user_password):
    client = APIClient()
    client.login(username=user.username, password=user_password)
    return client


@pytest.fixture
def anonymous_client():
    client = APIClient()
    return client


@pytest.fixture
def di_container():
    """Fixture to create a DI container."""
    from di_core.containers import container

    return container
