import contextlib
import datetime
import logging
from collections.abc import Callable, Iterator
from typing import TypeVar

from django.conf import settings
from django.core import signing
from django.core.cache import cache
from django.db import transaction

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import InvalidGrantError as OAuthInvalidGrantError
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from calendar_integration.constants import (
    ACCESS_TOKEN_CACHE_KEY,
    ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS,
    OAUTH_STATE_SALT,
    CalendarProvider,
    CalendarSyncState,
)
from calendar_integration.exceptions import (
    AccessTokenRejectedError,
    IntegrationNotConnectedError,
    InvalidGrantError,
    InvalidOAuthStateError,
    ProviderRequestError,
    TokenRevokedError,
    TransientProviderError,
)
from calendar_integration.models import BusyInterval, CalendarIntegration
from calendar_integration.services.dataclasses import CoachCredentials, OAuthCredentials
from calendar_integration.services.decorators import with_provider_retry


logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # noqa: S105

T = TypeVar("T")


class TokenManager:
    """
    OAuth credential lifecycle of each coach's calendar integration.

    The refresh token lives only in `CalendarIntegration.refresh_token` (encrypted at rest).
    Access tokens are kept in the cache until shortly before they expire and are the only
    secret handed to calendar adapters.
    """

    def _build_flow(self) -> Flow:
        flow = Flow.from_client_config(
            {
                "web": {
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "auth_uri": GOOGLE_AUTH_URI,
                    "token_uri": GOOGLE_TOKEN_URI,
                    "redirect_uris": [settings.GOOGLE_REDIRECT_URI],
                }
            },
            scopes=settings.GOOGLE_CALENDAR_SCOPES,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
        )
        # the URL and the code exchange happen on different requests, no PKCE verifier survives
        flow.autogenerate_code_verifier = False
        return flow

    def get_authorization_url(self, coach_id: int) -> str:
        authorization_url, _state = self._build_flow().authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
            state=signing.dumps({"coach_id": coach_id}, salt=OAUTH_STATE_SALT),
        )
        return authorization_url

    def parse_state(self, state: str) -> int:
        try:
            payload = signing.loads(
                state,
                salt=OAUTH_STATE_SALT,
                max_age=settings.CALENDAR_OAUTH_STATE_MAX_AGE_SECONDS,
            )
            return int(payload["coach_id"])
        except (signing.BadSignature, KeyError, TypeError, ValueError) as e:
            raise InvalidOAuthStateError() from e

    def exchange_code(self, code: str) -> OAuthCredentials:
        flow = self._build_flow()
        try:
            flow.fetch_token(code=code)
        except OAuthInvalidGrantError as e:
            raise InvalidGrantError() from e
        except OAuth2Error as e:
            raise ProviderRequestError(f"Authorization code exchange failed: {e.error}") from e
        except requests.RequestException as e:
            raise TransientProviderError("Authorization code exchange failed") from e

        credentials = flow.credentials
        return OAuthCredentials(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=_aware_expiry(credentials.expiry),
        )

    def connect(self, coach_id: int, code: str) -> CalendarIntegration:
        oauth_credentials = self.exchange_code(code)

        with transaction.atomic():
            integration, _created = CalendarIntegration.objects.select_for_update().get_or_create(
                coach_id=coach_id,
                defaults={"provider": CalendarProvider.GOOGLE},
            )
            # Google only sends a refresh token on the first consent, keep the one we have
            refresh_token = oauth_credentials.refresh_token or integration.refresh_token
            if not refresh_token:
                raise InvalidGrantError(
                    "Google did not return a refresh token. Remove the app's access in your "
                    "Google account and connect again."
                )
            integration.refresh_token = refresh_token
            integration.is_enabled = True
            integration.sync_cursor = None
            integration.sync_state = CalendarSyncState.IDLE
            integration.last_sync_error = ""
            integration.save()

        self._cache_access_token(
            coach_id, oauth_credentials.access_token, oauth_credentials.expires_at
        )
        logger.info("Calendar connected for coach %s", coach_id)
        return integration

    def disconnect(self, coach_id: int) -> CalendarIntegration | None:
        with transaction.atomic():
            integration = (
                CalendarIntegration.objects.select_for_update().filter(coach_id=coach_id).first()
            )
            if integration is None:
                return None
            self._disable(integration)
            removed, _ = BusyInterval.objects.for_coach(coach_id).external().delete()

        logger.info(
            "Calendar disconnected for coach %s, %s external busy intervals removed",
            coach_id,
            removed,
        )
        return integration

    def is_connected(self, coach_id: int) -> bool:
        return CalendarIntegration.objects.enabled().filter(coach_id=coach_id).exists()

    @contextlib.contextmanager
    def fresh_credentials(
        self, coach_id: int, force_refresh: bool = False
    ) -> Iterator[CoachCredentials]:
        integration = CalendarIntegration.objects.enabled().filter(coach_id=coach_id).first()
        if integration is None or not integration.refresh_token:
            raise IntegrationNotConnectedError()

        access_token = None if force_refresh else cache.get(self._cache_key(coach_id))
        if access_token is None:
            access_token = self._refresh_access_token(integration)

        yield CoachCredentials(
            access_token=access_token,
            account_id=integration.account_id,
            calendar_id=integration.external_calendar_id,
        )

    def with_fresh_access_token(self, coach_id: int, fn: Callable[[CoachCredentials], T]) -> T:
        """
        Call `fn` with valid credentials for the coach. A cached token the provider turns
        down is dropped and `fn` is called once more with a newly refreshed one.
        """
        try:
            with self.fresh_credentials(coach_id) as credentials:
                return fn(credentials)
        except AccessTokenRejectedError:
            logger.info("Cached access token rejected for coach %s, refreshing", coach_id)
            self._evict_access_token(coach_id)

        with self.fresh_credentials(coach_id, force_refresh=True) as credentials:
            return fn(credentials)

    def _refresh_access_token(self, integration: CalendarIntegration) -> str:
        credentials = Credentials(
            token=None,
            refresh_token=integration.refresh_token,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=settings.GOOGLE_CALENDAR_SCOPES,
        )
        try:
            self._refresh(credentials)
        except RefreshError as e:
            if "invalid_grant" not in str(e):
                raise TransientProviderError("Could not refresh the calendar access token") from e
            logger.warning(
                "Calendar grant revoked for coach %s, disabling integration",
                integration.coach_id,
            )
            self._disable(integration)
            raise TokenRevokedError() from e

        if credentials.refresh_token and credentials.refresh_token != integration.refresh_token:
            integration.refresh_token = credentials.refresh_token
            integration.save(update_fields=["refresh_token", "modified"])

        self._cache_access_token(
            integration.coach_id, credentials.token, _aware_expiry(credentials.expiry)
        )
        return credentials.token

    @staticmethod
    @with_provider_retry
    def _refresh(credentials: Credentials) -> None:
        try:
            credentials.refresh(Request())
        except TransportError as e:
            raise TransientProviderError("Could not reach the token endpoint") from e
        except RefreshError as e:
            if getattr(e, "retryable", False):
                raise TransientProviderError("Token endpoint temporarily unavailable") from e
            raise

    def _disable(self, integration: CalendarIntegration) -> None:
        integration.is_enabled = False
        integration.refresh_token = None
        integration.sync_cursor = None
        integration.sync_state = CalendarSyncState.IDLE
        integration.save(
            update_fields=["is_enabled", "refresh_token", "sync_cursor", "sync_state", "modified"]
        )
        self._evict_access_token(integration.coach_id)

    @staticmethod
    def _cache_key(coach_id: int) -> str:
        return ACCESS_TOKEN_CACHE_KEY.format(coach_id=coach_id)

    def _cache_access_token(
        self, coach_id: int, access_token: str, expires_at: datetime.datetime | None
    ) -> None:
        if expires_at is None:
            timeout = 3600 - ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS
        else:
            remaining = expires_at - datetime.datetime.now(tz=datetime.UTC)
            timeout = int(remaining.total_seconds()) - ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS
        if timeout > 0:
            cache.set(self._cache_key(coach_id), access_token, timeout=timeout)

    def _evict_access_token(self, coach_id: int) -> None:
        cache.delete(self._cache_key(coach_id))


def _aware_expiry(expiry: datetime.datetime | None) -> datetime.datetime | None:
    # google-auth reports expiry as naive UTC
    if expiry is None or expiry.tzinfo is not None:
        return expiry
    return expiry.replace(tzinfo=datetime.UTC)
