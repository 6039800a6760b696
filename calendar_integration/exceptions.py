# Service Layer/Internal Errors
class CalendarIntegrationError(Exception):
    """Base exception for calendar integration errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


# Authentication and credential errors, never retried
class CalendarAuthError(CalendarIntegrationError):
    """Raised when calendar authentication fails"""

    pass


class InvalidGrantError(CalendarAuthError):
    default_message = "Authorization code is invalid, expired or was already used."


class TokenRevokedError(CalendarAuthError):
    default_message = "Calendar access was revoked by the coach. Please reconnect."


class AccessTokenRejectedError(CalendarAuthError):
    default_message = "Calendar provider rejected the access token."


class IntegrationNotConnectedError(CalendarAuthError):
    default_message = "Coach has no enabled calendar integration."


class InvalidOAuthStateError(CalendarAuthError):
    default_message = "OAuth state is invalid or expired."


# Sync errors
class CalendarSyncError(CalendarIntegrationError):
    """Base class for sync errors"""

    pass


class SyncCursorInvalidError(CalendarSyncError):
    default_message = "Sync cursor is no longer valid, a full resync is required."


class SyncInProgressError(CalendarSyncError):
    default_message = "A calendar sync is already running for this coach."


# Calendar Adapters - External API Errors
class CalendarProviderError(CalendarIntegrationError):
    """Base class for calendar provider errors"""

    pass


class TransientProviderError(CalendarProviderError):
    default_message = "Calendar provider is temporarily unavailable."


class ProviderNotFoundError(CalendarProviderError):
    default_message = "Event or channel not found on the calendar provider."


class ProviderConflictError(CalendarProviderError):
    default_message = "Event already exists on the calendar provider."


class ProviderRequestError(CalendarProviderError):
    default_message = "Calendar provider rejected the request."


# Mirroring errors
class MirrorError(CalendarIntegrationError):
    """Base class for booking mirroring errors"""

    pass


class DuplicateMirrorError(MirrorError):
    def __init__(self, booking_id: int, external_event_id: str):
        super().__init__(f"Booking {booking_id} is already mirrored as {external_event_id}")
        self.booking_id = booking_id
        self.external_event_id = external_event_id


# Webhook Errors
class WebhookError(CalendarIntegrationError):
    """Base class for webhook-related errors"""

    pass


class WebhookIgnoredError(WebhookError):
    """Raised when a notification is acknowledged but does not trigger a sync"""

    pass


class WebhookProcessingFailedError(WebhookError):
    """Raised when a webhook request is malformed"""

    pass
