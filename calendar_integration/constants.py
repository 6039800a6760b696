from django.db.models import TextChoices


class CalendarProvider(TextChoices):
    GOOGLE = "google", "Google Calendar"


class CalendarSyncState(TextChoices):
    IDLE = "idle", "Idle"
    SYNCING = "syncing", "Syncing"
    FULL_RESYNC_REQUIRED = "full_resync_required", "Full Resync Required"


class BusyIntervalOrigin(TextChoices):
    PLATFORM_BOOKING = "platform_booking", "Platform Booking"
    EXTERNAL_SYNC = "external_sync", "External Sync"


class SyncResultStatus(TextChoices):
    SYNCED = "synced", "Synced"
    FULL_RESYNC = "full_resync", "Full Resync"
    COALESCED = "coalesced", "Coalesced"
    DISCARDED = "discarded", "Discarded"


class MirrorOperation(TextChoices):
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"


# Google's push notification resource states
class GoogleResourceState(TextChoices):
    SYNC = "sync", "Sync"
    EXISTS = "exists", "Exists"
    NOT_EXISTS = "not_exists", "Not Exists"


GOOGLE_EVENT_STATUS_CANCELLED = "cancelled"
GOOGLE_TRANSPARENCY_TRANSPARENT = "transparent"
GOOGLE_MAX_RESULTS_PER_PAGE = 250

ACCESS_TOKEN_CACHE_KEY = "calendar_integration:access_token:{coach_id}"
# Cached access tokens expire this long before Google says they do
ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS = 60

SYNC_LOCK_KEY = "calendar_integration:sync:{coach_id}"
MIRROR_LOCK_KEY = "calendar_integration:mirror:{booking_id}"

OAUTH_STATE_SALT = "calendar_integration.oauth_state"
