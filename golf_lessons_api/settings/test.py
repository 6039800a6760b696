from .base import *


SECRET_KEY = "test"  # nosec

SALT_KEY = "123467890asdfghjkl"

DATABASES = {
    "default": config(
        "DATABASE_URL", cast=db_url, default=f"sqlite:///{base_dir_join('test_db.sqlite3')}"
    ),
}

STATIC_ROOT = base_dir_join("staticfiles")
STATIC_URL = "/static/"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Speed up password hashing
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Celery
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

GOOGLE_CLIENT_ID = "test-client-id"
GOOGLE_CLIENT_SECRET = "test-client-secret"  # noqa: S105
GOOGLE_REDIRECT_URI = "https://test-golf.example.com/integrations/calendar/callback/"

CALENDAR_WEBHOOK_BASE_URL = "https://test-golf.example.com"

# No backoff sleeps and no Redis buckets in tests
CALENDAR_PROVIDER_RETRY_WAIT_MULTIPLIER = 0
CALENDAR_PROVIDER_RETRY_MAX_WAIT_SECONDS = 0
CALENDAR_PROVIDER_RATE_LIMIT_ENABLED = False
