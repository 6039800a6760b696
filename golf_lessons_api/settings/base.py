import os

from decouple import Csv, config  # type: ignore
from dj_database_url import parse as db_url


BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def base_dir_join(*args):
    return os.path.join(BASE_DIR, *args)


SITE_ID = 1

DEBUG = True

ADMINS = (("Admin", "foo@example.com"),)

ALLOWED_HOSTS: list[str] = []

DATABASES = {
    "default": config(
        "DATABASE_URL", cast=db_url, default=f"sqlite:///{base_dir_join('db.sqlite3')}"
    ),
}
INTERNAL_INSTALLED_APPS = [
    "di_core",
    "common",
    "bookings",
    "calendar_integration",
]
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "django_guid",
    *INTERNAL_INSTALLED_APPS,
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_guid.middleware.guid_middleware",
]

ROOT_URLCONF = "golf_lessons_api.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [base_dir_join("templates")],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "golf_lessons_api.wsgi.application"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

REDIS_URL = config("REDIS_URL", default="redis://localhost:6379/0")

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": REDIS_URL,
    }
}

# Celery
# Recommended settings for reliability: https://gist.github.com/fjsj/da41321ac96cf28a96235cb20e7236f6
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TASK_ACKS_LATE = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_BROKER_TRANSPORT_OPTIONS = {"confirm_publish": True, "confirm_timeout": 5.0}
CELERY_BROKER_POOL_LIMIT = config("CELERY_BROKER_POOL_LIMIT", cast=int, default=1)
CELERY_BROKER_CONNECTION_TIMEOUT = config(
    "CELERY_BROKER_CONNECTION_TIMEOUT", cast=float, default=30.0
)
CELERY_TASK_ACKS_ON_FAILURE_OR_TIMEOUT = config(
    "CELERY_TASK_ACKS_ON_FAILURE_OR_TIMEOUT", cast=bool, default=True
)
CELERY_TASK_REJECT_ON_WORKER_LOST = config(
    "CELERY_TASK_REJECT_ON_WORKER_LOST", cast=bool, default=False
)
CELERY_WORKER_PREFETCH_MULTIPLIER = config("CELERY_WORKER_PREFETCH_MULTIPLIER", cast=int, default=1)
CELERY_WORKER_MAX_TASKS_PER_CHILD = config(
    "CELERY_WORKER_MAX_TASKS_PER_CHILD", cast=int, default=1000
)

# Sentry
SENTRY_DSN = config("SENTRY_DSN", default="")
COMMIT_SHA = config("RENDER_GIT_COMMIT", default="")

CSRF_COOKIE_SAMESITE = "Lax"
SESSION_COOKIE_SAMESITE = "Lax"

SPECTACULAR_SETTINGS = {
    "TITLE": "Golf Lessons Calendar API",
    "DESCRIPTION": "Calendar synchronization and availability for golf coaches",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "ENUM_ADD_EXPLICIT_BLANK_NULL_CHOICE": False,
}

# django-fernet-encrypted-fields
SALT_KEY = config("SALT_KEY", default="")

# Google Calendar
GOOGLE_CLIENT_ID = config("GOOGLE_CLIENT_ID", default="")
GOOGLE_CLIENT_SECRET = config("GOOGLE_CLIENT_SECRET", default="")
GOOGLE_REDIRECT_URI = config(
    "GOOGLE_REDIRECT_URI", default="http://localhost:8000/integrations/calendar/callback/"
)
GOOGLE_CALENDAR_SCOPES: list[str] = config(
    "GOOGLE_CALENDAR_SCOPES",
    default="https://www.googleapis.com/auth/calendar,https://www.googleapis.com/auth/calendar.events",
    cast=Csv(),
)

# Value stored in the private extended properties of every event we create
PLATFORM_EVENT_MARKER = config("PLATFORM_EVENT_MARKER", default="golf-coach-platform")

CALENDAR_PROVIDER_TIMEOUT_SECONDS = config(
    "CALENDAR_PROVIDER_TIMEOUT_SECONDS", cast=float, default=15.0
)
CALENDAR_PROVIDER_MAX_ATTEMPTS = config("CALENDAR_PROVIDER_MAX_ATTEMPTS", cast=int, default=3)
CALENDAR_PROVIDER_RETRY_WAIT_MULTIPLIER = config(
    "CALENDAR_PROVIDER_RETRY_WAIT_MULTIPLIER", cast=float, default=1.0
)
CALENDAR_PROVIDER_RETRY_MAX_WAIT_SECONDS = config(
    "CALENDAR_PROVIDER_RETRY_MAX_WAIT_SECONDS", cast=float, default=10.0
)
CALENDAR_PROVIDER_RATE_LIMIT_ENABLED = config(
    "CALENDAR_PROVIDER_RATE_LIMIT_ENABLED", cast=bool, default=True
)

CALENDAR_WEBHOOK_BASE_URL = config("CALENDAR_WEBHOOK_BASE_URL", default="https://localhost:8000")
CALENDAR_WEBHOOK_CHANNEL_TTL_SECONDS = config(
    "CALENDAR_WEBHOOK_CHANNEL_TTL_SECONDS", cast=int, default=7 * 24 * 3600
)
CALENDAR_WEBHOOK_RENEWAL_LOOKAHEAD_HOURS = config(
    "CALENDAR_WEBHOOK_RENEWAL_LOOKAHEAD_HOURS", cast=int, default=24
)

CALENDAR_FULL_SYNC_LOOKBACK_DAYS = config("CALENDAR_FULL_SYNC_LOOKBACK_DAYS", cast=int, default=1)
CALENDAR_SYNC_LOCK_TIMEOUT_SECONDS = config(
    "CALENDAR_SYNC_LOCK_TIMEOUT_SECONDS", cast=int, default=120
)
CALENDAR_SYNC_LOCK_WAIT_SECONDS = config("CALENDAR_SYNC_LOCK_WAIT_SECONDS", cast=int, default=60)
CALENDAR_MIRROR_LOCK_TIMEOUT_SECONDS = config(
    "CALENDAR_MIRROR_LOCK_TIMEOUT_SECONDS", cast=int, default=60
)
CALENDAR_OAUTH_STATE_MAX_AGE_SECONDS = config(
    "CALENDAR_OAUTH_STATE_MAX_AGE_SECONDS", cast=int, default=600
)
CALENDAR_CONNECT_SUCCESS_URL = config(
    "CALENDAR_CONNECT_SUCCESS_URL", default="/profile?google_sync=success"
)

DEFAULT_SLOT_TEMPLATE_TIMES: list[str] = config(
    "DEFAULT_SLOT_TEMPLATE_TIMES",
    default="09:00,10:00,11:00,13:00,14:00,15:00,16:00",
    cast=Csv(),
)
DEFAULT_SLOT_DURATION_MINUTES = config("DEFAULT_SLOT_DURATION_MINUTES", cast=int, default=60)

from golf_lessons_api.celerybeat_schedule import CELERYBEAT_SCHEDULE  # noqa: E402


CELERY_BEAT_SCHEDULE = CELERYBEAT_SCHEDULE
