import os

from celery import Celery
from django.apps import apps


os.environ.setdefault("DJANGO_SETTINGS_MODULE", "golf_lessons_api.settings.local")

app = Celery("golf_lessons_api_tasks")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks(lambda: [n.name for n in apps.get_app_configs()])
