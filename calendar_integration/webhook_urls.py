"""
URL patterns for webhook endpoints.
"""

from django.urls import path

from calendar_integration.webhook_views import GoogleCalendarWebhookView


app_name = "calendar_integration"

urlpatterns = [
    path(
        "integrations/calendar/webhook/",
        GoogleCalendarWebhookView.as_view(),
        name="google_webhook",
    ),
]
