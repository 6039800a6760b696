import logging
from typing import Annotated

from django.http import HttpRequest, HttpResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from dependency_injector.wiring import Provide, inject

from calendar_integration.exceptions import WebhookProcessingFailedError
from calendar_integration.services.webhook_channel_manager import WebhookChannelManager


logger = logging.getLogger(__name__)


def read_channel_headers(request: HttpRequest) -> tuple[str, str, str, str | None]:
    channel_id = request.headers.get("X-Goog-Channel-ID")
    resource_id = request.headers.get("X-Goog-Resource-ID")
    resource_state = request.headers.get("X-Goog-Resource-State")
    if not channel_id or not resource_id or not resource_state:
        raise WebhookProcessingFailedError("Missing X-Goog channel headers")
    return channel_id, resource_id, resource_state, request.headers.get("X-Goog-Channel-Token")


@method_decorator(csrf_exempt, name="dispatch")
class GoogleCalendarWebhookView(View):
    """
    Webhook endpoint for Google Calendar push notifications.

    Google only tells us that something changed on the watched calendar, the headers
    identify the channel. A valid notification enqueues a sync of the coach's calendar.

    Returns:
    - 200: Notification acknowledged (processed or ignored)
    - 400: Required channel headers missing
    """

    @inject
    def post(
        self,
        request: HttpRequest,
        webhook_channel_manager: Annotated[
            WebhookChannelManager, Provide["webhook_channel_manager"]
        ],
    ) -> HttpResponse:
        try:
            channel_id, resource_id, resource_state, token = read_channel_headers(request)
        except WebhookProcessingFailedError as e:
            logger.warning("Rejected Google Calendar webhook: %s", e)
            return HttpResponse(status=400)

        try:
            webhook_channel_manager.on_notification(
                channel_id=channel_id,
                resource_id=resource_id,
                resource_state=resource_state,
                token=token,
            )
        except Exception:
            # Google retries non-2xx responses with backoff and eventually stops the
            # channel; the periodic sync picks up whatever this notification missed.
            logger.exception("Error processing Google Calendar webhook for %s", channel_id)

        return HttpResponse(status=200)
