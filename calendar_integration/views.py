from typing import Annotated

from django.conf import settings
from django.http import HttpResponseRedirect

from dependency_injector.wiring import Provide, inject
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import APIException, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet, ViewSet

from bookings.models import Coach
from calendar_integration.exceptions import (
    CalendarAuthError,
    CalendarProviderError,
    InvalidOAuthStateError,
    SyncInProgressError,
)
from calendar_integration.models import CalendarIntegration
from calendar_integration.serializers import (
    AvailableTimesQuerySerializer,
    AvailableTimesSerializer,
    CalendarIntegrationStatusSerializer,
    OAuthCallbackQuerySerializer,
    SyncResultSerializer,
)
from calendar_integration.services.availability_resolver import AvailabilityResolver
from calendar_integration.services.sync_engine import SyncEngine
from calendar_integration.services.token_manager import TokenManager
from calendar_integration.services.webhook_channel_manager import WebhookChannelManager
from calendar_integration.tasks import register_webhook_channel_task, sync_coach_calendar_task


class SyncAlreadyRunningError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A calendar sync is already running, try again shortly."
    default_code = "sync_in_progress"


class CalendarProviderUnavailableError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "The calendar provider is unavailable, try again later."
    default_code = "calendar_provider_unavailable"


class CalendarIntegrationViewSet(ViewSet):
    """
    ViewSet for connecting, syncing and disconnecting the requesting coach's calendar.
    """

    permission_classes = (IsAuthenticated,)

    def _get_coach(self, request) -> Coach:
        try:
            return request.user.coach
        except Coach.DoesNotExist as e:
            raise PermissionDenied("Only coaches can manage a calendar integration.") from e

    @extend_schema(
        summary="Calendar integration status",
        responses={200: CalendarIntegrationStatusSerializer},
    )
    def list(self, request, *args, **kwargs):
        coach = self._get_coach(request)
        integration = CalendarIntegration.objects.filter(coach=coach).first()
        if integration is None:
            integration = CalendarIntegration(coach=coach)
        return Response(CalendarIntegrationStatusSerializer(integration).data)

    @extend_schema(
        summary="Start calendar authorization",
        request=None,
        responses={302: OpenApiResponse(description="Redirect to the provider consent screen")},
    )
    @action(
        methods=["POST"],
        detail=False,
        url_path="authorize",
        url_name="authorize",
    )
    @inject
    def authorize(
        self,
        request,
        token_manager: Annotated[TokenManager, Provide["token_manager"]],
    ):
        coach = self._get_coach(request)
        return HttpResponseRedirect(token_manager.get_authorization_url(coach.pk))

    @extend_schema(
        summary="Calendar authorization callback",
        parameters=[
            OpenApiParameter(
                name="code",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Authorization code issued by the provider",
            ),
            OpenApiParameter(
                name="state",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Signed state created by the authorize endpoint",
                required=True,
            ),
        ],
        responses={302: OpenApiResponse(description="Redirect to the coach profile")},
    )
    @action(
        methods=["GET"],
        detail=False,
        url_path="callback",
        url_name="callback",
        permission_classes=(AllowAny,),
    )
    @inject
    def callback(
        self,
        request,
        token_manager: Annotated[TokenManager, Provide["token_manager"]],
    ):
        """
        The provider redirects the coach's browser here. The signed state identifies the
        coach, so no session is required.
        """
        query = OAuthCallbackQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            coach_id = token_manager.parse_state(query.validated_data["state"])
            if not Coach.objects.filter(pk=coach_id).exists():
                raise InvalidOAuthStateError()
            token_manager.connect(coach_id, query.validated_data["code"])
        except CalendarAuthError as e:
            raise ValidationError({"non_field_errors": [str(e)]}) from e
        except CalendarProviderError as e:
            raise CalendarProviderUnavailableError() from e

        register_webhook_channel_task.delay(coach_id)  # type: ignore
        sync_coach_calendar_task.delay(coach_id)  # type: ignore
        return HttpResponseRedirect(settings.CALENDAR_CONNECT_SUCCESS_URL)

    @extend_schema(
        summary="Disconnect calendar",
        request=None,
        responses={200: CalendarIntegrationStatusSerializer, 204: None},
    )
    @action(
        methods=["POST"],
        detail=False,
        url_path="disconnect",
        url_name="disconnect",
    )
    @inject
    def disconnect(
        self,
        request,
        token_manager: Annotated[TokenManager, Provide["token_manager"]],
        webhook_channel_manager: Annotated[
            WebhookChannelManager, Provide["webhook_channel_manager"]
        ],
    ):
        """
        Stop push channels and disable the integration. Events already mirrored to the
        coach's calendar are left in place.
        """
        coach = self._get_coach(request)
        webhook_channel_manager.teardown(coach.pk)
        integration = token_manager.disconnect(coach.pk)
        if integration is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(CalendarIntegrationStatusSerializer(integration).data)

    @extend_schema(
        summary="Sync calendar now",
        request=None,
        responses={200: SyncResultSerializer},
    )
    @action(
        methods=["POST"],
        detail=False,
        url_path="sync",
        url_name="sync",
    )
    @inject
    def sync(
        self,
        request,
        sync_engine: Annotated[SyncEngine, Provide["sync_engine"]],
    ):
        coach = self._get_coach(request)
        try:
            result = sync_engine.sync_incremental(coach.pk)
        except SyncInProgressError as e:
            raise SyncAlreadyRunningError() from e
        except CalendarAuthError as e:
            raise ValidationError({"non_field_errors": [str(e)]}) from e
        except CalendarProviderError as e:
            raise CalendarProviderUnavailableError() from e
        return Response(SyncResultSerializer(result).data)


class CoachAvailabilityViewSet(GenericViewSet):
    """
    Public availability of coaches.
    """

    permission_classes = (AllowAny,)
    queryset = Coach.objects.all()
    serializer_class = AvailableTimesSerializer

    @extend_schema(
        summary="Available lesson times",
        description="Start times of the coach's free lesson slots on a date, in the coach's timezone.",
        parameters=[
            OpenApiParameter(
                name="date",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Date in ISO format (YYYY-MM-DD)",
                required=True,
            ),
        ],
        responses={200: AvailableTimesSerializer},
    )
    @action(
        methods=["GET"],
        detail=True,
        url_path="available-times",
        url_name="available-times",
    )
    @inject
    def available_times(
        self,
        request,
        pk,
        availability_resolver: Annotated[AvailabilityResolver, Provide["availability_resolver"]],
    ):
        coach = self.get_object()
        query = AvailableTimesQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        date = query.validated_data["date"]

        slots = availability_resolver.compute_available_slots(coach.pk, date)
        serializer = AvailableTimesSerializer(
            {
                "coach_id": coach.pk,
                "date": date,
                "timezone": coach.timezone,
                "slots": [slot.isoformat() for slot in slots],
            }
        )
        return Response(serializer.data)
