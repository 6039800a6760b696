from common.types import RouteDict

from .views import CalendarIntegrationViewSet, CoachAvailabilityViewSet


routes: list[RouteDict] = [
    {
        "regex": r"integrations/calendar",
        "viewset": CalendarIntegrationViewSet,
        "basename": "CalendarIntegration",
    },
    {
        "regex": r"coaches",
        "viewset": CoachAvailabilityViewSet,
        "basename": "Coaches",
    },
]
