import datetime
from typing import NamedTuple, TypedDict

from rest_framework.viewsets import GenericViewSet, ModelViewSet, ViewSet, ViewSetMixin


class RouteDict(TypedDict):
    """
    A dictionary representing a route with a name and a list of points.
    """

    regex: str
    viewset: type[GenericViewSet] | type[ViewSet] | type[ModelViewSet] | type[ViewSetMixin]
    basename: str


class Interval(NamedTuple):
    """Half-open datetime range `[start, end)`."""

    start: datetime.datetime
    end: datetime.datetime

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end
