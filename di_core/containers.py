from dependency_injector import containers, providers

from calendar_integration.services.availability_resolver import AvailabilityResolver
from calendar_integration.services.booking_calendar_hooks import BookingCalendarHooks
from calendar_integration.services.busy_interval_store import BusyIntervalStore
from calendar_integration.services.calendar_adapters.google_calendar_adapter import (
    GoogleCalendarAdapter,
)
from calendar_integration.services.event_mirror import EventMirror
from calendar_integration.services.single_flight import SingleFlight
from calendar_integration.services.sync_engine import SyncEngine
from calendar_integration.services.token_manager import TokenManager
from calendar_integration.services.webhook_channel_manager import WebhookChannelManager


class AppContainer(containers.DeclarativeContainer):
    # built per call from one coach's credentials
    calendar_adapter = providers.Factory(GoogleCalendarAdapter)

    sync_single_flight = providers.Singleton(SingleFlight)

    busy_interval_store = providers.Factory(BusyIntervalStore)

    token_manager = providers.Factory(TokenManager)

    event_mirror = providers.Factory(
        EventMirror,
        token_manager=token_manager,
        adapter_factory=calendar_adapter.provider,
        busy_interval_store=busy_interval_store,
    )

    sync_engine = providers.Factory(
        SyncEngine,
        token_manager=token_manager,
        adapter_factory=calendar_adapter.provider,
        busy_interval_store=busy_interval_store,
        single_flight=sync_single_flight,
    )

    webhook_channel_manager = providers.Factory(
        WebhookChannelManager,
        token_manager=token_manager,
        adapter_factory=calendar_adapter.provider,
    )

    availability_resolver = providers.Factory(
        AvailabilityResolver,
        token_manager=token_manager,
        adapter_factory=calendar_adapter.provider,
    )

    booking_calendar_hooks = providers.Factory(
        BookingCalendarHooks,
        event_mirror=event_mirror,
        availability_resolver=availability_resolver,
        token_manager=token_manager,
        busy_interval_store=busy_interval_store,
    )


container: AppContainer | None = None  # set during app startup
