"""
Module: fetch
Purpose: Resolve which calendars to query and merge their events.

Per-calendar failures are logged and skipped; the aggregate call still
succeeds with partial results. Output order is unspecified; views sort.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from calq.calendar.client import CalendarFetchError
from calq.calendar.models import CalendarEvent, CalendarInfo, DateWindow
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, log_event, time_block
from calq.storage.models import CalendarSelection, ManualCalendarEntry

logger = get_logger(__name__)


class CalendarProvider(Protocol):
    def list_calendars(self) -> list[CalendarInfo]: ...

    def list_events(self, calendar_id: str, time_min: str, time_max: str) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class CalendarTarget:
    """A calendar that will actually be queried."""

    id: str
    name: str


def resolve_calendars(
    provider_calendars: Iterable[CalendarInfo],
    selection: CalendarSelection,
    manual_calendars: Iterable[ManualCalendarEntry] = (),
) -> list[CalendarTarget]:
    """
    Effective calendar set

    Provider calendars filtered by the selection (all of them unless the
    selection is an explicit subset), then every manual calendar whose id is
    not already present.
    """
    targets = [
        CalendarTarget(id=cal.id, name=cal.name)
        for cal in provider_calendars
        if selection.includes(cal.id)
    ]
    seen = {target.id for target in targets}

    for entry in manual_calendars:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        targets.append(CalendarTarget(id=entry.id, name=entry.display_name))

    return targets


class CalendarFetcher:
    """
    Fetches events across calendars

    provider_factory is called once per operation so each call gets
    freshly refreshed credentials. Authentication errors raised by the
    factory propagate to the caller.
    """

    def __init__(self, provider_factory: Callable[[], CalendarProvider]):
        self.provider_factory = provider_factory

    def list_calendars(self) -> list[CalendarInfo]:
        return self.provider_factory().list_calendars()

    def fetch_events(
        self,
        window: DateWindow,
        selection: CalendarSelection | None = None,
        manual_calendars: Iterable[ManualCalendarEntry] = (),
    ) -> list[CalendarEvent]:
        """
        Events inside window from every effective calendar

        Raises:
            ConfigurationMissingError, AuthenticationRequiredError: From the provider factory
            CalendarFetchError: Only if the calendar list itself cannot be read
        """
        provider = self.provider_factory()
        selection = selection or CalendarSelection()
        targets = resolve_calendars(provider.list_calendars(), selection, manual_calendars)

        time_min, time_max = window.start_iso(), window.end_iso()
        events: list[CalendarEvent] = []
        failed: list[str] = []

        with time_block("calendar.fetch_events.latency"):
            for target in targets:
                try:
                    items = provider.list_events(target.id, time_min, time_max)
                except CalendarFetchError as e:
                    logger.warning("Skipping calendar %s: %s", target.id, e)
                    failed.append(target.id)
                    counter("calendar.fetch.skipped")
                    continue

                for item in items:
                    try:
                        events.append(CalendarEvent.from_api(item, target.id, target.name))
                    except (KeyError, ValueError) as e:
                        logger.warning("Skipping malformed event in %s: %s", target.id, e)
                        counter("calendar.event.malformed")

        log_event(
            "calendar.events_fetched",
            calendars=len(targets),
            failed=len(failed),
            events=len(events),
        )
        return events
