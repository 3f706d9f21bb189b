"""Authenticated Google Calendar API client

Thin wrapper over the Calendar v3 discovery client. Credentials come from
GoogleOAuthService; every API failure is re-raised as CalendarFetchError so
callers can isolate it per calendar.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from calq import config
from calq.calendar.models import CalendarInfo
from calq.calendar.oauth import GoogleOAuthService
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, time_block

logger = get_logger(__name__)


class CalendarFetchError(Exception):
    """Raised when a calendar API call fails"""

    def __init__(self, message: str, calendar_id: str | None = None):
        super().__init__(message)
        self.calendar_id = calendar_id


class GoogleCalendarClient:
    """
    Read-only Calendar v3 operations

    Provides:
    - Listing the user's calendars
    - Listing single (expanded) event instances in a time range
    """

    def __init__(self, credentials: Credentials, service: Any = None):
        self.credentials = credentials
        self._service = service

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = build(
                "calendar",
                config.CALENDAR_API_VERSION,
                credentials=self.credentials,
                cache_discovery=False,
            )
        return self._service

    def list_calendars(self) -> list[CalendarInfo]:
        """
        All calendars on the user's calendar list

        Raises:
            CalendarFetchError: If the API call fails
        """
        calendars: list[CalendarInfo] = []
        page_token: str | None = None

        try:
            with time_block("calendar.list_calendars.latency"):
                while True:
                    response = self.service.calendarList().list(pageToken=page_token).execute()
                    calendars.extend(CalendarInfo.from_api(item) for item in response.get("items", []))
                    page_token = response.get("nextPageToken")
                    if not page_token:
                        break
        except (HttpError, GoogleAuthError, OSError) as e:
            counter("calendar.list_calendars.error")
            raise CalendarFetchError(f"Failed to list calendars: {e}") from e

        logger.info("Listed %d calendars", len(calendars))
        return calendars

    def list_events(self, calendar_id: str, time_min: str, time_max: str) -> list[dict[str, Any]]:
        """
        Raw event items for one calendar, recurring events expanded

        Args:
            calendar_id: Calendar to query
            time_min: RFC 3339 lower bound
            time_max: RFC 3339 upper bound

        Raises:
            CalendarFetchError: If any page fails
        """
        items: list[dict[str, Any]] = []
        page_token: str | None = None

        try:
            with time_block("calendar.list_events.latency"):
                while True:
                    response = (
                        self.service.events()
                        .list(
                            calendarId=calendar_id,
                            timeMin=time_min,
                            timeMax=time_max,
                            singleEvents=True,
                            orderBy="startTime",
                            maxResults=config.EVENTS_PAGE_SIZE,
                            pageToken=page_token,
                        )
                        .execute()
                    )
                    items.extend(response.get("items", []))
                    page_token = response.get("nextPageToken")
                    if not page_token:
                        break
        except (HttpError, GoogleAuthError, OSError) as e:
            counter("calendar.list_events.error")
            raise CalendarFetchError(
                f"Failed to fetch events for {calendar_id}: {e}", calendar_id=calendar_id
            ) from e

        counter("calendar.events.fetched", len(items))
        return items


def client_factory(oauth_service: GoogleOAuthService) -> Callable[[], GoogleCalendarClient]:
    """
    Factory that builds a client with fresh credentials on every call

    Credential errors (ConfigurationMissingError, AuthenticationRequiredError)
    propagate from the call, not from this function.
    """

    def _build() -> GoogleCalendarClient:
        return GoogleCalendarClient(oauth_service.get_credentials())

    return _build
