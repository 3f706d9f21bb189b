"""
Module: commands
Purpose: Action-name dispatch for the UI shell.

One table, built once, maps each action to a handler. A handler takes the
JSON payload and returns a dict with a "success" flag. Known failures are
converted to {"success": False, "error": ..., "error_type": ...}; anything
else propagates.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import ValidationError

from calq.api.models import (
    EmailSettingsRequest,
    FetchEventsRequest,
    GoogleCredentialsRequest,
    ManualCalendarRequest,
    ManualCalendarsRequest,
    RemoveManualCalendarRequest,
    SelectedCalendarsRequest,
    ViewRequest,
)
from calq.calendar.categorizer import get_categories
from calq.calendar.client import CalendarFetchError
from calq.calendar.fetch import CalendarFetcher
from calq.calendar.models import CalendarEvent, DateWindow
from calq.calendar.oauth import (
    AuthenticationRequiredError,
    ConfigurationMissingError,
    GoogleOAuthService,
)
from calq.calendar.views import agenda_range, describe_event, group_agenda, sort_events, view_range
from calq.digest.delivery import DigestDelivery, MailSendError
from calq.digest.scheduler import DigestScheduler, InvalidTriggerTimeError, parse_trigger_time
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter
from calq.storage.app_settings import AppSettingsStore, DuplicateCalendarError
from calq.storage.models import (
    CalendarSelection,
    ManualCalendarEntry,
    ReminderConfig,
    SmtpSettings,
)

logger = get_logger(__name__)

Handler = Callable[[Any], dict[str, Any]]

# Most specific first: several of these subclass ValueError
ERROR_TYPES: tuple[tuple[type[Exception], str], ...] = (
    (ConfigurationMissingError, "configuration_missing"),
    (AuthenticationRequiredError, "authentication_required"),
    (CalendarFetchError, "fetch_failed"),
    (MailSendError, "mail_send_failed"),
    (InvalidTriggerTimeError, "invalid_trigger_time"),
    (DuplicateCalendarError, "duplicate_calendar"),
    (ValidationError, "invalid_request"),
    (ValueError, "invalid_request"),
)


class UnknownCommandError(Exception):
    """Raised for an action name with no handler"""

    def __init__(self, action: str):
        super().__init__(f"Unknown command: {action}")
        self.action = action


def _validation_message(exc: ValidationError) -> str:
    """First error only; a validator's own ValueError text is passed through as is."""
    error = exc.errors()[0]
    if error["type"] == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error["msg"]


def error_result(exc: Exception) -> dict[str, Any] | None:
    """Failure dict for a known error type, None for anything else."""
    for exc_type, kind in ERROR_TYPES:
        if isinstance(exc, exc_type):
            if isinstance(exc, ValidationError):
                message = _validation_message(exc)
            else:
                message = str(exc)
            return {"success": False, "error": message, "error_type": kind}
    return None


def _entries_to_dicts(entries: list[ManualCalendarEntry]) -> list[dict[str, str]]:
    return [{"id": entry.id, "name": entry.display_name} for entry in entries]


class CommandDispatcher:
    def __init__(
        self,
        settings: AppSettingsStore,
        oauth: GoogleOAuthService,
        fetcher: CalendarFetcher,
        scheduler: DigestScheduler,
        delivery_factory: Callable[[SmtpSettings], DigestDelivery] = DigestDelivery,
    ):
        self.settings = settings
        self.oauth = oauth
        self.fetcher = fetcher
        self.scheduler = scheduler
        self.delivery_factory = delivery_factory

        self.handlers: dict[str, Handler] = {
            "check-credentials": self.check_credentials,
            "save-google-credentials": self.save_google_credentials,
            "check-auth": self.check_auth,
            "start-google-auth": self.start_google_auth,
            "disconnect-google": self.disconnect_google,
            "fetch-events": self.fetch_events,
            "get-calendar-list": self.get_calendar_list,
            "get-selected-calendars": self.get_selected_calendars,
            "save-selected-calendars": self.save_selected_calendars,
            "get-manual-calendars": self.get_manual_calendars,
            "save-manual-calendars": self.save_manual_calendars,
            "add-manual-calendar": self.add_manual_calendar,
            "remove-manual-calendar": self.remove_manual_calendar,
            "get-email-settings": self.get_email_settings,
            "save-email-settings": self.save_email_settings,
            "test-email": self.test_email,
            "get-categories": self.get_categories,
            "get-view": self.get_view,
            "get-agenda": self.get_agenda,
        }

    @property
    def actions(self) -> list[str]:
        return sorted(self.handlers)

    def dispatch(self, action: str, payload: Any = None) -> dict[str, Any]:
        """
        Run one command

        Raises:
            UnknownCommandError: If action has no handler
        """
        handler = self.handlers.get(action)
        if handler is None:
            raise UnknownCommandError(action)

        counter(f"command.{action}")
        try:
            return handler(payload)
        except Exception as e:
            result = error_result(e)
            if result is None:
                raise
            logger.info("Command %s failed (%s): %s", action, result["error_type"], result["error"])
            return result

    # ------------------------------------------------------------------
    # Google account
    # ------------------------------------------------------------------

    def check_credentials(self, payload: Any = None) -> dict[str, Any]:
        provider = self.settings.get_provider_credentials()
        return {
            "success": True,
            "hasCredentials": self.oauth.is_configured(),
            "clientId": provider.client_id if provider else "",
        }

    def save_google_credentials(self, payload: Any) -> dict[str, Any]:
        request = GoogleCredentialsRequest.model_validate(payload or {})
        self.settings.save_provider_credentials(request.client_id, request.client_secret)
        return {"success": True}

    def check_auth(self, payload: Any = None) -> dict[str, Any]:
        return {"success": True, "isAuthenticated": self.oauth.is_authenticated()}

    def start_google_auth(self, payload: Any = None) -> dict[str, Any]:
        """Blocks until the browser redirect reaches the loopback port."""
        self.oauth.run_local_authorization()
        return {"success": True}

    def disconnect_google(self, payload: Any = None) -> dict[str, Any]:
        self.oauth.disconnect()
        return {"success": True}

    # ------------------------------------------------------------------
    # Events and calendars
    # ------------------------------------------------------------------

    def _fetch(self, window: DateWindow) -> list[CalendarEvent]:
        return self.fetcher.fetch_events(
            window,
            selection=self.settings.get_selection(),
            manual_calendars=self.settings.get_manual_calendars(),
        )

    def fetch_events(self, payload: Any) -> dict[str, Any]:
        request = FetchEventsRequest.model_validate(payload or {})
        window = DateWindow(start=request.start_date, end=request.end_date)
        events = self._fetch(window)
        return {"success": True, "events": [event.to_dict() for event in events]}

    def get_calendar_list(self, payload: Any = None) -> dict[str, Any]:
        calendars = self.fetcher.list_calendars()
        selection = self.settings.get_selection()
        return {
            "success": True,
            "calendars": [
                {**calendar.to_dict(), "selected": selection.includes(calendar.id)}
                for calendar in calendars
            ],
        }

    def get_selected_calendars(self, payload: Any = None) -> dict[str, Any]:
        selection = self.settings.get_selection()
        return {
            "success": True,
            "mode": selection.mode.value,
            "calendarIds": sorted(selection.calendar_ids),
        }

    def save_selected_calendars(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, list):
            payload = {"calendarIds": payload}
        request = SelectedCalendarsRequest.model_validate(payload or {})

        if request.mode is None:
            selection = CalendarSelection.from_ids(request.calendar_ids)
        else:
            selection = CalendarSelection(
                mode=request.mode, calendar_ids=frozenset(request.calendar_ids)
            )
        self.settings.save_selection(selection)
        return {
            "success": True,
            "mode": selection.mode.value,
            "calendarIds": sorted(selection.calendar_ids),
        }

    def get_manual_calendars(self, payload: Any = None) -> dict[str, Any]:
        return {
            "success": True,
            "calendars": _entries_to_dicts(self.settings.get_manual_calendars()),
        }

    def save_manual_calendars(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, list):
            payload = {"calendars": payload}
        request = ManualCalendarsRequest.model_validate(payload or {})
        stored = self.settings.save_manual_calendars([c.to_entry() for c in request.calendars])
        return {"success": True, "calendars": _entries_to_dicts(stored)}

    def add_manual_calendar(self, payload: Any) -> dict[str, Any]:
        request = ManualCalendarRequest.model_validate(payload or {})
        stored = self.settings.add_manual_calendar(request.to_entry())
        return {"success": True, "calendars": _entries_to_dicts(stored)}

    def remove_manual_calendar(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, str):
            payload = {"id": payload}
        request = RemoveManualCalendarRequest.model_validate(payload or {})
        stored = self.settings.remove_manual_calendar(request.id)
        return {"success": True, "calendars": _entries_to_dicts(stored)}

    # ------------------------------------------------------------------
    # Email reminders
    # ------------------------------------------------------------------

    def get_email_settings(self, payload: Any = None) -> dict[str, Any]:
        reminders = self.settings.get_reminder_config()
        return {
            "success": True,
            "remindersEnabled": reminders.enabled,
            "recipientEmail": reminders.recipient_email,
            "smtpHost": reminders.smtp.host,
            "smtpPort": reminders.smtp.port,
            "smtpUser": reminders.smtp.user,
            "smtpPassSet": bool(reminders.smtp.password),
            "morningReminderTime": reminders.morning_time,
            "eveningReminderTime": reminders.evening_time,
            "armed": self.scheduler.is_armed,
        }

    def save_email_settings(self, payload: Any) -> dict[str, Any]:
        """
        Side Effects:
            - Writes reminder settings to the encrypted store
            - Re-arms (or disarms) the digest jobs
        """
        request = EmailSettingsRequest.model_validate(payload or {})
        current = self.settings.get_reminder_config()
        morning = "%02d:%02d" % parse_trigger_time(request.morning_reminder_time)
        evening = "%02d:%02d" % parse_trigger_time(request.evening_reminder_time)

        reminders = ReminderConfig(
            enabled=request.reminders_enabled,
            morning_time=morning,
            evening_time=evening,
            recipient_email=request.recipient_email,
            smtp=SmtpSettings(
                host=request.smtp_host,
                port=request.smtp_port,
                user=request.smtp_user,
                password=request.smtp_pass or current.smtp.password,
            ),
        )
        self.settings.save_reminder_config(reminders)
        armed = self.scheduler.arm(reminders)
        return {"success": True, "armed": armed}

    def test_email(self, payload: Any = None) -> dict[str, Any]:
        reminders = self.settings.get_reminder_config()
        if not reminders.mail_complete:
            return {
                "success": False,
                "error": "Email settings incomplete",
                "error_type": "mail_incomplete",
            }

        self.delivery_factory(reminders.smtp).send_test_email(reminders.recipient_email)
        return {"success": True}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_categories(self, payload: Any = None) -> dict[str, Any]:
        return {"success": True, "categories": get_categories()}

    def get_view(self, payload: Any) -> dict[str, Any]:
        request = ViewRequest.model_validate(payload or {})
        window = view_range(request.view, request.day or date.today())
        events = sort_events(self._fetch(window))

        result: dict[str, Any] = {
            "success": True,
            "view": request.view,
            "start": window.start_iso(),
            "end": window.end_iso(),
            "events": [
                {**event.to_dict(), "details": describe_event(event)} for event in events
            ],
        }
        if request.view == "agenda":
            result["months"] = group_agenda(events)
        return result

    def get_agenda(self, payload: Any = None) -> dict[str, Any]:
        window = agenda_range()
        events = self._fetch(window)
        return {"success": True, "months": group_agenda(events)}
