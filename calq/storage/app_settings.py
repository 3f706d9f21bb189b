"""Typed access to CalQ settings on top of the encrypted key-value store

Key names match what the desktop shell historically stored, so an exported
store can be read back without migration.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from calq import config
from calq.observability.logging import get_logger
from calq.storage.models import (
    AppSettings,
    CalendarSelection,
    ManualCalendarEntry,
    ProviderCredentials,
    ReminderConfig,
    SmtpSettings,
)
from calq.storage.settings_repository import SettingsRepository

logger = get_logger(__name__)

# Persisted keys
GOOGLE_CLIENT_ID = "google_client_id"
GOOGLE_CLIENT_SECRET = "google_client_secret"
GOOGLE_TOKENS = "google_tokens"
SELECTED_CALENDARS = "selected_calendars"
MANUAL_CALENDARS = "manual_calendars"
RECIPIENT_EMAIL = "recipient_email"
SMTP_HOST = "smtp_host"
SMTP_PORT = "smtp_port"
SMTP_USER = "smtp_user"
SMTP_PASS = "smtp_pass"
REMINDERS_ENABLED = "reminders_enabled"
MORNING_REMINDER_TIME = "morning_reminder_time"
EVENING_REMINDER_TIME = "evening_reminder_time"


class DuplicateCalendarError(ValueError):
    """Raised when a manual calendar with the same id already exists"""


class AppSettingsStore:
    """
    Reads and writes typed settings

    Every getter tolerates an empty store and returns defaults.
    """

    def __init__(self, repository: SettingsRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Provider credentials and tokens
    # ------------------------------------------------------------------

    def get_provider_credentials(self) -> ProviderCredentials | None:
        client_id = self.repository.get(GOOGLE_CLIENT_ID, "")
        client_secret = self.repository.get(GOOGLE_CLIENT_SECRET, "")
        if not client_id or not client_secret:
            return None
        return ProviderCredentials(client_id=client_id, client_secret=client_secret)

    def save_provider_credentials(self, client_id: str, client_secret: str) -> None:
        self.repository.set(GOOGLE_CLIENT_ID, client_id)
        self.repository.set(GOOGLE_CLIENT_SECRET, client_secret)
        logger.info("Saved Google OAuth client credentials")

    def get_tokens(self) -> dict[str, Any] | None:
        tokens = self.repository.get(GOOGLE_TOKENS)
        return tokens or None

    def save_tokens(self, tokens: dict[str, Any]) -> None:
        self.repository.set(GOOGLE_TOKENS, tokens)

    def delete_tokens(self) -> None:
        self.repository.delete(GOOGLE_TOKENS)

    # ------------------------------------------------------------------
    # Calendar selection
    # ------------------------------------------------------------------

    def get_selection(self) -> CalendarSelection:
        return CalendarSelection.from_stored(self.repository.get(SELECTED_CALENDARS))

    def save_selection(self, selection: CalendarSelection) -> None:
        self.repository.set(SELECTED_CALENDARS, selection.to_stored())

    def get_manual_calendars(self) -> list[ManualCalendarEntry]:
        entries: list[ManualCalendarEntry] = []
        seen: set[str] = set()
        for raw in self.repository.get(MANUAL_CALENDARS, []):
            try:
                entry = ManualCalendarEntry.model_validate(raw)
            except ValidationError:
                logger.warning("Ignoring malformed manual calendar entry")
                continue
            if entry.id in seen:
                continue
            seen.add(entry.id)
            entries.append(entry)
        return entries

    def save_manual_calendars(self, entries: list[ManualCalendarEntry]) -> list[ManualCalendarEntry]:
        """
        Replace the manual calendar list, keeping the first entry per id

        Returns:
            The list actually stored
        """
        unique: dict[str, ManualCalendarEntry] = {}
        for entry in entries:
            unique.setdefault(entry.id, entry)
        stored = list(unique.values())
        self.repository.set(
            MANUAL_CALENDARS, [{"id": e.id, "name": e.display_name} for e in stored]
        )
        return stored

    def add_manual_calendar(self, entry: ManualCalendarEntry) -> list[ManualCalendarEntry]:
        """
        Append a manual calendar

        Raises:
            DuplicateCalendarError: If the id is already present
        """
        entries = self.get_manual_calendars()
        if any(existing.id == entry.id for existing in entries):
            raise DuplicateCalendarError("This calendar has already been added")
        return self.save_manual_calendars([*entries, entry])

    def remove_manual_calendar(self, calendar_id: str) -> list[ManualCalendarEntry]:
        entries = [e for e in self.get_manual_calendars() if e.id != calendar_id]
        return self.save_manual_calendars(entries)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def get_reminder_config(self) -> ReminderConfig:
        get = self.repository.get
        smtp = SmtpSettings(
            host=get(SMTP_HOST) or config.DEFAULT_SMTP_HOST,
            port=int(get(SMTP_PORT) or config.DEFAULT_SMTP_PORT),
            user=get(SMTP_USER) or "",
            password=get(SMTP_PASS) or "",
        )
        return ReminderConfig(
            enabled=bool(get(REMINDERS_ENABLED, False)),
            morning_time=get(MORNING_REMINDER_TIME) or config.DEFAULT_MORNING_TIME,
            evening_time=get(EVENING_REMINDER_TIME) or config.DEFAULT_EVENING_TIME,
            recipient_email=get(RECIPIENT_EMAIL) or "",
            smtp=smtp,
        )

    def save_reminder_config(self, reminders: ReminderConfig) -> None:
        values = {
            RECIPIENT_EMAIL: reminders.recipient_email,
            SMTP_HOST: reminders.smtp.host,
            SMTP_PORT: reminders.smtp.port,
            SMTP_USER: reminders.smtp.user,
            SMTP_PASS: reminders.smtp.password,
            REMINDERS_ENABLED: reminders.enabled,
            MORNING_REMINDER_TIME: reminders.morning_time,
            EVENING_REMINDER_TIME: reminders.evening_time,
        }
        for key, value in values.items():
            self.repository.set(key, value)
        logger.info("Saved reminder settings (enabled=%s)", reminders.enabled)

    # ------------------------------------------------------------------

    def load(self) -> AppSettings:
        """Snapshot of every persisted setting."""
        return AppSettings(
            provider=self.get_provider_credentials(),
            has_tokens=self.get_tokens() is not None,
            selection=self.get_selection(),
            manual_calendars=tuple(self.get_manual_calendars()),
            reminders=self.get_reminder_config(),
        )
