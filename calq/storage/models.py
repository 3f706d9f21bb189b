"""
Settings models (Pydantic v2) for everything CalQ persists.

These objects are loaded once from the encrypted store and handed to the
components that need them; nothing reads the store behind their back.
Secrets (client secret, SMTP password) are excluded from repr.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calq import config


class SelectionMode(str, Enum):
    """How the user's calendar selection should be read.

    UNSET: never touched, every provider calendar is included
    ALL: explicitly every provider calendar
    SUBSET: exactly calendar_ids (possibly none)
    """

    UNSET = "unset"
    ALL = "all"
    SUBSET = "subset"


class CalendarSelection(BaseModel):
    """Calendars the user opted into."""

    model_config = ConfigDict(frozen=True)

    mode: SelectionMode = SelectionMode.UNSET
    calendar_ids: frozenset[str] = frozenset()

    @classmethod
    def from_ids(cls, calendar_ids: list[str] | set[str] | None) -> CalendarSelection:
        """Build from a bare id list: an empty list means every calendar."""
        ids = frozenset(calendar_ids or ())
        if not ids:
            return cls(mode=SelectionMode.UNSET)
        return cls(mode=SelectionMode.SUBSET, calendar_ids=ids)

    @classmethod
    def from_stored(cls, value: object) -> CalendarSelection:
        """Accept both the stored dict form and a bare list of ids."""
        if isinstance(value, dict):
            return cls.model_validate(value)
        if isinstance(value, list):
            return cls.from_ids(value)
        return cls()

    @property
    def includes_all(self) -> bool:
        return self.mode is not SelectionMode.SUBSET

    def includes(self, calendar_id: str) -> bool:
        return self.includes_all or calendar_id in self.calendar_ids

    def to_stored(self) -> dict[str, object]:
        return {"mode": self.mode.value, "calendar_ids": sorted(self.calendar_ids)}


class ManualCalendarEntry(BaseModel):
    """A calendar added by id, without provider-side discovery."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Calendar ID is required")
        return value

    @property
    def display_name(self) -> str:
        return self.name.strip() or self.id


class ProviderCredentials(BaseModel):
    """OAuth client registered by the user in the Google Cloud console."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str = Field(repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id and self.client_secret)


class SmtpSettings(BaseModel):
    """Outbound mail transport."""

    model_config = ConfigDict(frozen=True)

    host: str = config.DEFAULT_SMTP_HOST
    port: int = config.DEFAULT_SMTP_PORT
    user: str = ""
    password: str = Field(default="", repr=False)

    @property
    def use_ssl(self) -> bool:
        return self.port == config.SMTP_SSL_PORT


class ReminderConfig(BaseModel):
    """Daily digest configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    morning_time: str = config.DEFAULT_MORNING_TIME
    evening_time: str = config.DEFAULT_EVENING_TIME
    recipient_email: str = ""
    smtp: SmtpSettings = SmtpSettings()

    @property
    def mail_complete(self) -> bool:
        """True when a digest could actually be sent."""
        return bool(
            self.recipient_email and self.smtp.host and self.smtp.user and self.smtp.password
        )


class AppSettings(BaseModel):
    """Snapshot of every persisted setting."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderCredentials | None = None
    has_tokens: bool = False
    selection: CalendarSelection = CalendarSelection()
    manual_calendars: tuple[ManualCalendarEntry, ...] = ()
    reminders: ReminderConfig = ReminderConfig()
