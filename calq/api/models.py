"""Pydantic request models for the CalQ command bridge.

Payload keys are camelCase, as sent by the UI shell; snake_case names are
accepted too so Python callers can build requests directly.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from calq import config
from calq.calendar.views import VIEW_NAMES
from calq.storage.models import ManualCalendarEntry, SelectionMode


class CommandRequest(BaseModel):
    """Base for all command payloads"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GoogleCredentialsRequest(CommandRequest):
    client_id: str = Field(default="", max_length=512, validate_default=True)
    client_secret: str = Field(default="", max_length=512, validate_default=True)

    @field_validator("client_id", "client_secret", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise ValueError("Please enter both Client ID and Client Secret")
        return value


class FetchEventsRequest(CommandRequest):
    start_date: datetime
    end_date: datetime


class SelectedCalendarsRequest(CommandRequest):
    """
    Calendar selection

    Without an explicit mode, an empty calendar_ids list means every calendar.
    """

    calendar_ids: list[str] = Field(default_factory=list)
    mode: SelectionMode | None = None


class ManualCalendarRequest(CommandRequest):
    id: str = Field(min_length=1, max_length=1024)
    name: str = Field(default="", max_length=256)

    def to_entry(self) -> ManualCalendarEntry:
        return ManualCalendarEntry(id=self.id, name=self.name)


class ManualCalendarsRequest(CommandRequest):
    calendars: list[ManualCalendarRequest] = Field(default_factory=list)


class RemoveManualCalendarRequest(CommandRequest):
    id: str = Field(min_length=1)


class EmailSettingsRequest(CommandRequest):
    """
    Reminder and SMTP settings

    An empty smtp_pass keeps the stored password.
    """

    reminders_enabled: bool = False
    recipient_email: str = ""
    smtp_host: str = config.DEFAULT_SMTP_HOST
    smtp_port: int = Field(default=config.DEFAULT_SMTP_PORT, ge=1, le=65535)
    smtp_user: str = ""
    smtp_pass: str = Field(default="", repr=False)
    morning_reminder_time: str = config.DEFAULT_MORNING_TIME
    evening_reminder_time: str = config.DEFAULT_EVENING_TIME

    @field_validator("recipient_email", "smtp_host", "smtp_user")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class ViewRequest(CommandRequest):
    view: str = "week"
    day: date | None = Field(default=None, alias="date")

    @field_validator("view")
    @classmethod
    def _check_view(cls, value: str) -> str:
        if value not in VIEW_NAMES:
            raise ValueError(f"Unknown view: {value}")
        return value
