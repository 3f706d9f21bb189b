"""
Module: models
Purpose: Calendar domain types shared by fetch, views and digests.

Events are immutable once fetched: fetch -> categorize -> render -> discard.
Nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from calq import config
from calq.calendar.categorizer import Category, categorize, color_of, emoji_of

NO_TITLE = "No Title"


def parse_event_time(value: dict[str, Any]) -> tuple[datetime, bool]:
    """
    Parse a Google Calendar start/end object

    Args:
        value: {"dateTime": "..."} for timed events or {"date": "YYYY-MM-DD"}

    Returns:
        (timestamp, all_day). All-day dates become naive local midnight.

    Raises:
        ValueError: If neither key holds a parseable value
    """
    if value.get("dateTime"):
        return datetime.fromisoformat(value["dateTime"]), False
    if value.get("date"):
        return datetime.combine(date.fromisoformat(value["date"]), time.min), True
    raise ValueError(f"Event time has neither dateTime nor date: {value!r}")


def to_local(moment: datetime) -> datetime:
    """Aware timestamps convert to local time; naive ones are already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def sort_key(moment: datetime) -> datetime:
    """Comparable key for mixing naive (local) and aware timestamps."""
    return moment.astimezone()


@dataclass(frozen=True)
class CalendarInfo:
    """Calendar as reported by the provider's calendar list."""

    id: str
    name: str
    color: str = config.DEFAULT_CALENDAR_COLOR
    primary: bool = False

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> CalendarInfo:
        return cls(
            id=item["id"],
            name=item.get("summary") or item["id"],
            color=item.get("backgroundColor") or config.DEFAULT_CALENDAR_COLOR,
            primary=bool(item.get("primary", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color, "primary": self.primary}


@dataclass(frozen=True)
class CalendarEvent:
    """Single event occurrence."""

    id: str
    calendar_id: str
    calendar_name: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    description: str = ""
    location: str = ""

    @classmethod
    def from_api(cls, item: dict[str, Any], calendar_id: str, calendar_name: str) -> CalendarEvent:
        """
        Build from a Google Calendar events.list item

        Raises:
            ValueError: If start/end are missing or malformed
            KeyError: If the item has no id
        """
        start, all_day = parse_event_time(item.get("start") or {})
        end, _ = parse_event_time(item.get("end") or item.get("start") or {})
        return cls(
            id=item["id"],
            calendar_id=calendar_id,
            calendar_name=calendar_name,
            title=item.get("summary") or NO_TITLE,
            start=start,
            end=end,
            all_day=all_day,
            description=item.get("description") or "",
            location=item.get("location") or "",
        )

    @property
    def category(self) -> Category:
        return categorize(self.title)

    def to_dict(self) -> dict[str, Any]:
        """JSON shape consumed by the UI shell's calendar widgets."""
        category = self.category
        return {
            "id": self.id,
            "calendarId": self.calendar_id,
            "calendarName": self.calendar_name,
            "title": self.title,
            "description": self.description,
            "start": self.start.date().isoformat() if self.all_day else self.start.isoformat(),
            "end": self.end.date().isoformat() if self.all_day else self.end.isoformat(),
            "allDay": self.all_day,
            "location": self.location,
            "category": category.value,
            "color": color_of(category),
            "emoji": emoji_of(category),
        }


@dataclass(frozen=True)
class DateWindow:
    """Closed time range used for provider queries."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if sort_key(self.end) < sort_key(self.start):
            raise ValueError("DateWindow end precedes start")

    @classmethod
    def for_day(cls, day: date, aware: bool = False) -> DateWindow:
        """
        [day 00:00, day 23:59:59.999]

        With aware=True each bound gets the local offset in force at that
        moment, so a DST change inside the day moves only one of them.
        """
        start = datetime.combine(day, time.min)
        end = datetime.combine(day + timedelta(days=1), time.min) - timedelta(milliseconds=1)
        if aware:
            start, end = start.astimezone(), end.astimezone()
        return cls(start=start, end=end)

    def start_iso(self) -> str:
        return sort_key(self.start).isoformat()

    def end_iso(self) -> str:
        return sort_key(self.end).isoformat()
