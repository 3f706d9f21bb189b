"""
Module: views
Purpose: Shape fetched events for the UI shell's week, month and agenda views.

Weeks start on Sunday. The month view is a fixed six-week grid. The agenda
covers the next AGENDA_MONTHS_AHEAD months grouped by calendar month.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from typing import Any

from calq import config
from calq.calendar.categorizer import color_of, emoji_of
from calq.calendar.models import CalendarEvent, DateWindow, sort_key, to_local

ALL_DAY = "All day"
VIEW_NAMES = ("week", "month", "agenda")


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min).astimezone()


def _days_since_sunday(day: date) -> int:
    # Monday=0 .. Sunday=6
    return (day.weekday() + 1) % 7


def week_range(day: date) -> DateWindow:
    """Sunday 00:00 through Saturday 23:59:59.999 of the week containing day."""
    sunday = day - timedelta(days=_days_since_sunday(day))
    start = _day_start(sunday)
    end = _day_start(sunday + timedelta(days=7)) - timedelta(milliseconds=1)
    return DateWindow(start=start, end=end)


def month_range(day: date) -> DateWindow:
    """Six-week grid starting the Sunday on or before the 1st of day's month."""
    first = day.replace(day=1)
    grid_start = first - timedelta(days=_days_since_sunday(first))
    start = _day_start(grid_start)
    end = _day_start(grid_start + timedelta(weeks=6)) - timedelta(milliseconds=1)
    return DateWindow(start=start, end=end)


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar-month arithmetic, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def agenda_range(now: datetime | None = None, months: int = config.AGENDA_MONTHS_AHEAD) -> DateWindow:
    now = now or datetime.now().astimezone()
    return DateWindow(start=now, end=add_months(now, months))


def view_range(view: str, day: date) -> DateWindow:
    """
    Raises:
        ValueError: If view is not one of VIEW_NAMES
    """
    if view == "week":
        return week_range(day)
    if view == "month":
        return month_range(day)
    if view == "agenda":
        return agenda_range()
    raise ValueError(f"Unknown view: {view}")


def sort_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted(events, key=lambda event: sort_key(event.start))


def format_time(moment: datetime) -> str:
    """12-hour clock without a leading zero, e.g. "9:00 AM"."""
    return to_local(moment).strftime("%I:%M %p").lstrip("0")


def format_event_time(event: CalendarEvent, include_end: bool = False) -> str:
    if event.all_day:
        return ALL_DAY
    start = format_time(event.start)
    if not include_end:
        return start
    return f"{start} - {format_time(event.end)}"


def agenda_item(event: CalendarEvent) -> dict[str, Any]:
    category = event.category
    local_start = to_local(event.start)
    return {
        "id": event.id,
        "title": event.title,
        "dayName": local_start.strftime("%a"),
        "dayNum": local_start.day,
        "timeText": format_event_time(event),
        "emoji": emoji_of(category),
        "color": color_of(category),
        "category": category.value,
        "location": event.location,
        "calendarName": event.calendar_name,
    }


def group_agenda(events: Iterable[CalendarEvent]) -> list[dict[str, Any]]:
    """
    Sort events by start and group them by calendar month

    Returns:
        [{"key": "2024-06", "label": "June 2024", "events": [...]}, ...]
        in chronological order
    """
    groups: dict[str, dict[str, Any]] = {}
    for event in sort_events(events):
        local_start = to_local(event.start)
        key = local_start.strftime("%Y-%m")
        group = groups.setdefault(
            key,
            {"key": key, "label": local_start.strftime("%B %Y"), "events": []},
        )
        group["events"].append(agenda_item(event))
    return list(groups.values())


def describe_event(event: CalendarEvent) -> str:
    """Multi-line detail text shown when an event is opened."""
    lines = [
        f"{emoji_of(event.category)} {event.title}",
        "",
        f"Time: {format_event_time(event, include_end=True)}",
    ]
    if event.location:
        lines.append(f"Location: {event.location}")
    if event.calendar_name:
        lines.append(f"Calendar: {event.calendar_name}")
    if event.description:
        lines.append(f"\nDescription: {event.description}")
    return "\n".join(lines)
