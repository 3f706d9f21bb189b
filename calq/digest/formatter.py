"""Digest Formatter - Render a day's categorized events as an HTML email

Renders:
- Heading naming the day ("Today's" or "Tomorrow's")
- Appointment count line
- One row per event: emoji, title, time, optional location

Also computes the fetch window and subject line for each digest kind.
"""

from __future__ import annotations

import html
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from enum import Enum

from calq import config
from calq.calendar.categorizer import color_of, emoji_of
from calq.calendar.models import CalendarEvent, DateWindow
from calq.calendar.views import format_event_time, sort_events


class DigestKind(str, Enum):
    """Which daily trigger produced the digest."""

    MORNING = "morning"
    EVENING = "evening"

    @property
    def day_label(self) -> str:
        return "today" if self is DigestKind.MORNING else "tomorrow"


HTML_TEMPLATE = """
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #333; border-bottom: 2px solid #007AFF; padding-bottom: 10px;">
    Your {heading} Schedule
  </h2>
  <p style="color: #666;">You have {count} appointment{plural} {day_label}:</p>
  {rows}
  <p style="color: #999; font-size: 12px; margin-top: 20px; text-align: center;">
    Sent by {app_name}
  </p>
</div>
"""

ROW_TEMPLATE = """
  <div style="padding: 12px; margin: 8px 0; background: #f8f8f8; border-left: 4px solid {color}; border-radius: 4px;">
    <div style="font-weight: 600; color: #333;">{emoji} {title}</div>
    <div style="color: #666; font-size: 14px; margin-top: 4px;">{meta}</div>
  </div>
"""

TEST_EMAIL_HTML = """
<div style="font-family: -apple-system, BlinkMacSystemFont, sans-serif; padding: 20px;">
  <h2>Email Configuration Successful!</h2>
  <p>Your email reminders are now set up correctly.</p>
  <p style="color: #666;">- {app_name}</p>
</div>
"""


def digest_day(kind: DigestKind, now: datetime) -> date:
    today = now.date()
    return today if kind is DigestKind.MORNING else today + timedelta(days=1)


def digest_window(kind: DigestKind, now: datetime) -> DateWindow:
    """
    Fetch window for a digest fired at now

    Morning covers today, evening covers tomorrow, each as
    [00:00, 23:59:59.999] local time. An aware now yields aware bounds.
    """
    return DateWindow.for_day(digest_day(kind, now), aware=now.tzinfo is not None)


def digest_subject(kind: DigestKind, day: date) -> str:
    """e.g. "Today's Schedule - Monday, June 10"."""
    pretty = f"{day:%A}, {day:%B} {day.day}"
    if kind is DigestKind.MORNING:
        return f"Today's Schedule - {pretty}"
    return f"Tomorrow's Appointments - {pretty}"


def _render_row(event: CalendarEvent) -> str:
    category = event.category
    meta = html.escape(format_event_time(event))
    if event.location:
        meta += f" &bull; {html.escape(event.location)}"
    return ROW_TEMPLATE.format(
        color=color_of(category),
        emoji=emoji_of(category),
        title=html.escape(event.title),
        meta=meta,
    )


def render_digest_html(events: Iterable[CalendarEvent], kind: DigestKind) -> str:
    """Digest body, events in start-time order."""
    ordered = sort_events(events)
    return HTML_TEMPLATE.format(
        heading="Today's" if kind is DigestKind.MORNING else "Tomorrow's",
        count=len(ordered),
        plural="" if len(ordered) == 1 else "s",
        day_label=kind.day_label,
        rows="".join(_render_row(event) for event in ordered),
        app_name=config.APP_NAME,
    )


def render_test_email_html() -> str:
    return TEST_EMAIL_HTML.format(app_name=config.APP_NAME)
