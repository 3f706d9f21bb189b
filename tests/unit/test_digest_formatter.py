"""Unit tests for digest windows, subjects and HTML rendering"""

from __future__ import annotations

import time
from datetime import date, datetime

import pytest

from calq.calendar.models import CalendarEvent
from calq.digest.formatter import (
    DigestKind,
    digest_subject,
    digest_window,
    render_digest_html,
    render_test_email_html,
)

NOW = datetime(2024, 6, 10, 15, 0)


def _event(event_id, title, start, all_day=False, location=""):
    return CalendarEvent(
        id=event_id,
        calendar_id="primary",
        calendar_name="Me",
        title=title,
        start=start,
        end=start,
        all_day=all_day,
        location=location,
    )


def test_morning_window_is_today():
    window = digest_window(DigestKind.MORNING, NOW)

    assert window.start == datetime(2024, 6, 10, 0, 0)
    assert window.end == datetime(2024, 6, 10, 23, 59, 59, 999000)


def test_evening_window_is_tomorrow():
    window = digest_window(DigestKind.EVENING, NOW)

    assert window.start == datetime(2024, 6, 11, 0, 0)
    assert window.end == datetime(2024, 6, 11, 23, 59, 59, 999000)


def test_evening_window_rolls_over_month_end():
    window = digest_window(DigestKind.EVENING, datetime(2024, 6, 30, 19, 0))

    assert window.start == datetime(2024, 7, 1, 0, 0)


def test_subjects_name_today_and_tomorrow():
    assert digest_subject(DigestKind.MORNING, date(2024, 6, 10)) == (
        "Today's Schedule - Monday, June 10"
    )
    assert digest_subject(DigestKind.EVENING, date(2024, 6, 11)) == (
        "Tomorrow's Appointments - Tuesday, June 11"
    )


def test_render_orders_events_and_counts():
    events = [
        _event("2", "Client call", datetime(2024, 6, 10, 14, 0), location="Zoom"),
        _event("1", "School pickup", datetime(2024, 6, 10, 8, 30)),
    ]

    html = render_digest_html(events, DigestKind.MORNING)

    assert "Your Today's Schedule" in html
    assert "You have 2 appointments today:" in html
    assert html.index("School pickup") < html.index("Client call")
    assert "8:30 AM" in html
    assert "2:00 PM &bull; Zoom" in html
    assert "#AF52DE" in html  # childcare color


def test_render_single_event_tomorrow():
    html = render_digest_html(
        [_event("1", "Vacation", datetime(2024, 6, 11), all_day=True)], DigestKind.EVENING
    )

    assert "You have 1 appointment tomorrow:" in html
    assert "Your Tomorrow's Schedule" in html
    assert "All day" in html


def test_render_escapes_titles():
    html = render_digest_html(
        [_event("1", "<script>alert(1)</script>", datetime(2024, 6, 10, 9, 0))],
        DigestKind.MORNING,
    )

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_test_email_html():
    assert "Email Configuration Successful!" in render_test_email_html()


@pytest.fixture
def new_york_tz(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_window_on_spring_forward_day(new_york_tz):
    now = datetime(2024, 3, 10, 7, 0).astimezone()

    window = digest_window(DigestKind.MORNING, now)

    assert window.start_iso() == "2024-03-10T00:00:00-05:00"
    assert window.end_iso() == "2024-03-10T23:59:59.999000-04:00"


def test_evening_window_before_fall_back_day(new_york_tz):
    now = datetime(2024, 11, 2, 19, 0).astimezone()

    window = digest_window(DigestKind.EVENING, now)

    assert window.start_iso() == "2024-11-03T00:00:00-04:00"
    assert window.end_iso() == "2024-11-03T23:59:59.999000-05:00"
