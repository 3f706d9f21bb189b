"""Unit tests for a single digest firing"""

from __future__ import annotations

from datetime import datetime
from unittest.mock import Mock

import pytest

from calq.calendar.client import CalendarFetchError
from calq.calendar.models import CalendarEvent
from calq.calendar.oauth import AuthenticationRequiredError
from calq.digest.delivery import MailSendError
from calq.digest.formatter import DigestKind
from calq.digest.service import DigestService
from calq.observability import telemetry
from calq.storage.models import ManualCalendarEntry, ReminderConfig, SmtpSettings

NOW = datetime(2024, 6, 10, 7, 0)

REMINDERS = ReminderConfig(
    enabled=True,
    recipient_email="you@example.com",
    smtp=SmtpSettings(host="smtp.example.com", port=587, user="me@example.com", password="pw"),
)


def _event(title="Team meeting"):
    start = datetime(2024, 6, 10, 9, 0)
    return CalendarEvent(
        id="e1",
        calendar_id="primary",
        calendar_name="Me",
        title=title,
        start=start,
        end=start,
    )


@pytest.fixture
def service(mock_fetcher, settings_store, delivery_factory):
    return DigestService(mock_fetcher, settings_store, delivery_factory=delivery_factory)


def test_sends_morning_digest(service, mock_fetcher, delivery_factory):
    mock_fetcher.fetch_events.return_value = [_event()]

    assert service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW) is True

    delivery_factory.assert_called_once_with(REMINDERS.smtp)
    to_email, subject, html = delivery_factory.return_value.send_digest.call_args.args
    assert to_email == "you@example.com"
    assert subject == "Today's Schedule - Monday, June 10"
    assert "Team meeting" in html


def test_evening_digest_fetches_tomorrow(service, mock_fetcher):
    mock_fetcher.fetch_events.return_value = [_event()]

    service.send_digest(DigestKind.EVENING, REMINDERS, now=datetime(2024, 6, 10, 19, 0))

    window = mock_fetcher.fetch_events.call_args.args[0]
    assert window.start == datetime(2024, 6, 11, 0, 0)


def test_digest_includes_manual_calendars(service, mock_fetcher, settings_store):
    settings_store.add_manual_calendar(ManualCalendarEntry(id="holidays@import", name="Holidays"))

    service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW)

    manual = mock_fetcher.fetch_events.call_args.kwargs["manual_calendars"]
    assert [entry.id for entry in manual] == ["holidays@import"]


def test_empty_day_sends_nothing(service, mock_fetcher, delivery_factory):
    mock_fetcher.fetch_events.return_value = []

    assert service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW) is False
    delivery_factory.assert_not_called()
    assert telemetry.get_counter("digest.skipped.empty") == 1


def test_incomplete_mail_settings_skip_fetch(service, mock_fetcher, delivery_factory):
    reminders = ReminderConfig(enabled=True, recipient_email="you@example.com")

    assert service.send_digest(DigestKind.MORNING, reminders, now=NOW) is False
    mock_fetcher.fetch_events.assert_not_called()
    delivery_factory.assert_not_called()


def test_unauthenticated_is_skipped(service, mock_fetcher, delivery_factory):
    mock_fetcher.fetch_events.side_effect = AuthenticationRequiredError("Not authenticated")

    assert service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW) is False
    delivery_factory.assert_not_called()


def test_calendar_list_failure_is_skipped(service, mock_fetcher):
    mock_fetcher.fetch_events.side_effect = CalendarFetchError("503 Backend Error")

    assert service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW) is False


def test_send_failure_returns_false(service, mock_fetcher, delivery_factory):
    mock_fetcher.fetch_events.return_value = [_event()]
    delivery_factory.return_value.send_digest.side_effect = MailSendError("connection refused")

    assert service.send_digest(DigestKind.MORNING, REMINDERS, now=NOW) is False


def test_reads_reminders_from_store_when_not_given(mock_fetcher, settings_store):
    settings_store.save_reminder_config(REMINDERS)
    mock_fetcher.fetch_events.return_value = [_event()]
    delivery_factory = Mock()
    service = DigestService(mock_fetcher, settings_store, delivery_factory=delivery_factory)

    assert service.send_digest(DigestKind.MORNING, now=NOW) is True
    delivery_factory.assert_called_once_with(REMINDERS.smtp)
