"""Tests for typed settings access"""

from __future__ import annotations

import pytest

from calq.storage.app_settings import (
    MANUAL_CALENDARS,
    SELECTED_CALENDARS,
    DuplicateCalendarError,
)
from calq.storage.models import (
    CalendarSelection,
    ManualCalendarEntry,
    ReminderConfig,
    SelectionMode,
    SmtpSettings,
)


def test_empty_store_defaults(settings_store):
    settings = settings_store.load()

    assert settings.provider is None
    assert settings.has_tokens is False
    assert settings.selection.mode is SelectionMode.UNSET
    assert settings.manual_calendars == ()
    assert settings.reminders.enabled is False
    assert settings.reminders.morning_time == "07:00"
    assert settings.reminders.evening_time == "19:00"
    assert settings.reminders.smtp.host == "smtp.gmail.com"
    assert settings.reminders.smtp.port == 587


def test_provider_credentials(settings_store):
    settings_store.save_provider_credentials("client-id", "client-secret")

    provider = settings_store.get_provider_credentials()

    assert provider.client_id == "client-id"
    assert provider.client_secret == "client-secret"
    assert "client-secret" not in repr(provider)


def test_tokens_roundtrip_and_delete(settings_store):
    settings_store.save_tokens({"token": "abc", "refresh_token": "def"})
    assert settings_store.get_tokens()["refresh_token"] == "def"

    settings_store.delete_tokens()
    assert settings_store.get_tokens() is None


class TestSelection:
    def test_subset_roundtrip(self, settings_store):
        settings_store.save_selection(CalendarSelection.from_ids(["b", "a"]))

        selection = settings_store.get_selection()

        assert selection.mode is SelectionMode.SUBSET
        assert selection.calendar_ids == {"a", "b"}
        assert selection.includes("a")
        assert not selection.includes("c")

    def test_explicit_empty_subset_is_kept(self, settings_store):
        settings_store.save_selection(CalendarSelection(mode=SelectionMode.SUBSET))

        selection = settings_store.get_selection()

        assert selection.mode is SelectionMode.SUBSET
        assert not selection.includes("a")

    def test_bare_list_from_older_store(self, settings_store):
        settings_store.repository.set(SELECTED_CALENDARS, ["a"])
        assert settings_store.get_selection().calendar_ids == {"a"}

        settings_store.repository.set(SELECTED_CALENDARS, [])
        assert settings_store.get_selection().includes_all


class TestManualCalendars:
    def test_add_and_remove(self, settings_store):
        settings_store.add_manual_calendar(ManualCalendarEntry(id="a@import", name="A"))
        settings_store.add_manual_calendar(ManualCalendarEntry(id="b@import"))

        assert [(e.id, e.name) for e in settings_store.get_manual_calendars()] == [
            ("a@import", "A"),
            ("b@import", "b@import"),
        ]

        remaining = settings_store.remove_manual_calendar("a@import")
        assert [e.id for e in remaining] == ["b@import"]

    def test_duplicate_add_rejected(self, settings_store):
        settings_store.add_manual_calendar(ManualCalendarEntry(id="a@import"))

        with pytest.raises(DuplicateCalendarError):
            settings_store.add_manual_calendar(ManualCalendarEntry(id="a@import", name="Again"))

    def test_save_keeps_first_entry_per_id(self, settings_store):
        stored = settings_store.save_manual_calendars(
            [ManualCalendarEntry(id="x", name="First"), ManualCalendarEntry(id="x", name="Second")]
        )

        assert [(e.id, e.name) for e in stored] == [("x", "First")]

    def test_malformed_entries_ignored(self, settings_store):
        settings_store.repository.set(MANUAL_CALENDARS, [{"name": "no id"}, {"id": "ok"}])

        assert [e.id for e in settings_store.get_manual_calendars()] == ["ok"]

    def test_blank_id_rejected(self):
        with pytest.raises(ValueError):
            ManualCalendarEntry(id="   ")

    def test_remove_unknown_is_noop(self, settings_store):
        assert settings_store.remove_manual_calendar("missing") == []


def test_reminder_config_roundtrip(settings_store):
    reminders = ReminderConfig(
        enabled=True,
        morning_time="06:45",
        evening_time="21:00",
        recipient_email="you@example.com",
        smtp=SmtpSettings(host="smtp.example.com", port=465, user="me", password="pw"),
    )

    settings_store.save_reminder_config(reminders)

    assert settings_store.get_reminder_config() == reminders
    assert settings_store.get_reminder_config().smtp.use_ssl
    assert settings_store.get_reminder_config().mail_complete


def test_mail_incomplete_without_password():
    reminders = ReminderConfig(recipient_email="you@example.com", smtp=SmtpSettings(user="me"))

    assert not reminders.mail_complete
