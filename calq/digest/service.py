"""
Module: service
Purpose: One digest firing: guard, fetch, format, send.

A firing never raises. Missing credentials, incomplete mail settings and an
empty day all skip silently; a send failure is logged and not retried.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from calq.calendar.client import CalendarFetchError
from calq.calendar.fetch import CalendarFetcher
from calq.calendar.oauth import AuthenticationRequiredError, ConfigurationMissingError
from calq.digest.delivery import DigestDelivery, MailSendError
from calq.digest.formatter import (
    DigestKind,
    digest_day,
    digest_subject,
    digest_window,
    render_digest_html,
)
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, log_event
from calq.storage.app_settings import AppSettingsStore
from calq.storage.models import ReminderConfig, SmtpSettings

logger = get_logger(__name__)


class DigestService:
    def __init__(
        self,
        fetcher: CalendarFetcher,
        settings: AppSettingsStore,
        delivery_factory: Callable[[SmtpSettings], DigestDelivery] = DigestDelivery,
    ):
        self.fetcher = fetcher
        self.settings = settings
        self.delivery_factory = delivery_factory

    def send_digest(
        self,
        kind: DigestKind,
        reminders: ReminderConfig | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Run one digest

        Args:
            kind: Morning (today) or evening (tomorrow)
            reminders: Overrides the stored reminder settings
            now: Firing time in local time; defaults to the current time

        Returns:
            True if an email was sent
        """
        settings = self.settings.load()
        reminders = reminders or settings.reminders
        if not reminders.mail_complete:
            logger.info("Skipping %s digest: mail settings incomplete", kind.value)
            counter("digest.skipped.mail_incomplete")
            return False

        now = now or datetime.now().astimezone()
        window = digest_window(kind, now)

        try:
            events = self.fetcher.fetch_events(
                window,
                manual_calendars=settings.manual_calendars,
            )
        except (ConfigurationMissingError, AuthenticationRequiredError) as e:
            logger.info("Skipping %s digest: %s", kind.value, e)
            counter("digest.skipped.unauthenticated")
            return False
        except CalendarFetchError as e:
            logger.warning("Skipping %s digest, calendar list unavailable: %s", kind.value, e)
            counter("digest.skipped.fetch_failed")
            return False

        if not events:
            logger.info("Skipping %s digest: no events", kind.value)
            counter("digest.skipped.empty")
            return False

        subject = digest_subject(kind, digest_day(kind, now))
        html_content = render_digest_html(events, kind)

        try:
            self.delivery_factory(reminders.smtp).send_digest(
                reminders.recipient_email, subject, html_content
            )
        except MailSendError as e:
            logger.error("Failed to send %s digest: %s", kind.value, e)
            return False

        log_event("digest.completed", kind=kind.value, events=len(events))
        return True
