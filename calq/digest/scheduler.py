"""Daily digest triggers on an APScheduler BackgroundScheduler

Two cron jobs, morning (today's events) and evening (tomorrow's events),
derived from the configured HH:MM strings in local time.

arm() always removes both jobs before adding new ones, so re-arming after a
settings change never leaves a duplicate trigger behind.
"""

from __future__ import annotations

import re

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from calq import config
from calq.digest.formatter import DigestKind
from calq.digest.service import DigestService
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, log_event
from calq.storage.models import ReminderConfig

logger = get_logger(__name__)

JOB_IDS: dict[DigestKind, str] = {
    DigestKind.MORNING: "digest-morning",
    DigestKind.EVENING: "digest-evening",
}

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class InvalidTriggerTimeError(ValueError):
    """Raised for a reminder time that is not a 24-hour HH:MM string"""


def parse_trigger_time(value: str) -> tuple[int, int]:
    """
    Parse "HH:MM" (24-hour)

    Returns:
        (hour, minute)

    Raises:
        InvalidTriggerTimeError: If the string is malformed or out of range
    """
    match = _TIME_PATTERN.match((value or "").strip())
    if not match:
        raise InvalidTriggerTimeError(f"Invalid reminder time: {value!r} (expected HH:MM)")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTriggerTimeError(f"Invalid reminder time: {value!r} (expected HH:MM)")
    return hour, minute


class DigestScheduler:
    """
    Arms and disarms the two daily digest jobs

    States: disarmed (no jobs) or armed (both jobs). Jobs added before
    start() stay pending and begin firing once the scheduler starts.
    """

    def __init__(self, service: DigestService, scheduler: BackgroundScheduler | None = None):
        self.service = service
        self.scheduler = scheduler or BackgroundScheduler()

    @property
    def is_armed(self) -> bool:
        job_ids = {job.id for job in self.scheduler.get_jobs()}
        return all(job_id in job_ids for job_id in JOB_IDS.values())

    def job_times(self) -> dict[str, str]:
        """Configured fire time per job id, for status display."""
        times: dict[str, str] = {}
        for job in self.scheduler.get_jobs():
            if job.id in JOB_IDS.values():
                fields = {field.name: str(field) for field in job.trigger.fields}
                times[job.id] = f"{int(fields['hour']):02d}:{int(fields['minute']):02d}"
        return times

    def disarm(self) -> None:
        for job_id in JOB_IDS.values():
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass

    def arm(self, reminders: ReminderConfig) -> bool:
        """
        Re-derive both triggers from the reminder settings

        Returns:
            True if armed, False if reminders are disabled

        Raises:
            InvalidTriggerTimeError: If either time is invalid (left disarmed)
        """
        self.disarm()
        if not reminders.enabled:
            logger.info("Reminders disabled, digest jobs disarmed")
            return False

        times = {
            DigestKind.MORNING: parse_trigger_time(reminders.morning_time),
            DigestKind.EVENING: parse_trigger_time(reminders.evening_time),
        }

        for kind, (hour, minute) in times.items():
            self.scheduler.add_job(
                self._run,
                trigger=CronTrigger(hour=hour, minute=minute),
                args=[kind],
                id=JOB_IDS[kind],
                name=f"{kind.value} digest",
                coalesce=True,
                max_instances=1,
                misfire_grace_time=config.DIGEST_MISFIRE_GRACE_SECONDS,
            )

        log_event(
            "digest.scheduler_armed",
            morning=reminders.morning_time,
            evening=reminders.evening_time,
        )
        return True

    def _run(self, kind: DigestKind) -> None:
        # Job body; an exception here must not reach the scheduler thread
        counter(f"digest.fired.{kind.value}")
        try:
            self.service.send_digest(kind)
        except Exception:
            logger.exception("Unexpected error in %s digest job", kind.value)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Digest scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Digest scheduler stopped")
