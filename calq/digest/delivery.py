"""
CalQ Digest Delivery

SMTP email delivery for digest and test emails.
Port 465 uses implicit TLS; any other port is upgraded with STARTTLS.
"""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

from calq import config
from calq.digest.formatter import render_test_email_html
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter, log_event
from calq.storage.models import SmtpSettings
from calq.utils.html import html_to_text

logger = get_logger(__name__)

TEST_SUBJECT = f"{config.APP_NAME} - Test Email"


class MailSendError(Exception):
    """Raised when a message could not be handed to the SMTP server"""


class DigestDelivery:
    """Handles email delivery for digests"""

    def __init__(
        self,
        smtp: SmtpSettings,
        from_email: str | None = None,
        from_name: str = config.DIGEST_FROM_NAME,
        timeout: float = config.SMTP_TIMEOUT_SECONDS,
    ):
        self.smtp = smtp
        self.from_email = from_email or smtp.user
        self.from_name = from_name
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.smtp.host and self.smtp.user and self.smtp.password)

    def build_message(self, to_email: str, subject: str, html_content: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_email
        msg["Date"] = formatdate(localtime=True)

        # Plain part first: clients render the last alternative they support
        msg.attach(MIMEText(html_to_text(html_content), "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.smtp.use_ssl:
            return smtplib.SMTP_SSL(self.smtp.host, self.smtp.port, timeout=self.timeout)
        server = smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=self.timeout)
        try:
            server.starttls()
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def send_digest(self, to_email: str, subject: str, html_content: str) -> None:
        """
        Send one HTML email with a plain-text alternative

        Raises:
            MailSendError: If SMTP is not configured or the send fails
        """
        if not self.enabled:
            raise MailSendError("SMTP settings are incomplete")

        msg = self.build_message(to_email, subject, html_content)
        logger.info("Connecting to %s:%s", self.smtp.host, self.smtp.port)

        try:
            with self._connect() as server:
                server.login(self.smtp.user, self.smtp.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            counter("digest.send.error")
            logger.error("Failed to send email to %s: %s", to_email, e)
            raise MailSendError(str(e)) from e

        counter("digest.send.count")
        log_event("digest.sent", to=to_email, subject=subject)

    def send_test_email(self, to_email: str) -> None:
        """Verify SMTP configuration end to end"""
        self.send_digest(to_email=to_email, subject=TEST_SUBJECT, html_content=render_test_email_html())
