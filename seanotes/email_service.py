"""
SeaNotes - Email Service v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Sends the transactional "action button" emails (magic link, password
reset). SMTP in production; a logging implementation that keeps an
in-memory outbox for development and tests.
"""

import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from .errors import EmailDisabledError, EmailNotConfiguredError, EmailSendError
from .status import ConfigurableService, ServiceStatus

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "If the button above does not work, copy and paste the following link into your browser:"


@dataclass
class OutgoingEmail:
    """A rendered message."""
    to: str
    subject: str
    text: str
    html: str


def render_action_email(
    title: str,
    button_url: str,
    button_text: str,
    greeting_text: str,
    info_text: str,
):
    """Plain-text and HTML bodies for an email with a single call-to-action link."""
    text = "\n\n".join([
        title,
        greeting_text,
        f"{button_text}: {button_url}",
        info_text,
    ])

    url = html.escape(button_url, quote=True)
    body = (
        "<html><body>"
        f"<h1>{html.escape(title)}</h1>"
        f"<p>{html.escape(greeting_text)}</p>"
        f'<p><a href="{url}" style="padding:10px 16px;background:#1e40af;'
        f'color:#ffffff;text-decoration:none;border-radius:4px">{html.escape(button_text)}</a></p>'
        f"<p>{html.escape(info_text)}</p>"
        f"<p>{html.escape(FALLBACK_TEXT)}<br>{url}</p>"
        "</body></html>"
    )
    return text, body


class EmailService(ConfigurableService):
    """Base class for email transports."""

    service_name = "Email Service"
    description = "Sends magic-link and password-reset emails"

    def __init__(self, sender: str, enabled: bool = True):
        self.sender = sender
        self.enabled = enabled

    def is_email_enabled(self) -> bool:
        return self.enabled

    def is_required(self) -> bool:
        return True

    def ensure_ready(self) -> None:
        """Raise unless email is enabled, configured and reachable."""
        if not self.is_email_enabled():
            raise EmailDisabledError()
        status = self.check_configuration()
        if not status.configured or not status.connected:
            logger.error(f"Email not ready: {status.error}")
            raise EmailNotConfiguredError()

    def send_action_email(
        self,
        to: str,
        subject: str,
        title: str,
        button_url: str,
        button_text: str,
        greeting_text: str,
        info_text: str,
    ) -> OutgoingEmail:
        text, body = render_action_email(title, button_url, button_text, greeting_text, info_text)
        message = OutgoingEmail(to=to, subject=subject, text=text, html=body)
        self.deliver(message)
        return message

    def deliver(self, message: OutgoingEmail) -> None:
        raise NotImplementedError


class SmtpEmailService(EmailService):
    """Delivers through an SMTP relay with optional STARTTLS and login."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = "",
        enabled: bool = True,
        timeout: float = 10.0,
    ):
        super().__init__(sender=sender, enabled=enabled)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.last_connection_error: Optional[str] = None

    def _open(self) -> smtplib.SMTP:
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            server.starttls()
        if self.user:
            server.login(self.user, self.password or "")
        return server

    def check_connection(self) -> bool:
        try:
            server = self._open()
            try:
                server.noop()
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            self.last_connection_error = f"Connection error: {e}"
            logger.warning(f"SMTP connection test failed: {e}")
            return False
        self.last_connection_error = None
        return True

    def check_configuration(self) -> ServiceStatus:
        if not self.host or not self.sender:
            return ServiceStatus(
                name=self.service_name,
                configured=False,
                connected=None,
                config_to_review=["SEANOTES_SMTP_HOST", "SEANOTES_EMAIL_FROM"],
                error="Configuration missing",
                description=self.description,
            )
        if not self.check_connection():
            return ServiceStatus(
                name=self.service_name,
                configured=True,
                connected=False,
                config_to_review=["SEANOTES_SMTP_HOST", "SEANOTES_SMTP_PORT", "SEANOTES_SMTP_USER"],
                error=self.last_connection_error or "Connection failed",
                description=self.description,
            )
        return ServiceStatus(
            name=self.service_name,
            configured=True,
            connected=True,
            description=self.description,
        )

    def deliver(self, message: OutgoingEmail) -> None:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        try:
            server = self._open()
            try:
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            raise EmailSendError(message.to, str(e)) from e

        logger.info(f"Email sent: {message.subject}")


class LogEmailService(EmailService):
    """Logs messages instead of sending them. Keeps them in outbox."""

    description = "Development transport: emails are logged, not sent"

    def __init__(self, sender: str = "SeaNotes <no-reply@seanotes.local>", enabled: bool = True):
        super().__init__(sender=sender, enabled=enabled)
        self.outbox: List[OutgoingEmail] = []

    def check_configuration(self) -> ServiceStatus:
        return ServiceStatus(
            name=self.service_name,
            configured=True,
            connected=True,
            description=self.description,
        )

    def deliver(self, message: OutgoingEmail) -> None:
        self.outbox.append(message)
        logger.info(f"Email (log transport) to {message.to}: {message.subject}")


def create_email_service(settings) -> EmailService:
    """SMTP when a host is configured, otherwise the logging transport."""
    if settings.smtp_host:
        return SmtpEmailService(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender=settings.email_sender,
            enabled=settings.email_enabled,
        )
    return LogEmailService(sender=settings.email_sender, enabled=settings.email_enabled)


__all__ = [
    "EmailService",
    "SmtpEmailService",
    "LogEmailService",
    "OutgoingEmail",
    "render_action_email",
    "create_email_service",
]
