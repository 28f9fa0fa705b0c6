"""
Email Service Tests

Run with: pytest tests/test_email.py -v
"""

import smtplib

import pytest

from seanotes.config import Settings
from seanotes.email_service import (
    LogEmailService,
    SmtpEmailService,
    create_email_service,
    render_action_email,
)
from seanotes.errors import EmailDisabledError, EmailNotConfiguredError, EmailSendError


def test_render_action_email_escapes_html():
    text, body = render_action_email(
        title="Sign in <now>",
        button_url="https://notes.example.com/verify?token=a&b=c",
        button_text="Sign In",
        greeting_text="Hello!",
        info_text="Expires in 1 hour.",
    )

    assert text.splitlines()[0] == "Sign in <now>"
    assert "Sign In: https://notes.example.com/verify?token=a&b=c" in text
    assert "<h1>Sign in &lt;now&gt;</h1>" in body
    assert 'href="https://notes.example.com/verify?token=a&amp;b=c"' in body
    assert "copy and paste the following link" in body


def test_log_transport_keeps_outbox():
    service = LogEmailService()
    message = service.send_action_email(
        to="ada@example.com",
        subject="Your sign-in link",
        title="Sign in",
        button_url="https://x/verify",
        button_text="Sign In",
        greeting_text="Hi",
        info_text="Bye",
    )

    assert service.outbox == [message]
    assert message.to == "ada@example.com"
    service.ensure_ready()


def test_disabled_service_refuses():
    with pytest.raises(EmailDisabledError):
        LogEmailService(enabled=False).ensure_ready()


def test_unconfigured_smtp_refuses():
    service = SmtpEmailService(host=None, sender="SeaNotes <hi@example.com>")

    status = service.check_configuration()
    assert status.configured is False
    assert "SEANOTES_SMTP_HOST" in status.config_to_review

    with pytest.raises(EmailNotConfiguredError):
        service.ensure_ready()


class FakeSMTP:
    sent = []
    fail = False

    def __init__(self, host, port, timeout=None):
        if FakeSMTP.fail:
            raise OSError("connection refused")
        self.host = host
        self.port = port
        self.logged_in = None

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = (user, password)

    def noop(self):
        return (250, b"OK")

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)

    def quit(self):
        pass


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.sent = []
    FakeSMTP.fail = False
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_smtp_delivery(fake_smtp):
    service = SmtpEmailService(host="smtp.example.com", user="mailer", password="pw",
                               sender="SeaNotes <hi@example.com>")

    assert service.check_configuration().connected is True
    service.send_action_email("ada@example.com", "Reset", "Reset", "https://x", "Reset", "Hi", "Bye")

    msg = fake_smtp.sent[0]
    assert msg["To"] == "ada@example.com"
    assert msg["Subject"] == "Reset"
    assert msg.is_multipart()


def test_smtp_connection_failure(fake_smtp):
    fake_smtp.fail = True
    service = SmtpEmailService(host="smtp.example.com", sender="SeaNotes <hi@example.com>")

    status = service.check_configuration()
    assert status.configured is True
    assert status.connected is False
    assert "connection refused" in status.error

    with pytest.raises(EmailSendError):
        service.send_action_email("ada@example.com", "Reset", "Reset", "https://x", "Reset", "Hi", "Bye")


def test_create_email_service_picks_transport(tmp_path):
    assert isinstance(create_email_service(Settings(data_dir=tmp_path)), LogEmailService)

    smtp = create_email_service(Settings(data_dir=tmp_path, smtp_host="smtp.example.com", smtp_port=2525))
    assert isinstance(smtp, SmtpEmailService)
    assert smtp.port == 2525

    disabled = create_email_service(Settings(data_dir=tmp_path, email_enabled=False))
    assert not disabled.is_email_enabled()
