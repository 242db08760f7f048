import smtplib

import pytest

from src.api import mailer as mailer_module
from src.api.errors import NotificationError
from src.api.mailer import SMTPMailer

LINK = "https://memory.test/login/verify?token=abc"


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def send_message(self, msg):
        self.sent.append(msg)


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def configured(**overrides):
    options = dict(
        smtp_host="smtp.test",
        smtp_port=587,
        smtp_user="bot",
        smtp_password="secret",
        from_email="bot@memory.test",
        log_only=False,
    )
    options.update(overrides)
    return SMTPMailer(**options)


def test_sends_link_in_both_parts():
    configured().send_login_link("a@b.com", LINK, 10)

    [server] = FakeSMTP.instances
    [msg] = server.sent
    assert msg["To"] == "a@b.com"
    bodies = [part.get_payload(decode=True).decode() for part in msg.get_payload()]
    assert all(LINK in body for body in bodies)


def test_login_failure_is_a_notification_error():
    with pytest.raises(NotificationError):
        configured(smtp_password="wrong").send_login_link("a@b.com", LINK, 10)


def test_unconfigured_mailer_refuses_to_send():
    mailer = SMTPMailer(smtp_host="smtp.test", smtp_user=None, smtp_password=None, from_email=None, log_only=False)

    with pytest.raises(NotificationError):
        mailer.send_login_link("a@b.com", LINK, 10)
    assert FakeSMTP.instances == []


def test_log_only_mode_keeps_the_link_out_of_warnings(caplog):
    mailer = SMTPMailer(smtp_host="smtp.test", log_only=True)

    with caplog.at_level("WARNING"):
        mailer.send_login_link("a@b.com", LINK, 10)
    assert "not sent" in caplog.text
    assert LINK not in caplog.text

    caplog.clear()
    with caplog.at_level("DEBUG", logger="src.api.mailer"):
        mailer.send_login_link("a@b.com", LINK, 10)
    assert LINK in caplog.text
    assert FakeSMTP.instances == []
