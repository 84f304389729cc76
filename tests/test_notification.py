"""
Tests for NotificationService with smtplib mocked out.
"""

import asyncio
import smtplib
from unittest import mock

from seatfinder.models.schemas import StatusReading
from seatfinder.services.notification import NotificationService

EMAIL = "student@miamioh.edu"


def make_service(**kwargs):
    kwargs.setdefault("retry_delay", 0)
    return NotificationService(host="relay.example.edu", port=587, **kwargs)


def smtp_mock(starttls=True):
    server = mock.MagicMock()
    server.has_extn.return_value = starttls
    smtp = mock.MagicMock()
    smtp.return_value.__enter__.return_value = server
    return smtp, server


def test_availability_alert_content():
    smtp, server = smtp_mock()
    service = make_service(registration_url="https://www.apps.miamioh.edu/courselist/")

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        result = asyncio.run(
            service.send_availability_alert(EMAIL, "12345", StatusReading.parse("29/30"))
        )

    assert result.success
    assert result.subject == "Seat available for CRN 12345"
    message = server.send_message.call_args[0][0]
    assert message["From"] == EMAIL
    assert message["To"] == EMAIL
    assert message["Subject"] == "Seat available for CRN 12345"
    body = message.get_payload(decode=True).decode("utf-8")
    assert "29/30" in body
    assert "1 seat(s)" in body
    assert "https://www.apps.miamioh.edu/courselist/" in body
    smtp.assert_called_once_with("relay.example.edu", 587, timeout=30)


def test_confirmation_lists_crns_and_cadence():
    smtp, server = smtp_mock()
    service = make_service()

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        result = asyncio.run(service.send_confirmation(EMAIL, ["12345", "54321"], 120.0))

    assert result.success
    body = server.send_message.call_args[0][0].get_payload(decode=True).decode("utf-8")
    assert "12345, 54321" in body
    assert "120s" in body


def test_starttls_and_login_only_with_password():
    smtp, server = smtp_mock(starttls=True)
    service = make_service(username="relayuser", password="secret")

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        asyncio.run(service.send_email(EMAIL, "subject", "body"))

    server.starttls.assert_called_once()
    server.login.assert_called_once_with("relayuser", "secret")

    smtp, server = smtp_mock(starttls=False)
    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        asyncio.run(make_service().send_email(EMAIL, "subject", "body"))

    server.starttls.assert_not_called()
    server.login.assert_not_called()


def test_relay_error_reports_failure():
    smtp, server = smtp_mock()
    server.send_message.side_effect = smtplib.SMTPRecipientsRefused({EMAIL: (550, b"denied")})
    service = make_service()

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        result = asyncio.run(service.send_email(EMAIL, "subject", "body"))

    assert result.success is False
    assert result.error.startswith("SMTP error")
    assert server.send_message.call_count == 1


def test_retries_until_success():
    smtp, server = smtp_mock()
    server.send_message.side_effect = [ConnectionRefusedError("refused"), None]
    service = make_service(max_retries=3)

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        result = asyncio.run(service.send_email(EMAIL, "subject", "body"))

    assert result.success
    assert server.send_message.call_count == 2


def test_unexpected_error_reports_failure():
    smtp, server = smtp_mock()
    server.login.side_effect = UnicodeEncodeError("ascii", "p\xe4ss", 1, 2, "ordinal not in range(128)")
    service = make_service(password="p\xe4ss")

    with mock.patch("seatfinder.services.notification.smtplib.SMTP", smtp):
        result = asyncio.run(
            service.send_availability_alert(EMAIL, "12345", StatusReading.parse("1/2"))
        )

    assert result.success is False
    assert result.error.startswith("Unexpected error")
    server.send_message.assert_not_called()
