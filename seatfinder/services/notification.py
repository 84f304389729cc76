"""
Notification service for sending email alerts through an SMTP relay.
Handles async delivery, formatting, and error handling.
"""

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.text import MIMEText
from typing import Optional

from seatfinder.models.schemas import NotificationResult, StatusReading

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for sending email notifications via an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 1,
        retry_delay: float = 2.0,
        registration_url: Optional[str] = None,
    ):
        """
        Initialize notification service.

        Args:
            host: SMTP relay host name
            port: SMTP relay port (STARTTLS is used when offered)
            username: Relay login; falls back to the sender address when a password is set
            password: Relay password; no login is attempted without one
            timeout: Socket timeout for one SMTP conversation (in seconds)
            max_retries: Attempts per message before reporting failure
            retry_delay: Base delay for exponential backoff between attempts
            registration_url: Link included in availability alerts
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.registration_url = registration_url
        logger.info(f"Email notification service initialized ({host}:{port})")

    def _deliver(self, message: MIMEText) -> None:
        """Blocking SMTP conversation for a single message."""
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                # The institutional relay presents an internal certificate
                context = ssl.create_default_context()
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
                server.starttls(context=context)
                server.ehlo()
            if self.password:
                server.login(self.username or message["From"], self.password)
            server.send_message(message)

    async def send_email(
        self,
        to_address: str,
        subject: str,
        body: str,
    ) -> NotificationResult:
        """
        Send an email asynchronously with retry logic.

        The sender and recipient are both to_address.

        Args:
            to_address: Recipient email address
            subject: Subject line
            body: Plain-text body

        Returns:
            NotificationResult with delivery status
        """
        message = MIMEText(body, "plain", "utf-8")
        message["From"] = to_address
        message["To"] = to_address
        message["Subject"] = subject

        error = "Max retries exceeded"
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(
                    f"Sending email '{subject}' to {to_address} "
                    f"(attempt {attempt}/{self.max_retries})"
                )

                # Run SMTP conversation in thread pool (smtplib is synchronous)
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._deliver, message)

                logger.info(f"Email sent successfully to {to_address}")

                return NotificationResult(
                    success=True,
                    recipient=to_address,
                    subject=subject,
                    sent_at=datetime.now(),
                )

            except (smtplib.SMTPException, OSError) as e:
                error = f"SMTP error: {e}"
                logger.error(
                    f"SMTP error sending to {to_address} (attempt {attempt}): {e}"
                )

            except Exception as e:
                error = f"Unexpected error: {e}"
                logger.error(
                    f"Unexpected error sending to {to_address} (attempt {attempt}): {e}"
                )

            if attempt < self.max_retries:
                # Exponential backoff
                wait_time = self.retry_delay * 2 ** (attempt - 1)
                logger.info(f"Retrying in {wait_time} seconds...")
                await asyncio.sleep(wait_time)

        return NotificationResult(
            success=False,
            recipient=to_address,
            subject=subject,
            error=error,
            sent_at=datetime.now(),
        )

    async def send_availability_alert(
        self,
        to_address: str,
        crn: str,
        reading: StatusReading,
    ) -> NotificationResult:
        """Tell the user that a CRN has open seats."""
        subject = f"Seat available for CRN {crn}"
        body = self._format_availability_alert(crn, reading)
        return await self.send_email(to_address, subject, body)

    async def send_confirmation(
        self,
        to_address: str,
        crns: list[str],
        interval_seconds: float,
    ) -> NotificationResult:
        """Tell the user which CRNs are being monitored and how often."""
        subject = "Seat Finder monitoring started"
        body = self._format_confirmation(crns, interval_seconds)
        return await self.send_email(to_address, subject, body)

    def _format_availability_alert(self, crn: str, reading: StatusReading) -> str:
        message = (
            f"Good news! CRN {crn} now shows {reading.current}/{reading.capacity} "
            f"enrolled ({reading.open_seats} seat(s) open).\n"
        )
        if self.registration_url:
            message += f"\nRegister now at: {self.registration_url}\n"
        message += "\nThis is an automated message from Seat Finder."
        return message

    def _format_confirmation(self, crns: list[str], interval_seconds: float) -> str:
        return (
            f"Monitoring CRNs: {', '.join(crns)}\n"
            f"Polling every {interval_seconds:g}s.\n\n"
            "You will receive a separate email as soon as a seat opens in any of "
            "these courses. The monitoring program must stay running and connected "
            "to the campus network or VPN.\n\n"
            "This is an automated message from Seat Finder."
        )
