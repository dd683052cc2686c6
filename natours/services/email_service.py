"""
Natours API — Email Service
=============================

What:  Outbound transactional email (password reset links) over SMTP.
How:   `smtplib` does the blocking I/O in a worker thread. Tenacity retries
       transient failures (connection drops, timeouts, temporary SMTP
       rejections) with exponential backoff and jitter; whatever is still
       failing after the last attempt surfaces as EmailDeliveryError.

Development:
    Point EMAIL_HOST/EMAIL_PORT at a catch-all SMTP inbox such as Mailtrap or
    a local `python -m aiosmtpd -n` server.
"""

import asyncio
import logging
import smtplib
import socket
from email.message import EmailMessage

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from natours.config import settings
from natours.exceptions import EmailDeliveryError
from natours.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)

# SMTPException covers server-side rejections; OSError covers refused
# connections, resets and socket timeouts
_TRANSIENT_ERRORS = (smtplib.SMTPException, OSError, socket.timeout)


class EmailService:
    """
    Sends plain-text email through the configured SMTP relay.

    Stateless: a fresh SMTP connection is opened per message.
    """

    async def send(self, to: str, subject: str, text: str) -> None:
        request_id = get_request_id()
        message = self._build_message(to, subject, text)
        try:
            await self._send_with_retry(message)
        except _TRANSIENT_ERRORS as e:
            logger.error(
                "[%s] Email to %s failed after %d attempts: %s",
                request_id,
                to,
                settings.email_retry_max_attempts,
                e,
            )
            raise EmailDeliveryError(context={"error_type": type(e).__name__})
        logger.info("[%s] Email '%s' sent to %s", request_id, subject, to)

    @staticmethod
    def _build_message(to: str, subject: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = settings.email_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        return message

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.email_retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.email_retry_min_wait,
            max=settings.email_retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._deliver, message)

    @staticmethod
    def _deliver(message: EmailMessage) -> None:
        with smtplib.SMTP(settings.email_host, settings.email_port, timeout=30) as smtp:
            if settings.email_use_tls:
                smtp.starttls()
            if settings.email_username:
                smtp.login(settings.email_username, settings.email_password)
            smtp.send_message(message)


# Singleton instance
email_service = EmailService()
