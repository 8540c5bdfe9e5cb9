"""Outbound email, fire-and-forget.

Request handlers never await delivery: ``send_in_background`` schedules the
send on the event loop and returns. Failures are logged and not retried.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from config.settings import settings

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...


class SmtpEmailSender:
    """Blocking smtplib delivery, run in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        sender: str,
        starttls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._starttls = starttls
        self._timeout = timeout

    async def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        await asyncio.to_thread(self._deliver, msg)

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._starttls:
                smtp.starttls()
            if self._username and self._password:
                smtp.login(self._username, self._password)
            smtp.send_message(msg)


class LogEmailSender:
    """Development sender: writes the message to the log instead of mailing it."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("EMAIL (not sent, SMTP_HOST unset) to=%s subject=%r body=%r", to, subject, body)


def build_email_sender() -> EmailSender:
    if settings.SMTP_HOST:
        return SmtpEmailSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.EMAIL_FROM,
            starttls=settings.SMTP_STARTTLS,
        )
    return LogEmailSender()


# Strong references so pending sends are not garbage-collected mid-flight
_pending: set[asyncio.Task[None]] = set()


async def _deliver_logged(sender: EmailSender, to: str, subject: str, body: str) -> None:
    try:
        await sender.send(to, subject, body)
    except Exception:
        logger.exception("Email to %s (%r) failed; not retried", to, subject)


def send_in_background(
    sender: EmailSender, to: str, subject: str, body: str
) -> asyncio.Task[None]:
    task = asyncio.create_task(_deliver_logged(sender, to, subject, body))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
