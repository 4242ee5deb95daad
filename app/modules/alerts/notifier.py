import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from app.core.config import Settings

log = structlog.get_logger()


class EmailNotifier:
    """SMTP transport for alert emails; the blocking client runs in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str = "alerts@vitalwatch.local",
        starttls: bool = True,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._starttls = starttls
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailNotifier":
        return cls(
            host=settings.SMTP_HOST or "localhost",
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.ALERT_EMAIL_FROM,
            starttls=settings.SMTP_STARTTLS,
            timeout_seconds=settings.ALERT_EMAIL_TIMEOUT_SECONDS,
        )

    async def send(self, destination: str, subject: str, body: str) -> bool:
        message = self.build_message(destination, subject, body)
        await asyncio.to_thread(self._deliver, message)
        log.debug("smtp message accepted", to=destination, host=self._host)
        return True

    def build_message(self, destination: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = destination
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout_seconds) as server:
            server.ehlo()
            if self._starttls:
                server.starttls()
                server.ehlo()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(message)
