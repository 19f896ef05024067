import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage

from reservation_engine.infrastructure.collaborators.interfaces import EmailSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

        logger.info("Email sent to %s (%s)", to, subject)


class LoggingEmailSender(EmailSender):
    """Keeps sent messages in memory and logs them instead of delivering."""

    def __init__(self) -> None:
        self.sent_emails: list[dict] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent_emails.append(
            {
                "to": to,
                "subject": subject,
                "body": body,
                "sent_at": datetime.now(timezone.utc),
            }
        )
        logger.info("Email to %s suppressed (%s)", to, subject)
