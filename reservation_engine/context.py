# reservation_engine/context.py

import logging
from dataclasses import dataclass, field

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from reservation_engine.config import Settings
from reservation_engine.domain.clock import Clock, utc_now
from reservation_engine.infrastructure.collaborators.alerts import (
    LoggingAlertSink,
    WebhookAlertSink,
)
from reservation_engine.infrastructure.collaborators.email import (
    LoggingEmailSender,
    SmtpEmailSender,
)
from reservation_engine.infrastructure.collaborators.interfaces import (
    AlertSink,
    EmailSender,
    SecretProvider,
    TemplateSource,
)
from reservation_engine.infrastructure.collaborators.secrets import EnvSecretProvider
from reservation_engine.infrastructure.collaborators.templates import FileTemplateSource
from reservation_engine.infrastructure.db.session import build_engine, build_session_factory

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    """
    Everything a handler needs besides its own session.
    Constructed once per process and passed by reference.
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    secret_provider: SecretProvider
    email_sender: EmailSender
    template_source: TemplateSource
    alert_sink: AlertSink
    clock: Clock = field(default=utc_now)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineContext":
        engine = build_engine(settings)

        if settings.smtp_host:
            email_sender: EmailSender = SmtpEmailSender(
                host=settings.smtp_host,
                port=settings.smtp_port,
                sender=settings.sender_email,
                username=settings.smtp_username,
                password=settings.smtp_password,
            )
        else:
            logger.warning("SMTP_HOST not set; outgoing email is only logged.")
            email_sender = LoggingEmailSender()

        if settings.alert_webhook_url:
            alert_sink: AlertSink = WebhookAlertSink(
                webhook_url=settings.alert_webhook_url,
                stage=settings.stage,
                mention_id=settings.alert_mention_id,
            )
        else:
            alert_sink = LoggingAlertSink()

        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            secret_provider=EnvSecretProvider(settings.stage),
            email_sender=email_sender,
            template_source=FileTemplateSource(settings.template_dir),
            alert_sink=alert_sink,
        )
