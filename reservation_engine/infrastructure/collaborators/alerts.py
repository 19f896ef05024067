import logging
from datetime import datetime, timezone

import httpx

from reservation_engine.infrastructure.collaborators.interfaces import AlertSink

logger = logging.getLogger(__name__)

_COLORS = {
    "ERROR": 15158332,
    "WARNING": 16776960,
    "INFO": 3066993,
}

_LEVELS = {
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
}


class LoggingAlertSink(AlertSink):

    def notify(
        self,
        message: str,
        type: str = "INFO",
        severity: str = "LOW",
        service: str = "",
    ) -> None:
        logger.log(
            _LEVELS.get(type, logging.INFO),
            "[%s/%s] %s: %s",
            type,
            severity,
            service,
            message,
        )


class WebhookAlertSink(AlertSink):
    """
    Posts a chat-webhook embed (Discord format) per alert.
    ERROR alerts mention the on-call role when one is configured.
    """

    def __init__(
        self,
        webhook_url: str,
        stage: str,
        mention_id: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 5.0,
    ):
        self.webhook_url = webhook_url
        self.stage = stage
        self.mention_id = mention_id
        self._client = client or httpx.Client(timeout=timeout)

    def build_payload(self, message: str, type: str, severity: str, service: str) -> dict:
        content = ""
        if type == "ERROR" and self.mention_id:
            content = f"<@&{self.mention_id}> "

        return {
            "content": content,
            "embeds": [
                {
                    "title": f"[{self.stage.upper()}] {type}: {service}",
                    "description": message,
                    "color": _COLORS.get(type, _COLORS["INFO"]),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "footer": {"text": f"severity: {severity}"},
                }
            ],
        }

    def notify(
        self,
        message: str,
        type: str = "INFO",
        severity: str = "LOW",
        service: str = "",
    ) -> None:
        payload = self.build_payload(message, type, severity, service)
        try:
            response = self._client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to deliver alert from %s", service)
