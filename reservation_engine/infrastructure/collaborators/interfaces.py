"""Collaborator interfaces.

The engine only talks to the outside world through these seams, so
every implementation is swappable (and fakeable in tests).
"""

from abc import ABC, abstractmethod


class SecretProvider(ABC):
    """Source of the HMAC signing secret for the current stage."""

    @abstractmethod
    def get_secret(self) -> str:
        ...


class EmailSender(ABC):

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> None:
        """Deliver a plain-text message. May raise on delivery failure."""
        ...


class TemplateSource(ABC):

    @abstractmethod
    def get_template(self, name: str) -> str:
        """Return the raw template text (with ``{{field}}`` markers)."""
        ...


class AlertSink(ABC):

    @abstractmethod
    def notify(
        self,
        message: str,
        type: str = "INFO",
        severity: str = "LOW",
        service: str = "",
    ) -> None:
        """Best-effort operator notification. Must never raise."""
        ...
