"""Email channel port — what the core needs from an email provider."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryReceipt:
    status: str  # "sent" or "failed"
    message_id: str | None = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == "sent"


class EmailPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> DeliveryReceipt:
        """Hand one message to the provider.

        Providers report delivery problems through the receipt rather than by
        raising, so callers can decide how much a failure matters.
        """
        ...
