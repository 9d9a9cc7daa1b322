"""In-memory email adapter used by development and the test suite."""

from dataclasses import dataclass
from uuid import uuid4

from notifications.channel.email_port import DeliveryReceipt, EmailPort


@dataclass(frozen=True)
class SentEmail:
    message_id: str
    to: str
    subject: str
    body: str
    html_body: str | None


class FakeEmailAdapter(EmailPort):
    """Keeps every accepted message in ``outbox``; can be told to fail instead."""

    def __init__(self):
        self.outbox: list[SentEmail] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Email delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> DeliveryReceipt:
        if not self.should_succeed:
            return DeliveryReceipt(status="failed", error=self.failure_reason)

        message = SentEmail(
            message_id=f"email-{uuid4().hex[:12]}",
            to=to,
            subject=subject,
            body=body,
            html_body=html_body,
        )
        self.outbox.append(message)
        return DeliveryReceipt(status="sent", message_id=message.message_id)

    def messages_to(self, recipient: str) -> list[SentEmail]:
        return [message for message in self.outbox if message.to == recipient]
