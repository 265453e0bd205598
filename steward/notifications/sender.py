"""NotificationSender abstract interface and in-process implementation."""

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from steward.observability.logging import get_logger
from steward.tasks.models import utc_now

logger = get_logger(__name__)


class Notification(BaseModel):
    """A message handed to a sender."""

    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., description="email or sms")
    recipient: str
    subject: str = ""
    body: str
    sent_at: datetime = Field(default_factory=utc_now)


class NotificationSender(ABC):
    """Email/SMS delivery boundary."""

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> None:
        """Send an email."""
        pass

    @abstractmethod
    async def send_sms(self, to: str, body: str) -> None:
        """Send a text message."""
        pass


class InMemoryNotificationSender(NotificationSender):
    """Records notifications instead of delivering them.

    Used in development and tests. Not suitable for production use.
    """

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send_email(self, to: str, subject: str, body: str) -> None:
        self.sent.append(Notification(channel="email", recipient=to, subject=subject, body=body))
        logger.info("notification_recorded", channel="email", recipient=to, subject=subject)

    async def send_sms(self, to: str, body: str) -> None:
        self.sent.append(Notification(channel="sms", recipient=to, body=body))
        logger.info("notification_recorded", channel="sms", recipient=to)
