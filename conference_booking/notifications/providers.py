import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import resend

from conference_booking.config import settings

logger = logging.getLogger(__name__)

@dataclass
class EmailMessage:
    to: List[str]
    subject: str
    html: str
    reply_to: Optional[str] = None
    tags: List[str] = field(default_factory=list)

@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

class EmailProvider(ABC):
    """Abstract outbound email provider."""

    @abstractmethod
    def send(self, message: EmailMessage) -> SendResult:
        """Deliver one message; implementations report failures in the result."""

class ConsoleEmailProvider(EmailProvider):
    """Writes messages to the log instead of sending them. Used in development."""

    def __init__(self):
        self.sent: List[EmailMessage] = []

    def send(self, message: EmailMessage) -> SendResult:
        self.sent.append(message)
        logger.info("Email to %s: %s", ", ".join(message.to), message.subject)
        return SendResult(success=True, message_id=f"console-{len(self.sent)}")

class ResendEmailProvider(EmailProvider):
    """Sends email through the Resend API"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = api_key or settings.RESEND_API_KEY
        if not api_key:
            raise ValueError("RESEND_API_KEY is required for the resend email provider")
        resend.api_key = api_key
        self.from_email = from_email or f"{settings.BRAND_NAME} <{settings.RESEND_FROM_EMAIL}>"

    def send(self, message: EmailMessage) -> SendResult:
        params = {
            "from": self.from_email,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.reply_to:
            params["reply_to"] = message.reply_to
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            return SendResult(success=False, error=str(e))
        return SendResult(success=True, message_id=response.get("id"))

def build_provider(name: Optional[str] = None) -> EmailProvider:
    name = (name or settings.EMAIL_PROVIDER).lower()
    if name == "resend":
        return ResendEmailProvider()
    if name == "console":
        return ConsoleEmailProvider()
    raise ValueError(f"Unknown email provider: {name}")
