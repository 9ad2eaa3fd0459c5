"""
Outbound email.

- providers.py: console and Resend delivery
- notifier.py: conference booking, payment and account messages
"""

from .notifier import ConferenceNotifier, get_notifier
from .providers import EmailMessage, EmailProvider, SendResult

__all__ = [
    "ConferenceNotifier",
    "get_notifier",
    "EmailMessage",
    "EmailProvider",
    "SendResult",
]
