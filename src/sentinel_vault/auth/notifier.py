# Sentinel Vault - Out-of-band Notifications
#
# Delivers password reset links. The reset token is a bearer credential:
# implementations may put it in the message they deliver but must never
# write it to a log.

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ResetMessage:
    email: str
    token: str
    reset_url: str


class Notifier(ABC):
    """Delivery channel for reset links."""

    @abstractmethod
    def send_reset_link(self, email: str, token: str, reset_url: str) -> None:
        """Deliver the link. Raises on delivery failure."""


class LoggingNotifier(Notifier):
    """Development notifier: records that a link was issued, not the link."""

    def send_reset_link(self, email: str, token: str, reset_url: str) -> None:
        domain = email.rsplit("@", 1)[-1]
        logger.info("Password reset link issued for an address at %s", domain)


class OutboxNotifier(Notifier):
    """Keeps delivered messages in memory (tests, local tooling)."""

    def __init__(self):
        self.messages: List[ResetMessage] = []
        self._lock = threading.Lock()

    def send_reset_link(self, email: str, token: str, reset_url: str) -> None:
        with self._lock:
            self.messages.append(ResetMessage(email=email, token=token, reset_url=reset_url))

    def last_for(self, email: str) -> Optional[ResetMessage]:
        with self._lock:
            for message in reversed(self.messages):
                if message.email == email.lower():
                    return message
        return None
