from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol

logger = logging.getLogger("tenantcms.mailer")


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    body: str
    reply_to: str = ""


class Mailer(Protocol):
    def send(self, email: OutboundEmail) -> bool:
        """Deliver ``email``; False means delivery failed."""


class LoggingMailer:
    """Records outbound mail in the log instead of delivering it."""

    def __init__(self) -> None:
        self.sent: List[OutboundEmail] = []

    def send(self, email: OutboundEmail) -> bool:
        self.sent.append(email)
        logger.info("email queued", extra={"to": email.to, "subject": email.subject})
        return True
