from dataclasses import dataclass
from typing import Optional, Protocol

SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class ChannelResult:
    """Outcome of one send on one channel."""

    status: str
    simulated: bool = False
    message_id: Optional[str] = None
    error: Optional[str] = None
    body: str = ""
    subject: Optional[str] = None


class SmsSender(Protocol):
    async def send(self, to: str, body: str) -> ChannelResult:
        ...


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        ...
