"""Email channel for emergency notifications via SMTP."""
import asyncio
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import structlog

from lifeline.config import Settings
from lifeline.exceptions import ChannelDeliveryError
from lifeline.services.channels import SENT, ChannelResult

logger = structlog.get_logger(__name__)


class EmailService:
    """Service for sending emails via SMTP. Without a host/user/password it simulates."""

    def __init__(self, settings: Settings):
        self.smtp_server = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_address = settings.email_from
        self.timeout = settings.smtp_timeout_seconds

        if not self.is_configured:
            logger.warning("email_simulation_mode", reason="smtp credentials not configured")

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_server and self.smtp_user and self.smtp_password)

    def _build_message(self, to: str, subject: str, html: str, text: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def _deliver(self, message: MIMEMultipart) -> None:
        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)
        else:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)

    async def send(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        if not self.is_configured:
            logger.info("email_simulated", to=to, subject=subject)
            return ChannelResult(
                status=SENT,
                simulated=True,
                message_id=f"SIM-EMAIL-{int(time.time() * 1000)}",
                subject=subject,
                body=html,
            )

        message = self._build_message(to, subject, html, text)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            raise ChannelDeliveryError("email", str(e) or e.__class__.__name__) from e

        return ChannelResult(status=SENT, message_id=message["Message-ID"], subject=subject, body=html)
