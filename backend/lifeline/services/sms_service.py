"""SMS channel backed by the Twilio REST API, with a simulation fallback."""
import re
import time
from typing import Optional

import httpx
import structlog

from lifeline.config import Settings
from lifeline.exceptions import ChannelDeliveryError
from lifeline.services.channels import SENT, ChannelResult

logger = structlog.get_logger(__name__)


class SmsService:
    """Sends SMS via Twilio. Unconfigured credentials mean simulation mode."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.from_number = settings.twilio_phone_number
        self.api_url = settings.twilio_api_url.rstrip("/")
        self.timeout = settings.sms_timeout_seconds
        self.default_country_code = settings.default_country_code
        self._client = client

        if not self.is_configured:
            logger.warning("sms_simulation_mode", reason="twilio credentials not configured")

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def format_phone_number(self, phone: str) -> str:
        """Normalize to E.164, assuming the default country when no prefix is given."""
        cleaned = re.sub(r"[\s\-().]", "", phone)
        if cleaned.startswith("+"):
            return cleaned
        country_digits = self.default_country_code.lstrip("+")
        if cleaned.startswith(country_digits):
            return "+" + cleaned
        return self.default_country_code + cleaned

    async def send(self, to: str, body: str) -> ChannelResult:
        if not self.is_configured:
            logger.info("sms_simulated", to=to, length=len(body))
            return ChannelResult(
                status=SENT,
                simulated=True,
                message_id=f"SIM-{int(time.time() * 1000)}",
                body=body,
            )

        url = f"{self.api_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        payload = {"To": self.format_phone_number(to), "From": self.from_number, "Body": body}

        try:
            if self._client is not None:
                response = await self._client.post(url, data=payload, auth=(self.account_sid, self.auth_token))
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, data=payload, auth=(self.account_sid, self.auth_token))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ChannelDeliveryError("sms", f"provider returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ChannelDeliveryError("sms", str(e) or e.__class__.__name__) from e

        return ChannelResult(status=SENT, message_id=data.get("sid"), body=body)
