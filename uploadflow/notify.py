# notify.py
import logging
from typing import Optional

import httpx

from uploadflow.errors import NotificationFailure
from uploadflow.settings import settings

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class BrevoNotifier:
    """
    Sends a plain-text upload notification through the Brevo (Sendinblue)
    transactional email API. Does nothing when Brevo is not configured.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.BREVO_API_KEY
        self.sender = sender if sender is not None else settings.EMAIL_SENDER
        self.recipient = recipient if recipient is not None else settings.NOTIFY_RECIPIENT
        self.timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.sender and self.recipient)

    async def send(self, subject: str, body: str) -> None:
        if not self.enabled:
            logger.warning("BREVO_API_KEY, EMAIL_SENDER or NOTIFY_RECIPIENT not set, skipping upload notification.")
            return

        headers = {
            "api-key": self.api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }
        data = {
            "sender": {"email": self.sender, "name": "Upload Notifications"},
            "to": [{"email": self.recipient}],
            "subject": subject,
            "textContent": body,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(BREVO_API_URL, headers=headers, json=data)
        except httpx.HTTPError as e:
            raise NotificationFailure(f"Brevo API call failed: {e}") from e

        if response.is_error:
            raise NotificationFailure(
                f"Brevo API error. Status: {response.status_code}, Response: {response.text}"
            )
        logger.info(f"Upload notification sent to {self.recipient}")
