"""
Email delivery through the Postmark HTTPS API.

Reports go out as a single attachment on a plain-text message. The mailer
returns Postmark's ``MessageID`` so the audit trail can reference the send.
"""

import base64
from typing import Any, Dict, Optional

import httpx

from core.errors import MailDeliveryError
from core.logging import get_logger
from core.models import ExportArtifact

logger = get_logger(__name__)

POSTMARK_URL = "https://api.postmarkapp.com/email"


class PostmarkMailer:
    """
    Sends transactional mail with one attachment.

    Example:
        mailer = PostmarkMailer(token, "CeyLog Reports <reports@ceylog.com>")
        message_id = await mailer.send("buyer@ceylog.com", "Your Report", "Hi", artifact)
    """

    def __init__(
        self,
        token: str,
        from_email: str,
        stream: str = "outbound",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.from_email = from_email
        self.stream = stream
        self.client = client or httpx.AsyncClient(timeout=15.0)

    def _payload(self, to: str, subject: str, text_body: str, attachment: ExportArtifact) -> Dict[str, Any]:
        return {
            "From": self.from_email,
            "To": to,
            "Subject": subject,
            "TextBody": text_body,
            "MessageStream": self.stream,
            "Attachments": [
                {
                    "Name": attachment.filename,
                    "Content": base64.b64encode(attachment.content).decode("ascii"),
                    "ContentType": attachment.content_type,
                }
            ],
        }

    async def send(self, to: str, subject: str, text_body: str, attachment: ExportArtifact) -> str:
        """
        Send one message.

        Returns:
            Provider message id

        Raises:
            MailDeliveryError: missing token, transport failure, or a rejected send
        """
        if not self.token:
            raise MailDeliveryError("POSTMARK_API_TOKEN not configured")

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self.token,
        }
        try:
            response = await self.client.post(
                POSTMARK_URL,
                json=self._payload(to, subject, text_body, attachment),
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise MailDeliveryError(f"Postmark request failed: {e}") from e

        if response.status_code != 200:
            raise MailDeliveryError(f"Postmark API error: {response.status_code} - {response.text}")

        try:
            result = response.json()
        except ValueError as e:
            raise MailDeliveryError("Postmark returned a non-JSON response") from e

        if result.get("ErrorCode", 0) != 0:
            raise MailDeliveryError(f"Postmark rejected message: {result.get('Message')}")

        message_id = result.get("MessageID")
        if not message_id:
            raise MailDeliveryError("Postmark response missing MessageID")

        logger.info(f"Report email sent to {to}. MessageID: {message_id}")
        return message_id

    async def aclose(self) -> None:
        await self.client.aclose()
