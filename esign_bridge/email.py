"""
Email module using Resend for sending the signed document.

One attempt per send; a failed send is reported in the EmailResult and
never raised, so envelope completion does not depend on mail delivery.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import httpx

from esign_bridge.config import Settings, get_settings
from esign_bridge.utils.logging import fingerprint
from esign_bridge.utils.security import encode_base64

logger = logging.getLogger(__name__)

RESEND_TIMEOUT_SECONDS = 30.0


class EmailDeliveryStatus(str, Enum):
    """Email delivery status for tracking."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Email not configured or no recipients


@dataclass
class EmailResult:
    """Result of email send operation."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivery_status: EmailDeliveryStatus = EmailDeliveryStatus.PENDING
    recipients: List[str] = field(default_factory=list)

    @property
    def is_delivered(self) -> bool:
        return self.delivery_status == EmailDeliveryStatus.SENT


class EmailService:
    """Email service using the Resend HTTP API."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self.http_client = http_client

    def is_configured(self) -> bool:
        """Check if email service is properly configured."""
        return bool(self.settings.resend_api_key)

    def _post(self, payload: dict, headers: dict) -> httpx.Response:
        if self.http_client is not None:
            return self.http_client.post(
                self.RESEND_API_URL, json=payload, headers=headers, timeout=RESEND_TIMEOUT_SECONDS
            )
        with httpx.Client() as client:
            return client.post(self.RESEND_API_URL, json=payload, headers=headers, timeout=RESEND_TIMEOUT_SECONDS)

    def send_email_with_attachment(
        self,
        recipients: Sequence[str],
        subject: str,
        message: str,
        pdf_bytes: bytes,
        filename: str = "signed_document.pdf",
    ) -> EmailResult:
        """
        Send a plain-text message with one PDF attachment.

        Args:
            recipients: Addresses; empty entries are dropped
            subject: Email subject
            message: Plain text body
            pdf_bytes: Attachment content
            filename: Attachment file name

        Returns:
            EmailResult with delivery_status
        """
        to = [r for r in recipients if r]
        recipients_fp = ",".join(fingerprint(r) for r in to)

        if not to:
            return EmailResult(success=False, error="No recipients", delivery_status=EmailDeliveryStatus.SKIPPED)

        if not self.is_configured():
            logger.warning(f"Resend API key not configured, skipping email to {recipients_fp}")
            return EmailResult(
                success=False,
                error="Email service not configured",
                delivery_status=EmailDeliveryStatus.SKIPPED,
                recipients=to,
            )

        payload = {
            "from": f"{self.settings.resend_from_name} <{self.settings.resend_from_email}>",
            "to": to,
            "subject": subject,
            "text": message,
            "attachments": [{"filename": filename, "content": encode_base64(pdf_bytes)}],
        }
        headers = {
            "Authorization": f"Bearer {self.settings.resend_api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._post(payload, headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Email to {recipients_fp} timed out: {e}")
            return EmailResult(
                success=False,
                error=f"Timeout: {e}",
                delivery_status=EmailDeliveryStatus.FAILED,
                recipients=to,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Email to {recipients_fp} failed: {e}")
            return EmailResult(
                success=False,
                error=str(e),
                delivery_status=EmailDeliveryStatus.FAILED,
                recipients=to,
            )

        if response.status_code in (200, 201):
            try:
                message_id = response.json().get("id")
            except ValueError:
                message_id = None
            logger.info(f"Email sent to {recipients_fp}, message_id: {message_id}, attachment: {filename}")
            return EmailResult(
                success=True,
                message_id=message_id,
                delivery_status=EmailDeliveryStatus.SENT,
                recipients=to,
            )

        error = f"API error {response.status_code}: {response.text[:200]}"
        logger.warning(f"Email to {recipients_fp} failed: {error}")
        return EmailResult(success=False, error=error, delivery_status=EmailDeliveryStatus.FAILED, recipients=to)

    def send_completion_email(self, recipients: Sequence[str], pdf_bytes: bytes) -> EmailResult:
        """Combined send used when an envelope completes."""
        return self.send_email_with_attachment(
            recipients,
            "Signed Document Completed",
            "Hello, please find the signed document attached.",
            pdf_bytes,
            "signed_document.pdf",
        )


__all__ = [
    "EmailService",
    "EmailResult",
    "EmailDeliveryStatus",
]
