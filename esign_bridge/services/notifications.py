"""
Best-effort status push to the external document webhook.

Each call is a single bounded POST. Failures are logged and swallowed; the
caller's result never depends on delivery.
"""
import logging
from typing import Optional

import httpx

from esign_bridge.exceptions import NotificationError
from esign_bridge.models import StatusNotification

logger = logging.getLogger(__name__)

DOCUMENT_FLAG = "isDocumentEdited"
ENVELOPE_FLAG = "isEnvelopSign"
DEFAULT_NOTIFICATION_TIMEOUT_SECONDS = 10.0


class NotificationDispatcher:
    """Fire-and-forget webhook client. No retries."""

    def __init__(
        self,
        http_client: httpx.Client,
        webhook_url: str,
        document_collection: str = "LawFirm",
        envelope_collection: str = "QuoteAlert",
        timeout: float = DEFAULT_NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.http_client = http_client
        self.webhook_url = webhook_url
        self.document_collection = document_collection
        self.envelope_collection = envelope_collection
        self.timeout = timeout

    def _post(self, notification: StatusNotification) -> None:
        try:
            response = self.http_client.post(
                self.webhook_url,
                json=notification.to_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"Webhook unreachable: {e}")
        if not 200 <= response.status_code < 300:
            raise NotificationError(f"Webhook returned HTTP {response.status_code}")

    def dispatch(self, notification: StatusNotification) -> bool:
        """Send one notification. Returns whether it was delivered."""
        if not self.webhook_url:
            logger.warning(f"notify: STATUS_WEBHOOK_URL not set, dropping {notification.collection} notification")
            return False

        try:
            self._post(notification)
        except NotificationError as e:
            logger.warning(
                f"notify: {notification.collection} doc_id={notification.doc_id} "
                f"{notification.flag_name}={notification.success} not delivered: {e.message}"
            )
            return False

        logger.info(
            f"notify: {notification.collection} doc_id={notification.doc_id} "
            f"{notification.flag_name}={notification.success}"
        )
        return True

    def notify_document_status(
        self,
        doc_id: Optional[str],
        success: bool,
        error_message: Optional[str] = None,
    ) -> bool:
        return self.dispatch(StatusNotification(
            collection=self.document_collection,
            doc_id=doc_id,
            flag_name=DOCUMENT_FLAG,
            success=success,
            error_message=error_message,
        ))

    def notify_envelope_status(
        self,
        doc_id: Optional[str],
        success: bool,
        error_message: Optional[str] = None,
    ) -> bool:
        return self.dispatch(StatusNotification(
            collection=self.envelope_collection,
            doc_id=doc_id,
            flag_name=ENVELOPE_FLAG,
            success=success,
            error_message=error_message,
        ))
