"""
Envelope status polling.

Only the completed / not-completed split drives behaviour; every other
lifecycle state is "not yet signed".
"""
import logging
from typing import Optional

from esign_bridge.docusign.gateway import ApiGateway, Token
from esign_bridge.models import EnvelopeStatus, EnvelopeStatusResponse, StatusResult

logger = logging.getLogger(__name__)


def is_completed(status: Optional[str]) -> bool:
    """Case-insensitive check for the completed state."""
    return bool(status) and status.strip().lower() == EnvelopeStatus.COMPLETED.value


class StatusTracker:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    def get_envelope_status(self, token: Token, envelope_id: str) -> StatusResult:
        data = self.gateway.get_json(self.gateway.url("envelopes", envelope_id), token)
        status = EnvelopeStatusResponse.model_validate(data).status
        completed = is_completed(status)
        logger.info(f"envelope_status: envelope_id={envelope_id}, status={status}, completed={completed}")
        return StatusResult(envelope_id=envelope_id, status=status, completed=completed, raw=data)
