"""
Signed document download.
"""
import logging

from esign_bridge.docusign.gateway import ApiGateway, Token
from esign_bridge.exceptions import ApiError, FetchError
from esign_bridge.models import AcceptType
from esign_bridge.utils.security import compute_bytes_hash

logger = logging.getLogger(__name__)

COMBINED_DOCUMENT = "combined"


class ArtifactFetcher:
    """Downloads envelope documents as PDF bytes."""

    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    def fetch_document(self, token: Token, envelope_id: str, document_id: str = COMBINED_DOCUMENT) -> bytes:
        """
        GET .../envelopes/{envelope_id}/documents/{document_id} as application/pdf.

        Args:
            document_id: "1" for the first document, "combined" for all of them

        Raises:
            FetchError: status other than 200 or an empty body
        """
        url = self.gateway.url("envelopes", envelope_id, "documents", str(document_id))
        try:
            response = self.gateway.get_binary(url, token, accept=AcceptType.PDF)
        except ApiError as e:
            raise FetchError(f"Failed to fetch document. HTTP {e.http_status}", http_status=e.http_status)

        if response.status_code != 200 or not response.content:
            raise FetchError(
                f"Failed to fetch document. HTTP {response.status_code}",
                http_status=response.status_code,
            )

        logger.info(
            f"artifact_fetch: envelope_id={envelope_id}, document={document_id}, "
            f"{len(response.content)} bytes, sha256={compute_bytes_hash(response.content)[:12]}"
        )
        return response.content

    def fetch_combined(self, token: Token, envelope_id: str) -> bytes:
        return self.fetch_document(token, envelope_id, COMBINED_DOCUMENT)
