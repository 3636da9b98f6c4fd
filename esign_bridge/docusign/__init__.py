# DocuSign eSignature REST client
from esign_bridge.docusign.artifacts import ArtifactFetcher
from esign_bridge.docusign.auth import TokenProvider
from esign_bridge.docusign.envelopes import EnvelopeManager
from esign_bridge.docusign.gateway import ApiGateway
from esign_bridge.docusign.jwt_signer import KeySigner
from esign_bridge.docusign.status import StatusTracker
from esign_bridge.docusign.templates import TemplateManager

__all__ = [
    "ArtifactFetcher",
    "TokenProvider",
    "EnvelopeManager",
    "ApiGateway",
    "KeySigner",
    "StatusTracker",
    "TemplateManager",
]
