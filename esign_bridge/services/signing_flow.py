"""
Request-level signing flows.

Each flow runs its outbound calls strictly in order on the request's own
httpx.Client and token. Document and envelope mutations fire exactly one
status notification, success or failure; notification delivery never
changes the flow's result.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from esign_bridge.config import Credential, Settings
from esign_bridge.docusign.artifacts import ArtifactFetcher
from esign_bridge.docusign.auth import TokenProvider
from esign_bridge.docusign.envelopes import EnvelopeManager
from esign_bridge.docusign.gateway import ApiGateway, Token
from esign_bridge.docusign.jwt_signer import KeySigner
from esign_bridge.docusign.status import StatusTracker
from esign_bridge.docusign.templates import TemplateManager
from esign_bridge.documents.classifier import DocumentClassifier
from esign_bridge.email import EmailResult, EmailService
from esign_bridge.exceptions import EsignError, FetchError, ValidationError
from esign_bridge.models import (
    CreateEnvelopeRequest,
    DocumentPayload,
    EnvelopeParams,
    RecipientViewParams,
    TemplateResult,
)
from esign_bridge.pdf.agreement import AgreementPdfGenerator
from esign_bridge.pdf.merge import PdfMergeClient
from esign_bridge.services.notifications import NotificationDispatcher
from esign_bridge.utils.datetime_utils import epoch_seconds
from esign_bridge.utils.logging import set_context
from esign_bridge.utils.security import decode_base64_strict

logger = logging.getLogger(__name__)


def build_signing_return_url(return_url: str, doc_id: Optional[str], envelope_id: str) -> str:
    """returnUrl?doc_id=<doc_id>&envelopeId=<envelope_id>, appending to an existing query."""
    separator = "&" if "?" in return_url else "?"
    return return_url + separator + urlencode({"doc_id": doc_id or "", "envelopeId": envelope_id})


@dataclass
class SigningOutcome:
    """Result of the post-signing callback."""
    envelope_id: str
    status: str
    completed: bool
    message: str
    email: Optional[EmailResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "envelopeId": self.envelope_id,
            "status": self.status,
            "completed": self.completed,
            "message": self.message,
        }
        if self.email is not None:
            data["emailStatus"] = self.email.delivery_status.value
        return data


class SigningFlow:
    """Wires the DocuSign components for one inbound request."""

    def __init__(
        self,
        credential: Credential,
        settings: Settings,
        http_client: httpx.Client,
        classifier: Optional[DocumentClassifier] = None,
        signer: Optional[KeySigner] = None,
        email_service: Optional[EmailService] = None,
        agreement_generator: Optional[AgreementPdfGenerator] = None,
    ):
        self.credential = credential
        self.classifier = classifier or DocumentClassifier()
        self.token_provider = TokenProvider(credential, http_client, signer=signer)
        self.gateway = ApiGateway(credential, http_client)
        self.templates = TemplateManager(self.gateway, self.classifier, self.token_provider)
        self.envelopes = EnvelopeManager(
            self.gateway,
            self.templates,
            merge_client=PdfMergeClient(
                http_client,
                settings.pdf_merge_base_url,
                settings.pdf_merge_api_key,
                timeout=settings.pdf_merge_timeout_seconds,
            ),
            agreement_generator=agreement_generator,
        )
        self.status_tracker = StatusTracker(self.gateway)
        self.artifacts = ArtifactFetcher(self.gateway)
        self.notifications = NotificationDispatcher(
            http_client,
            settings.status_webhook_url,
            document_collection=settings.document_collection,
            envelope_collection=settings.envelope_collection,
            timeout=settings.notification_timeout_seconds,
        )
        self.email_service = email_service or EmailService(settings, http_client)

    def issue_token(self) -> str:
        return self.token_provider.get_access_token().token

    def resolve_token(self, token: Optional[Token]) -> Token:
        """The caller's token, or a freshly minted one."""
        return token or self.issue_token()

    def create_template(
        self,
        token: Optional[Token],
        document_base64: Optional[str],
        return_url: Optional[str],
        doc_id: Optional[str] = None,
    ) -> TemplateResult:
        """
        Upload a document as a draft template and return its edit view.

        The file name is derived from the sniffed content type. Without a
        token one is minted. Notifies the document collection with the
        outcome, token failures included.
        """
        set_context(doc_id=doc_id)
        try:
            if not document_base64 or not document_base64.strip():
                raise ValidationError("Document upload failed", field="document")
            try:
                document_bytes = decode_base64_strict(document_base64)
            except ValueError:
                raise ValidationError("Invalid Base64 string", field="document")

            mime_type, extension = self.classifier.classify(document_bytes)
            payload = DocumentPayload(
                data=document_bytes,
                mime_type=mime_type,
                extension=extension,
                file_name=f"document_{epoch_seconds()}.{extension}",
            )
            token = self.resolve_token(token)
            result = self.templates.create_template(token, payload.base64, payload.file_name, return_url)
        except EsignError as e:
            self.notifications.notify_document_status(doc_id, False, e.message)
            raise

        set_context(template_id=result.template_id)
        self.notifications.notify_document_status(doc_id, True)
        return result

    def create_envelope_and_recipient_view(
        self,
        token: Optional[Token],
        request: CreateEnvelopeRequest,
    ) -> Dict[str, Any]:
        """
        Send an envelope for the template and open the signer's embedded view.

        With agreement_data the agreement PDF is merged in front of the
        template document and sent inline; otherwise the template is
        referenced by id. The envelope collection is notified once with the
        creation outcome; a created envelope is reported as not yet signed.
        """
        set_context(doc_id=request.doc_id or None, template_id=request.template_id)
        params = EnvelopeParams(
            template_id=request.template_id,
            role_name=request.role_name,
            name=request.name,
            email=request.email,
            client_user_id=request.client_user_id,
        )

        try:
            token = self.resolve_token(token)
            if request.agreement_data is not None:
                envelope = self.envelopes.create_merged_envelope(
                    token, params, request.agreement_data, request.agreement_title
                )
            else:
                envelope = self.envelopes.create_envelope_from_template(token, params)
        except EsignError as e:
            self.notifications.notify_envelope_status(request.doc_id, False, e.message)
            raise
        self.notifications.notify_envelope_status(request.doc_id, False)

        signing_return_url = build_signing_return_url(request.return_url, request.doc_id, envelope.envelope_id)
        view = self.envelopes.create_recipient_view(
            token,
            RecipientViewParams(
                envelope_id=envelope.envelope_id,
                return_url=signing_return_url,
                name=request.name,
                email=request.email,
                client_user_id=request.client_user_id,
            ),
        )
        return {
            "id": signing_return_url,
            "envelope": envelope.to_dict(),
            "recipientView": view.to_dict(),
        }

    def handle_signing_callback(
        self,
        doc_id: Optional[str],
        envelope_id: Optional[str],
        user_email: Optional[str] = None,
        attorney_email: Optional[str] = None,
    ) -> SigningOutcome:
        """
        Re-check the envelope after the provider redirects back.

        Completed: mail the combined PDF to the non-empty recipients and
        notify success. Anything else: notify failure with the status.
        """
        if not doc_id or not envelope_id:
            raise ValidationError("Missing docId or envelopeId")
        set_context(doc_id=doc_id, envelope_id=envelope_id)

        try:
            token = self.issue_token()
            status = self.status_tracker.get_envelope_status(token, envelope_id)
        except EsignError as e:
            self.notifications.notify_envelope_status(doc_id, False, e.message)
            raise

        if not status.completed:
            status_text = status.status or "Unknown"
            self.notifications.notify_envelope_status(doc_id, False, status_text)
            return SigningOutcome(
                envelope_id=envelope_id,
                status=status_text,
                completed=False,
                message="Document not signed yet.",
            )

        email_result = None
        recipients = [r for r in (user_email, attorney_email) if r]
        if recipients:
            try:
                pdf_bytes = self.artifacts.fetch_combined(token, envelope_id)
            except FetchError as e:
                logger.error(f"signing_callback: signed PDF unavailable for mail: {e.message}")
            else:
                email_result = self.email_service.send_completion_email(recipients, pdf_bytes)
                if not email_result.success:
                    logger.warning(f"signing_callback: completion mail not sent: {email_result.error}")

        self.notifications.notify_envelope_status(doc_id, True)
        return SigningOutcome(
            envelope_id=envelope_id,
            status=status.status,
            completed=True,
            message="Thank you, your document is signed!",
            email=email_result,
        )

    def download_signed_document(self, token: Token, envelope_id: str, document_id: str = "1") -> bytes:
        if not envelope_id:
            raise ValidationError("envelopeId is required", field="envelopeId")
        set_context(envelope_id=envelope_id)
        return self.artifacts.fetch_document(token, envelope_id, document_id)

    def fresh_sender_view(self, token: Token, template_id: str, return_url: str) -> Optional[str]:
        if not template_id or not return_url:
            raise ValidationError("templateId and returnUrl are required")
        set_context(template_id=template_id)
        return self.templates.get_fresh_sender_view(token, template_id, return_url)
