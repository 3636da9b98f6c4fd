"""
Envelope creation and embedded recipient (signing) views.

Two envelope shapes are sent:
- reference-by-id: templateId plus one template role
- inline-document: a single base64 document plus one explicit signer

The merge path renders an agreement PDF, merges it in front of the
template's source document and sends the result inline.
"""
import logging
from pathlib import PurePath
from typing import Any, Dict, Optional

from esign_bridge.docusign.gateway import ApiGateway, Token
from esign_bridge.docusign.templates import TemplateManager
from esign_bridge.exceptions import ApiError, EnvelopeError, FetchError, MergeError, MissingFieldError
from esign_bridge.models import (
    EmbeddedView,
    EnvelopeDefinition,
    EnvelopeDocument,
    EnvelopeParams,
    EnvelopeResult,
    EnvelopeSummary,
    RecipientViewParams,
    RecipientViewRequest,
    Recipients,
    Signer,
    TemplateRole,
    ViewPurpose,
    ViewUrl,
)
from esign_bridge.pdf.agreement import DEFAULT_TITLE, AgreementPdfGenerator, get_agreement_generator
from esign_bridge.pdf.merge import PdfMergeClient
from esign_bridge.utils.logging import mask_email, set_context
from esign_bridge.utils.security import encode_base64

logger = logging.getLogger(__name__)


class EnvelopeManager:
    """Sends envelopes and issues their signing views."""

    def __init__(
        self,
        gateway: ApiGateway,
        templates: TemplateManager,
        merge_client: Optional[PdfMergeClient] = None,
        agreement_generator: Optional[AgreementPdfGenerator] = None,
    ):
        self.gateway = gateway
        self.templates = templates
        self.merge_client = merge_client
        self.agreement_generator = agreement_generator or get_agreement_generator()

    def build_definition(self, params: EnvelopeParams) -> EnvelopeDefinition:
        if params.document_base64:
            extension = PurePath(params.file_name).suffix.lstrip(".") or "pdf"
            return EnvelopeDefinition(
                email_subject=params.email_subject,
                documents=[
                    EnvelopeDocument(
                        document_base64=params.document_base64,
                        name=params.file_name,
                        file_extension=extension,
                    )
                ],
                recipients=Recipients(signers=[
                    Signer(
                        email=params.email,
                        name=params.name,
                        role_name=params.role_name,
                        client_user_id=params.client_user_id,
                    )
                ]),
            )

        if not params.template_id:
            raise MissingFieldError("templateId")
        return EnvelopeDefinition(
            email_subject=params.email_subject,
            template_id=params.template_id,
            template_roles=[
                TemplateRole(
                    role_name=params.role_name,
                    name=params.name,
                    email=params.email,
                    client_user_id=params.client_user_id,
                )
            ],
        )

    def create_envelope_from_template(self, token: Token, params: EnvelopeParams) -> EnvelopeResult:
        """
        Create and send an envelope (status "sent").

        Raises:
            EnvelopeError: the provider answered non-2xx or returned no envelopeId
        """
        definition = self.build_definition(params)
        shape = "inline-document" if definition.documents else "reference-by-id"

        try:
            response = self.gateway.request(
                "POST",
                self.gateway.url("envelopes"),
                token,
                json_body=definition.to_wire(),
            )
            data = response.json()
        except ApiError as e:
            logger.warning(f"envelope_create: shape={shape} rejected with {e.http_status}")
            raise EnvelopeError(
                f"Envelope creation failed: {e.body}",
                http_status=e.http_status,
                body=e.body,
            )

        summary = EnvelopeSummary.model_validate(data)
        if not summary.envelope_id:
            raise EnvelopeError("Envelope creation failed", http_status=response.status_code, body=response.text)

        set_context(envelope_id=summary.envelope_id)
        logger.info(
            f"envelope_create: envelope_id={summary.envelope_id}, shape={shape}, "
            f"status={summary.status}, signer={mask_email(params.email)}"
        )
        return EnvelopeResult(envelope_id=summary.envelope_id, status=summary.status, raw=data)

    def create_merged_envelope(
        self,
        token: Token,
        params: EnvelopeParams,
        agreement_data: Optional[Dict[str, Any]],
        agreement_title: str = DEFAULT_TITLE,
    ) -> EnvelopeResult:
        """
        Render the agreement, merge it with the template document and send inline.

        When the template has no retrievable document the agreement is sent alone.

        Raises:
            MergeError: the merge service failed or is not configured
            EnvelopeError: envelope creation failed
        """
        if not params.template_id:
            raise MissingFieldError("templateId")

        try:
            template_document = self.templates.get_template_document_base64(params.template_id, "1", token)
        except FetchError as e:
            logger.warning(f"merged_envelope: template document unavailable ({e.message}), sending agreement only")
            template_document = None

        agreement_base64 = encode_base64(self.agreement_generator.generate(agreement_data, agreement_title))

        if template_document:
            if self.merge_client is None:
                raise MergeError("PDF merge service is not configured")
            document_base64 = encode_base64(
                self.merge_client.merge(agreement_base64, template_document, params.file_name)
            )
        else:
            document_base64 = agreement_base64

        inline = params.model_copy(update={"document_base64": document_base64})
        return self.create_envelope_from_template(token, inline)

    def create_recipient_view(self, token: Token, params: RecipientViewParams) -> EmbeddedView:
        """
        Request the embedded signing URL.

        client_user_id must equal the one the signer was created with; the
        provider rejects the request otherwise (surfaced as ApiError).
        """
        body = RecipientViewRequest(
            return_url=params.return_url,
            email=params.email,
            user_name=params.name,
            client_user_id=params.client_user_id,
        )
        response = self.gateway.request(
            "POST",
            self.gateway.url("envelopes", params.envelope_id, "views", "recipient"),
            token,
            json_body=body.to_wire(),
        )
        view = ViewUrl.model_validate(response.json())
        if not view.url:
            raise ApiError(response.status_code, response.text, message="Recipient view returned no URL")

        logger.info(f"recipient_view: envelope_id={params.envelope_id}, signer={mask_email(params.email)}")
        return EmbeddedView(url=view.url, purpose=ViewPurpose.RECIPIENT_SIGN, return_url=params.return_url)
