"""
Template creation and embedded sender (edit) views.
"""
import logging
from pathlib import PurePath
from typing import Optional

from esign_bridge.docusign.auth import TokenProvider
from esign_bridge.docusign.gateway import ApiGateway, Token
from esign_bridge.documents.classifier import DEFAULT_EXTENSION, DocumentClassifier
from esign_bridge.exceptions import ApiError, ConfigurationError, FetchError, MissingFieldError, ValidationError
from esign_bridge.models import (
    AcceptType,
    EmbeddedView,
    ReturnUrlRequest,
    TemplateDefinition,
    TemplateDocument,
    TemplateResult,
    TemplateSummary,
    ViewPurpose,
    ViewUrl,
)
from esign_bridge.utils.datetime_utils import timestamp_label
from esign_bridge.utils.security import decode_base64_strict, encode_base64

logger = logging.getLogger(__name__)


class TemplateManager:
    """Creates draft templates and issues their embedded edit views."""

    def __init__(
        self,
        gateway: ApiGateway,
        classifier: Optional[DocumentClassifier] = None,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.gateway = gateway
        self.classifier = classifier or DocumentClassifier()
        self.token_provider = token_provider

    def _file_extension(self, document_bytes: bytes, file_name: str) -> str:
        _, extension = self.classifier.classify(document_bytes)
        if extension == DEFAULT_EXTENSION:
            suffix = PurePath(file_name).suffix.lstrip(".").lower()
            if suffix:
                return suffix
        return extension

    def create_template(
        self,
        token: Token,
        document_base64: Optional[str],
        file_name: Optional[str],
        return_url: Optional[str],
    ) -> TemplateResult:
        """
        Create a one-document draft template and open its edit view.

        Raises:
            ValidationError: a required field is missing or the document is not base64
            ApiError: the provider rejected either call
        """
        for field_name, value in (
            ("documentBase64", document_base64),
            ("fileName", file_name),
            ("returnUrl", return_url),
        ):
            if not value:
                raise MissingFieldError(field_name)

        try:
            document_bytes = decode_base64_strict(document_base64)
        except ValueError:
            raise ValidationError("Invalid Base64 string", field="documentBase64")

        definition = TemplateDefinition(
            name=f"Template - {timestamp_label()}",
            documents=[
                TemplateDocument(
                    document_base64=encode_base64(document_bytes),
                    name=file_name,
                    file_extension=self._file_extension(document_bytes, file_name),
                )
            ],
        )

        response = self.gateway.request(
            "POST",
            self.gateway.url("templates"),
            token,
            json_body=definition.to_wire(),
        )
        summary = TemplateSummary.model_validate(response.json())
        if not summary.template_id:
            raise ApiError(
                response.status_code,
                response.text,
                message=f"Failed to create template: {response.text}",
            )
        logger.info(f"template_created: template_id={summary.template_id}, name={definition.name!r}")

        view = self.create_sender_view(token, summary.template_id, return_url)
        return TemplateResult(template_id=summary.template_id, sender_view_url=view.url)

    def create_sender_view(self, token: Token, template_id: str, return_url: str) -> EmbeddedView:
        data = self.gateway.post_json(
            self.gateway.url("templates", template_id, "views", "edit"),
            token,
            ReturnUrlRequest(return_url=return_url).to_wire(),
        )
        return EmbeddedView(
            url=ViewUrl.model_validate(data).url or "",
            purpose=ViewPurpose.SENDER_EDIT,
            return_url=return_url,
        )

    def get_fresh_sender_view(self, token: Token, template_id: str, return_url: str) -> Optional[str]:
        """
        Re-issue an edit view for an existing template.

        Returns None instead of raising when the provider gives no URL.
        """
        try:
            view = self.create_sender_view(token, template_id, return_url)
        except ApiError as e:
            logger.warning(f"fresh_sender_view: template_id={template_id} failed: {e.message}")
            return None
        return view.url or None

    def get_template_document_base64(
        self,
        template_id: str,
        document_id: str = "1",
        token: Optional[Token] = None,
    ) -> str:
        """
        Download one document of a template, base64-encoded.

        Mints its own token when none is given.

        Raises:
            FetchError: status other than 200 or an empty body
        """
        if token is None:
            if self.token_provider is None:
                raise ConfigurationError("No token provider available to fetch template documents")
            token = self.token_provider.get_access_token()

        url = self.gateway.url("templates", template_id, "documents", str(document_id))
        try:
            response = self.gateway.get_binary(url, token, accept=AcceptType.PDF)
        except ApiError as e:
            raise FetchError(
                f"Failed to fetch document from template. HTTP {e.http_status}",
                http_status=e.http_status,
            )

        if response.status_code != 200 or not response.content:
            raise FetchError(
                f"Failed to fetch document from template. HTTP {response.status_code}",
                http_status=response.status_code,
            )
        return encode_base64(response.content)
