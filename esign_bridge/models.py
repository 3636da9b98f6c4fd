from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from esign_bridge.utils.datetime_utils import utc_now, is_expired
from esign_bridge.utils.security import encode_base64


class BaseRequest(BaseModel):
    """Base class for all inbound API request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class WireModel(BaseModel):
    """DocuSign REST payload: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WireResponse(WireModel):
    """Provider responses keep unknown fields so callers can see the raw payload."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# Enums
class EnvelopeStatus(str, Enum):
    CREATED = "created"
    SENT = "sent"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    DECLINED = "declined"
    VOIDED = "voided"


class ViewPurpose(str, Enum):
    SENDER_EDIT = "sender-edit"
    RECIPIENT_SIGN = "recipient-sign"


class AcceptType(str, Enum):
    JSON = "application/json"
    PDF = "application/pdf"


# Value types
@dataclass(frozen=True)
class AccessToken:
    """Bearer token minted for a single inbound request."""
    token: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"

    @classmethod
    def from_response(cls, data: Dict[str, Any], default_lifetime: int) -> "AccessToken":
        issued_at = utc_now()
        lifetime = int(data.get("expires_in") or default_lifetime)
        return cls(
            token=data["access_token"],
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=lifetime),
            token_type=data.get("token_type") or "Bearer",
        )

    @property
    def is_expired(self) -> bool:
        return is_expired(self.expires_at)

    def __str__(self) -> str:
        return self.token

    def __repr__(self) -> str:
        return f"AccessToken(expires_at={self.expires_at.isoformat()})"


@dataclass
class DocumentPayload:
    """Uploaded document, consumed once when building a template or envelope."""
    data: bytes
    mime_type: str
    extension: str
    file_name: str

    @property
    def base64(self) -> str:
        return encode_base64(self.data)


@dataclass(frozen=True)
class EmbeddedView:
    """Single-use embedded view URL. Never persisted."""
    url: str
    purpose: ViewPurpose
    return_url: str

    def to_dict(self) -> dict:
        return {"url": self.url, "purpose": self.purpose.value, "returnUrl": self.return_url}


@dataclass
class StatusNotification:
    """Outcome pushed to the external status webhook."""
    collection: str
    doc_id: Optional[str]
    flag_name: str
    success: bool
    error_message: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {self.flag_name: self.success}
        if not self.success and self.error_message:
            data["errorMessage"] = self.error_message
        return NotificationPayload(
            collection=self.collection,
            doc_id=self.doc_id,
            data=data,
        ).model_dump(by_alias=True)


# DocuSign wire payloads (POST bodies)
class TemplateDocument(WireModel):
    document_base64: str
    name: str
    file_extension: str
    document_id: str = "1"


class TemplateDefinition(WireModel):
    name: str
    email_subject: str = "Please prepare template"
    documents: List[TemplateDocument] = Field(..., min_length=1, max_length=1)
    status: str = EnvelopeStatus.CREATED.value


class ReturnUrlRequest(WireModel):
    return_url: str


class TemplateRole(WireModel):
    role_name: str
    name: str
    email: str
    client_user_id: str


class Signer(WireModel):
    email: str
    name: str
    role_name: str = "Client"
    recipient_id: str = "1"
    client_user_id: str


class Recipients(WireModel):
    signers: List[Signer]


class EnvelopeDocument(TemplateDocument):
    pass


class EnvelopeDefinition(WireModel):
    email_subject: str = "Please sign document"
    template_id: Optional[str] = None
    template_roles: Optional[List[TemplateRole]] = None
    documents: Optional[List[EnvelopeDocument]] = None
    recipients: Optional[Recipients] = None
    status: str = EnvelopeStatus.SENT.value


class RecipientViewRequest(WireModel):
    return_url: str
    authentication_method: str = "none"
    email: str
    user_name: str
    client_user_id: str


# DocuSign wire payloads (responses)
class TemplateSummary(WireResponse):
    template_id: Optional[str] = None
    name: Optional[str] = None


class ViewUrl(WireResponse):
    url: Optional[str] = None


class EnvelopeSummary(WireResponse):
    envelope_id: Optional[str] = None
    status: Optional[str] = None
    uri: Optional[str] = None
    status_date_time: Optional[str] = None


class EnvelopeStatusResponse(WireResponse):
    envelope_id: Optional[str] = None
    status: Optional[str] = None
    status_changed_date_time: Optional[str] = None
    completed_date_time: Optional[str] = None


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None


class NotificationPayload(WireModel):
    collection: str
    doc_id: Optional[str] = None
    data: Dict[str, Any]


# Operation parameters
class EnvelopeParams(BaseRequest):
    """
    Input for EnvelopeManager.create_envelope_from_template.

    With document_base64 set the inline-document shape is sent, otherwise the
    envelope references template_id.
    """
    template_id: Optional[str] = None
    role_name: str = "Client"
    name: str
    email: str
    client_user_id: str = Field(..., min_length=1)
    document_base64: Optional[str] = None
    file_name: str = "Agreement.pdf"
    email_subject: str = "Please sign document"


class RecipientViewParams(BaseRequest):
    envelope_id: str = Field(..., min_length=1)
    return_url: str = Field(..., min_length=1)
    name: str
    email: str
    client_user_id: str = Field(..., min_length=1)


@dataclass
class EnvelopeResult:
    envelope_id: str
    status: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.raw, "envelopeId": self.envelope_id, "status": self.status}


@dataclass
class TemplateResult:
    template_id: str
    sender_view_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"templateId": self.template_id, "senderViewUrl": self.sender_view_url}


@dataclass
class StatusResult:
    envelope_id: str
    status: Optional[str]
    completed: bool
    raw: Dict[str, Any] = field(default_factory=dict)


# API request models
class CreateTemplateRequest(BaseRequest):
    document: Optional[str] = Field(None, description="Base64 document, optionally as a data URL")
    return_url: Optional[str] = Field(None, alias="returnUrl")
    doc_id: Optional[str] = Field(None, alias="attorneyId")


class SenderViewRequest(BaseRequest):
    return_url: str = Field(..., alias="returnUrl")


class CreateEnvelopeRequest(BaseRequest):
    template_id: str = Field(..., alias="templateId")
    return_url: str = Field(..., alias="returnUrl")
    client_user_id: str = Field(..., alias="clientUserId", min_length=1)
    name: str = "Default Client"
    email: str = "client@example.com"
    role_name: str = Field("Client", alias="roleName")
    doc_id: str = Field("", alias="doc_id")
    agreement_data: Optional[Dict[str, Any]] = Field(
        None,
        alias="agreementData",
        description="Key/value pairs rendered into an agreement PDF and merged in front of the template document",
    )
    agreement_title: str = Field("Client Agreement", alias="agreementTitle")


class ApiResponse(BaseModel):
    """Uniform response body."""
    success: int
    message: str
    data: Optional[Any] = None
