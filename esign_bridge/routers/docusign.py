"""
DocuSign API Router.
Paths: /v1/docusign/...

Routes are plain (sync) functions: every outbound call blocks in order,
so FastAPI runs them in its threadpool.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response
from fastapi.responses import JSONResponse

from esign_bridge.dependencies import get_bearer_token, get_signing_flow
from esign_bridge.exceptions import build_error_response
from esign_bridge.models import ApiResponse, CreateEnvelopeRequest, CreateTemplateRequest, SenderViewRequest
from esign_bridge.services.signing_flow import SigningFlow
from esign_bridge.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/docusign",
    tags=["docusign"],
)


@router.post("/token", response_model=ApiResponse)
def create_token(flow: SigningFlow = Depends(get_signing_flow)):
    """Mint a provider access token through the JWT-bearer grant."""
    token = flow.issue_token()
    return ApiResponse(success=1, message="Token created", data={"access_token": token})


@router.post("/templates", response_model=ApiResponse)
def create_template(
    body: CreateTemplateRequest,
    flow: SigningFlow = Depends(get_signing_flow),
    caller_token: Optional[str] = Depends(get_bearer_token),
):
    """
    Upload a base64 document as a draft template.

    Returns the template id and an embedded edit (sender) view URL.
    """
    result = flow.create_template(caller_token, body.document, body.return_url, body.doc_id)
    return ApiResponse(success=1, message="Template created", data=result.to_dict())


@router.post("/templates/{template_id}/sender-view", response_model=ApiResponse)
def fresh_sender_view(
    body: SenderViewRequest,
    template_id: str = Path(..., min_length=1),
    flow: SigningFlow = Depends(get_signing_flow),
    caller_token: Optional[str] = Depends(get_bearer_token),
):
    """Re-issue an edit view for an existing template (views are single use)."""
    token = flow.resolve_token(caller_token)
    url = flow.fresh_sender_view(token, template_id, body.return_url)
    if not url:
        content = build_error_response("SENDER_VIEW_UNAVAILABLE", "Failed to generate sender view URL")
        content["data"] = {"senderViewUrl": None}
        return JSONResponse(status_code=502, content=content)
    return ApiResponse(success=1, message="Fresh sender view URL generated", data={"senderViewUrl": url})


@router.post("/envelopes", response_model=ApiResponse)
def create_envelope(
    body: CreateEnvelopeRequest,
    flow: SigningFlow = Depends(get_signing_flow),
    caller_token: Optional[str] = Depends(get_bearer_token),
):
    """
    Send an envelope from a template and return the signer's embedded view.

    `data.id` is the return URL the signer lands on after signing; it carries
    doc_id and envelopeId for the callback.
    """
    result = flow.create_envelope_and_recipient_view(caller_token, body)
    return ApiResponse(success=1, message="Envelope and recipient view created", data=result)


@router.get("/callback", response_model=ApiResponse)
def signing_callback(
    doc_id: Optional[str] = Query(None),
    envelope_id: Optional[str] = Query(None, alias="envelopeId"),
    user_email: Optional[str] = Query(None),
    attorney_email: Optional[str] = Query(None),
    flow: SigningFlow = Depends(get_signing_flow),
):
    """Landing point after signing: re-check status, mail the PDF, notify."""
    outcome = flow.handle_signing_callback(doc_id, envelope_id, user_email, attorney_email)
    return ApiResponse(
        success=1 if outcome.completed else 0,
        message=outcome.message,
        data=outcome.to_dict(),
    )


@router.get("/envelopes/{envelope_id}/document")
def download_signed_document(
    envelope_id: str = Path(..., min_length=1),
    document_id: str = Query("1"),
    flow: SigningFlow = Depends(get_signing_flow),
    caller_token: Optional[str] = Depends(get_bearer_token),
):
    """Stream an envelope document back as a PDF attachment."""
    token = flow.resolve_token(caller_token)
    pdf_bytes = flow.download_signed_document(token, envelope_id, document_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="signed_document.pdf"'},
    )
