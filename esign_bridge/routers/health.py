"""
Health check endpoints for diagnosing service configuration.
"""
from fastapi import APIRouter, Depends, Request

from esign_bridge.config import Settings, get_settings

router = APIRouter(
    prefix="/health",
    tags=["health"],
)

VERSION = "1.0.0"


@router.get("")
def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy", "version": VERSION}


@router.get("/config")
def health_check_config(request: Request, settings: Settings = Depends(get_settings)):
    """
    Report which configuration parts are present. Values are never returned.
    """
    credential_loaded = getattr(request.app.state, "credential", None) is not None
    checks = {
        "docusign_integration_key": bool(settings.docusign_integration_key),
        "docusign_user_id": bool(settings.docusign_user_id),
        "docusign_account_id": bool(settings.docusign_account_id),
        "docusign_private_key": bool(settings.docusign_private_key or settings.docusign_private_key_path),
        "docusign_credential_loaded": credential_loaded,
        "status_webhook_url": bool(settings.status_webhook_url),
        "pdf_merge_api_key": bool(settings.pdf_merge_api_key),
        "resend_api_key": bool(settings.resend_api_key),
    }
    result = {
        "status": "healthy" if credential_loaded else "degraded",
        "environment": settings.environment,
        "docusign_auth_server": settings.docusign_auth_server,
        "docusign_base_path": settings.docusign_base_path,
        "checks": checks,
    }
    error = getattr(request.app.state, "credential_error", None)
    if error:
        result["error"] = error
    return result
