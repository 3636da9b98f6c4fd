"""
FastAPI dependencies: credential, per-request HTTP client, signing flow,
and the caller's optional bearer token.
"""
import logging
from typing import Iterator, Optional

import httpx
from fastapi import Depends, Header, HTTPException, Request

from esign_bridge.config import Credential, Settings, get_settings
from esign_bridge.exceptions import ConfigurationError
from esign_bridge.services.signing_flow import SigningFlow
from esign_bridge.utils.logging import fingerprint

logger = logging.getLogger(__name__)


def get_credential(request: Request) -> Credential:
    """The Credential built at startup. ConfigurationError if it failed to load."""
    credential = getattr(request.app.state, "credential", None)
    if credential is None:
        reason = getattr(request.app.state, "credential_error", None) or "DocuSign credential not loaded"
        raise ConfigurationError(reason)
    return credential


def get_http_client() -> Iterator[httpx.Client]:
    """One client per request, closed on every exit path."""
    with httpx.Client() as client:
        yield client


def get_signing_flow(
    credential: Credential = Depends(get_credential),
    settings: Settings = Depends(get_settings),
    http_client: httpx.Client = Depends(get_http_client),
) -> SigningFlow:
    return SigningFlow(credential, settings, http_client)


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """
    Caller-supplied provider token, if any.

    A missing header is fine (the route mints a token); a malformed one is 401.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"code": "INVALID_AUTHORIZATION", "message": "Missing or invalid Authorization header"},
        )
    token = token.strip()
    logger.debug(f"caller token supplied: {fingerprint(token, 'tok_')}")
    return token
