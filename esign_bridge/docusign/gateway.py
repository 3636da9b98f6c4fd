"""
Authenticated REST caller for the DocuSign eSignature API.

The gateway never fetches tokens itself; every call takes the bearer token
the caller minted for the current request.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx

from esign_bridge.config import Credential
from esign_bridge.exceptions import ApiError
from esign_bridge.models import AccessToken, AcceptType

logger = logging.getLogger(__name__)

Token = Union[str, AccessToken]


@dataclass
class GatewayResponse:
    """Raw provider reply: status plus body as text and bytes."""
    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.content or b"{}")
        except ValueError:
            raise ApiError(self.status_code, self.text, message=f"Invalid JSON from DocuSign: {self.text[:200]}")
        if not isinstance(data, dict):
            raise ApiError(self.status_code, self.text, message="Unexpected JSON shape from DocuSign")
        return data


class ApiGateway:
    """
    Issues GET/POST calls against {base}/v2.1/accounts/{accountId}/...

    Raises ApiError whenever the status is outside [200, 300). Transport
    failures surface as ApiError with status 0.
    """

    def __init__(self, credential: Credential, http_client: httpx.Client):
        self.credential = credential
        self.http_client = http_client

    def url(self, *parts: str) -> str:
        return self.credential.account_url(*parts)

    def request(
        self,
        method: str,
        url: str,
        token: Token,
        json_body: Optional[Dict[str, Any]] = None,
        accept: AcceptType = AcceptType.JSON,
    ) -> GatewayResponse:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": accept.value,
        }
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        method = method.upper()
        logger.debug(f"docusign_call: {method} {url}")
        try:
            response = self.http_client.request(method, url, headers=headers, json=json_body)
        except httpx.HTTPError as e:
            logger.error(f"docusign_call: {method} {url} transport failure: {e}")
            raise ApiError(0, str(e), message=f"DocuSign request failed: {e}")

        result = GatewayResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )
        if not 200 <= result.status_code < 300:
            logger.warning(f"docusign_call: {method} {url} -> {result.status_code}")
            raise ApiError(result.status_code, result.text)
        return result

    def get_json(self, url: str, token: Token) -> Dict[str, Any]:
        return self.request("GET", url, token).json()

    def post_json(self, url: str, token: Token, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", url, token, json_body=body).json()

    def get_binary(self, url: str, token: Token, accept: AcceptType = AcceptType.PDF) -> GatewayResponse:
        return self.request("GET", url, token, accept=accept)
