"""
OAuth JWT-bearer grant: trade a signed assertion for a bearer token.

One token is minted per inbound request; nothing is cached across requests.
"""
import logging
from typing import Optional, Sequence, Union

import httpx

from esign_bridge.config import Credential
from esign_bridge.docusign.jwt_signer import KeySigner
from esign_bridge.exceptions import AuthError
from esign_bridge.models import AccessToken, TokenResponse
from esign_bridge.utils.logging import fingerprint

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class TokenProvider:
    """Exchanges RS256 assertions at https://<auth-server>/oauth/token."""

    def __init__(
        self,
        credential: Credential,
        http_client: httpx.Client,
        signer: Optional[KeySigner] = None,
    ):
        self.credential = credential
        self.http_client = http_client
        self.signer = signer or KeySigner.from_credential(credential)

    def exchange_assertion(self, assertion: str, auth_server: Optional[str] = None) -> AccessToken:
        """
        POST the assertion form-encoded and parse access_token from the reply.

        Raises:
            AuthError: non-2xx status (body embedded), transport failure,
                or a reply without access_token
        """
        token_url = f"https://{auth_server}/oauth/token" if auth_server else self.credential.token_url
        logger.info(f"token_exchange: POST {token_url}, assertion_fp={fingerprint(assertion, 'jwt_')}")

        try:
            response = self.http_client.post(
                token_url,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"token_exchange: transport failure: {e}")
            raise AuthError(f"JWT request failed: {e}")

        if not 200 <= response.status_code < 300:
            logger.warning(f"token_exchange: status={response.status_code}")
            raise AuthError(
                f"JWT request failed: {response.text}",
                details={"http_status": response.status_code},
            )

        try:
            data = TokenResponse.model_validate(response.json())
        except ValueError:
            raise AuthError(f"No access token returned: {response.text}")

        if not data.access_token:
            raise AuthError(f"No access token returned: {response.text}")

        token = AccessToken.from_response(data.model_dump(), self.credential.expires_in)
        logger.info(
            f"token_exchange: success, token_fp={fingerprint(token.token, 'tok_')}, "
            f"expires_at={token.expires_at.isoformat()}"
        )
        return token

    def request_jwt_user_token(
        self,
        client_id: Optional[str] = None,
        user_id: Optional[str] = None,
        private_key: Optional[bytes] = None,
        scopes: Optional[Union[str, Sequence[str]]] = None,
        expires_in: Optional[int] = None,
        auth_server: Optional[str] = None,
    ) -> AccessToken:
        """
        Build the assertion from raw materials and exchange it.

        Anything not passed falls back to the configured credential.
        """
        if isinstance(scopes, str):
            scope = scopes
        elif scopes:
            scope = " ".join(scopes)
        else:
            scope = self.credential.scope

        signer = KeySigner(private_key) if private_key else self.signer
        audience = auth_server or self.credential.auth_server
        assertion = signer.sign(
            issuer=client_id or self.credential.integration_key,
            subject=user_id or self.credential.user_id,
            audience=audience,
            scope=scope,
            lifetime_seconds=expires_in or self.credential.expires_in,
        )
        return self.exchange_assertion(assertion, auth_server=audience)

    def get_access_token(self) -> AccessToken:
        """Mint a token for the configured credential."""
        return self.exchange_assertion(self.signer.sign_for(self.credential))
