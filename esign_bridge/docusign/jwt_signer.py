"""
JWT assertion signing for the OAuth JWT-bearer grant.

The assertion is assembled by hand (header.claims.signature, base64url
without padding) and signed with RSA-SHA256 using the integration's private
key. No token library is involved so the exact claim set stays visible.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from esign_bridge.config import Credential
from esign_bridge.exceptions import ConfigurationError, SigningError
from esign_bridge.utils.datetime_utils import epoch_seconds
from esign_bridge.utils.logging import fingerprint
from esign_bridge.utils.security import base64url_encode, read_private_key_file

logger = logging.getLogger(__name__)

JWT_HEADER = {"alg": "RS256", "typ": "JWT"}


def _encode_segment(data: dict) -> str:
    return base64url_encode(json.dumps(data, separators=(",", ":")))


class KeySigner:
    """Builds RS256-signed JWT assertions from a PEM-encoded RSA private key."""

    def __init__(self, private_key_pem: bytes):
        if not private_key_pem or not private_key_pem.strip():
            raise ConfigurationError("Private key material is empty")
        self._private_key_pem = private_key_pem
        self._private_key: Optional[rsa.RSAPrivateKey] = None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KeySigner":
        return cls(read_private_key_file(path))

    @classmethod
    def from_credential(cls, credential: Credential) -> "KeySigner":
        return cls(credential.private_key)

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        """Parse the PEM on first use. Malformed keys raise SigningError."""
        if self._private_key is None:
            try:
                key = serialization.load_pem_private_key(self._private_key_pem, password=None)
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise SigningError(f"Could not load RSA private key: {e}")
            if not isinstance(key, rsa.RSAPrivateKey):
                raise SigningError(f"Expected an RSA private key, got {type(key).__name__}")
            self._private_key = key
        return self._private_key

    def build_claims(
        self,
        issuer: str,
        subject: str,
        audience: str,
        scope: str,
        lifetime_seconds: int,
        issued_at: Optional[int] = None,
    ) -> dict:
        iat = epoch_seconds() if issued_at is None else issued_at
        return {
            "iss": issuer,
            "sub": subject,
            "aud": audience,
            "iat": iat,
            "exp": iat + lifetime_seconds,
            "scope": scope,
        }

    def sign(
        self,
        issuer: str,
        subject: str,
        audience: str,
        scope: str,
        lifetime_seconds: int,
        issued_at: Optional[int] = None,
    ) -> str:
        """
        Produce a signed JWT assertion.

        Deterministic for a fixed issued_at, since PKCS#1 v1.5 signatures
        carry no randomness.

        Raises:
            SigningError: the key cannot be parsed or the sign operation fails
        """
        claims = self.build_claims(issuer, subject, audience, scope, lifetime_seconds, issued_at)
        signing_input = f"{_encode_segment(JWT_HEADER)}.{_encode_segment(claims)}"

        private_key = self.private_key
        try:
            signature = private_key.sign(
                signing_input.encode("ascii"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except Exception as e:
            raise SigningError(f"Failed to sign JWT: {e}")

        assertion = f"{signing_input}.{base64url_encode(signature)}"
        logger.debug(
            f"jwt_sign: iss={issuer}, aud={audience}, exp_in={lifetime_seconds}s, "
            f"assertion_fp={fingerprint(assertion, 'jwt_')}"
        )
        return assertion

    def sign_for(self, credential: Credential, issued_at: Optional[int] = None) -> str:
        """Sign the standard JWT-bearer assertion for a credential."""
        return self.sign(
            issuer=credential.integration_key,
            subject=credential.user_id,
            audience=credential.auth_server,
            scope=credential.scope,
            lifetime_seconds=credential.expires_in,
            issued_at=issued_at,
        )
