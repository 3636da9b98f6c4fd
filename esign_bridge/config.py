"""
Configuration module - loads secrets from Google Secret Manager.
Falls back to environment variables for local development.

The DocuSign credential is assembled once at startup into an immutable
Credential and handed to every component; nothing below the routers reads
Settings directly.
"""
import json
import os
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, List, Any, Tuple

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

from esign_bridge.exceptions import ConfigurationError
from esign_bridge.utils.logging import fingerprint
from esign_bridge.utils.security import read_private_key_file

logger = logging.getLogger(__name__)


def get_secret_from_gcp(secret_id: str, project_id: Optional[str] = None) -> Optional[str]:
    """
    Fetch secret from Google Secret Manager.
    Returns None if not available (fallback to env vars).
    """
    project = project_id or os.environ.get("GCP_PROJECT_ID") or os.environ.get("GOOGLE_CLOUD_PROJECT")
    if not project:
        return None

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")
    except Exception as e:
        logger.debug(f"Could not fetch secret {secret_id} from Secret Manager: {e}")
        return None


def _split_list(v: Any) -> List[str]:
    """Parse a list from JSON, CSV, semicolon or whitespace separated string."""
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [str(p) for p in v]
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                pass  # Fall through to delimiter parsing
        parts = s.replace(",", " ").replace(";", " ").split()
        return [p for p in parts if p]
    return []


@dataclass(frozen=True)
class Credential:
    """Server-to-server DocuSign credential. Immutable for the process lifetime."""

    integration_key: str
    user_id: str
    account_id: str
    private_key: bytes
    auth_server: str
    base_path: str
    scopes: Tuple[str, ...] = ("signature", "impersonation")
    expires_in: int = 3600

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @property
    def token_url(self) -> str:
        return f"https://{self.auth_server}/oauth/token"

    def account_url(self, *parts: str) -> str:
        """{base}/v2.1/accounts/{accountId}/<parts...>"""
        url = f"{self.base_path.rstrip('/')}/v2.1/accounts/{self.account_id}"
        for part in parts:
            url += "/" + str(part).strip("/")
        return url

    def __repr__(self) -> str:
        return (
            f"Credential(integration_key={self.integration_key!r}, "
            f"user_id={self.user_id!r}, account_id={self.account_id!r}, "
            f"private_key=<{fingerprint(self.private_key.decode('latin-1'), 'key_')}>, "
            f"auth_server={self.auth_server!r}, base_path={self.base_path!r})"
        )


class Settings(BaseSettings):
    """Application settings with Secret Manager integration."""

    # GCP
    gcp_project_id: str = Field(default="", alias="GCP_PROJECT_ID")

    # DocuSign JWT grant
    docusign_integration_key: str = Field(default="", alias="DOCUSIGN_INTEGRATION_KEY")
    docusign_user_id: str = Field(default="", alias="DOCUSIGN_USER_ID")
    docusign_account_id: str = Field(default="", alias="DOCUSIGN_ACCOUNT_ID")
    docusign_private_key_path: str = Field(default="", alias="DOCUSIGN_PRIVATE_KEY_PATH")
    docusign_private_key: str = Field(
        default="",
        alias="DOCUSIGN_PRIVATE_KEY",
        description="Inline PEM key; takes precedence over DOCUSIGN_PRIVATE_KEY_PATH",
    )
    docusign_auth_server: str = Field(default="account-d.docusign.com", alias="DOCUSIGN_AUTH_SERVER")
    docusign_base_path: str = Field(default="https://demo.docusign.net/restapi", alias="DOCUSIGN_BASE_PATH")
    docusign_scopes: str = Field(default="signature impersonation", alias="DOCUSIGN_SCOPES")
    docusign_expires_in: int = Field(default=3600, alias="DOCUSIGN_EXPIRES_IN")

    # Status webhook
    status_webhook_url: str = Field(default="", alias="STATUS_WEBHOOK_URL")
    document_collection: str = Field(default="LawFirm", alias="DOCUMENT_COLLECTION")
    envelope_collection: str = Field(default="QuoteAlert", alias="ENVELOPE_COLLECTION")
    notification_timeout_seconds: float = Field(default=10.0, alias="NOTIFICATION_TIMEOUT_SECONDS")

    # PDF merge service
    pdf_merge_base_url: str = Field(default="https://api.pdf.co", alias="PDF_MERGE_BASE_URL")
    pdf_merge_api_key: str = Field(default="", alias="PDF_MERGE_API_KEY")
    pdf_merge_timeout_seconds: float = Field(default=120.0, alias="PDF_MERGE_TIMEOUT_SECONDS")

    # Resend (Email)
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    resend_from_email: str = Field(default="no-reply@example.com", alias="RESEND_FROM_EMAIL")
    resend_from_name: str = Field(default="DocuSign System", alias="RESEND_FROM_NAME")

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # CORS
    allowed_origins: str = Field(default="", alias="ALLOWED_ORIGINS")

    @property
    def scope_list(self) -> List[str]:
        return _split_list(self.docusign_scopes)

    @property
    def allowed_origin_list(self) -> List[str]:
        return _split_list(self.allowed_origins)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._load_secrets_from_gcp()

    def _load_secrets_from_gcp(self):
        """Override settings with values from Secret Manager if available."""
        if not self.gcp_project_id:
            return

        secret_mappings = {
            "docusign_private_key": "DOCUSIGN_PRIVATE_KEY",
            "pdf_merge_api_key": "PDF_MERGE_API_KEY",
            "resend_api_key": "RESEND_API_KEY",
        }

        for attr, secret_id in secret_mappings.items():
            secret_value = get_secret_from_gcp(secret_id, self.gcp_project_id)
            if secret_value:
                setattr(self, attr, secret_value)
                logger.info(f"Loaded {secret_id} from Secret Manager")

    @model_validator(mode="after")
    def validate_endpoints(self) -> "Settings":
        """Warn about endpoint configuration that will not work in production."""
        if self.environment == "production":
            if not self.docusign_base_path.startswith("https://"):
                logger.warning(
                    f"Configuration Warning: DOCUSIGN_BASE_PATH ('{self.docusign_base_path}') "
                    "does not use HTTPS in production."
                )
            if "demo.docusign.net" in self.docusign_base_path or self.docusign_auth_server.startswith("account-d."):
                logger.warning("Configuration Warning: DocuSign demo environment configured in production.")
            if not self.status_webhook_url:
                logger.error("CRITICAL: STATUS_WEBHOOK_URL is not set; status notifications will be dropped.")
        return self

    def load_private_key(self) -> bytes:
        """
        Resolve the RSA private key: inline PEM first, then the key file.

        Raises ConfigurationError if neither yields non-empty key material.
        """
        if self.docusign_private_key.strip():
            return self.docusign_private_key.replace("\\n", "\n").encode("utf-8")

        if not self.docusign_private_key_path:
            raise ConfigurationError("DocuSign private key is not configured")
        return read_private_key_file(self.docusign_private_key_path)

    def build_credential(self) -> Credential:
        """Assemble the immutable Credential. Raises ConfigurationError."""
        missing = [
            alias
            for alias, value in (
                ("DOCUSIGN_INTEGRATION_KEY", self.docusign_integration_key),
                ("DOCUSIGN_USER_ID", self.docusign_user_id),
                ("DOCUSIGN_ACCOUNT_ID", self.docusign_account_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"DocuSign configuration incomplete: {', '.join(missing)}")

        credential = Credential(
            integration_key=self.docusign_integration_key,
            user_id=self.docusign_user_id,
            account_id=self.docusign_account_id,
            private_key=self.load_private_key(),
            auth_server=self.docusign_auth_server.replace("https://", "").rstrip("/"),
            base_path=self.docusign_base_path.rstrip("/"),
            scopes=tuple(self.scope_list) or ("signature", "impersonation"),
            expires_in=self.docusign_expires_in,
        )
        logger.info(
            f"DocuSign credential loaded: account={self.docusign_account_id[:8]}..., "
            f"auth_server={credential.auth_server}, scopes={credential.scope!r}"
        )
        return credential


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Default allowed origins in development
DEV_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def get_cors_origins() -> List[str]:
    """
    Get list of allowed CORS origins.

    Combines origins from ALLOWED_ORIGINS with the development origins
    when not running in production.
    """
    settings = get_settings()
    origins = set(settings.allowed_origin_list)
    if settings.environment != "production":
        origins.update(DEV_CORS_ORIGINS)
    return sorted(origins)
