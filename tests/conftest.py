"""
Pytest configuration and fixtures.

DocuSign, the merge service, the status webhook and Resend are all served
by one in-memory FakeDocuSign behind httpx.MockTransport.
"""
import base64
import json
import os
import sys
from urllib.parse import parse_qs

import fitz
import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from esign_bridge.config import Credential, Settings
from esign_bridge.documents.classifier import DocumentClassifier
from esign_bridge.services.signing_flow import SigningFlow

ACCOUNT_ID = "acct-789"
AUTH_SERVER = "account-d.docusign.com"
BASE_PATH = "https://demo.docusign.net/restapi"
WEBHOOK_URL = "https://webhook.test/documents/update"
MERGE_BASE_URL = "https://merge.test"


def make_pdf(text: str = "Contract", pages: int = 1, min_size: int = 0) -> bytes:
    """Build a real PDF with PyMuPDF, optionally padded after %%EOF."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page()
        page.insert_text((72, 72), f"{text} page {i + 1}")
    data = doc.tobytes()
    doc.close()
    if len(data) < min_size:
        data += b"\n%" + b"0" * (min_size - len(data))
    return data


def merge_pdfs(first: bytes, second: bytes) -> bytes:
    out = fitz.open()
    for data in (first, second):
        with fitz.open(stream=data, filetype="pdf") as src:
            out.insert_pdf(src)
    merged = out.tobytes()
    out.close()
    return merged


def _json(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


class FakeDocuSign:
    """In-memory stand-in for every outbound HTTP dependency."""

    def __init__(self, account_id: str = ACCOUNT_ID):
        self.account_id = account_id
        self.requests = []

        # OAuth
        self.token_status = 200
        self.token_body = {"access_token": "tok-minted", "token_type": "Bearer", "expires_in": 3600}

        # Templates and envelopes
        self.templates = {}
        self.envelopes = {}
        self.edit_view_body = None
        self.template_document_status = 200
        self.envelope_status = "sent"
        self.signed_pdf = make_pdf("Signed")
        self.signed_pdf_status = 200

        # Merge service
        self.merge_files = {}
        self.merge_upload_body = None
        self.merge_body = None

        # Webhook and mail
        self.webhook_calls = []
        self.webhook_unreachable = False
        self.webhook_status = 200
        self.emails = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == AUTH_SERVER:
            return self._oauth(request)
        if host == "demo.docusign.net":
            return self._docusign(request)
        if host == "merge.test":
            return self._merge(request)
        if host == "webhook.test":
            return self._webhook(request)
        if host == "api.resend.com":
            self.emails.append(_json(request))
            return httpx.Response(200, json={"id": f"msg_{len(self.emails)}"})
        return httpx.Response(404, text=f"no route for {host}")

    def calls_to(self, host: str) -> list:
        return [r for r in self.requests if r.url.host == host]

    # OAuth
    def _oauth(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != "/oauth/token" or request.method != "POST":
            return httpx.Response(404)
        form = parse_qs(request.content.decode())
        if form.get("grant_type") != ["urn:ietf:params:oauth:grant-type:jwt-bearer"] or not form.get("assertion"):
            return httpx.Response(400, json={"error": "unsupported_grant_type"})
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        return httpx.Response(200, json=self.token_body)

    # eSignature REST
    def _docusign(self, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return httpx.Response(401, json={"errorCode": "AUTHORIZATION_INVALID_TOKEN"})

        prefix = f"/restapi/v2.1/accounts/{self.account_id}/"
        if not request.url.path.startswith(prefix):
            return httpx.Response(404, json={"errorCode": "ACCOUNT_LACKS_PERMISSIONS"})
        parts = request.url.path[len(prefix):].split("/")
        method = request.method

        if parts[0] == "templates":
            return self._templates(method, parts[1:], request)
        if parts[0] == "envelopes":
            return self._envelopes(method, parts[1:], request)
        return httpx.Response(404)

    def _templates(self, method, parts, request):
        if method == "POST" and not parts:
            body = _json(request)
            template_id = f"tpl-{len(self.templates) + 1}"
            document = body["documents"][0]
            self.templates[template_id] = {
                "body": body,
                "document": base64.b64decode(document["documentBase64"]),
            }
            return httpx.Response(201, json={"templateId": template_id, "name": body["name"]})

        template_id = parts[0]
        if template_id not in self.templates:
            return httpx.Response(404, json={"errorCode": "TEMPLATE_NOT_FOUND"})

        if method == "POST" and parts[1:] == ["views", "edit"]:
            if self.edit_view_body is not None:
                return httpx.Response(201, json=self.edit_view_body)
            return httpx.Response(201, json={"url": f"https://demo.docusign.net/edit/{template_id}"})

        if method == "GET" and len(parts) == 3 and parts[1] == "documents":
            if self.template_document_status != 200:
                return httpx.Response(self.template_document_status, json={"errorCode": "DOCUMENT_NOT_FOUND"})
            return httpx.Response(
                200,
                content=self.templates[template_id]["document"],
                headers={"Content-Type": "application/pdf"},
            )
        return httpx.Response(404)

    def _envelopes(self, method, parts, request):
        if method == "POST" and not parts:
            body = _json(request)
            if body.get("templateId"):
                if body["templateId"] not in self.templates:
                    return httpx.Response(400, json={"errorCode": "TEMPLATE_ID_INVALID"})
                client_user_id = body["templateRoles"][0]["clientUserId"]
            else:
                client_user_id = body["recipients"]["signers"][0]["clientUserId"]
            envelope_id = f"env-{len(self.envelopes) + 1}"
            self.envelopes[envelope_id] = {"body": body, "client_user_id": client_user_id}
            return httpx.Response(201, json={
                "envelopeId": envelope_id,
                "status": "sent",
                "uri": f"/envelopes/{envelope_id}",
                "statusDateTime": "2026-10-19T10:00:00.0000000Z",
            })

        envelope_id = parts[0]
        if envelope_id not in self.envelopes:
            return httpx.Response(404, json={"errorCode": "ENVELOPE_DOES_NOT_EXIST"})

        if method == "POST" and parts[1:] == ["views", "recipient"]:
            body = _json(request)
            if body.get("clientUserId") != self.envelopes[envelope_id]["client_user_id"]:
                return httpx.Response(400, json={"errorCode": "UNKNOWN_ENVELOPE_RECIPIENT"})
            return httpx.Response(201, json={"url": f"https://demo.docusign.net/signing/{envelope_id}"})

        if method == "GET" and len(parts) == 1:
            return httpx.Response(200, json={"envelopeId": envelope_id, "status": self.envelope_status})

        if method == "GET" and len(parts) == 3 and parts[1] == "documents":
            if self.signed_pdf_status != 200:
                return httpx.Response(self.signed_pdf_status, json={"errorCode": "DOCUMENT_NOT_FOUND"})
            return httpx.Response(200, content=self.signed_pdf, headers={"Content-Type": "application/pdf"})
        return httpx.Response(404)

    # Merge service
    def _merge(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/file/upload/base64":
            if self.merge_upload_body is not None:
                return httpx.Response(200, json=self.merge_upload_body)
            body = _json(request)
            url = f"{MERGE_BASE_URL}/files/{len(self.merge_files) + 1}.pdf"
            self.merge_files[url] = base64.b64decode(body["file"])
            return httpx.Response(200, json={"url": url, "error": False})
        if path == "/v1/pdf/merge":
            if self.merge_body is not None:
                return httpx.Response(200, json=self.merge_body)
            first, second = _json(request)["url"].split(",")
            url = f"{MERGE_BASE_URL}/files/merged.pdf"
            self.merge_files[url] = merge_pdfs(self.merge_files[first], self.merge_files[second])
            return httpx.Response(200, json={"url": url, "error": False})
        if request.method == "GET" and str(request.url) in self.merge_files:
            return httpx.Response(200, content=self.merge_files[str(request.url)])
        return httpx.Response(404)

    # Status webhook
    def _webhook(self, request: httpx.Request) -> httpx.Response:
        if self.webhook_unreachable:
            raise httpx.ConnectError("webhook unreachable", request=request)
        self.webhook_calls.append(_json(request))
        return httpx.Response(self.webhook_status, json={"ok": True})


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def credential(private_key_pem):
    return Credential(
        integration_key="ik-123",
        user_id="user-456",
        account_id=ACCOUNT_ID,
        private_key=private_key_pem,
        auth_server=AUTH_SERVER,
        base_path=BASE_PATH,
    )


@pytest.fixture
def settings():
    """Settings built from explicit values, independent of the environment."""
    return Settings(
        GCP_PROJECT_ID="",
        DOCUSIGN_INTEGRATION_KEY="ik-123",
        DOCUSIGN_USER_ID="user-456",
        DOCUSIGN_ACCOUNT_ID=ACCOUNT_ID,
        STATUS_WEBHOOK_URL=WEBHOOK_URL,
        PDF_MERGE_BASE_URL=MERGE_BASE_URL,
        PDF_MERGE_API_KEY="merge-key",
        RESEND_API_KEY="re_test",
        RESEND_FROM_EMAIL="no-reply@example.com",
        ENVIRONMENT="test",
    )


@pytest.fixture
def fake_docusign():
    return FakeDocuSign()


@pytest.fixture
def http_client(fake_docusign):
    client = httpx.Client(transport=httpx.MockTransport(fake_docusign))
    yield client
    client.close()


@pytest.fixture
def classifier():
    """Classifier with a prefix sniffer so tests do not depend on libmagic."""
    def sniff(data: bytes) -> str:
        if data.startswith(b"%PDF"):
            return "application/pdf"
        if data.startswith(b"\x89PNG"):
            return "image/png"
        return "application/octet-stream"

    return DocumentClassifier(sniffer=sniff)


@pytest.fixture
def signing_flow(credential, settings, http_client, classifier):
    return SigningFlow(credential, settings, http_client, classifier=classifier)


@pytest.fixture
def sample_pdf_bytes():
    """A real PDF padded to 10KB."""
    return make_pdf("Contract", min_size=10 * 1024)


@pytest.fixture
def sample_pdf_base64(sample_pdf_bytes):
    return base64.b64encode(sample_pdf_bytes).decode()
