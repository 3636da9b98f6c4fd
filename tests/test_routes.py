"""
HTTP-level tests for the FastAPI routes.

The signing flow is swapped for one wired to the fake provider, so every
route runs its real code path without network access.
"""
import pytest
from fastapi.testclient import TestClient

from esign_bridge.config import get_settings
from esign_bridge.dependencies import get_signing_flow
from esign_bridge.main import app

from conftest import AUTH_SERVER


@pytest.fixture
def client(signing_flow, settings, credential):
    app.dependency_overrides[get_signing_flow] = lambda: signing_flow
    app.dependency_overrides[get_settings] = lambda: settings
    app.state.credential = credential
    app.state.credential_error = None
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.credential = None


@pytest.fixture
def template_id(client, sample_pdf_base64, fake_docusign):
    response = client.post(
        "/v1/docusign/templates",
        json={"document": sample_pdf_base64, "returnUrl": "https://app.test/edited", "attorneyId": "doc-9"},
    )
    fake_docusign.webhook_calls.clear()
    return response.json()["data"]["templateId"]


def assert_error_body(response, status_code, code):
    assert response.status_code == status_code
    body = response.json()
    assert body["success"] == 0
    assert body["code"] == code
    assert body["data"] is None
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "1.0.0"}

    def test_config_healthy(self, client):
        body = client.get("/health/config").json()

        assert body["status"] == "healthy"
        assert body["checks"]["docusign_credential_loaded"] is True
        assert body["checks"]["status_webhook_url"] is True
        assert "error" not in body

    def test_config_degraded(self, client):
        app.state.credential = None
        app.state.credential_error = "DocuSign private key is not configured"

        body = client.get("/health/config").json()

        assert body["status"] == "degraded"
        assert body["error"] == "DocuSign private key is not configured"

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-abc"})

        assert response.headers["X-Request-ID"] == "req-abc"


class TestToken:
    def test_token(self, client, fake_docusign):
        response = client.post("/v1/docusign/token")

        assert response.status_code == 200
        assert response.json() == {
            "success": 1,
            "message": "Token created",
            "data": {"access_token": "tok-minted"},
        }
        assert len(fake_docusign.calls_to(AUTH_SERVER)) == 1

    def test_token_rejected(self, client, fake_docusign):
        fake_docusign.token_status = 400

        response = client.post("/v1/docusign/token")

        body = assert_error_body(response, 502, "AUTH_ERROR")
        assert body["message"].startswith("Error: JWT request failed")

    def test_missing_credential(self, client):
        app.dependency_overrides.pop(get_signing_flow)
        app.state.credential = None
        app.state.credential_error = "DocuSign configuration incomplete: DOCUSIGN_USER_ID"

        response = client.post("/v1/docusign/token")

        body = assert_error_body(response, 500, "CONFIGURATION_ERROR")
        assert body["message"] == "Error: DocuSign configuration incomplete: DOCUSIGN_USER_ID"


class TestTemplates:
    def test_create(self, client, fake_docusign, sample_pdf_base64):
        response = client.post(
            "/v1/docusign/templates",
            json={"document": sample_pdf_base64, "returnUrl": "https://app.test/edited", "attorneyId": "doc-9"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 1
        assert body["data"] == {
            "templateId": "tpl-1",
            "senderViewUrl": "https://demo.docusign.net/edit/tpl-1",
        }
        assert fake_docusign.webhook_calls[0]["data"] == {"isDocumentEdited": True}

    def test_mints_token_without_authorization(self, client, fake_docusign, sample_pdf_base64):
        client.post("/v1/docusign/templates", json={"document": sample_pdf_base64, "returnUrl": "https://app.test"})

        assert len(fake_docusign.calls_to(AUTH_SERVER)) == 1
        for request in fake_docusign.calls_to("demo.docusign.net"):
            assert request.headers["Authorization"] == "Bearer tok-minted"

    def test_caller_token_forwarded(self, client, fake_docusign, sample_pdf_base64):
        client.post(
            "/v1/docusign/templates",
            json={"document": sample_pdf_base64, "returnUrl": "https://app.test"},
            headers={"Authorization": "Bearer caller-tok"},
        )

        assert fake_docusign.calls_to(AUTH_SERVER) == []
        for request in fake_docusign.calls_to("demo.docusign.net"):
            assert request.headers["Authorization"] == "Bearer caller-tok"

    @pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Token abc"])
    def test_malformed_authorization(self, client, fake_docusign, sample_pdf_base64, header):
        response = client.post(
            "/v1/docusign/templates",
            json={"document": sample_pdf_base64, "returnUrl": "https://app.test"},
            headers={"Authorization": header},
        )

        assert_error_body(response, 401, "INVALID_AUTHORIZATION")
        assert fake_docusign.requests == []

    def test_missing_document(self, client, fake_docusign):
        response = client.post("/v1/docusign/templates", json={"returnUrl": "https://app.test", "attorneyId": "doc-9"})

        body = assert_error_body(response, 400, "VALIDATION_ERROR")
        assert body["message"] == "Error: Document upload failed"
        assert fake_docusign.webhook_calls[0]["data"] == {
            "isDocumentEdited": False,
            "errorMessage": "Document upload failed",
        }

    def test_token_failure_notifies_document(self, client, fake_docusign, sample_pdf_base64):
        fake_docusign.token_status = 400

        response = client.post(
            "/v1/docusign/templates",
            json={"document": sample_pdf_base64, "returnUrl": "https://app.test/edited", "attorneyId": "doc-1"},
        )

        assert_error_body(response, 502, "AUTH_ERROR")
        assert len(fake_docusign.webhook_calls) == 1
        call = fake_docusign.webhook_calls[0]
        assert call["collection"] == "LawFirm"
        assert call["docId"] == "doc-1"
        assert call["data"]["isDocumentEdited"] is False

    def test_fresh_sender_view(self, client, template_id):
        response = client.post(
            f"/v1/docusign/templates/{template_id}/sender-view",
            json={"returnUrl": "https://app.test/again"},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"senderViewUrl": f"https://demo.docusign.net/edit/{template_id}"}

    def test_sender_view_unavailable(self, client, fake_docusign, template_id):
        fake_docusign.edit_view_body = {}

        response = client.post(
            f"/v1/docusign/templates/{template_id}/sender-view",
            json={"returnUrl": "https://app.test/again"},
        )

        assert response.status_code == 502
        body = response.json()
        assert body["success"] == 0
        assert body["code"] == "SENDER_VIEW_UNAVAILABLE"
        assert body["data"] == {"senderViewUrl": None}


class TestEnvelopes:
    def envelope_body(self, template_id, **overrides):
        body = {
            "templateId": template_id,
            "returnUrl": "https://app.test/signed",
            "clientUserId": "client-42",
            "name": "Jane Roe",
            "email": "jane@example.com",
            "doc_id": "doc-9",
        }
        body.update(overrides)
        return body

    def test_create(self, client, fake_docusign, template_id):
        response = client.post("/v1/docusign/envelopes", json=self.envelope_body(template_id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert "envelopeId=env-1" in data["id"]
        assert "doc_id=doc-9" in data["id"]
        assert data["recipientView"]["url"] == "https://demo.docusign.net/signing/env-1"
        assert fake_docusign.webhook_calls == [
            {"collection": "QuoteAlert", "docId": "doc-9", "data": {"isEnvelopSign": False}}
        ]

    def test_client_user_id_required(self, client, fake_docusign, template_id):
        body = self.envelope_body(template_id)
        del body["clientUserId"]

        response = client.post("/v1/docusign/envelopes", json=body)

        error = assert_error_body(response, 422, "VALIDATION_ERROR")
        assert any("clientUserId" in e["field"] for e in error["details"]["errors"])
        assert fake_docusign.envelopes == {}

    def test_token_failure_notifies_envelope(self, client, fake_docusign, template_id):
        fake_docusign.token_status = 400

        response = client.post("/v1/docusign/envelopes", json=self.envelope_body(template_id))

        assert_error_body(response, 502, "AUTH_ERROR")
        assert fake_docusign.envelopes == {}
        assert len(fake_docusign.webhook_calls) == 1
        call = fake_docusign.webhook_calls[0]
        assert call["collection"] == "QuoteAlert"
        assert call["docId"] == "doc-9"
        assert call["data"]["isEnvelopSign"] is False

    def test_unknown_template(self, client):
        response = client.post("/v1/docusign/envelopes", json=self.envelope_body("tpl-missing"))

        body = assert_error_body(response, 502, "ENVELOPE_ERROR")
        assert body["message"].startswith("Error: Envelope creation failed")
        assert "TEMPLATE_ID_INVALID" in body["message"]


class TestCallback:
    @pytest.fixture
    def envelope_id(self, client, template_id, fake_docusign):
        response = client.post("/v1/docusign/envelopes", json={
            "templateId": template_id,
            "returnUrl": "https://app.test/signed",
            "clientUserId": "client-42",
            "doc_id": "doc-9",
        })
        fake_docusign.webhook_calls.clear()
        return response.json()["data"]["envelope"]["envelopeId"]

    def test_completed(self, client, fake_docusign, envelope_id):
        fake_docusign.envelope_status = "completed"

        response = client.get("/v1/docusign/callback", params={
            "doc_id": "doc-9",
            "envelopeId": envelope_id,
            "user_email": "user@example.com",
            "attorney_email": "attorney@example.com",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 1
        assert body["message"] == "Thank you, your document is signed!"
        assert body["data"]["emailStatus"] == "sent"
        assert len(fake_docusign.emails) == 1
        assert fake_docusign.webhook_calls[0]["data"] == {"isEnvelopSign": True}

    def test_not_completed(self, client, fake_docusign, envelope_id):
        fake_docusign.envelope_status = "delivered"

        response = client.get("/v1/docusign/callback", params={"doc_id": "doc-9", "envelopeId": envelope_id})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 0
        assert body["data"]["status"] == "delivered"
        assert fake_docusign.webhook_calls[0]["data"] == {"isEnvelopSign": False, "errorMessage": "delivered"}

    def test_missing_envelope_id(self, client):
        response = client.get("/v1/docusign/callback", params={"doc_id": "doc-9"})

        body = assert_error_body(response, 400, "VALIDATION_ERROR")
        assert body["message"] == "Error: Missing docId or envelopeId"


class TestDocumentDownload:
    def test_pdf_attachment(self, client, fake_docusign):
        fake_docusign.envelopes["env-1"] = {"body": {}, "client_user_id": "c"}

        response = client.get("/v1/docusign/envelopes/env-1/document")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'attachment; filename="signed_document.pdf"'
        assert response.content == fake_docusign.signed_pdf

    def test_not_found(self, client):
        response = client.get("/v1/docusign/envelopes/env-missing/document")

        body = assert_error_body(response, 502, "FETCH_ERROR")
        assert body["message"] == "Error: Failed to fetch document. HTTP 404"
