"""
Tests for the HTTP layer and the component factory

Uses FastAPI's TestClient against components built from in-memory
collaborators.
"""

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from ledgerbot import __version__
from ledgerbot.api import MessageValidationError, create_app, parse_inbound
from ledgerbot.audit import AuditLogger
from ledgerbot.config import AppSettings, Settings
from ledgerbot.orchestrator import (
    AppComponents,
    BackendMode,
    create_app_components,
    resolve_backends,
)
from ledgerbot.services.messaging import (
    MockMessenger,
    PermissiveAuthenticator,
    TwilioSignatureValidator,
    TwilioWhatsAppMessenger,
)
from ledgerbot.services.storage import InMemoryLedger

AUTH_TOKEN = "test-auth-token"
SENDER = "whatsapp:+6281234567890"


def _components(engine, store, ledger, messenger, audit_storage, authenticator=None, debug=False):
    return AppComponents(
        engine=engine,
        store=store,
        ledger=ledger,
        messenger=messenger,
        authenticator=authenticator or PermissiveAuthenticator(),
        audit_logger=AuditLogger(audit_storage),
        app_settings=AppSettings(debug_mode=debug),
        modes={
            "whatsapp": BackendMode.MOCK,
            "googleSheets": BackendMode.MOCK,
            "aiGemini": BackendMode.MOCK,
        },
    )


@pytest.fixture
def components(engine, store, ledger, messenger, audit_storage):
    return _components(engine, store, ledger, messenger, audit_storage)


@pytest.fixture
def client(components):
    return TestClient(create_app(components))


class BrokenEngine:
    async def handle_message(self, sender, text, correlation_id=None):
        raise RuntimeError("sheet exploded")


class TestParseInbound:
    """Tests for webhook payload validation."""

    def test_valid_payload(self):
        inbound = parse_inbound({"From": SENDER, "Body": " help "})
        assert inbound.sender == "+6281234567890"
        assert inbound.body == "help"

    def test_blank_body(self):
        with pytest.raises(MessageValidationError, match="Message body is required"):
            parse_inbound({"From": SENDER, "Body": "   "})

    def test_missing_sender(self):
        with pytest.raises(MessageValidationError, match="Sender is required"):
            parse_inbound({"Body": "help"})

    def test_prefix_only_sender(self):
        with pytest.raises(MessageValidationError):
            parse_inbound({"From": "whatsapp:", "Body": "help"})


class TestWebhook:
    """Tests for POST /webhook."""

    def test_form_message_processed(self, client, store):
        response = client.post("/webhook", data={"From": SENDER, "Body": "spent 50000 on lunch"})
        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "Message processed successfully",
            "action": "proposed",
            "state": "awaiting_confirmation",
        }

    def test_json_body_accepted(self, client, messenger):
        response = client.post("/webhook", json={"From": SENDER, "Body": "help"})
        assert response.status_code == 200
        assert response.json()["action"] == "help"
        assert len(messenger.messages_to(SENDER)) == 1

    def test_missing_body_returns_400(self, client):
        response = client.post("/webhook", data={"From": SENDER})
        assert response.status_code == 400
        assert response.json() == {"error": "Message body is required"}

    def test_missing_sender_returns_400(self, client):
        response = client.post("/webhook", data={"Body": "help"})
        assert response.status_code == 400
        assert response.json() == {"error": "Sender is required"}

    def test_collaborator_error_returns_500(self, components):
        components.engine = BrokenEngine()
        client = TestClient(create_app(components))

        response = client.post("/webhook", data={"From": SENDER, "Body": "balance"})

        assert response.status_code == 500
        assert response.json() == {"status": "error", "message": "Internal server error"}

    def test_error_detail_only_in_debug(self, engine, store, ledger, messenger, audit_storage):
        components = _components(engine, store, ledger, messenger, audit_storage, debug=True)
        components.engine = BrokenEngine()
        client = TestClient(create_app(components))

        response = client.post("/webhook", data={"From": SENDER, "Body": "balance"})

        assert response.status_code == 500
        assert response.json()["error"] == "sheet exploded"

    def test_full_confirm_flow(self, client, ledger):
        client.post("/webhook", data={"From": SENDER, "Body": "received 1000000 salary"})
        response = client.post("/webhook", data={"From": SENDER, "Body": "confirm"})
        assert response.json()["action"] == "recorded"
        assert len(ledger) == 1


class TestWebhookSignature:
    """Tests for Twilio signature enforcement."""

    @pytest.fixture
    def signed_client(self, engine, store, ledger, messenger, audit_storage):
        components = _components(
            engine, store, ledger, messenger, audit_storage,
            authenticator=TwilioSignatureValidator(AUTH_TOKEN),
        )
        return TestClient(create_app(components))

    def test_invalid_signature_returns_403_without_state_change(self, signed_client, store, messenger):
        response = signed_client.post(
            "/webhook",
            data={"From": SENDER, "Body": "spent 50000 on lunch"},
            headers={"X-Twilio-Signature": "bogus"},
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Invalid signature"}
        assert messenger.sent == []

    def test_missing_signature_returns_403(self, signed_client):
        response = signed_client.post("/webhook", data={"From": SENDER, "Body": "help"})
        assert response.status_code == 403

    def test_valid_signature_accepted(self, signed_client):
        params = {"From": SENDER, "Body": "help"}
        signature = RequestValidator(AUTH_TOKEN).compute_signature(
            "http://testserver/webhook", params
        )
        response = signed_client.post(
            "/webhook", data=params, headers={"X-Twilio-Signature": signature}
        )
        assert response.status_code == 200

    def test_forwarded_headers_rebuild_public_url(self, signed_client):
        params = {"From": SENDER, "Body": "help"}
        signature = RequestValidator(AUTH_TOKEN).compute_signature(
            "https://bot.example.com/webhook", params
        )
        response = signed_client.post(
            "/webhook",
            data=params,
            headers={
                "X-Twilio-Signature": signature,
                "X-Forwarded-Proto": "https",
                "X-Forwarded-Host": "bot.example.com",
            },
        )
        assert response.status_code == 200


class TestDashboard:
    """Tests for the health, log and status endpoints."""

    def test_root(self, client):
        assert client.get("/").json() == {"message": "ledger bot up", "version": __version__}

    def test_health(self, client):
        response = client.get("/webhook/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_logs_oldest_first_with_limit(self, client):
        for body in ("help", "balance", "report"):
            client.post("/webhook", data={"From": SENDER, "Body": body})

        response = client.get("/dashboard/logs", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert [entry["message"] for entry in data] == ["balance", "report"]
        assert data[0]["sender"] == "+6281234567890"
        assert "botResponse" in data[0]

    def test_logs_limit_bounds(self, client):
        assert client.get("/dashboard/logs", params={"limit": 0}).status_code == 422
        assert client.get("/dashboard/logs", params={"limit": 501}).status_code == 422

    def test_status(self, client):
        client.post("/webhook", data={"From": SENDER, "Body": "spent 50000 on lunch"})

        data = client.get("/dashboard/status").json()["data"]

        assert data["pending_conversations"] == 1
        assert data["services"] == {
            "whatsapp": "mock",
            "googleSheets": "mock",
            "aiGemini": "mock",
        }
        assert data["uptime"] >= 0


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No .env file and no service variables."""
    monkeypatch.chdir(tmp_path)
    for prefix in ("TWILIO_", "GOOGLE_SHEETS_", "GEMINI_", "APP_"):
        for name in ("ACCOUNT_SID", "AUTH_TOKEN", "WHATSAPP_NUMBER", "WEBHOOK_URL",
                     "SPREADSHEET_ID", "CREDENTIALS_PATH", "CLIENT_EMAIL", "PRIVATE_KEY",
                     "API_KEY"):
            monkeypatch.delenv(prefix + name, raising=False)


class TestComponentFactory:
    """Tests for live/mock resolution at startup."""

    def test_everything_mock_without_credentials(self, clean_env):
        components = create_app_components(Settings())

        assert isinstance(components.messenger, MockMessenger)
        assert isinstance(components.authenticator, PermissiveAuthenticator)
        assert isinstance(components.ledger, InMemoryLedger)
        assert set(components.modes.values()) == {BackendMode.MOCK}

    def test_twilio_live_when_configured(self, clean_env, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC00000000000000000000000000000000")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", AUTH_TOKEN)
        monkeypatch.setenv("TWILIO_WHATSAPP_NUMBER", "+14155238886")
        monkeypatch.setenv("TWILIO_WEBHOOK_URL", "https://bot.example.com/webhook")

        backends = resolve_backends(Settings())
        assert backends.modes()["whatsapp"] == BackendMode.LIVE
        assert backends.modes()["googleSheets"] == BackendMode.MOCK

        components = create_app_components(Settings())
        assert isinstance(components.messenger, TwilioWhatsAppMessenger)
        assert isinstance(components.authenticator, TwilioSignatureValidator)
        assert components.webhook_url == "https://bot.example.com/webhook"

    def test_invalid_account_sid_falls_back_to_mock(self, clean_env, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "XX123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", AUTH_TOKEN)
        monkeypatch.setenv("TWILIO_WHATSAPP_NUMBER", "+14155238886")

        assert resolve_backends(Settings()).modes()["whatsapp"] == BackendMode.MOCK
