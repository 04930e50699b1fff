"""Tests for the mail relay HTTP API."""

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from debt_manager.api import app, get_audit_logger, get_mail_relay
from debt_manager.audit import AuditLogger
from debt_manager.config import SmtpSettings
from debt_manager.models.audit import AuditEventType
from debt_manager.services.mail import SmtpMailRelay, TransportError


class RecordingRelay(SmtpMailRelay):
    """Relay that records messages instead of talking SMTP."""

    def __init__(self, settings: SmtpSettings, error: Optional[Exception] = None):
        super().__init__(settings)
        self.sent = []
        self.error = error

    def send(self, recipient, subject, body):
        if not self.is_configured:
            return super().send(recipient, subject, body)
        if self.error:
            raise self.error
        self.sent.append((recipient, subject, body))


def smtp_settings(**overrides) -> SmtpSettings:
    values = {
        "host": "smtp.example.org",
        "user": "office@example.org",
        "password": "secret",
        "admin_email": None,
    }
    values.update(overrides)
    return SmtpSettings(_env_file=None, **values)


@pytest.fixture
def make_client(audit_storage):
    """Build a TestClient around a given relay."""
    def _make(relay: SmtpMailRelay) -> TestClient:
        app.dependency_overrides[get_mail_relay] = lambda: relay
        app.dependency_overrides[get_audit_logger] = lambda: AuditLogger(audit_storage)
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


class TestSendEmail:
    """POST /api/send-email"""

    def test_success(self, make_client, audit_storage):
        relay = RecordingRelay(smtp_settings())
        client = make_client(relay)
        response = client.post("/api/send-email", json={
            "to": "parent@example.org", "subject": "Reminder", "body": "Please pay",
        })
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert relay.sent == [("parent@example.org", "Reminder", "Please pay")]
        assert audit_storage.events[-1].event_type == AuditEventType.EMAIL_SENT

    def test_admin_email_overrides_recipient(self, make_client):
        relay = RecordingRelay(smtp_settings(admin_email="admin@example.org"))
        client = make_client(relay)
        response = client.post("/api/send-email", json={"subject": "s", "body": "b"})
        assert response.status_code == 200
        assert relay.sent[0][0] == "admin@example.org"

    @pytest.mark.parametrize("payload", [
        {"subject": "s", "body": "b"},
        {"to": "a@example.org", "body": "b"},
        {"to": "a@example.org", "subject": "s"},
        {"to": "a@example.org", "subject": "", "body": "b"},
        {},
    ])
    def test_missing_fields(self, make_client, payload):
        relay = RecordingRelay(smtp_settings())
        response = make_client(relay).post("/api/send-email", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing recipient, subject, or body"}
        assert relay.sent == []

    def test_empty_request_body(self, make_client):
        response = make_client(RecordingRelay(smtp_settings())).post("/api/send-email")
        assert response.status_code == 400

    def test_not_configured(self, make_client, audit_storage):
        """An unconfigured relay answers 500 with setup instructions."""
        relay = RecordingRelay(smtp_settings(host=None, user=None, password=None))
        response = make_client(relay).post("/api/send-email", json={
            "to": "a@example.org", "subject": "s", "body": "b",
        })
        assert response.status_code == 500
        assert response.json() == {
            "error": "SMTP not configured. Set SMTP_HOST, SMTP_USER, SMTP_PASS in environment variables."
        }
        assert audit_storage.events[-1].event_type == AuditEventType.EMAIL_FAILED

    def test_transport_error_passed_through(self, make_client):
        relay = RecordingRelay(smtp_settings(), error=TransportError("Connection refused"))
        response = make_client(relay).post("/api/send-email", json={
            "to": "a@example.org", "subject": "s", "body": "b",
        })
        assert response.status_code == 500
        assert response.json() == {"error": "Connection refused"}


class TestHealth:
    """GET /api/health"""

    def test_configured(self, make_client):
        relay = RecordingRelay(smtp_settings(admin_email="admin@example.org"))
        response = make_client(relay).get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "smtp": "configured", "adminEmail": "set"}

    def test_not_configured(self, make_client):
        relay = RecordingRelay(smtp_settings(host=None))
        response = make_client(relay).get("/api/health")
        assert response.json() == {"status": "ok", "smtp": "not configured", "adminEmail": "not set"}
