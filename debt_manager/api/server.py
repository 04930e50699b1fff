"""
Mail Relay HTTP API

Two endpoints, no access to the record store:

- POST /api/send-email   {to?, subject, body} -> {"success": true}
- GET  /api/health       relay configuration status

Status codes:
- 400: recipient (after admin override), subject or body missing
- 500: SMTP not configured, or the SMTP transport failed
- 200: message accepted by the SMTP server
"""

from functools import lru_cache
from typing import Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from debt_manager import __version__
from debt_manager.audit import AuditLogger, configure_logging
from debt_manager.config import get_settings
from debt_manager.models.audit import AuditEventBuilder
from debt_manager.services.mail import MailRelayError, SmtpMailRelay
from debt_manager.services.storage import JsonFileAuditStorage


logger = structlog.get_logger(__name__)

MISSING_FIELDS_MESSAGE = "Missing recipient, subject, or body"


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_mail_relay() -> SmtpMailRelay:
    """A relay bound to the current SMTP settings."""
    return SmtpMailRelay(get_settings().smtp)


@lru_cache()
def get_audit_logger() -> AuditLogger:
    """Audit logger writing to the shared audit log file."""
    return AuditLogger(JsonFileAuditStorage(get_settings().storage.audit_log_path))


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class SendEmailRequest(BaseModel):
    """Input for sending one e-mail. Every field may be omitted."""
    to: Optional[str] = Field(default=None, description="Recipient, ignored when ADMIN_EMAIL is set")
    subject: Optional[str] = Field(default=None, description="Subject line")
    body: Optional[str] = Field(default=None, description="Plain-text body")


class HealthResponse(BaseModel):
    status: str = "ok"
    smtp: str
    admin_email: str = Field(serialization_alias="adminEmail")


# =============================================================================
# ENDPOINTS
# =============================================================================

def send_email(
    request: Optional[SendEmailRequest] = None,
    relay: SmtpMailRelay = Depends(get_mail_relay),
    audit: AuditLogger = Depends(get_audit_logger),
) -> JSONResponse:
    """Relay one message through SMTP."""
    request = request or SendEmailRequest()
    recipient = relay.resolve_recipient(request.to)

    if not recipient or not request.subject or not request.body:
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_MESSAGE})

    try:
        relay.send(recipient, request.subject, request.body)
    except MailRelayError as e:
        audit.log(AuditEventBuilder.email_failed(recipient, str(e)))
        return JSONResponse(status_code=500, content={"error": str(e)})

    audit.log(AuditEventBuilder.email_sent(recipient, request.subject))
    return JSONResponse(content={"success": True})


def health(relay: SmtpMailRelay = Depends(get_mail_relay)) -> JSONResponse:
    """Relay configuration status; never fails."""
    response = HealthResponse(
        smtp="configured" if relay.is_configured else "not configured",
        admin_email="set" if relay.admin_email_set else "not set",
    )
    return JSONResponse(content=response.model_dump(by_alias=True))


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="Kindergarten Debt Manager Mail Relay",
        description="Outbound e-mail relay for debt reminders",
        version=__version__,
    )
    app.add_api_route("/api/send-email", send_email, methods=["POST"])
    app.add_api_route("/api/health", health, methods=["GET"])
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the relay with uvicorn."""
    settings = get_settings()
    configure_logging(debug=settings.app.debug_mode)

    relay = get_mail_relay()
    if relay.is_configured:
        logger.info("smtp_configured", host=relay.settings.host)
    else:
        logger.warning("smtp_not_configured", hint="Set SMTP_HOST, SMTP_USER, SMTP_PASS")
    if not relay.admin_email_set:
        logger.warning("admin_email_not_set", hint="Emails go to the client-provided address")

    uvicorn.run(app, host=settings.app.api_host, port=settings.app.api_port)


if __name__ == "__main__":
    run()
