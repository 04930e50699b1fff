"""Outbound message formatting package."""

from debt_manager.dispatch.formatter import (
    ISRAEL_COUNTRY_CODE,
    WhatsAppMessage,
    build_whatsapp_link,
    compose_message,
    normalize_phone,
    prepare_whatsapp,
    render_email_html,
)

__all__ = [
    "ISRAEL_COUNTRY_CODE",
    "WhatsAppMessage",
    "build_whatsapp_link",
    "compose_message",
    "normalize_phone",
    "prepare_whatsapp",
    "render_email_html",
]
