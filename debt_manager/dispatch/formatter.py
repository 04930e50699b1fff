"""
Notification Dispatch Formatter

Builds the text and destination of an outbound message. It NEVER delivers
anything: WhatsApp links are opened by the browser and e-mail goes through
the relay API.

Message layout:

    <greeting with family name>

    <body>

    <signature>
"""

import re
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from debt_manager.models.records import (
    DEFAULT_WHATSAPP_GREETING,
    DEFAULT_WHATSAPP_SIGNATURE,
    FAMILY_NAME_PLACEHOLDER,
    Family,
    StoreSettings,
)


ISRAEL_COUNTRY_CODE = "972"
WHATSAPP_BASE_URL = "https://wa.me/"

_NON_DIGITS = re.compile(r"\D")

# Punctuation left unescaped in the text parameter
_URI_SAFE = "!~*'()"


class WhatsAppMessage(BaseModel):
    """A composed message and the deep link that opens it."""
    phone: str
    text: str
    url: str


def normalize_phone(phone: Optional[str]) -> str:
    """
    Normalize an Israeli phone number to international digits.

    Non-digits are stripped. A number already starting with 972 is kept,
    a leading 0 becomes 972, anything else gets 972 prepended. The length
    is not validated: garbage in gives a malformed number, never an error.
    """
    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith(ISRAEL_COUNTRY_CODE):
        return digits
    if digits.startswith("0"):
        return ISRAEL_COUNTRY_CODE + digits[1:]
    return ISRAEL_COUNTRY_CODE + digits


def compose_message(
    greeting_template: str,
    signature: str,
    family_name: str,
    body: str,
) -> str:
    """Greeting (first placeholder filled), blank line, body, blank line, signature."""
    greeting = greeting_template.replace(FAMILY_NAME_PLACEHOLDER, family_name, 1)
    return f"{greeting}\n\n{body}\n\n{signature}"


def build_whatsapp_link(phone: str, text: str) -> str:
    """wa.me deep link with the message percent-encoded."""
    return f"{WHATSAPP_BASE_URL}{normalize_phone(phone)}?text={quote(text, safe=_URI_SAFE)}"


def prepare_whatsapp(
    family: Family,
    body: str,
    settings: Optional[StoreSettings] = None,
) -> WhatsAppMessage:
    """
    Compose the full message for a family and its WhatsApp link.

    Blank greeting/signature settings fall back to the defaults.
    """
    greeting = settings.effective_greeting if settings else DEFAULT_WHATSAPP_GREETING
    signature = settings.effective_signature if settings else DEFAULT_WHATSAPP_SIGNATURE
    text = compose_message(greeting, signature, family.family_name, body)
    return WhatsAppMessage(
        phone=normalize_phone(family.phone),
        text=text,
        url=build_whatsapp_link(family.phone, text),
    )


def render_email_html(body: str) -> str:
    """HTML alternative of a plain-text e-mail body."""
    return body.replace("\n", "<br>")
