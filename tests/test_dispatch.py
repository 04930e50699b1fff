"""Tests for message composition and WhatsApp links."""

from urllib.parse import parse_qs, urlsplit

import pytest

from debt_manager.dispatch import (
    build_whatsapp_link,
    compose_message,
    normalize_phone,
    prepare_whatsapp,
    render_email_html,
)
from debt_manager.models.records import Family, StoreSettings


class TestNormalizePhone:
    """Israeli phone normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("050-123-4567", "972501234567"),
        ("0501234567", "972501234567"),
        ("+972 50 123 4567", "972501234567"),
        ("972501234567", "972501234567"),
        ("501234567", "972501234567"),
        ("", "972"),
        (None, "972"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected


class TestComposeMessage:
    """Greeting, body and signature layout."""

    def test_layout(self):
        text = compose_message("שלום משפחת {שם_משפחה},", "בברכה,\nהנהלת הגן", "כהן", "נא להסדיר את החוב")
        assert text == "שלום משפחת כהן,\n\nנא להסדיר את החוב\n\nבברכה,\nהנהלת הגן"

    def test_only_first_placeholder_replaced(self):
        text = compose_message("{שם_משפחה} {שם_משפחה}", "sig", "Levi", "body")
        assert text.startswith("Levi {שם_משפחה}")

    def test_greeting_without_placeholder(self):
        assert compose_message("Hello", "sig", "Levi", "body") == "Hello\n\nbody\n\nsig"


class TestWhatsAppLink:
    """wa.me deep links."""

    def test_link_encodes_text(self):
        url = build_whatsapp_link("050-1234567", "a b\nc&d")
        assert url.startswith("https://wa.me/972501234567?text=")
        assert "a%20b%0Ac%26d" in url

    def test_link_round_trips_hebrew(self):
        text = "שלום משפחת כהן,\n\nתודה!"
        url = build_whatsapp_link("0501234567", text)
        assert parse_qs(urlsplit(url).query)["text"] == [text]

    def test_unreserved_punctuation_kept(self):
        assert build_whatsapp_link("0", "hi!(ok)*~'").endswith("text=hi!(ok)*~'")

    def test_prepare_uses_settings(self):
        family = Family(family_name="Cohen", phone="050-1234567")
        settings = StoreSettings(whatsapp_greeting="Hi {שם_משפחה}", whatsapp_signature="Office")
        message = prepare_whatsapp(family, "Please pay", settings)
        assert message.phone == "972501234567"
        assert message.text == "Hi Cohen\n\nPlease pay\n\nOffice"
        assert message.url == build_whatsapp_link("050-1234567", message.text)

    def test_prepare_blank_settings_use_defaults(self):
        family = Family(family_name="Cohen", phone="050-1234567")
        settings = StoreSettings(whatsapp_greeting="", whatsapp_signature="")
        message = prepare_whatsapp(family, "Please pay", settings)
        assert message.text == "שלום משפחת Cohen,\n\nPlease pay\n\nבברכה,\nהנהלת הגן"

    def test_prepare_without_settings(self):
        family = Family(family_name="Cohen")
        assert prepare_whatsapp(family, "x").text.startswith("שלום משפחת Cohen,")


def test_render_email_html():
    assert render_email_html("line 1\nline 2\n") == "line 1<br>line 2<br>"
