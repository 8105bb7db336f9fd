"""
Tests for the text catalog
"""
from app.i18n import get_text


def test_format_placeholders():
    assert get_text("en", "admin.refcount_total", count=3) == "📈 Total verified referrals across all KOLs: 3"


def test_unknown_language_falls_back_to_default():
    assert get_text("xx", "verify.success") == "Verification successful!"


def test_missing_key_returns_key():
    assert get_text("en", "no.such.key") == "no.such.key"
