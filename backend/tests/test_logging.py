"""
Tests for log redaction and registration context binding.
"""

import structlog

from festreg.core.logging import REDACTED, bind_booking_context, redact_sensitive


def test_credentials_are_redacted():
    event = {
        "event": "webhook_rejected",
        "token": "s3cret",
        "authorization": "Bearer abc",
        "checksum": "chk_1",
        "booking_uid": "bk_1",
    }
    rendered = redact_sensitive(None, "info", event)
    assert rendered["token"] == REDACTED
    assert rendered["authorization"] == REDACTED
    assert rendered["checksum"] == REDACTED
    assert rendered["booking_uid"] == "bk_1"


def test_missing_values_stay_missing():
    assert redact_sensitive(None, "info", {"event": "x", "token": None})["token"] is None


def test_booking_context_skips_unknown_fields():
    structlog.contextvars.clear_contextvars()
    bind_booking_context(domain="delegate")
    bind_booking_context(booking_uid="grp_1")
    assert structlog.contextvars.get_contextvars() == {"domain": "delegate", "booking_uid": "grp_1"}
    structlog.contextvars.clear_contextvars()
