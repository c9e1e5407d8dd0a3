from __future__ import annotations

import allure

from agent_relay.sanitization import redact_secrets, sanitize_preview

pytestmark = [
    allure.epic("Relay Runtime"),
    allure.feature("Log Hygiene"),
]


def test_redact_secrets_covers_common_token_shapes() -> None:
    text = (
        "Authorization: Bearer abcdefghijklmnop "
        "key sk-1234567890abcdef "
        "GEMINI_API_KEY=AIzaSyA1234567890abcdefghijkl "
        "https://example.com/?token=secret&x=1"
    )

    redacted = redact_secrets(text)

    assert "abcdefghijklmnop" not in redacted
    assert "sk-1234567890abcdef" not in redacted
    assert "AIzaSyA1234567890abcdefghijkl" not in redacted
    assert "?token=[redacted]&x=1" in redacted
    assert "Bearer [redacted-token]" in redacted


def test_sanitize_preview_flattens_and_clips() -> None:
    preview = sanitize_preview("line one\n\n  line two " + "x" * 40, max_chars=20)

    assert preview == "line one line two xx... (+38 chars)"


def test_sanitize_preview_keeps_short_text() -> None:
    assert sanitize_preview("  make a folder  ") == "make a folder"


def test_sanitize_preview_of_blank_text_is_empty() -> None:
    assert sanitize_preview("   \n") == ""
