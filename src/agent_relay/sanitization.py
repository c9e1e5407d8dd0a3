"""One-line, secret-free previews of prompts and replies for log messages."""

from __future__ import annotations

import re

_MAX_PREVIEW_CHARS = 500
_WHITESPACE = re.compile(r"\s+")

_SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)\b(bearer)\s+[a-z0-9._\-]{8,}\b"), r"\1 [redacted-token]"),
    (re.compile(r"(?i)\bsk-[a-z0-9\-]{8,}\b"), "[redacted-token]"),
    (re.compile(r"(?i)\bAIza[0-9a-z_\-]{20,}\b"), "[redacted-token]"),
    (
        re.compile(
            r"(?i)\b(agent_relay|openai|anthropic|gemini|google)[a-z0-9_]*_?(api_)?(key|token)\b"
            r"\s*[:=]\s*['\"]?[^'\" \n\r\t]+['\"]?",
        ),
        "[redacted-secret]",
    ),
    (re.compile(r"(?i)([?&](?:token|key|signature|auth))=[^&\s]+"), r"\1=[redacted]"),
)


def redact_secrets(text: str) -> str:
    """Replace API keys, bearer tokens and signed URL parameters."""

    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_preview(text: str, *, max_chars: int = _MAX_PREVIEW_CHARS) -> str:
    """Flatten ``text`` to one line, redact secrets and clip it to ``max_chars``."""

    flat = _WHITESPACE.sub(" ", text).strip()
    if not flat:
        return ""

    redacted = redact_secrets(flat)
    if len(redacted) <= max_chars:
        return redacted
    return f"{redacted[:max_chars]}... (+{len(redacted) - max_chars} chars)"
