"""
Log redaction helpers.

Designed for structlog processors. Masks the two secrets this service holds:
the signing key and the Discord webhook URL (its path carries a token).
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEY_FRAGMENTS = (
    "private_key",
    "privatekey",
    "secret",
    "token",
    "password",
    "authorization",
    "signature",
    "webhook_url",
)

# 32-byte hex signing key, with or without 0x
_HEX_KEY = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")
_DISCORD_WEBHOOK = re.compile(r"https://(?:\w+\.)?discord(?:app)?\.com/api/webhooks/\S+")


def _is_sensitive_key(key: str) -> bool:
    k = str(key).lower()
    return any(frag in k for frag in SENSITIVE_KEY_FRAGMENTS)


def scrub(text: str) -> str:
    """Mask signing keys and webhook URLs embedded in free text (error messages)."""
    text = _HEX_KEY.sub(REDACTED, text)
    return _DISCORD_WEBHOOK.sub(REDACTED, text)


def redact(obj: Any) -> Any:
    """
    Recursively redact dict keys that look sensitive and secrets inside strings.
    """
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if _is_sensitive_key(k):
                out[k] = REDACTED
            else:
                out[k] = redact(v)
        return out
    if isinstance(obj, (list, tuple)):
        return [redact(v) for v in obj]
    if isinstance(obj, str):
        return scrub(obj)
    return obj


def structlog_redaction_processor(_logger: Any, _method_name: str, event_dict: dict) -> dict:
    """
    Structlog processor: redact sensitive fields from event_dict.
    """
    return redact(event_dict)
