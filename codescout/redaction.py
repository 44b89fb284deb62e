"""Secret redaction for text leaving the process."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

# Long base64-ish runs that either contain "=" (padding) or "_" plus a digit
# (API key shape). Letters-and-underscores identifiers are left alone.
TOKEN_RE = re.compile(
    r"(?<![A-Za-z0-9_=-])"
    r"(?=[A-Za-z0-9_=-]{24,})"
    r"(?:(?=[A-Za-z0-9_=-]*=)|(?=[A-Za-z0-9_=-]*_)(?=[A-Za-z0-9_=-]*\d))"
    r"[A-Za-z0-9_=-]{24,}"
    r"(?![A-Za-z0-9_=-])"
)
GITHUB_TOKEN_RE = re.compile(r"\bgh[pousr]_[A-Za-z0-9_]{20,}\b")
JWT_RE = re.compile(r"\beyJ[A-Za-z0-9_=-]{10,}\.[A-Za-z0-9_=-]{10,}\.[A-Za-z0-9_=-]{10,}\b")
URL_CREDENTIALS_RE = re.compile(r"\b(https?://)([^/\s:@]+):([^/\s@]+)@", re.IGNORECASE)


def redact_text(text: str) -> str:
    """Replace credentials and token-shaped strings with a placeholder."""
    if not isinstance(text, str) or not text:
        return text

    out = URL_CREDENTIALS_RE.sub(lambda m: f"{m.group(1)}{REDACTED}@", text)
    out = GITHUB_TOKEN_RE.sub(REDACTED, out)
    out = JWT_RE.sub(REDACTED, out)
    out = TOKEN_RE.sub(REDACTED, out)
    return out


def redact_json(value: Any) -> Any:
    """Apply redact_text to every string inside a JSON-like structure."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, (list, tuple)):
        return [redact_json(v) for v in value]
    if isinstance(value, dict):
        return {k: redact_json(v) for k, v in value.items()}
    return value
