"""
Redaction helpers applied before anything reaches logs, telemetry or an LLM prompt.

Provides:
- redact(): Hash sensitive strings for correlation without exposure
- redact_subject(): Partially redact email subjects for debugging
- redact_pii(): Mask addresses, phone numbers and similar in free text
- sanitize_for_prompt(): Remove potential prompt injection patterns
"""

from __future__ import annotations

import re
from hashlib import sha256

INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"forget\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def redact_subject(subject: str | None, max_length: int = 30) -> str:
    """
    Partially redact email subject for logging while preserving debuggability.

    Example:
        "Field trip permission slip due Friday for Maya" ->
        "Field trip permission slip due..." (h:1f2e3d)
    """
    if not subject:
        return "(no subject)"

    visible = subject[:max_length] + "..." if len(subject) > max_length else subject
    digest = sha256(subject.encode("utf-8")).hexdigest()[:6]
    return f"{visible} (h:{digest})"


def redact_pii(text: str | None, max_length: int = 500) -> str:
    """
    Redact personally identifiable information from text.

    Redacts email addresses, phone numbers and names after greetings.
    Dates and times are left intact since event extraction depends on them.
    """
    if not text:
        return ""

    text = re.sub(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "[EMAIL]", text)
    text = re.sub(r"\+?1?[-.\s]?\(?[0-9]{3}\)?[-.\s][0-9]{3}[-.\s][0-9]{4}\b", "[PHONE]", text)
    text = re.sub(r"(?i)\b(dear|hi|hello|hey)\s+([A-Z][a-z]+)", r"\1 [NAME]", text)

    return text[:max_length]


def sanitize_for_prompt(text: str, max_length: int = 500) -> str:
    """
    Sanitize message text before including it in an LLM prompt.

    Truncates, strips known injection phrases and drops characters that could
    be confused with prompt delimiters.
    """
    if not text:
        return ""

    text = text[:max_length]
    text = INJECTION_REGEX.sub("[REDACTED]", text)
    text = re.sub(r"[<>{}|\\]", "", text)

    return text.strip()
