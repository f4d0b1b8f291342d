"""Screening and sanitising of user-supplied free text."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

import bleach

SQL_INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|SCRIPT)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(OR|AND)\s+\d+\s*=\s*\d+", re.IGNORECASE),
    re.compile(r"(--|/\*|\*/)"),
    re.compile(r"\b(CHAR|NCHAR|VARCHAR|NVARCHAR)\s*\(", re.IGNORECASE),
    re.compile(r"\b(WAITFOR|DELAY)\b", re.IGNORECASE),
)

XSS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<img[^>]+src[^>]*>", re.IGNORECASE),
)


@dataclass
class SecurityCheck:
    """Outcome of screening one piece of text."""

    safe: bool
    issues: list[str] = field(default_factory=list)


def detect_sql_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in SQL_INJECTION_PATTERNS)


def detect_xss(text: str) -> bool:
    return any(pattern.search(text) for pattern in XSS_PATTERNS)


def validate_security(text: str) -> SecurityCheck:
    """Check text for SQL injection and XSS patterns."""
    issues = []
    if not text:
        return SecurityCheck(safe=True)

    if detect_sql_injection(text):
        issues.append("Potential SQL injection detected")
    if detect_xss(text):
        issues.append("Potential XSS attack detected")

    return SecurityCheck(safe=not issues, issues=issues)


def sanitize(value: Any, max_len: int = 1000) -> str:
    """
    Coerce a value to text safe to embed in a model prompt.

    None becomes an empty string, lists and dicts are JSON-encoded. The text
    is stripped of markup with bleach and truncated to ``max_len``.
    """
    if value is None:
        text = ""
    elif isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = str(value)
    cleaned = bleach.clean(text, tags=set(), strip=True)
    return cleaned.strip()[:max_len]
