"""Credential scrubbing for errors and log text.

Vendor errors and callback failures can echo request material back (bearer
headers, token-endpoint form bodies, the ``{tokens, redirect}`` payload).
Everything that leaves this process through a log line or an action response
goes through here first.
"""

import re
from typing import Any, Dict

import httpx

from .errors import IntegrationError

REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS = [
    re.compile(r"Bearer\s+[A-Za-z0-9\-_\.~+/]+=*", re.IGNORECASE),
    re.compile(
        r"\b(access_token|refresh_token|id_token|client_secret)"
        r"([\"']?\s*[=:]\s*[\"']?)([^\"'&,\s}]+)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(code)(=)([^\"'&\s]+)"),  # authorization codes in query/form bodies
    re.compile(r"ya29\.[A-Za-z0-9\-_\.]+"),  # Google access tokens
    re.compile(r"1//[A-Za-z0-9\-_]{20,}"),  # Google refresh tokens
]

SENSITIVE_KEYS = {
    "access_token",
    "refresh_token",
    "id_token",
    "client_secret",
    "authorization",
    "tokens",
}


def sanitize_string(text: str) -> str:
    """Replace token-looking substrings with a redaction marker."""
    if not text:
        return text

    result = text
    for pattern in SENSITIVE_PATTERNS:
        if pattern.groups >= 3:
            result = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", result)
        else:
            result = pattern.sub(REDACTED, result)
    return result


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact sensitive keys and scrub string values."""
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_KEYS:
            result[key] = REDACTED
        elif isinstance(value, dict):
            result[key] = sanitize_dict(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_dict(v) if isinstance(v, dict)
                else sanitize_string(v) if isinstance(v, str)
                else v
                for v in value
            ]
        elif isinstance(value, str):
            result[key] = sanitize_string(value)
        else:
            result[key] = value
    return result


def sanitize_error(error: BaseException) -> BaseException:
    """Scrub credential material from an exception in place.

    The same exception object is returned so callers can re-raise it
    unchanged in type and identity.
    """
    if isinstance(error, IntegrationError):
        error.message = sanitize_string(error.message)
        error.details = sanitize_dict(error.details)
        errors = getattr(error, "errors", None)
        if errors:
            error.errors = [sanitize_dict(e) if isinstance(e, dict) else e for e in errors]

    error.args = tuple(
        sanitize_string(a) if isinstance(a, str) else a for a in error.args
    )

    if isinstance(error, httpx.HTTPStatusError):
        # Drop the request body (it may hold a token form or the callback
        # payload) while keeping method and URL for diagnostics.
        request = error.request
        stripped = httpx.Request(request.method, request.url)
        error.request = stripped
        error.response.request = stripped

    return error
