"""Unit tests for credential sanitization."""

import httpx

from document_actions.utils.errors import RemoteAPIError
from document_actions.utils.sanitize import (
    REDACTED,
    sanitize_dict,
    sanitize_error,
    sanitize_string,
)


def test_bearer_token_is_redacted():
    result = sanitize_string("Authorization: Bearer abc.def-123")
    assert "abc.def-123" not in result
    assert REDACTED in result


def test_token_assignments_are_redacted():
    result = sanitize_string("grant_type=refresh_token&refresh_token=1//xyz&client_secret=shh")
    assert "1//xyz" not in result
    assert "shh" not in result
    assert "grant_type=refresh_token" in result


def test_json_token_fields_are_redacted():
    result = sanitize_string('{"access_token": "ya29.a0AfH6", "expires_in": 3599}')
    assert "ya29.a0AfH6" not in result
    assert '"expires_in": 3599' in result


def test_authorization_code_in_query_is_redacted():
    result = sanitize_string("GET /oauth_redirect?code=4/0AX4XfWh&state=abc")
    assert "4/0AX4XfWh" not in result
    assert "state=abc" in result


def test_plain_status_text_is_untouched():
    text = "Google API error: status code: 500 - Backend Error"
    assert sanitize_string(text) == text


def test_sanitize_dict_redacts_sensitive_keys_recursively():
    data = {
        "tokens": {"access_token": "a"},
        "nested": {"refresh_token": "r", "status": "ok"},
        "items": [{"client_secret": "s"}, "Bearer zzz"],
    }

    result = sanitize_dict(data)

    assert result["tokens"] == REDACTED
    assert result["nested"] == {"refresh_token": REDACTED, "status": "ok"}
    assert result["items"][0] == {"client_secret": REDACTED}
    assert "zzz" not in result["items"][1]


def test_sanitize_error_keeps_identity_and_scrubs_fields():
    error = RemoteAPIError(
        "failed with access_token=secret",
        status_code=400,
        errors=[{"message": "bad refresh_token=abc"}],
        details={"authorization": "Bearer secret"},
    )

    result = sanitize_error(error)

    assert result is error
    assert "secret" not in error.message
    assert "secret" not in str(error.args)
    assert error.details["authorization"] == REDACTED
    assert "abc" not in error.errors[0]["message"]
    assert error.status_code == 400


def test_sanitize_error_strips_http_request_body():
    request = httpx.Request(
        "POST",
        "https://orchestrator.example.com/state",
        json={"tokens": {"access_token": "secret"}},
    )
    response = httpx.Response(500, request=request)
    error = httpx.HTTPStatusError("Server error", request=request, response=response)

    sanitize_error(error)

    assert error.request.content == b""
    assert error.response.request.content == b""
    assert str(error.request.url) == "https://orchestrator.example.com/state"
