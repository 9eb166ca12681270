"""Unit tests for the OAuth handshake."""

import json
from urllib.parse import parse_qs, urlparse

import pytest
import httpx
import respx
from structlog.testing import capture_logs

from document_actions.client.auth import GOOGLE, OAuthClient
from document_actions.oauth.handshake import OAuthHandshake
from document_actions.oauth.models import Credentials, HandshakeState, TokenSet
from document_actions.oauth.seal import FernetStateSeal
from document_actions.utils.errors import (
    AuthenticationError,
    CallbackError,
    SealError,
    ValidationError,
)

HUB_URL = "https://hub.example.com"
CALLBACK_URL = "https://orchestrator.example.com/actions/state/abc123"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REDIRECT_URI = f"{HUB_URL}/actions/google_docs/oauth_redirect"
SCOPES = ["https://www.googleapis.com/auth/documents"]


@pytest.fixture
def handshake(state_seal):
    return OAuthHandshake(
        action_name="google_docs",
        hub_base_url=HUB_URL + "/",
        oauth_client=OAuthClient(GOOGLE, "test_client_id", "test_client_secret"),
        state_seal=state_seal,
        scopes=SCOPES,
    )


def _sealed_state_from(form) -> str:
    query = parse_qs(urlparse(form.fields[0].oauth_url).query)
    return query["state"][0]


def _mock_token_endpoint():
    return respx.post(TOKEN_URL).mock(
        return_value=httpx.Response(
            200,
            json={"access_token": "new_access", "refresh_token": "new_refresh", "expires_in": 3600},
        )
    )


class TestLoginForm:
    """Test cases for login form generation."""

    def test_form_links_to_hub_oauth_route(self, handshake):
        form = handshake.login_form(CALLBACK_URL, "webhook-1")

        assert len(form.fields) == 1
        field = form.fields[0]
        assert field.name == "login"
        assert field.type == "oauth_link_google"
        assert field.oauth_url.startswith(f"{HUB_URL}/actions/google_docs/oauth?state=")
        assert form.state.data == "reset"

    def test_form_state_carries_callback(self, handshake, state_seal):
        form = handshake.login_form(CALLBACK_URL, "webhook-1")

        state = HandshakeState.unseal(_sealed_state_from(form), state_seal)
        assert state.callback_url == CALLBACK_URL
        assert state.correlation_id == "webhook-1"
        assert CALLBACK_URL not in form.fields[0].oauth_url

    def test_missing_callback_url_is_rejected(self, handshake):
        with pytest.raises(ValidationError):
            handshake.login_form(None, "webhook-1")

    def test_seal_failure_is_logged_and_raised(self):
        handshake = OAuthHandshake(
            action_name="google_docs",
            hub_base_url=HUB_URL,
            oauth_client=OAuthClient(GOOGLE, "id", "secret"),
            state_seal=FernetStateSeal(None),
            scopes=SCOPES,
        )

        with capture_logs() as logs:
            with pytest.raises(SealError):
                handshake.login_form(CALLBACK_URL, "webhook-1")

        assert any(entry["log_level"] == "error" for entry in logs)

    def test_consent_url_echoes_sealed_state(self, handshake):
        url = handshake.authorization_url(handshake.redirect_uri, "sealed-token")

        params = parse_qs(urlparse(url).query)
        assert params["state"] == ["sealed-token"]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["redirect_uri"] == [REDIRECT_URI]


@pytest.mark.asyncio
class TestCallback:
    """Test cases for completing the handshake."""

    @pytest.fixture
    def sealed(self, handshake):
        return _sealed_state_from(handshake.login_form(CALLBACK_URL, "webhook-1"))

    @respx.mock
    async def test_posts_tokens_and_redirect_to_callback(self, handshake, sealed):
        _mock_token_endpoint()
        callback_route = respx.post(CALLBACK_URL).mock(return_value=httpx.Response(200))

        credentials = await handshake.complete("auth-code", sealed, REDIRECT_URI)

        assert callback_route.call_count == 1
        body = json.loads(callback_route.calls.last.request.content)
        assert body["redirect"] == REDIRECT_URI
        assert body["tokens"]["access_token"] == "new_access"
        assert body["tokens"]["refresh_token"] == "new_refresh"
        assert credentials.tokens.access_token == "new_access"

    @respx.mock
    async def test_status_below_100_is_warning_not_error(self, handshake, sealed):
        _mock_token_endpoint()
        respx.post(CALLBACK_URL).mock(return_value=httpx.Response(99))

        with capture_logs() as logs:
            await handshake.complete("auth-code", sealed, REDIRECT_URI)

        levels = [entry["log_level"] for entry in logs]
        assert "warning" in levels
        assert "error" not in levels

    @respx.mock
    async def test_callback_failure_raises_callback_error(self, handshake, sealed):
        _mock_token_endpoint()
        callback_route = respx.post(CALLBACK_URL).mock(return_value=httpx.Response(500))

        with capture_logs() as logs:
            with pytest.raises(CallbackError) as exc_info:
                await handshake.complete("auth-code", sealed, REDIRECT_URI)

        assert callback_route.call_count == 1
        assert exc_info.value.status_code == 500
        errors = [entry for entry in logs if entry["log_level"] == "error"]
        assert errors
        assert all("new_access" not in str(entry) for entry in errors)

    @respx.mock
    async def test_callback_transport_error_raises_callback_error(self, handshake, sealed):
        _mock_token_endpoint()
        respx.post(CALLBACK_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(CallbackError):
            await handshake.complete("auth-code", sealed, REDIRECT_URI)

    @respx.mock
    async def test_tampered_state_fails_before_exchange(self, handshake, sealed):
        tampered = sealed[:-6] + ("A" if sealed[-6] != "A" else "B") + sealed[-5:]

        with capture_logs() as logs:
            with pytest.raises(SealError):
                await handshake.complete("auth-code", tampered, REDIRECT_URI)

        assert any(entry["event"] == "Encryption not correctly configured" for entry in logs)

    @respx.mock
    async def test_rejected_code_raises_authentication_error(self, handshake, sealed):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )
        # Unmocked: reaching the callback would fail the test.
        with pytest.raises(AuthenticationError):
            await handshake.complete("bad-code", sealed, REDIRECT_URI)

    @respx.mock
    async def test_refresh_merges_tokens(self, handshake):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
        )
        credentials = Credentials(
            tokens=TokenSet(access_token="stale", refresh_token="keep-me", id_token="jwt"),
            redirect=REDIRECT_URI,
        )

        refreshed = await handshake.refresh(credentials)

        assert refreshed.tokens.access_token == "fresh"
        assert refreshed.tokens.refresh_token == "keep-me"
        assert refreshed.redirect == REDIRECT_URI
