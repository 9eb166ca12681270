"""Unit tests for the OAuth client."""

from urllib.parse import parse_qs, urlparse

import pytest
import httpx
import respx

from document_actions.client.auth import GOOGLE, OAuthClient, microsoft
from document_actions.utils.errors import AuthenticationError, RetriableError

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
REDIRECT_URI = "https://hub.example.com/actions/google_docs/oauth_redirect"


class TestAuthorizationUrl:
    """Test cases for consent URL generation."""

    def test_google_consent_url(self):
        client = OAuthClient(GOOGLE, "test_client_id", "test_client_secret")

        url = client.authorization_url(
            redirect_uri=REDIRECT_URI,
            scopes=["scope.a", "scope.b"],
            state="sealed-state",
        )

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == GOOGLE.authorize_endpoint
        assert params["response_type"] == ["code"]
        assert params["client_id"] == ["test_client_id"]
        assert params["redirect_uri"] == [REDIRECT_URI]
        assert params["scope"] == ["scope.a scope.b"]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["state"] == ["sealed-state"]
        assert "test_client_secret" not in url

    def test_microsoft_tenant_endpoints(self):
        provider = microsoft("contoso")
        assert provider.authorize_endpoint == (
            "https://login.microsoftonline.com/contoso/oauth2/v2.0/authorize"
        )
        assert provider.token_endpoint == "https://login.microsoftonline.com/contoso/oauth2/v2.0/token"


@pytest.mark.asyncio
class TestOAuthClient:
    """Test cases for code exchange and token refresh."""

    @pytest.fixture
    def oauth_client(self):
        return OAuthClient(GOOGLE, "test_client_id", "test_client_secret")

    @respx.mock
    async def test_exchange_code(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "access_token": "new_access_token",
                    "refresh_token": "new_refresh_token",
                    "expires_in": 3600,
                    "token_type": "Bearer",
                },
            )
        )

        tokens = await oauth_client.exchange_code("auth-code", REDIRECT_URI)

        assert tokens.access_token == "new_access_token"
        assert tokens.refresh_token == "new_refresh_token"
        assert tokens.expiry_date is not None

        content = respx.calls.last.request.content.decode()
        assert "grant_type=authorization_code" in content
        assert "code=auth-code" in content
        assert "client_secret=test_client_secret" in content

    @respx.mock
    async def test_refresh_keeps_refresh_token(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "refreshed", "expires_in": 3600})
        )

        tokens = await oauth_client.refresh_access_token("stored_refresh_token")

        assert tokens.access_token == "refreshed"
        assert tokens.refresh_token == "stored_refresh_token"
        assert "grant_type=refresh_token" in respx.calls.last.request.content.decode()

    @respx.mock
    async def test_invalid_grant_raises_authentication_error(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(
            return_value=httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
            )
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await oauth_client.refresh_access_token("revoked")

        assert "expired or revoked" in str(exc_info.value)
        assert exc_info.value.status_code == 400

    @respx.mock
    async def test_rate_limit_raises_retriable_error(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(
            return_value=httpx.Response(429, headers={"Retry-After": "12"})
        )

        with pytest.raises(RetriableError) as exc_info:
            await oauth_client.exchange_code("auth-code", REDIRECT_URI)

        assert exc_info.value.retry_after == 12
        assert exc_info.value.status_code == 429

    @respx.mock
    async def test_server_error_raises_retriable_error(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(return_value=httpx.Response(502, text="Bad gateway"))

        with pytest.raises(RetriableError):
            await oauth_client.exchange_code("auth-code", REDIRECT_URI)

    @respx.mock
    async def test_missing_access_token_raises(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(return_value=httpx.Response(200, json={"token_type": "Bearer"}))

        with pytest.raises(AuthenticationError, match="missing access_token"):
            await oauth_client.exchange_code("auth-code", REDIRECT_URI)

    @respx.mock
    async def test_network_error_raises_retriable_error(self, oauth_client):
        respx.post(GOOGLE_TOKEN_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(RetriableError, match="Network error"):
            await oauth_client.exchange_code("auth-code", REDIRECT_URI)
