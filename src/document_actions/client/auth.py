"""OAuth 2.0 client for vendor token management.

This module handles the authorization-code exchange and token refresh for the
destinations' OAuth providers (Google, Microsoft identity platform). It speaks
the plain OAuth 2.0 token endpoint protocol over httpx.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Mapping, Optional
from urllib.parse import urlencode

import httpx

from ..oauth.models import TokenSet
from ..utils.errors import AuthenticationError, RetriableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthProvider:
    """Endpoints and consent parameters for one OAuth provider."""

    name: str
    authorize_endpoint: str
    token_endpoint: str
    authorize_params: Mapping[str, str] = field(default_factory=dict)


GOOGLE = OAuthProvider(
    name="google",
    authorize_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
    token_endpoint="https://oauth2.googleapis.com/token",
    authorize_params={"access_type": "offline", "prompt": "consent"},
)


def microsoft(tenant: str = "common") -> OAuthProvider:
    """Microsoft identity platform (v2) provider for a tenant.

    Refresh tokens come from the ``offline_access`` scope rather than an
    ``access_type`` parameter.
    """
    base = f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0"
    return OAuthProvider(
        name="microsoft",
        authorize_endpoint=f"{base}/authorize",
        token_endpoint=f"{base}/token",
        authorize_params={"prompt": "consent", "response_mode": "query"},
    )


class OAuthClient:
    """OAuth 2.0 client for one provider and one registered application.

    Builds consent URLs, exchanges authorization codes for tokens, and
    refreshes access tokens with a stored refresh token.
    """

    def __init__(
        self,
        provider: OAuthProvider,
        client_id: str,
        client_secret: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize OAuth client.

        Args:
            provider: Provider endpoints
            client_id: OAuth 2.0 client ID
            client_secret: OAuth 2.0 client secret
            client: Optional httpx client for making requests.
                    If not provided, a new client will be created per request.
        """
        self.provider = provider
        self._client_id = client_id
        self._client_secret = client_secret
        self._client = client

    def authorization_url(
        self,
        redirect_uri: str,
        scopes: List[str],
        state: str,
    ) -> str:
        """Build the provider consent URL.

        Args:
            redirect_uri: Where the provider sends the user back with a code
            scopes: Requested scopes
            state: Opaque value the provider echoes back verbatim

        Returns:
            Fully qualified consent URL
        """
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(scopes),
            **self.provider.authorize_params,
            "state": state,
        }
        return f"{self.provider.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenSet:
        """Exchange an authorization code for a token bundle.

        Args:
            code: Authorization code from the provider redirect
            redirect_uri: The redirect URI used for the consent request

        Returns:
            Token bundle including the refresh token

        Raises:
            AuthenticationError: If the code or client credentials are rejected
            RetriableError: If network error or temporary provider issue
        """
        logger.info(
            "Exchanging OAuth authorization code: provider=%s, redirect_uri=%s",
            self.provider.name,
            redirect_uri,
        )
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        token_data = await self._request_token(data, "Code exchange")
        return TokenSet.from_token_response(token_data)

    async def refresh_access_token(
        self,
        refresh_token: str,
        scopes: Optional[List[str]] = None,
    ) -> TokenSet:
        """Refresh an expired access token using a refresh token.

        Args:
            refresh_token: The refresh token obtained during the code exchange
            scopes: Scopes to request again (required by some providers)

        Returns:
            New token bundle; the refresh token is carried over when the
            provider does not rotate it

        Raises:
            AuthenticationError: If refresh token is invalid or revoked
            RetriableError: If network error or temporary provider issue
        """
        logger.info(
            "Refreshing OAuth access token: provider=%s, client_id=%s, has_refresh_token=%s",
            self.provider.name,
            self._client_id[:10] + "..." if self._client_id else None,
            bool(refresh_token),
        )
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        if scopes:
            data["scope"] = " ".join(scopes)

        token_data = await self._request_token(data, "Token refresh")
        return TokenSet.from_token_response(token_data, refresh_token=refresh_token)

    async def _request_token(self, data: Dict[str, str], purpose: str) -> Dict[str, Any]:
        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(
                self.provider.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

            if response.status_code == 200:
                token_data = response.json()
                if not token_data.get("access_token"):
                    logger.error(
                        "%s response missing access_token: keys=%s",
                        purpose,
                        sorted(token_data),
                    )
                    raise AuthenticationError(
                        f"{purpose} response missing access_token"
                    )

                logger.info(
                    "%s succeeded: expires_in=%s, token_type=%s",
                    purpose,
                    token_data.get("expires_in"),
                    token_data.get("token_type", "Bearer"),
                )
                return token_data

            elif response.status_code in [400, 401]:
                # Invalid code, refresh token or client credentials
                error_data = self._parse_error_response(response)
                error_msg = error_data.get("error_description", "Invalid grant")

                logger.error(
                    "%s failed - invalid credentials: status_code=%s, error=%s, error_description=%s",
                    purpose,
                    response.status_code,
                    error_data.get("error"),
                    error_msg,
                )
                raise AuthenticationError(
                    f"{purpose} failed: {error_msg}",
                    status_code=response.status_code,
                )

            elif response.status_code in [429, 503]:
                retry_after = response.headers.get("Retry-After", "60")
                logger.warning(
                    "Token endpoint temporarily unavailable: status_code=%s, retry_after=%s",
                    response.status_code,
                    retry_after,
                )
                raise RetriableError(
                    f"Token endpoint temporarily unavailable (status {response.status_code})",
                    details={"status_code": response.status_code},
                    retry_after=int(retry_after) if retry_after.isdigit() else 60,
                    status_code=response.status_code,
                )

            else:
                error_data = self._parse_error_response(response)
                logger.error(
                    "Unexpected token endpoint error: status_code=%s, error=%s",
                    response.status_code,
                    error_data.get("error"),
                )
                if response.status_code >= 500:
                    raise RetriableError(
                        f"Token endpoint error: {response.status_code}",
                        details={"status_code": response.status_code},
                        status_code=response.status_code,
                    )
                raise AuthenticationError(
                    f"{purpose} failed with status {response.status_code}",
                    status_code=response.status_code,
                )

        except httpx.TimeoutException as e:
            logger.error("Timeout calling token endpoint: error=%s", str(e))
            raise RetriableError(
                f"{purpose} request timed out",
                details={"error": str(e)},
            )
        except httpx.NetworkError as e:
            logger.error("Network error calling token endpoint: error=%s", str(e))
            raise RetriableError(
                f"Network error during {purpose.lower()}",
                details={"error": str(e)},
            )
        finally:
            if not self._client:
                await client.aclose()

    def _parse_error_response(self, response: httpx.Response) -> Dict[str, Any]:
        """Parse error response from the token endpoint.

        Args:
            response: HTTP response object

        Returns:
            Parsed error data or empty dict
        """
        try:
            return response.json()
        except ValueError:
            return {"raw_text": response.text[:500] if response.text else None}
