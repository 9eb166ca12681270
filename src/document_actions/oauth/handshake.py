"""Three-step OAuth authorization handshake.

Step 0 (login form): the orchestrator asks for a form and hands us the
one-time callback URL it will accept credentials on. We seal it into an
opaque state token and offer a link to this hub's ``oauth`` route.

Step 1 (consent): the ``oauth`` route redirects the browser to the vendor's
consent page with the sealed token as the OAuth ``state`` parameter.

Step 2 (callback): the vendor sends the browser back with an authorization
code and the sealed token. We unseal it, exchange the code, and POST
``{tokens, redirect}`` to the recovered callback URL.

No server-side session is kept between steps; everything needed to finish
lives in the sealed token.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional
from urllib.parse import urlencode

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from ..schemas.action import ActionForm, ActionState, FormField
from ..utils.errors import AuthenticationError, CallbackError, SealError, ValidationError
from ..utils.sanitize import sanitize_error, sanitize_string
from .models import Credentials, HandshakeState
from .seal import StateSeal

if TYPE_CHECKING:
    from ..client.auth import OAuthClient


class OAuthHandshake:
    """Drive the login form → consent → code exchange flow for one action."""

    def __init__(
        self,
        action_name: str,
        hub_base_url: str,
        oauth_client: OAuthClient,
        state_seal: StateSeal,
        scopes: List[str],
        link_type: str = "oauth_link_google",
        account_label: str = "Google",
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        """Initialize the handshake.

        Args:
            action_name: Action name used in hub URLs
            hub_base_url: Public base URL of this hub
            oauth_client: Vendor OAuth client
            state_seal: Seal for the handshake state
            scopes: Scopes requested at consent time
            link_type: Form field type the orchestrator renders as a login link
            account_label: Vendor account name shown in the form description
            http_client: Optional httpx client for the callback POST
            logger: Structured logger instance
        """
        self.action_name = action_name
        self.hub_base_url = hub_base_url.rstrip("/")
        self.oauth_client = oauth_client
        self.state_seal = state_seal
        self.scopes = scopes
        self.link_type = link_type
        self.account_label = account_label
        self._http_client = http_client
        self.logger = logger or structlog.get_logger()

    @property
    def redirect_uri(self) -> str:
        """Hub URL the vendor sends the browser back to."""
        return f"{self.hub_base_url}/actions/{self.action_name}/oauth_redirect"

    def start_url(self, sealed_state: str) -> str:
        """Hub URL that kicks off the consent redirect."""
        query = urlencode({"state": sealed_state})
        return f"{self.hub_base_url}/actions/{self.action_name}/oauth?{query}"

    def login_form(
        self,
        callback_url: Optional[str],
        correlation_id: Optional[str] = None,
    ) -> ActionForm:
        """Build the login form carrying a freshly sealed handshake state.

        Raises:
            ValidationError: If the callback URL is missing or malformed
            SealError: If sealing fails; never degraded to plaintext
        """
        try:
            state = HandshakeState(callback_url=callback_url, correlation_id=correlation_id)
        except PydanticValidationError as e:
            raise ValidationError(
                "Login form requires a valid state_url",
                field="state_url",
            ) from e

        log = self.logger.bind(webhook_id=state.correlation_id, action=self.action_name)
        try:
            sealed = state.seal(self.state_seal)
        except Exception as e:
            log.error("Payload encryption error", error=str(e))
            if isinstance(e, SealError):
                raise
            raise SealError(f"Payload encryption error: {e}") from e

        oauth_url = self.start_url(sealed)
        log.debug("Built login form", start_url=f"{self.hub_base_url}/actions/{self.action_name}/oauth")

        return ActionForm(
            state=ActionState(data="reset"),
            fields=[
                FormField(
                    name="login",
                    type=self.link_type,
                    label="Log in",
                    description=(
                        "In order to send to this destination, you will need to log in"
                        f" once to your {self.account_label} account."
                    ),
                    oauth_url=oauth_url,
                ),
            ],
        )

    def authorization_url(self, redirect_uri: str, sealed_state: str) -> str:
        """Vendor consent URL echoing the sealed state verbatim."""
        url = self.oauth_client.authorization_url(
            redirect_uri=redirect_uri,
            scopes=self.scopes,
            state=sealed_state,
        )
        self.logger.debug(
            "Generated consent URL",
            action=self.action_name,
            redirect_uri=redirect_uri,
        )
        return url

    async def complete(
        self,
        code: str,
        sealed_state: str,
        redirect_uri: str,
    ) -> Credentials:
        """Finish the handshake and notify the orchestrator.

        Args:
            code: Authorization code from the vendor redirect
            sealed_state: The sealed token echoed back by the vendor
            redirect_uri: Redirect URI used for the consent request

        Returns:
            The credentials that were posted to the callback URL

        Raises:
            SealError: If the state cannot be unsealed (misconfigured keys)
            AuthenticationError: If the vendor rejects the code
            RetriableError: If the token endpoint is temporarily unavailable
            CallbackError: If the orchestrator rejects the credentials
        """
        try:
            state = HandshakeState.unseal(sealed_state, self.state_seal)
        except SealError as e:
            self.logger.error(
                "Encryption not correctly configured",
                action=self.action_name,
                error=str(e),
            )
            raise

        log = self.logger.bind(webhook_id=state.correlation_id, action=self.action_name)

        tokens = await self.oauth_client.exchange_code(code, redirect_uri)
        credentials = Credentials(tokens=tokens, redirect=redirect_uri)

        await self._notify(state, credentials, log)
        log.info("OAuth login flow complete")
        return credentials

    async def refresh(self, credentials: Credentials) -> Credentials:
        """Request a fresh access token; the caller forwards the result."""
        if not credentials.tokens.refresh_token:
            raise AuthenticationError("Stored credentials have no refresh token")
        tokens = await self.oauth_client.refresh_access_token(
            credentials.tokens.refresh_token,
            scopes=self.scopes if self.oauth_client.provider.name == "microsoft" else None,
        )
        merged = credentials.tokens.model_copy(update=tokens.model_dump(exclude_none=True))
        return Credentials(tokens=merged, redirect=credentials.redirect)

    async def _notify(
        self,
        state: HandshakeState,
        credentials: Credentials,
        log: structlog.BoundLogger,
    ) -> None:
        # One attempt only; the orchestrator endpoint is one-time-use.
        client = self._http_client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(
                state.callback_url,
                json=credentials.model_dump(mode="json", exclude_none=True),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status < 100:
                # The orchestrator has been seen to store the state and still
                # answer with a nonsense status code.
                log.warning(
                    f"Ignoring state update response with response code {status}",
                    status_code=status,
                )
                return
            sanitize_error(e)
            log.error(
                "Error sending user state to orchestrator",
                status_code=status,
                error=sanitize_string(str(e)),
            )
            raise CallbackError(
                f"Callback notification failed with status {status}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            sanitize_error(e)
            log.error(
                "Error sending user state to orchestrator",
                error=sanitize_string(str(e)),
            )
            raise CallbackError(
                f"Callback notification failed: {sanitize_string(str(e))}"
            ) from e
        finally:
            if self._http_client is None:
                await client.aclose()
