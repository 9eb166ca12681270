"""Action interface and the response mapping shared by every destination.

Actions do not inherit behaviour from each other. Each one composes an
``OAuthHandshake``, a ``RetryExecutor`` and a vendor client; the helpers
below only turn credentials and exceptions into orchestrator responses.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog

from ..oauth.handshake import OAuthHandshake
from ..oauth.models import Credentials, TokenSet
from ..schemas.action import (
    HTTP_ERROR,
    ActionError,
    ActionForm,
    ActionRequest,
    ActionResponse,
    ActionState,
    http_error_type,
)
from ..utils.errors import AuthenticationError
from ..utils.sanitize import sanitize_error

NO_STATE_MESSAGE = "No state found with oauth credentials."
NO_TOKENS_MESSAGE = "Request did not have necessary oauth tokens saved. Fast failing"


class Action(ABC):
    """One destination upload action exposed by the hub."""

    name: str
    label: str
    description: str
    log_prefix: str
    supported_formats: List[str] = ["csv"]
    supported_action_types: List[str] = ["query"]
    params: List[Dict[str, Any]] = []

    def __init__(
        self,
        handshake: OAuthHandshake,
        hub_base_url: str,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        self.handshake = handshake
        self.hub_base_url = hub_base_url.rstrip("/")
        self.logger = logger or structlog.get_logger()

    @property
    def documentation_url(self) -> str:
        return f"{self.hub_base_url}/actions/{self.name}"

    @abstractmethod
    async def form(self, request: ActionRequest) -> ActionForm:
        """Return the login form, or the destination form once authorized."""

    @abstractmethod
    async def execute(self, request: ActionRequest) -> ActionResponse:
        """Upload the request's tabular attachment to the destination."""

    def to_metadata(self) -> Dict[str, Any]:
        """Integration list entry for this action."""
        base = self.documentation_url
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "supported_action_types": self.supported_action_types,
            "supported_formats": self.supported_formats,
            "uses_oauth": True,
            "params": self.params,
            "url": f"{base}/execute",
            "form_url": f"{base}/form",
        }

    def credentials_from(self, request: ActionRequest) -> Credentials:
        """Authorized credentials from the request's persisted state.

        Raises:
            AuthenticationError: If the state is missing, holds no tokens, or
                the tokens were issued for another redirect URI
        """
        state_json = request.params.get("state_json")
        if not state_json:
            raise AuthenticationError(NO_STATE_MESSAGE)
        credentials = Credentials.from_state_json(state_json)
        if credentials is None:
            raise AuthenticationError(NO_TOKENS_MESSAGE)
        if credentials.redirect != self.handshake.redirect_uri:
            raise AuthenticationError(
                "Credentials were issued for a different redirect URI; log in again"
            )
        return credentials

    def login_form(self, request: ActionRequest) -> ActionForm:
        return self.handshake.login_form(
            request.params.get("state_url"),
            request.webhook_id,
        )

    def reset_response(
        self,
        error: AuthenticationError,
        request: ActionRequest,
        log: structlog.BoundLogger,
    ) -> ActionResponse:
        log.info(f"{error.message} - resetting login")
        return ActionResponse.reset(error.message, webhook_id=request.webhook_id)

    def bad_request(
        self,
        message: str,
        request: ActionRequest,
        log: structlog.BoundLogger,
    ) -> ActionResponse:
        error = ActionError.with_type(
            HTTP_ERROR["bad_request"],
            f"{self.log_prefix} {message}",
            documentation_url=self.documentation_url,
        )
        log.error(error.message, error=error.model_dump())
        return ActionResponse(
            success=False,
            message=error.message,
            error=error,
            webhook_id=request.webhook_id,
        )

    def failure_response(
        self,
        exc: Exception,
        request: ActionRequest,
        log: structlog.BoundLogger,
    ) -> ActionResponse:
        """Map an upload failure onto an error response.

        The vendor's own message is surfaced when the error carries one.
        """
        sanitize_error(exc)
        error_type = http_error_type(exc)
        error = ActionError.with_type(
            error_type,
            f"{self.log_prefix} {exc}",
            documentation_url=self.documentation_url,
        )

        vendor_message = getattr(exc, "vendor_message", None)
        status_code = getattr(exc, "status_code", None)
        if status_code and vendor_message:
            error.http_code = status_code
            error.message = f"{error_type.description} {self.log_prefix} {vendor_message}"
            message = vendor_message
        else:
            message = str(exc)

        log.error(error.message, error=error.model_dump())
        return ActionResponse(
            success=False,
            message=message,
            error=error,
            webhook_id=request.webhook_id,
        )


def forward_tokens(
    response: Any,
    refreshed: Optional[TokenSet],
    redirect: str,
) -> None:
    """Hand refreshed tokens to the orchestrator through the response state."""
    if refreshed is None:
        return
    response.state = ActionState(
        data=Credentials(tokens=refreshed, redirect=redirect).to_state_json()
    )
