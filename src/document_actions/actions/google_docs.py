"""Google Docs action: upload a query result as a table in a new Google Doc."""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from ..client.auth import GOOGLE, OAuthClient
from ..client.docs_api import GoogleDocsAPIClient
from ..config import GoogleDocsConfig
from ..oauth.handshake import OAuthHandshake
from ..oauth.models import TokenSet
from ..oauth.seal import StateSeal
from ..pipeline.runner import MY_DRIVE, BatchMutationPipeline, resolve_folder
from ..schemas.action import ActionForm, ActionRequest, ActionResponse, FormField, FormOption
from ..utils.errors import AuthenticationError, IntegrationError
from ..utils.retry import RetryExecutor
from .base import Action, forward_tokens

LOG_PREFIX = "[GOOGLE_DOCS]"

OAUTH_SCOPES = [
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/userinfo.email",
]

DOMAIN_VALIDATION_MESSAGE = "User Domain validation failed"


def parse_domain_allowlist(value: Optional[str]) -> List[str]:
    """Split a comma separated allowlist into lower-cased domains."""
    if not value:
        return []
    return [d.strip().lstrip("@").lower() for d in value.split(",") if d.strip()]


class GoogleDocsAction(Action):
    """Create a Google Doc holding the attachment as a table."""

    name = "google_docs"
    label = "Google Docs"
    description = "Create a new Google Doc with data in a table."
    log_prefix = LOG_PREFIX
    oauth_scopes = OAUTH_SCOPES
    params = [
        {
            "name": "domain_allowlist",
            "label": "Domain Allowlist",
            "required": False,
            "sensitive": False,
            "description": (
                "Comma separated email domains whose users may send to Google Docs."
                " Leave blank to allow any domain."
            ),
        },
    ]

    def __init__(
        self,
        config: GoogleDocsConfig,
        hub_base_url: str,
        state_seal: StateSeal,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        """Initialize the action.

        Args:
            config: Google Docs destination configuration
            hub_base_url: Public base URL of this hub
            state_seal: Seal for OAuth handshake state
            http_client: Shared httpx client for vendor and callback requests
            sleep: Backoff suspension override (tests)
            logger: Structured logger instance
        """
        logger = logger or structlog.get_logger()
        self.config = config
        self.http_client = http_client
        self.oauth_client = OAuthClient(
            GOOGLE,
            config.client_id or "",
            config.client_secret or "",
            client=http_client,
        )
        handshake = OAuthHandshake(
            action_name=self.name,
            hub_base_url=hub_base_url,
            oauth_client=self.oauth_client,
            state_seal=state_seal,
            scopes=self.oauth_scopes,
            link_type="oauth_link_google",
            account_label="Google",
            http_client=http_client,
            logger=logger,
        )
        super().__init__(handshake, hub_base_url, logger)
        self.executor = RetryExecutor(config.retry_policy(), sleep=sleep, logger=logger)

    def docs_client(self, tokens: TokenSet) -> GoogleDocsAPIClient:
        return GoogleDocsAPIClient(
            tokens,
            self.oauth_client,
            http_client=self.http_client,
            drive_base_url=self.config.drive_api_base_url,
            docs_base_url=self.config.docs_api_base_url,
        )

    async def execute(self, request: ActionRequest) -> ActionResponse:
        log = self.logger.bind(webhook_id=request.webhook_id, action=self.name)

        try:
            credentials = self.credentials_from(request)
        except AuthenticationError as e:
            return self.reset_response(e, request, log)

        client = self.docs_client(credentials.tokens)
        async with client:
            try:
                await self._check_domain(client, request.params.get("domain_allowlist"), log)
            except AuthenticationError as e:
                return self.reset_response(e, request, log)

            filename = request.form_params.get("filename") or request.suggested_filename()
            if filename:
                response = await self._create(client, filename, request, log)
            else:
                response = self.bad_request("Error creating file name", request, log)

        forward_tokens(response, client.refreshed_tokens, credentials.redirect)
        return response

    async def _create(
        self,
        client: GoogleDocsAPIClient,
        filename: str,
        request: ActionRequest,
        log: structlog.BoundLogger,
    ) -> ActionResponse:
        folder = resolve_folder(
            folderid=request.form_params.get("folderid"),
            folder=request.form_params.get("folder"),
            drive=request.form_params.get("drive"),
        )
        pipeline = BatchMutationPipeline(
            client,
            self.executor,
            write_batch=self.config.write_batch,
            logger=log,
        )
        try:
            document_id = await pipeline.run(
                filename,
                folder,
                request.stream(self.http_client),
                webhook_id=request.webhook_id,
            )
        except Exception as e:
            return self.failure_response(e, request, log)

        log.info("Google Doc created", document_id=document_id)
        return ActionResponse(success=True, webhook_id=request.webhook_id)

    async def _check_domain(
        self,
        client: GoogleDocsAPIClient,
        allowlist: Optional[str],
        log: structlog.BoundLogger,
    ) -> None:
        """Reject users whose email domain is not in ``allowlist``.

        Raises:
            AuthenticationError: If the domain is not listed or the user's
                email cannot be read
        """
        domains = parse_domain_allowlist(allowlist)
        if not domains or "*" in domains:
            return

        try:
            email = await client.user_email()
        except IntegrationError as e:
            log.info(f"{e} - invalidating token")
            raise AuthenticationError(DOMAIN_VALIDATION_MESSAGE) from e

        domain = email.rsplit("@", 1)[1].lower() if email and "@" in email else None
        if domain not in domains:
            log.info("User domain not in allowlist - invalidating token", domain=domain)
            raise AuthenticationError(DOMAIN_VALIDATION_MESSAGE)

    async def form(self, request: ActionRequest) -> ActionForm:
        log = self.logger.bind(webhook_id=request.webhook_id, action=self.name)

        try:
            credentials = self.credentials_from(request)
        except AuthenticationError as e:
            log.info(f"{e.message} - showing login form")
            return self.login_form(request)

        client = self.docs_client(credentials.tokens)
        try:
            async with client:
                drives = await self._shared_drives(client, request.webhook_id)
        except AuthenticationError as e:
            log.info(f"{e.message} - showing login form")
            return self.login_form(request)
        except IntegrationError as e:
            log.warning(
                "Could not list shared drives, offering My Drive only",
                error=str(e),
                status_code=e.status_code,
            )
            drives = []

        form = ActionForm(
            fields=[
                FormField(
                    name="drive",
                    label="Select Drive to save file",
                    type="select",
                    default=MY_DRIVE,
                    required=True,
                    options=[FormOption(name=MY_DRIVE, label="My Drive")]
                    + [FormOption(name=d["id"], label=d.get("name") or d["id"]) for d in drives],
                ),
                FormField(
                    name="folderid",
                    label="Google Drive Destination URL",
                    type="string",
                    description=(
                        "Enter the full Google Drive URL of the folder where you want to"
                        " save your data. Leave blank to save to your root folder."
                    ),
                ),
                FormField(
                    name="filename",
                    label="Enter a name",
                    type="string",
                    required=True,
                ),
            ],
        )
        forward_tokens(form, client.refreshed_tokens, credentials.redirect)
        return form

    async def _shared_drives(
        self,
        client: GoogleDocsAPIClient,
        webhook_id: Optional[str],
    ) -> List[Dict[str, Any]]:
        drives: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            page = await self.executor.execute(
                lambda: client.list_drives(page_token=page_token),
                label="drive list",
                webhook_id=webhook_id,
            )
            drives.extend(page.get("drives", []))
            page_token = page.get("nextPageToken")
            if not page_token:
                return drives
