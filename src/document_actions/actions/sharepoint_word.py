"""SharePoint Word action: upload a query result as a Word table document."""

from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from ..client.auth import OAuthClient, microsoft
from ..client.graph_api import GraphAPIClient
from ..config import SharePointWordConfig
from ..oauth.handshake import OAuthHandshake
from ..oauth.seal import StateSeal
from ..pipeline.docx_render import render_docx
from ..pipeline.rows import parse_rows
from ..schemas.action import ActionForm, ActionRequest, ActionResponse, FormField
from ..utils.errors import AuthenticationError
from ..utils.retry import RetryExecutor
from .base import Action, forward_tokens

LOG_PREFIX = "[SHAREPOINT_WORD]"

OAUTH_SCOPES = [
    "offline_access",
    "Files.ReadWrite.All",
    "Sites.ReadWrite.All",
]


def docx_filename(filename: str) -> str:
    """Give ``filename`` a .docx extension, replacing a trailing .csv."""
    if filename.lower().endswith(".docx"):
        return filename
    if filename.lower().endswith(".csv"):
        filename = filename[: -len(".csv")]
    return f"{filename}.docx"


class SharePointWordAction(Action):
    """Upload a Word document holding the attachment as a table."""

    name = "sharepoint_word"
    label = "SharePoint Word"
    description = "Create a new Word document with data in a table."
    log_prefix = LOG_PREFIX
    oauth_scopes = OAUTH_SCOPES

    def __init__(
        self,
        config: SharePointWordConfig,
        hub_base_url: str,
        state_seal: StateSeal,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        logger = logger or structlog.get_logger()
        self.config = config
        self.http_client = http_client
        self.oauth_client = OAuthClient(
            microsoft(config.tenant_id),
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
            link_type="oauth_link",
            account_label="Microsoft",
            http_client=http_client,
            logger=logger,
        )
        super().__init__(handshake, hub_base_url, logger)
        self.executor = RetryExecutor(config.retry_policy(), sleep=sleep, logger=logger)

    async def execute(self, request: ActionRequest) -> ActionResponse:
        log = self.logger.bind(webhook_id=request.webhook_id, action=self.name)

        try:
            credentials = self.credentials_from(request)
        except AuthenticationError as e:
            return self.reset_response(e, request, log)

        filename = request.form_params.get("filename") or request.suggested_filename()
        if not filename:
            return self.bad_request("Error creating file name", request, log)

        site = request.form_params.get("site")
        library = request.form_params.get("library")
        if not site or not library:
            return self.bad_request("SharePoint site and document library are required", request, log)

        client = GraphAPIClient(
            credentials.tokens,
            self.oauth_client,
            scopes=self.oauth_scopes,
            http_client=self.http_client,
            base_url=self.config.graph_api_base_url,
        )
        try:
            rows = await parse_rows(request.stream(self.http_client))
            content = render_docx(rows)
            async with client:
                item = await self.executor.execute(
                    lambda: client.upload_document(site, library, docx_filename(filename), content),
                    label="document upload",
                    webhook_id=request.webhook_id,
                )
        except Exception as e:
            response = self.failure_response(e, request, log)
        else:
            log.info("Word document uploaded", item_id=item.get("id"), rows=len(rows))
            response = ActionResponse(success=True, webhook_id=request.webhook_id)

        forward_tokens(response, client.refreshed_tokens, credentials.redirect)
        return response

    async def form(self, request: ActionRequest) -> ActionForm:
        try:
            self.credentials_from(request)
        except AuthenticationError as e:
            self.logger.info(
                f"{e.message} - showing login form",
                webhook_id=request.webhook_id,
                action=self.name,
            )
            return self.login_form(request)

        return ActionForm(
            fields=[
                FormField(name="filename", label="Filename", type="string", required=True),
                FormField(name="site", label="SharePoint Site", type="string", required=True),
                FormField(name="library", label="Document Library", type="string", required=True),
            ],
        )
