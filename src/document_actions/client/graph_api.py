"""Microsoft Graph client for SharePoint document library uploads."""

import logging
from typing import Dict, Any, List, Optional
from urllib.parse import quote

import httpx

from .auth import OAuthClient
from ..oauth.models import TokenSet
from ..utils.errors import AuthenticationError, RemoteAPIError, RetriableError

logger = logging.getLogger(__name__)

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class GraphAPIClient:
    """Async client for the Graph drive-item upload endpoint.

    Mirrors :class:`~document_actions.client.docs_api.GoogleDocsAPIClient`:
    one token refresh on a 401, with the result kept on ``refreshed_tokens``.
    """

    BASE_URL = "https://graph.microsoft.com/v1.0"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        tokens: TokenSet,
        oauth_client: OAuthClient,
        scopes: Optional[List[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._tokens = tokens
        self._oauth_client = oauth_client
        self._scopes = scopes
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout)
        )
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.refreshed_tokens: Optional[TokenSet] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self._http_client.aclose()

    async def upload_document(
        self,
        site: str,
        library: str,
        filename: str,
        content: bytes,
        content_type: str = DOCX_MIME_TYPE,
    ) -> Dict[str, Any]:
        """Upload (create or replace) a file at the root of a document library.

        Args:
            site: SharePoint site id
            library: Document library (drive) id
            filename: Target file name
            content: File bytes
            content_type: MIME type of the upload

        Returns:
            The Graph ``driveItem`` for the uploaded file

        Raises:
            AuthenticationError: If the token is rejected even after a refresh
            RemoteAPIError: For any other non-2xx response
            RetriableError: For network errors and timeouts
        """
        url = (
            f"{self.base_url}/sites/{quote(site, safe='')}/drives/{quote(library, safe='')}"
            f"/root:/{quote(filename, safe='')}:/content"
        )
        logger.info(
            "Uploading document to SharePoint: site=%s, library=%s, size=%s",
            site,
            library,
            len(content),
        )

        try:
            response = await self._put(url, content, content_type)

            if response.status_code == 401 and self.refreshed_tokens is None and self._tokens.refresh_token:
                logger.info("Access token rejected, attempting refresh")
                self._tokens = await self._oauth_client.refresh_access_token(
                    self._tokens.refresh_token,
                    scopes=self._scopes,
                )
                self.refreshed_tokens = self._tokens
                response = await self._put(url, content, content_type)

            if response.status_code == 401:
                raise AuthenticationError(
                    "Authentication failed with status 401",
                    status_code=401,
                )

            if response.status_code >= 400:
                error_detail = self._parse_error_response(response)
                message = error_detail.get("message") or "Unknown error"
                logger.error(
                    "Graph API error: status_code=%s, code=%s, message=%s",
                    response.status_code,
                    error_detail.get("code"),
                    message,
                )
                raise RemoteAPIError(
                    f"Graph API error: {response.status_code} - {message}",
                    status_code=response.status_code,
                    errors=[{"message": message}] if error_detail.get("message") else [],
                    details={"code": error_detail.get("code")},
                )

            return response.json() if response.content else {}

        except httpx.TimeoutException as e:
            logger.error("Timeout calling Graph API: error=%s", str(e))
            raise RetriableError(
                "Request to Graph API timed out",
                details={"error": str(e)},
            )
        except httpx.NetworkError as e:
            logger.error("Network error calling Graph API: error=%s", str(e))
            raise RetriableError(
                "Network error calling Graph API",
                details={"error": str(e)},
            )

    async def _put(self, url: str, content: bytes, content_type: str) -> httpx.Response:
        return await self._http_client.put(
            url,
            content=content,
            headers={
                "Authorization": f"Bearer {self._tokens.access_token}",
                "Content-Type": content_type,
            },
        )

    def _parse_error_response(self, response: httpx.Response) -> Dict[str, Any]:
        # Graph wraps errors as {"error": {"code": ..., "message": ...}}
        try:
            error_json = response.json()
        except ValueError:
            return {"message": response.text[:500] if response.text else None}
        if isinstance(error_json, dict) and isinstance(error_json.get("error"), dict):
            return error_json["error"]
        return {}
