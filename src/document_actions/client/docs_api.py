"""Google Docs and Drive API client with one-shot token refresh.

This module provides the async client the Google Docs action writes through:
Drive API v3 for creating the empty document and listing shared drives,
Docs API v1 for batch updates, and the OAuth2 userinfo endpoint for the
user's email. Non-2xx responses are raised as ``RemoteAPIError`` carrying
the vendor's status code and error entries; retrying them is left to the
caller's ``RetryExecutor``.
"""

import logging
from typing import Dict, Any, Optional, List

import httpx

from .auth import OAuthClient
from ..oauth.models import TokenSet
from ..utils.errors import (
    AuthenticationError,
    RemoteAPIError,
    RetriableError,
)

logger = logging.getLogger(__name__)

DOCUMENT_MIME_TYPE = "application/vnd.google-apps.document"


class GoogleDocsAPIClient:
    """Async client for Google Docs API v1 and the Drive API v3 calls it needs.

    Features:
    - Access token refresh, at most once per client, on a 401 response
    - Refreshed tokens kept on ``refreshed_tokens`` for the caller to forward
    - Vendor error entries preserved on ``RemoteAPIError.errors``
    """

    DRIVE_BASE_URL = "https://www.googleapis.com/drive/v3"
    DOCS_BASE_URL = "https://docs.googleapis.com/v1"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        tokens: TokenSet,
        oauth_client: OAuthClient,
        http_client: Optional[httpx.AsyncClient] = None,
        drive_base_url: Optional[str] = None,
        docs_base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            tokens: Token bundle from the orchestrator-persisted credentials
            oauth_client: OAuth client used for the one-shot refresh
            http_client: Optional httpx client for API requests
            drive_base_url: Override for the Drive API base URL
            docs_base_url: Override for the Docs API base URL
            timeout: Request timeout in seconds when creating our own client
        """
        self._tokens = tokens
        self._oauth_client = oauth_client
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout)
        )
        self.drive_base_url = (drive_base_url or self.DRIVE_BASE_URL).rstrip("/")
        self.docs_base_url = (docs_base_url or self.DOCS_BASE_URL).rstrip("/")
        self.refreshed_tokens: Optional[TokenSet] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def create_document(
        self,
        name: str,
        parents: Optional[List[str]] = None,
        supports_all_drives: bool = False,
    ) -> Optional[str]:
        """Create an empty Google Doc.

        Args:
            name: Document title
            parents: Parent folder (or shared drive) ids
            supports_all_drives: Whether the parent may live in a shared drive

        Returns:
            The new document id, or None if the response carried none

        Raises:
            RemoteAPIError: If Drive rejects the request
        """
        logger.info(
            "Creating Google Doc: has_parents=%s, supports_all_drives=%s",
            bool(parents),
            supports_all_drives,
        )
        metadata: Dict[str, Any] = {"name": name, "mimeType": DOCUMENT_MIME_TYPE}
        if parents:
            metadata["parents"] = parents

        params: Dict[str, Any] = {"fields": "id"}
        if supports_all_drives:
            params["supportsAllDrives"] = "true"

        response = await self._make_request(
            "POST",
            f"{self.drive_base_url}/files",
            params=params,
            json_data=metadata,
        )
        document_id = response.get("id")
        logger.info("Created Google Doc: document_id=%s", document_id)
        return document_id

    async def apply_batch(
        self,
        document_id: str,
        requests: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Apply one Docs ``batchUpdate`` with the given requests."""
        logger.debug(
            "Applying document batch: document_id=%s, request_count=%s",
            document_id,
            len(requests),
        )
        return await self._make_request(
            "POST",
            f"{self.docs_base_url}/documents/{document_id}:batchUpdate",
            json_data={"requests": requests},
        )

    async def user_email(self) -> Optional[str]:
        """Email address of the authorized user, from the userinfo endpoint."""
        response = await self._make_request("GET", self.USERINFO_URL)
        return response.get("email")

    async def list_drives(
        self,
        page_token: Optional[str] = None,
        page_size: int = 100,
    ) -> Dict[str, Any]:
        """List one page of the shared drives visible to the user.

        Returns:
            Dictionary containing ``drives`` and optional ``nextPageToken``
        """
        params: Dict[str, Any] = {"pageSize": min(page_size, 100)}
        if page_token:
            params["pageToken"] = page_token

        response = await self._make_request(
            "GET",
            f"{self.drive_base_url}/drives",
            params=params,
        )
        logger.info(
            "Listed shared drives: drive_count=%s, has_next_page=%s",
            len(response.get("drives", [])),
            bool(response.get("nextPageToken")),
        )
        return response

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated request to a Google API.

        Args:
            method: HTTP method
            url: API endpoint URL
            params: Query parameters
            json_data: JSON body

        Returns:
            Parsed JSON response (empty dict for an empty body)

        Raises:
            AuthenticationError: If the token is rejected even after a refresh
            RemoteAPIError: For any other non-2xx response
            RetriableError: For network errors and timeouts
        """
        try:
            response = await self._send(method, url, params, json_data)

            if response.status_code == 401:
                if self.refreshed_tokens is not None or not self._tokens.refresh_token:
                    raise AuthenticationError(
                        "Authentication failed with status 401",
                        status_code=401,
                    )
                logger.info("Access token rejected, attempting refresh")
                self._tokens = await self._oauth_client.refresh_access_token(
                    self._tokens.refresh_token
                )
                self.refreshed_tokens = self._tokens

                response = await self._send(method, url, params, json_data)
                if response.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed even after token refresh",
                        status_code=401,
                    )

            if response.status_code >= 400:
                error_detail = self._parse_error_response(response)
                message = error_detail.get("message") or "Unknown error"
                logger.error(
                    "Google API error: status_code=%s, url=%s, message=%s",
                    response.status_code,
                    url,
                    message,
                )
                errors = error_detail.get("errors") or (
                    [{"message": error_detail["message"]}] if error_detail.get("message") else []
                )
                raise RemoteAPIError(
                    f"Google API error: {response.status_code} - {message}",
                    status_code=response.status_code,
                    errors=errors,
                    details={"status": error_detail.get("status")},
                )

            if not response.content:
                return {}
            return response.json()

        except httpx.TimeoutException as e:
            logger.error("Timeout calling Google API: url=%s, error=%s", url, str(e))
            raise RetriableError(
                "Request to Google API timed out",
                details={"error": str(e)},
            )
        except httpx.NetworkError as e:
            logger.error("Network error calling Google API: url=%s, error=%s", url, str(e))
            raise RetriableError(
                "Network error calling Google API",
                details={"error": str(e)},
            )

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json_data: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._tokens.access_token}",
            "Accept": "application/json",
        }
        return await self._http_client.request(
            method,
            url,
            params=params,
            json=json_data,
            headers=headers,
        )

    def _parse_error_response(self, response: httpx.Response) -> Dict[str, Any]:
        """Parse a Google API error body.

        Google wraps errors as ``{"error": {"code", "message", "errors", "status"}}``.
        """
        try:
            error_json = response.json()
        except ValueError:
            return {"message": response.text[:500] if response.text else None}
        if isinstance(error_json, dict) and isinstance(error_json.get("error"), dict):
            return error_json["error"]
        return error_json if isinstance(error_json, dict) else {}
