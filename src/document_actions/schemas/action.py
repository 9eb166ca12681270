"""Action hub request/response schemas.

Pydantic models for the JSON exchanged with the host orchestrator: execute
and form requests, forms, responses, and the structured error block.
"""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..utils.retry import status_code_of

STREAM_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class HttpErrorType:
    """One row of the HTTP error table used in action responses."""

    code: int
    status: str
    description: str


HTTP_ERROR: dict[str, HttpErrorType] = {
    "bad_request": HttpErrorType(400, "BAD_REQUEST", "The request could not be processed."),
    "unauthenticated": HttpErrorType(401, "UNAUTHENTICATED", "Authentication with the destination failed."),
    "permission_denied": HttpErrorType(403, "PERMISSION_DENIED", "Permission denied by the destination."),
    "not_found": HttpErrorType(404, "NOT_FOUND", "The destination resource was not found."),
    "already_exists": HttpErrorType(409, "ALREADY_EXISTS", "The destination reported a conflict."),
    "resource_exhausted": HttpErrorType(429, "RESOURCE_EXHAUSTED", "The destination rate limit was exceeded."),
    "internal": HttpErrorType(500, "INTERNAL", "Internal error."),
    "bad_gateway": HttpErrorType(502, "BAD_GATEWAY", "The destination returned an invalid response."),
    "unavailable": HttpErrorType(503, "UNAVAILABLE", "The destination is temporarily unavailable."),
    "timeout": HttpErrorType(504, "DEADLINE_EXCEEDED", "The destination timed out."),
}

_ERROR_TYPE_BY_CODE = {t.code: t for t in HTTP_ERROR.values()}


def http_error_type(error: BaseException) -> HttpErrorType:
    """Map an error's status code onto the HTTP error table.

    Unknown or missing codes map to ``internal``.
    """
    return _ERROR_TYPE_BY_CODE.get(status_code_of(error), HTTP_ERROR["internal"])


class ActionState(BaseModel):
    """User state handed back to the orchestrator."""

    data: Optional[str] = None
    url: Optional[str] = None


class ActionError(BaseModel):
    """Structured error block of a failed action response."""

    http_code: int
    status_code: str
    message: str
    location: str = "ActionContainer"
    documentation_url: Optional[str] = None

    @classmethod
    def with_type(
        cls,
        error_type: HttpErrorType,
        message: str,
        documentation_url: Optional[str] = None,
    ) -> ActionError:
        return cls(
            http_code=error_type.code,
            status_code=error_type.status,
            message=message,
            documentation_url=documentation_url,
        )


class ActionResponse(BaseModel):
    """Result of an execute request."""

    success: bool = True
    message: Optional[str] = None
    state: Optional[ActionState] = None
    error: Optional[ActionError] = None
    webhook_id: Optional[str] = None

    @classmethod
    def reset(cls, message: str, webhook_id: Optional[str] = None) -> ActionResponse:
        """Failure that asks the orchestrator to restart the OAuth login."""
        return cls(
            success=False,
            message=message,
            state=ActionState(data="reset"),
            webhook_id=webhook_id,
        )


class FormOption(BaseModel):
    name: str
    label: str


class FormField(BaseModel):
    name: str
    label: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    required: bool = False
    default: Optional[str] = None
    options: Optional[list[FormOption]] = None
    oauth_url: Optional[str] = None


class ActionForm(BaseModel):
    fields: list[FormField] = Field(default_factory=list)
    state: Optional[ActionState] = None


class Attachment(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    data: Optional[str] = None
    encoding: Optional[Literal["base64"]] = None
    extension: Optional[str] = Field(default=None, alias="fileExtension")
    mime: Optional[str] = Field(default=None, alias="mimetype")

    def data_bytes(self) -> bytes:
        if self.data is None:
            return b""
        if self.encoding == "base64":
            return base64.b64decode(self.data)
        return self.data.encode("utf-8")


class ScheduledPlan(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    url: Optional[str] = None
    download_url: Optional[str] = None


class ActionRequest(BaseModel):
    """An execute or form request from the orchestrator."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: Optional[str] = "query"
    params: dict[str, Optional[str]] = Field(default_factory=dict, alias="data")
    form_params: dict[str, Optional[str]] = Field(default_factory=dict)
    attachment: Optional[Attachment] = None
    scheduled_plan: Optional[ScheduledPlan] = None
    webhook_id: Optional[str] = None

    def suggested_filename(self) -> Optional[str]:
        """Filename derived from the scheduled plan title, if there is one."""
        title = self.scheduled_plan.title if self.scheduled_plan else None
        if not title:
            return None
        extension = self.attachment.extension if self.attachment else None
        return f"{title}.{extension}" if extension else title

    async def stream(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = STREAM_CHUNK_SIZE,
    ) -> AsyncIterator[bytes]:
        """Yield the attachment bytes chunk by chunk.

        Inline attachment data wins; otherwise the scheduled plan's
        ``download_url`` is streamed. No attachment yields nothing.
        """
        if self.attachment is not None and self.attachment.data is not None:
            data = self.attachment.data_bytes()
            for start in range(0, len(data), chunk_size):
                yield data[start:start + chunk_size]
            return

        download_url = self.scheduled_plan.download_url if self.scheduled_plan else None
        if not download_url:
            return

        client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
        try:
            async with client.stream("GET", download_url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes(chunk_size):
                    yield chunk
        finally:
            if http_client is None:
                await client.aclose()