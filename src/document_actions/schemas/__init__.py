"""Schemas for orchestrator requests and responses."""

from .action import (
    HTTP_ERROR,
    ActionError,
    ActionForm,
    ActionRequest,
    ActionResponse,
    ActionState,
    Attachment,
    FormField,
    FormOption,
    HttpErrorType,
    ScheduledPlan,
    http_error_type,
)

__all__ = [
    "HTTP_ERROR",
    "ActionError",
    "ActionForm",
    "ActionRequest",
    "ActionResponse",
    "ActionState",
    "Attachment",
    "FormField",
    "FormOption",
    "HttpErrorType",
    "ScheduledPlan",
    "http_error_type",
]
