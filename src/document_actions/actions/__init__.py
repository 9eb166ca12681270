"""Destination upload actions."""

from .base import Action
from .google_docs import GoogleDocsAction
from .registry import build_actions
from .sharepoint_word import SharePointWordAction

__all__ = [
    "Action",
    "GoogleDocsAction",
    "SharePointWordAction",
    "build_actions",
]
