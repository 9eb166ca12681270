"""HTTP clients for OAuth providers and destination APIs."""

from .auth import GOOGLE, OAuthClient, OAuthProvider, microsoft
from .docs_api import GoogleDocsAPIClient
from .graph_api import GraphAPIClient

__all__ = [
    "GOOGLE",
    "OAuthClient",
    "OAuthProvider",
    "microsoft",
    "GoogleDocsAPIClient",
    "GraphAPIClient",
]
