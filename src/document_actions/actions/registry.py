"""Environment-gated action registration."""

from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog

from ..config import Settings
from ..oauth.seal import StateSeal
from .base import Action
from .google_docs import LOG_PREFIX as GOOGLE_DOCS_PREFIX
from .google_docs import GoogleDocsAction
from .sharepoint_word import LOG_PREFIX as SHAREPOINT_WORD_PREFIX
from .sharepoint_word import SharePointWordAction


def build_actions(
    settings: Settings,
    state_seal: StateSeal,
    http_client: Optional[httpx.AsyncClient] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    logger: Optional[structlog.BoundLogger] = None,
) -> Dict[str, Action]:
    """Instantiate every action whose OAuth client is configured.

    Returns:
        Actions keyed by name
    """
    logger = logger or structlog.get_logger()
    base_url = settings.hub.base_url
    actions: Dict[str, Action] = {}

    if settings.google_docs.configured:
        actions[GoogleDocsAction.name] = GoogleDocsAction(
            settings.google_docs, base_url, state_seal,
            http_client=http_client, sleep=sleep, logger=logger,
        )
    else:
        logger.warning(f"{GOOGLE_DOCS_PREFIX} Action not registered because required environment variables are missing.")

    if settings.sharepoint_word.configured:
        actions[SharePointWordAction.name] = SharePointWordAction(
            settings.sharepoint_word, base_url, state_seal,
            http_client=http_client, sleep=sleep, logger=logger,
        )
    else:
        logger.warning(f"{SHAREPOINT_WORD_PREFIX} Action not registered because required environment variables are missing.")

    logger.info("Registered actions", actions=sorted(actions))
    return actions
