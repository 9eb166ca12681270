"""Shared fixtures for the document actions tests."""

import pytest

from document_actions.oauth.models import Credentials, TokenSet
from document_actions.oauth.seal import FernetStateSeal

HUB_URL = "https://hub.example.com"

ENV_VARS = [
    "CIPHER_MASTER",
    "GOOGLE_DOC_CLIENT_ID",
    "GOOGLE_DOC_CLIENT_SECRET",
    "GOOGLE_DOCS_RETRY",
    "GOOGLE_DOCS_BASE_DELAY",
    "GOOGLE_DOCS_WRITE_BATCH",
    "GOOGLE_DOCS_MAX_RETRY_COUNT",
    "SHAREPOINT_CLIENT_ID",
    "SHAREPOINT_CLIENT_SECRET",
    "SHAREPOINT_TENANT_ID",
    "SHAREPOINT_WORD_RETRY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of settings-driven tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def hub_url():
    return HUB_URL


@pytest.fixture
def state_seal():
    return FernetStateSeal("test-cipher-secret")


@pytest.fixture
def make_state_json():
    """Build orchestrator state JSON for an action's redirect URI."""

    def _make(action_name: str, redirect=None, access_token="test_access_token"):
        credentials = Credentials(
            tokens=TokenSet(access_token=access_token, refresh_token="test_refresh_token"),
            redirect=redirect or f"{HUB_URL}/actions/{action_name}/oauth_redirect",
        )
        return credentials.to_state_json()

    return _make
